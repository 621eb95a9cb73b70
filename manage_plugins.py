#!/usr/bin/env python3
"""Plugin management CLI tool."""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

# Ensure project root is in path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

load_dotenv()

from usefultools.constants import PLUGINS_DIR
from usefultools.plugins.config import PluginConfig
from usefultools.plugins.errors import PluginStoreError
from usefultools.plugins.manager import PluginManager
from usefultools.plugins.manifest import PluginMeta

console = Console()


def get_manager() -> PluginManager:
    """Create a PluginManager for the configured plugins directory."""
    return PluginManager(PLUGINS_DIR)


def _format_ms(value: int) -> str:
    return datetime.fromtimestamp(value / 1000).strftime("%Y-%m-%d %H:%M")


def print_plugins(plugins: List[PluginMeta], title: str) -> None:
    if not plugins:
        console.print("No plugins found.")
        return

    table = Table(title=title)
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Version")
    table.add_column("Package", style="dim")
    table.add_column("Categories")

    for p in plugins:
        table.add_row(p.id, p.title, p.version, p.package_name, ", ".join(p.categories))

    console.print(table)


async def cmd_registry(manager: PluginManager, args):
    """List plugins available on the registry."""
    plugins = await manager.fetch_registry(force_refresh=args.refresh)
    print_plugins(plugins, f"Registry ({manager.get_config().registry_url})")


async def cmd_package(manager: PluginManager, args):
    """Show the plugins declared by a single package."""
    plugins = await manager.fetch_package_by_name(args.package_name)
    print_plugins(plugins, args.package_name)


async def cmd_install(manager: PluginManager, args):
    """Install the plugins of a package (all of them, or only --id)."""
    plugins = await manager.fetch_package_by_name(args.package_name)
    if args.plugin_id:
        plugins = [p for p in plugins if p.id == args.plugin_id]
        if not plugins:
            console.print(f"[red]Plugin '{args.plugin_id}' not found in {args.package_name}.[/red]")
            sys.exit(1)

    for plugin in plugins:
        installed = await manager.install(plugin)
        console.print(f"Installed [cyan]{plugin.id}[/cyan] {plugin.version} -> {installed.local_bundle_path}")


async def cmd_uninstall(manager: PluginManager, args):
    await manager.uninstall(args.plugin_id)
    console.print(f"Plugin '{args.plugin_id}' uninstalled.")


async def cmd_list(manager: PluginManager, args):
    """List installed plugins."""
    installed = await manager.list_installed()
    if not installed:
        console.print("No plugins installed.")
        return

    table = Table(title=f"Installed plugins ({manager.plugins_dir})")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Version")
    table.add_column("Package", style="dim")
    table.add_column("Updated")

    for p in installed:
        table.add_row(p.meta.id, p.meta.title, p.meta.version, p.meta.package_name, _format_ms(p.updated_at))

    console.print(table)


async def cmd_updates(manager: PluginManager, args):
    """List installed plugins with a different version on the registry."""
    updates = await manager.check_updates()
    if not updates:
        console.print("All plugins are up to date.")
        return
    print_plugins(updates, "Updates available")


async def cmd_update(manager: PluginManager, args):
    """Reinstall plugins that have updates (all, or a single id)."""
    updates = await manager.check_updates()
    if args.plugin_id:
        updates = [p for p in updates if p.id == args.plugin_id]

    if not updates:
        console.print("Nothing to update.")
        return

    for plugin in updates:
        await manager.install(plugin)
        console.print(f"Updated [cyan]{plugin.id}[/cyan] to {plugin.version}")


async def cmd_config(manager: PluginManager, args):
    """Show or change the registry URL."""
    if args.registry:
        try:
            config = PluginConfig(registry_url=args.registry)
        except ValidationError as e:
            console.print(f"[red]Invalid registry URL:[/red] {e.errors()[0]['msg']}")
            sys.exit(1)
        manager.set_config(config)
    console.print(f"Registry: {manager.get_config().registry_url}")


async def cmd_bundle_path(manager: PluginManager, args):
    print(manager.get_bundle_path(args.plugin_id))


async def cmd_local(manager: PluginManager, args):
    """Validate a local plugin development directory."""
    plugins = manager.load_local_plugins(Path(args.path).resolve())
    print_plugins(plugins, f"Local plugins ({args.path})")


async def cmd_doctor(manager: PluginManager, args):
    """Find (and optionally remove) directories left by failed installs."""
    orphans = manager.find_orphans()
    if not orphans:
        installed = await manager.list_installed()
        console.print(f"All checks passed. {len(installed)} plugin(s) installed.")
        return

    console.print(f"Found {len(orphans)} incomplete plugin director(ies):")
    for i, path in enumerate(orphans, 1):
        console.print(f"  {i}. {path}")

    if args.fix:
        removed = await manager.prune_orphans()
        console.print(f"Removed {len(removed)} director(ies).")
    else:
        console.print("Run with --fix to remove them.")
        sys.exit(1)


def main():
    parser = argparse.ArgumentParser(description="UsefulTools Plugin Manager")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show INFO logs")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # registry
    registry_parser = subparsers.add_parser("registry", help="List plugins on the registry")
    registry_parser.add_argument("--refresh", action="store_true", help="Ignore the local cache")

    # package
    package_parser = subparsers.add_parser("package", help="Show plugins in a package")
    package_parser.add_argument("package_name", help="Registry package name")

    # install
    install_parser = subparsers.add_parser("install", help="Install plugins from a package")
    install_parser.add_argument("package_name", help="Registry package name")
    install_parser.add_argument("--id", dest="plugin_id", help="Only install this plugin id")

    # uninstall
    uninstall_parser = subparsers.add_parser("uninstall", help="Uninstall a plugin")
    uninstall_parser.add_argument("plugin_id", help="Plugin ID")

    # list
    subparsers.add_parser("list", help="List installed plugins")

    # updates / update
    subparsers.add_parser("updates", help="Check installed plugins for updates")
    update_parser = subparsers.add_parser("update", help="Install available updates")
    update_parser.add_argument("plugin_id", nargs="?", help="Only update this plugin")

    # config
    config_parser = subparsers.add_parser("config", help="Show or set the registry URL")
    config_parser.add_argument("--registry", help="New registry base URL")

    # bundle-path
    bundle_parser = subparsers.add_parser("bundle-path", help="Print a plugin's bundle path")
    bundle_parser.add_argument("plugin_id", help="Plugin ID")

    # local
    local_parser = subparsers.add_parser("local", help="Validate a local plugin directory")
    local_parser.add_argument("path", help="Directory containing plugin.json")

    # doctor
    doctor_parser = subparsers.add_parser("doctor", help="Run health checks")
    doctor_parser.add_argument("--fix", action="store_true", help="Remove incomplete plugin directories")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        "registry": cmd_registry,
        "package": cmd_package,
        "install": cmd_install,
        "uninstall": cmd_uninstall,
        "list": cmd_list,
        "updates": cmd_updates,
        "update": cmd_update,
        "config": cmd_config,
        "bundle-path": cmd_bundle_path,
        "local": cmd_local,
        "doctor": cmd_doctor,
    }

    try:
        asyncio.run(commands[args.command](get_manager(), args))
    except PluginStoreError as e:
        console.print(f"[red]Error ({e.kind.value}):[/red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
