"""Plugin manager - top-level facade for the plugin store."""

import logging
from pathlib import Path
from typing import List, Optional

from usefultools.constants import PLUGIN_CONFIG_FILENAME, PLUGIN_PACKAGE_PREFIX, REGISTRY_CACHE_FILENAME
from usefultools.plugins.cache import RegistryCache
from usefultools.plugins.config import PluginConfig, PluginConfigService
from usefultools.plugins.discovery import LocalPluginDiscovery
from usefultools.plugins.errors import PluginValidationError
from usefultools.plugins.installer import PluginInstaller
from usefultools.plugins.manifest import InstalledPluginInfo, PluginMeta
from usefultools.plugins.resolver import RegistryResolver, is_plugin_package_name

logger = logging.getLogger(__name__)


class PluginManager:
    """Top-level plugin store orchestrator.

    Wires the config store, resolver, cache and installer together under one
    plugin root and exposes the operations offered to the host shell.
    """

    def __init__(self, plugins_dir: Path, resolver: Optional[RegistryResolver] = None):
        self.plugins_dir = plugins_dir

        self.config_service = PluginConfigService(plugins_dir / PLUGIN_CONFIG_FILENAME)
        self.resolver = resolver or RegistryResolver()
        self.registry_cache = RegistryCache(
            plugins_dir / REGISTRY_CACHE_FILENAME,
            self.config_service,
            self.resolver,
        )
        self.installer = PluginInstaller(
            plugins_dir,
            self.config_service,
            self.resolver,
            self.registry_cache,
        )
        self.discovery = LocalPluginDiscovery()

    async def fetch_registry(self, force_refresh: bool = False) -> List[PluginMeta]:
        """Get the plugin catalog (cached for an hour, stale copy on network failure)."""
        return await self.registry_cache.fetch(force_refresh)

    async def fetch_package_by_name(self, package_name: str) -> List[PluginMeta]:
        """Resolve a manually entered package name.

        Raises:
            PluginValidationError: name does not follow the plugin naming rule
        """
        name = package_name.strip()
        if not is_plugin_package_name(name):
            raise PluginValidationError(
                f"Package name \"{name}\" must start with {PLUGIN_PACKAGE_PREFIX} "
                f"(for scoped packages, the part after /)",
                package=name,
                step="package-name",
            )

        config = self.config_service.load()
        return await self.resolver.resolve_package(config.registry_url, name)

    async def install(self, plugin: PluginMeta) -> InstalledPluginInfo:
        return await self.installer.install(plugin)

    async def uninstall(self, plugin_id: str) -> None:
        await self.installer.uninstall(plugin_id)

    async def list_installed(self) -> List[InstalledPluginInfo]:
        return await self.installer.list_installed()

    def get_bundle_path(self, plugin_id: str) -> str:
        return str(self.installer.get_bundle_path(plugin_id))

    def read_bundle(self, plugin_id: str) -> str:
        return self.installer.read_bundle(plugin_id)

    async def check_updates(self) -> List[PluginMeta]:
        return await self.installer.check_updates()

    def get_config(self) -> PluginConfig:
        return self.config_service.load()

    def set_config(self, config: PluginConfig) -> None:
        self.config_service.save(config)

    def load_local_plugins(self, dir_path: Path) -> List[PluginMeta]:
        """Load plugins from a local development directory."""
        return self.discovery.load_directory(dir_path)

    def read_local_bundle(self, file_path: Path) -> str:
        return self.discovery.read_local_bundle(file_path)

    def find_orphans(self) -> List[Path]:
        return self.installer.find_orphans()

    async def prune_orphans(self) -> List[str]:
        return await self.installer.prune_orphans()
