"""Plugin installer - materializes and removes plugin installations on disk.

Layout under the plugin root:

    <root>/<plugin id>/meta.json    serialized PluginMeta
    <root>/<plugin id>/bundle.mjs   bundle extracted from the package tarball

Disk is the only record of what is installed; nothing is cached in memory.
"""

import asyncio
import logging
import shutil
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from usefultools.constants import BUNDLE_FILENAME, META_FILENAME, TARBALL_ROOT
from usefultools.plugins import archive
from usefultools.plugins.cache import RegistryCache
from usefultools.plugins.config import PluginConfigService
from usefultools.plugins.errors import NotFoundError, PluginIOError, PluginValidationError
from usefultools.plugins.manifest import InstalledPluginInfo, PluginMeta
from usefultools.plugins.resolver import RegistryResolver

logger = logging.getLogger(__name__)

STAGING_MARKER = ".staging-"
BACKUP_MARKER = ".old-"


def validate_plugin_id(plugin_id: str) -> str:
    """Reject ids that cannot be used as a single directory name."""
    if (
        not plugin_id
        or plugin_id.startswith(".")
        or "/" in plugin_id
        or "\\" in plugin_id
        or "\0" in plugin_id
    ):
        raise PluginValidationError(f"Invalid plugin id: {plugin_id!r}", step="plugin-id")
    return plugin_id


def _epoch_ms(seconds: float) -> int:
    return int(seconds * 1000)


class PluginInstaller:
    """Installs, removes and enumerates plugins under a plugin root directory."""

    def __init__(
        self,
        plugins_dir: Path,
        config_service: PluginConfigService,
        resolver: RegistryResolver,
        registry_cache: RegistryCache,
    ):
        self.plugins_dir = plugins_dir
        self.config_service = config_service
        self.resolver = resolver
        self.registry_cache = registry_cache
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    def plugin_dir(self, plugin_id: str) -> Path:
        return self.plugins_dir / validate_plugin_id(plugin_id)

    @asynccontextmanager
    async def _exclusive(self, plugin_id: str):
        """Serialize work on one plugin id; the lock is dropped once nobody holds or awaits it."""
        lock = self._locks.setdefault(plugin_id, asyncio.Lock())
        self._lock_users[plugin_id] = self._lock_users.get(plugin_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[plugin_id] -= 1
            if not self._lock_users[plugin_id]:
                del self._lock_users[plugin_id]
                del self._locks[plugin_id]

    async def install(self, plugin: PluginMeta) -> InstalledPluginInfo:
        """Download the plugin's package and install its bundle.

        Files are written to a staging directory which replaces the plugin
        directory only once both bundle and metadata are on disk; a failed
        install leaves any previous install untouched.

        Raises:
            PluginValidationError: plugin id unusable as a directory name
            TransportError / DecodeError / NotFoundError: package resolution failed
            NotFoundError: bundle entry missing from the tarball
            PluginIOError: writing the install failed
        """
        target = self.plugin_dir(plugin.id)

        async with self._exclusive(plugin.id):
            registry_url = self.config_service.load().registry_url
            tarball = await self.resolver.download_latest_tarball(registry_url, plugin.package_name)

            entry_path = f"{TARBALL_ROOT}/{plugin.bundle_file}"
            bundle = await asyncio.to_thread(archive.extract_bytes, tarball, entry_path)
            if bundle is None:
                raise NotFoundError(
                    f"{entry_path} not found in package {plugin.package_name}",
                    package=plugin.package_name,
                    step="bundle",
                )

            await asyncio.to_thread(self._commit, target, plugin, bundle)

        now = int(time.time() * 1000)
        logger.info(f"Installed plugin '{plugin.id}' {plugin.version} from {plugin.package_name}")
        return InstalledPluginInfo(
            meta=plugin,
            installed_at=now,
            updated_at=now,
            local_bundle_path=str(target / BUNDLE_FILENAME),
            enabled=True,
        )

    def _commit(self, target: Path, plugin: PluginMeta, bundle: bytes) -> None:
        """Write bundle + meta into a staging dir, then swap it into place."""
        suffix = uuid.uuid4().hex[:8]
        staging = self.plugins_dir / f".{plugin.id}{STAGING_MARKER}{suffix}"
        backup = self.plugins_dir / f".{plugin.id}{BACKUP_MARKER}{suffix}"

        try:
            staging.mkdir(parents=True)
            (staging / BUNDLE_FILENAME).write_bytes(bundle)
            (staging / META_FILENAME).write_text(plugin.to_json(), encoding="utf-8")

            if target.exists():
                target.rename(backup)
            staging.rename(target)
        except OSError as e:
            shutil.rmtree(staging, ignore_errors=True)
            if backup.exists() and not target.exists():
                backup.rename(target)
            raise PluginIOError(f"Failed to install plugin '{plugin.id}': {e}", step="write") from e

        shutil.rmtree(backup, ignore_errors=True)

    async def uninstall(self, plugin_id: str) -> None:
        """Remove a plugin directory. Removing an absent plugin succeeds."""
        target = self.plugin_dir(plugin_id)

        async with self._exclusive(plugin_id):
            if not target.exists():
                logger.debug(f"Plugin '{plugin_id}' not installed, nothing to remove")
                return
            try:
                await asyncio.to_thread(shutil.rmtree, target)
            except OSError as e:
                raise PluginIOError(f"Failed to remove plugin '{plugin_id}': {e}", step="remove") from e

        logger.info(f"Uninstalled plugin '{plugin_id}'")

    async def list_installed(self) -> List[InstalledPluginInfo]:
        """Enumerate complete installs under the plugin root.

        A directory counts only if both meta.json and bundle.mjs exist and
        meta.json parses; anything else is skipped silently.
        """
        if not self.plugins_dir.exists():
            return []

        try:
            children = sorted(self.plugins_dir.iterdir())
        except OSError as e:
            raise PluginIOError(f"Failed to read plugin directory {self.plugins_dir}: {e}", step="list") from e

        plugins = []
        for path in children:
            info = self._read_install(path)
            if info is not None:
                plugins.append(info)
        return plugins

    def _read_install(self, path: Path) -> Optional[InstalledPluginInfo]:
        if path.name.startswith(".") or not path.is_dir():
            return None

        meta_path = path / META_FILENAME
        bundle_path = path / BUNDLE_FILENAME
        if not meta_path.is_file() or not bundle_path.is_file():
            logger.debug(f"Skipping incomplete install: {path}")
            return None

        try:
            meta = PluginMeta.model_validate_json(meta_path.read_text(encoding="utf-8"))
            stat = meta_path.stat()
        except (UnicodeDecodeError, ValidationError, OSError) as e:
            logger.debug(f"Skipping install with unreadable {META_FILENAME}: {path} ({e})")
            return None

        # st_birthtime is only available on some platforms
        created = getattr(stat, "st_birthtime", stat.st_ctime)
        return InstalledPluginInfo(
            meta=meta,
            installed_at=_epoch_ms(created),
            updated_at=_epoch_ms(stat.st_mtime),
            local_bundle_path=str(bundle_path),
            enabled=True,
        )

    def get_bundle_path(self, plugin_id: str) -> Path:
        bundle_path = self.plugin_dir(plugin_id) / BUNDLE_FILENAME
        if not bundle_path.is_file():
            raise NotFoundError(f"Bundle for plugin '{plugin_id}' does not exist", step="bundle")
        return bundle_path

    def read_bundle(self, plugin_id: str) -> str:
        bundle_path = self.get_bundle_path(plugin_id)
        try:
            return bundle_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise PluginIOError(f"Failed to read bundle for plugin '{plugin_id}': {e}", step="bundle") from e

    async def check_updates(self) -> List[PluginMeta]:
        """Return registry descriptors whose id is installed at a different version."""
        installed = await self.list_installed()
        remote = await self.registry_cache.fetch(force_refresh=False)

        local_versions = {p.meta.id: p.meta.version for p in installed}
        return [
            plugin for plugin in remote
            if plugin.id in local_versions and plugin.version != local_versions[plugin.id]
        ]

    def find_orphans(self) -> List[Path]:
        """Directories under the plugin root that are not complete installs."""
        if not self.plugins_dir.exists():
            return []
        orphans = []
        for path in sorted(self.plugins_dir.iterdir()):
            if not path.is_dir():
                continue
            if path.name.startswith("."):
                if STAGING_MARKER in path.name or BACKUP_MARKER in path.name:
                    orphans.append(path)
                continue
            if self._read_install(path) is None:
                orphans.append(path)
        return orphans

    async def prune_orphans(self) -> List[str]:
        """Remove orphaned directories; returns the names removed."""
        removed = []
        for path in self.find_orphans():
            try:
                await asyncio.to_thread(shutil.rmtree, path)
            except OSError as e:
                raise PluginIOError(f"Failed to remove {path}: {e}", step="remove") from e
            logger.info(f"Removed orphaned plugin directory: {path}")
            removed.append(path.name)
        return removed
