"""Registry cache - TTL cache of the resolved catalog, persisted on disk."""

import asyncio
import logging
import time
from pathlib import Path
from typing import Callable, List, Optional

from pydantic import ValidationError

from usefultools.constants import REGISTRY_CACHE_TTL_MS
from usefultools.plugins.config import PluginConfigService
from usefultools.plugins.errors import PluginStoreError, TransportError
from usefultools.plugins.manifest import PluginMeta, RegistrySnapshot
from usefultools.plugins.resolver import RegistryResolver

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class RegistryCache:
    """Serves the plugin catalog from registry-cache.json when fresh.

    An expired snapshot is kept as a fallback for when the registry cannot
    be reached. Refreshes are serialized within the process; across
    processes the last cache write wins.
    """

    def __init__(
        self,
        cache_file: Path,
        config_service: PluginConfigService,
        resolver: RegistryResolver,
        ttl_ms: int = REGISTRY_CACHE_TTL_MS,
        clock: Callable[[], int] = now_ms,
    ):
        self.cache_file = cache_file
        self.config_service = config_service
        self.resolver = resolver
        self.ttl_ms = ttl_ms
        self.clock = clock
        self._refresh_lock = asyncio.Lock()

    async def fetch(self, force_refresh: bool = False) -> List[PluginMeta]:
        """Return the plugin catalog.

        Args:
            force_refresh: Skip the fresh-cache shortcut and query the registry

        Returns:
            Cached list if fresh, else the freshly resolved list, else the
            stale cached list if the registry is unreachable

        Raises:
            TransportError: registry unreachable and no cached snapshot exists
        """
        async with self._refresh_lock:
            snapshot = self.read()

            if not force_refresh and snapshot is not None and snapshot.is_fresh(self.clock()):
                logger.debug(f"Registry cache hit ({len(snapshot.plugins)} plugins)")
                return snapshot.plugins

            registry_url = self.config_service.load().registry_url
            try:
                plugins = await self.resolver.resolve_all(registry_url)
            except PluginStoreError as e:
                if snapshot is not None:
                    logger.warning(f"Registry refresh failed, serving cached snapshot: {e}")
                    return snapshot.plugins
                raise TransportError(f"Cannot fetch plugin registry and no local cache: {e}", step="search") from e

            self.write(RegistrySnapshot(fetched_at=self.clock(), ttl=self.ttl_ms, plugins=plugins))
            logger.info(f"Registry refreshed from {registry_url}: {len(plugins)} plugin(s)")
            return plugins

    def read(self) -> Optional[RegistrySnapshot]:
        """Load the persisted snapshot, or None if missing or unreadable."""
        if not self.cache_file.exists():
            return None
        try:
            return RegistrySnapshot.model_validate_json(self.cache_file.read_text(encoding="utf-8"))
        except (UnicodeDecodeError, ValidationError, OSError) as e:
            logger.warning(f"Ignoring unreadable registry cache {self.cache_file}: {e}")
            return None

    def write(self, snapshot: RegistrySnapshot) -> bool:
        """Persist a snapshot; failures are logged, not raised."""
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            self.cache_file.write_text(snapshot.to_json(), encoding="utf-8")
            return True
        except OSError as e:
            logger.warning(f"Failed to write registry cache {self.cache_file}: {e}")
            return False
