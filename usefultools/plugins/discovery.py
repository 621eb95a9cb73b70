"""Local plugin discovery - loads plugins from a development directory.

Used while authoring a plugin: the directory holds plugin.json and the
bundles it references, exactly as they would appear inside the package.
"""

import logging
from pathlib import Path
from typing import List

from usefultools.constants import LOCAL_DEBUG_PACKAGE
from usefultools.plugins.errors import NotFoundError, PluginIOError, PluginValidationError
from usefultools.plugins.manifest import PluginManifest, PluginMeta

logger = logging.getLogger(__name__)


class LocalPluginDiscovery:
    """Discovers plugins in a local directory containing a plugin.json manifest."""

    MANIFEST_FILE = "plugin.json"
    BUNDLE_SUFFIX = ".mjs"

    def load_directory(self, plugin_path: Path) -> List[PluginMeta]:
        """Load all plugins declared in <plugin_path>/plugin.json.

        Entries whose bundle file is missing are skipped.

        Args:
            plugin_path: Directory containing plugin.json

        Returns:
            Descriptors tagged with the local-debug package name

        Raises:
            NotFoundError: plugin.json missing, or no entry has its bundle
            DecodeError: plugin.json malformed
        """
        manifest_file = plugin_path / self.MANIFEST_FILE
        if not manifest_file.is_file():
            raise NotFoundError(f"No {self.MANIFEST_FILE} found at {plugin_path}", step="manifest")

        try:
            content = manifest_file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise PluginIOError(f"Failed to read {manifest_file}: {e}", step="manifest") from e

        plugins = []
        for entry in PluginManifest.parse(content, package=LOCAL_DEBUG_PACKAGE):
            bundle_path = plugin_path / entry.bundle
            if not bundle_path.is_file():
                logger.warning(f"Skipping {entry.id}: bundle file not found at {bundle_path}")
                continue
            plugins.append(entry.to_meta(LOCAL_DEBUG_PACKAGE))

        if not plugins:
            raise NotFoundError(f"No valid plugin entries in {manifest_file}", step="manifest")

        logger.info(f"Loaded {len(plugins)} local plugin(s) from {plugin_path}")
        return plugins

    def read_local_bundle(self, file_path: Path) -> str:
        """Read a bundle file directly from disk.

        Raises:
            NotFoundError: file does not exist
            PluginValidationError: file is not a .mjs bundle
        """
        if not file_path.exists():
            raise NotFoundError(f"File does not exist: {file_path}", step="bundle")
        if file_path.suffix != self.BUNDLE_SUFFIX:
            raise PluginValidationError(f"Only {self.BUNDLE_SUFFIX} files are supported: {file_path}", step="bundle")

        try:
            return file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise PluginIOError(f"Failed to read {file_path}: {e}", step="bundle") from e
