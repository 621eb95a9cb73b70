"""Global constants for the UsefulTools plugin host."""

import os
from pathlib import Path

# Application data directory (supports USEFULTOOLS_DATA_DIR env var, defaults to ~/.usefultools)
_data_dir_env = os.getenv("USEFULTOOLS_DATA_DIR", "")
APP_DATA_DIR = Path(_data_dir_env).expanduser().resolve() if _data_dir_env else Path.home() / ".usefultools"

PLUGINS_DIR = APP_DATA_DIR / "plugins"                # installed plugins, config and registry cache

# Files inside PLUGINS_DIR
PLUGIN_CONFIG_FILENAME = "config.json"
REGISTRY_CACHE_FILENAME = "registry-cache.json"

# Files inside each installed plugin directory
META_FILENAME = "meta.json"
BUNDLE_FILENAME = "bundle.mjs"

# Registry
DEFAULT_REGISTRY_URL = "https://registry.npmjs.org"
PLUGIN_PACKAGE_PREFIX = "usefultools-plugin"          # search keyword and package name prefix
OFFICIAL_PACKAGE = "usefultools-plugin-official"
SEARCH_PAGE_SIZE = 100
REGISTRY_CACHE_TTL_MS = 3_600_000                     # 1 hour

# Paths inside a package tarball
TARBALL_ROOT = "package"
MANIFEST_ENTRY = f"{TARBALL_ROOT}/plugin.json"

# Package name given to plugins loaded from a local debug directory
LOCAL_DEBUG_PACKAGE = "local-debug"
