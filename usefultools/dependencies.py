"""Dependency injection container for services."""

import logging

from usefultools.constants import PLUGINS_DIR

logger = logging.getLogger(__name__)

# ============================================================================
# Global service instances (Singleton pattern, but exposed via functions for easier testing/mocking)
# ============================================================================

_plugin_manager_instance = None


def get_plugin_manager():
    """Get plugin manager (singleton).

    The manager holds no plugin state of its own, only the per-id install
    locks and the registry refresh lock, which must be shared process-wide.
    """
    global _plugin_manager_instance
    if _plugin_manager_instance is None:
        from usefultools.plugins.manager import PluginManager

        _plugin_manager_instance = PluginManager(plugins_dir=PLUGINS_DIR)
        logger.info(f"Created PluginManager instance (plugins dir: {PLUGINS_DIR})")
    return _plugin_manager_instance


# Test utility function (for unit testing - resets all singletons)
def reset_services():
    """Reset all service instances (only for testing)."""
    global _plugin_manager_instance

    _plugin_manager_instance = None
    logger.info("Reset all service instances")
