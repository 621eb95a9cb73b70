"""Plugin store for the UsefulTools host.

Imports are lazy so that lightweight pieces (config, manifest models) can be
used without pulling in aiohttp.
"""

__all__ = [
    "PluginMeta",
    "PluginManifest",
    "PluginManifestEntry",
    "InstalledPluginInfo",
    "RegistrySnapshot",
    "PluginConfig",
    "PluginConfigService",
    "RegistryResolver",
    "RegistryCache",
    "PluginInstaller",
    "LocalPluginDiscovery",
    "PluginManager",
    "ErrorKind",
    "PluginStoreError",
]


def __getattr__(name):
    if name in ("PluginMeta", "PluginManifest", "PluginManifestEntry", "InstalledPluginInfo", "RegistrySnapshot"):
        from usefultools.plugins import manifest
        return getattr(manifest, name)
    if name in ("PluginConfig", "PluginConfigService"):
        from usefultools.plugins import config
        return getattr(config, name)
    if name == "RegistryResolver":
        from usefultools.plugins.resolver import RegistryResolver
        return RegistryResolver
    if name == "RegistryCache":
        from usefultools.plugins.cache import RegistryCache
        return RegistryCache
    if name == "PluginInstaller":
        from usefultools.plugins.installer import PluginInstaller
        return PluginInstaller
    if name == "LocalPluginDiscovery":
        from usefultools.plugins.discovery import LocalPluginDiscovery
        return LocalPluginDiscovery
    if name == "PluginManager":
        from usefultools.plugins.manager import PluginManager
        return PluginManager
    if name in ("ErrorKind", "PluginStoreError"):
        from usefultools.plugins import errors
        return getattr(errors, name)
    raise AttributeError(f"module 'usefultools.plugins' has no attribute {name!r}")
