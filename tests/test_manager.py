"""Tests for PluginManager operations that span several components."""

import pytest

from usefultools.constants import DEFAULT_REGISTRY_URL
from usefultools.plugins.config import PluginConfig
from usefultools.plugins.errors import ErrorKind, PluginValidationError
from usefultools.plugins.manager import PluginManager

from conftest import make_entry, make_package_tarball


class TestFetchPackageByName:
    """Manually entered package names are checked before any request."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["other-plugin", "@scope/other-plugin", "   "])
    async def test_rejects_names_outside_naming_rule(self, manager, registry, name):
        """Rejected names never reach the registry."""
        with pytest.raises(PluginValidationError) as exc_info:
            await manager.fetch_package_by_name(name)

        assert exc_info.value.kind == ErrorKind.VALIDATION
        assert registry.request_count == 0

    @pytest.mark.asyncio
    async def test_trims_whitespace(self, manager, registry):
        """Surrounding whitespace is ignored."""
        registry.add_package("usefultools-plugin-x", make_package_tarball([make_entry("x")]))

        plugins = await manager.fetch_package_by_name("  usefultools-plugin-x \n")

        assert [p.id for p in plugins] == ["x"]


class TestFetchRegistry:
    """fetch_registry() goes through the on-disk cache."""

    @pytest.mark.asyncio
    async def test_second_fetch_is_served_from_cache(self, manager, registry):
        """The second call makes no registry requests."""
        registry.add_package("usefultools-plugin-official", make_package_tarball([make_entry("a"), make_entry("b")]))

        first = await manager.fetch_registry()
        requests_after_first = registry.request_count
        second = await manager.fetch_registry()

        assert [p.id for p in first] == ["a", "b"]
        assert second == first
        assert registry.request_count == requests_after_first
        assert (manager.plugins_dir / "registry-cache.json").is_file()

    @pytest.mark.asyncio
    async def test_registry_outage_serves_cached_catalog(self, manager, registry):
        """A failing search falls back to the cached catalog."""
        registry.add_package("usefultools-plugin-official", make_package_tarball([make_entry("a")]))
        await manager.fetch_registry()

        registry.search_status = 503
        plugins = await manager.fetch_registry(force_refresh=True)

        assert [p.id for p in plugins] == ["a"]


class TestUpdates:
    """check_updates() compares installs with the cached catalog."""

    @pytest.mark.asyncio
    async def test_check_updates_after_new_release(self, manager, registry):
        """A newly published version shows up after a refresh."""
        registry.add_package("usefultools-plugin-x", make_package_tarball([make_entry("x", version="1.0.0")]))
        [plugin] = await manager.fetch_package_by_name("usefultools-plugin-x")
        await manager.install(plugin)

        assert await manager.check_updates() == []

        registry.add_package(
            "usefultools-plugin-x", make_package_tarball([make_entry("x", version="1.1.0")]), version="1.1.0"
        )
        await manager.fetch_registry(force_refresh=True)

        updates = await manager.check_updates()
        assert [(p.id, p.version) for p in updates] == [("x", "1.1.0")]


class TestConfig:
    """Config round-trips through the plugin root."""

    def test_default_config(self, tmp_path):
        """A fresh root uses the default registry."""
        manager = PluginManager(tmp_path / "plugins")
        assert manager.get_config().registry_url == DEFAULT_REGISTRY_URL

    def test_set_config_persists(self, tmp_path):
        """A saved registry is seen by a new manager on the same root."""
        manager = PluginManager(tmp_path / "plugins")
        manager.set_config(PluginConfig(registry_url="https://registry.npmmirror.com"))

        assert PluginManager(tmp_path / "plugins").get_config().registry_url == "https://registry.npmmirror.com"
