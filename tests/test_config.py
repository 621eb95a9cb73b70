"""Tests for PluginConfigService."""

import json

import pytest
from pydantic import ValidationError

from usefultools.constants import DEFAULT_REGISTRY_URL
from usefultools.plugins.config import PluginConfig, PluginConfigService
from usefultools.plugins.errors import PluginIOError, PluginValidationError


class TestLoad:
    """load() never fails; anything unusable falls back to defaults."""

    def test_missing_file_returns_default(self, tmp_path):
        """No config file means the default registry."""
        service = PluginConfigService(tmp_path / "plugins" / "config.json")
        assert service.load().registry_url == DEFAULT_REGISTRY_URL

    def test_corrupt_file_returns_default(self, tmp_path):
        """Unparsable JSON falls back to the default."""
        config_file = tmp_path / "config.json"
        config_file.write_text("{oops", encoding="utf-8")
        assert PluginConfigService(config_file).load().registry_url == DEFAULT_REGISTRY_URL

    def test_non_utf8_file_returns_default(self, tmp_path):
        """Bytes that are not UTF-8 fall back to the default."""
        config_file = tmp_path / "config.json"
        config_file.write_bytes(b'{"registryUrl": "\xff\xfe"}')
        assert PluginConfigService(config_file).load().registry_url == DEFAULT_REGISTRY_URL

    def test_invalid_url_returns_default(self, tmp_path):
        """A stored non-http URL is treated as corrupt."""
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"registryUrl": "not a url"}), encoding="utf-8")
        assert PluginConfigService(config_file).load().registry_url == DEFAULT_REGISTRY_URL

    def test_reads_legacy_registry_key(self, tmp_path):
        """The older "registry" key is still understood."""
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"registry": "https://registry.npmmirror.com/"}), encoding="utf-8")
        assert PluginConfigService(config_file).load().registry_url == "https://registry.npmmirror.com"

    def test_reloads_on_every_call(self, tmp_path):
        """Changes made on disk are seen by the next load."""
        config_file = tmp_path / "config.json"
        service = PluginConfigService(config_file)
        assert service.load().registry_url == DEFAULT_REGISTRY_URL

        config_file.write_text(json.dumps({"registryUrl": "http://localhost:4873"}), encoding="utf-8")
        assert service.load().registry_url == "http://localhost:4873"


class TestSave:
    """save() validates, creates the plugin root and writes camelCase JSON."""

    def test_creates_directory_and_writes_camel_case(self, tmp_path):
        """The parent directory is created and the trailing slash dropped."""
        config_file = tmp_path / "plugins" / "config.json"
        service = PluginConfigService(config_file)

        service.save(PluginConfig(registry_url="https://registry.example.com/"))

        assert json.loads(config_file.read_text(encoding="utf-8")) == {
            "registryUrl": "https://registry.example.com"
        }
        assert service.load().registry_url == "https://registry.example.com"

    def test_write_failure_raises_io_error(self, tmp_path):
        """A file in place of the plugin root surfaces as PluginIOError."""
        blocker = tmp_path / "plugins"
        blocker.write_text("not a directory", encoding="utf-8")
        service = PluginConfigService(blocker / "config.json")

        with pytest.raises(PluginIOError):
            service.save(PluginConfig())

    def test_rejects_invalid_config(self, tmp_path):
        """An unvalidated model with a bad URL is refused and nothing is written."""
        service = PluginConfigService(tmp_path / "config.json")
        config = PluginConfig.model_construct(registry_url="ftp://example.com")

        with pytest.raises(PluginValidationError):
            service.save(config)
        assert not (tmp_path / "config.json").exists()

    def test_model_rejects_non_http_url(self):
        """The model itself only accepts http(s) URLs."""
        with pytest.raises(ValidationError):
            PluginConfig(registry_url="registry.npmjs.org")
