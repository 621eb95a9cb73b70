"""Plugin configuration service - manages plugins/config.json."""

import json
import logging
from pathlib import Path

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from usefultools.constants import DEFAULT_REGISTRY_URL
from usefultools.plugins.errors import PluginIOError, PluginValidationError

logger = logging.getLogger(__name__)


class PluginConfig(BaseModel):
    """User-configurable plugin settings.

    Config format:
    {
        "registryUrl": "https://registry.npmjs.org"
    }
    """

    model_config = ConfigDict(populate_by_name=True)

    registry_url: str = Field(
        default=DEFAULT_REGISTRY_URL,
        validation_alias=AliasChoices("registryUrl", "registry_url", "registry"),
        serialization_alias="registryUrl",
        description="Base URL of the npm-compatible package registry",
    )

    @field_validator("registry_url")
    @classmethod
    def registry_url_is_http(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Invalid registry URL: {v!r}")
        return v.rstrip("/")


class PluginConfigService:
    """Loads and saves the plugin config file.

    Nothing is cached: every load() re-reads disk so a config changed by
    another process is picked up on the next operation.
    """

    def __init__(self, config_file: Path):
        self.config_file = config_file

    def load(self) -> PluginConfig:
        """Load config from file, falling back to defaults if missing or corrupt."""
        if not self.config_file.exists():
            return PluginConfig()

        try:
            with open(self.config_file, "r", encoding="utf-8") as f:
                return PluginConfig.model_validate(json.load(f))
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError, OSError) as e:
            logger.warning(f"Ignoring unreadable plugin config {self.config_file}: {e}")

        return PluginConfig()

    def save(self, config: PluginConfig) -> None:
        """Save config to file, creating the plugin root if needed.

        Raises:
            PluginValidationError: config fails validation
            PluginIOError: directory or file could not be written
        """
        try:
            config = PluginConfig.model_validate(config.model_dump())
        except ValidationError as e:
            raise PluginValidationError(f"Invalid plugin config: {e}", step="config") from e

        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, "w", encoding="utf-8") as f:
                json.dump(config.model_dump(by_alias=True), f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise PluginIOError(f"Failed to write {self.config_file}: {e}", step="config") from e

        logger.info(f"Saved plugin config to {self.config_file} (registry: {config.registry_url})")
