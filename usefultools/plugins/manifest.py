"""Plugin data model - manifest entries, descriptors, installs and registry snapshots.

JSON on disk and over the wire uses camelCase keys; Python attributes are
snake_case. Every model accepts either form on input.
"""

import json
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, RootModel, ValidationError
from pydantic.alias_generators import to_camel

from usefultools.plugins.errors import DecodeError


class CamelModel(BaseModel):
    """Base model serializing to camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class PluginMeta(CamelModel):
    """A single advertised or installed tool (PluginDescriptor)."""

    id: str = Field(..., description="Unique tool identifier within a registry snapshot")
    version: str = Field(..., description="Opaque version string, compared only for equality")
    author: str = Field(default="", description="Tool author")
    homepage: Optional[str] = Field(default=None, description="Project homepage")
    icon: str = Field(default="", description="Icon name or data URI")
    title: str = Field(..., description="Display title")
    subtitle: str = Field(default="", description="Short subtitle")
    description: str = Field(default="", description="Long description")
    bg_color: str = Field(default="", description="Card background color")
    text_color: Optional[str] = Field(default=None, description="Card text color")
    categories: List[str] = Field(default_factory=list)
    requires: List[str] = Field(default_factory=list, description="Capability requirements")
    package_name: str = Field(..., description="Registry package the tool came from")
    bundle_file: str = Field(..., description="Bundle path relative to the package root")
    downloads: Optional[int] = None
    rating: Optional[float] = None
    updated_at: Optional[str] = None
    created_at: Optional[str] = None


class PluginManifestEntry(CamelModel):
    """One tool as declared by the package author in plugin.json."""

    id: str
    version: str
    author: str = ""
    homepage: Optional[str] = None
    icon: str = ""
    title: str
    subtitle: str = ""
    description: str = ""
    bg_color: str = ""
    text_color: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    requires: List[str] = Field(default_factory=list)
    bundle: str = Field(..., description="Bundle path relative to the package root, e.g. dist/x.mjs")

    def to_meta(self, package_name: str) -> PluginMeta:
        """Attach the owning package and produce a descriptor."""
        data = self.model_dump(exclude={"bundle"})
        return PluginMeta(**data, package_name=package_name, bundle_file=self.bundle)


class MultiPluginManifest(BaseModel):
    """plugin.json declaring several tools: {"plugins": [...]}."""

    plugins: List[PluginManifestEntry]


class PluginManifest(RootModel[Union[MultiPluginManifest, PluginManifestEntry]]):
    """plugin.json root - either a single entry or a named list of entries."""

    def into_entries(self) -> List[PluginManifestEntry]:
        if isinstance(self.root, MultiPluginManifest):
            return list(self.root.plugins)
        return [self.root]

    @classmethod
    def parse(cls, content: str, package: Optional[str] = None) -> List[PluginManifestEntry]:
        """Parse plugin.json text into a normalized list of entries.

        Raises:
            DecodeError: content is not JSON or matches neither manifest form
        """
        try:
            return cls.model_validate(json.loads(content)).into_entries()
        except (json.JSONDecodeError, ValidationError) as e:
            raise DecodeError(f"Malformed plugin.json: {e}", package=package, step="manifest") from e


class InstalledPluginInfo(CamelModel):
    """A descriptor plus facts about its installation on disk."""

    meta: PluginMeta
    installed_at: int = Field(..., description="Epoch milliseconds")
    updated_at: int = Field(..., description="Epoch milliseconds")
    local_bundle_path: str
    enabled: bool = True


class RegistrySnapshot(CamelModel):
    """Persisted registry catalog with an absolute expiry instant."""

    fetched_at: int
    ttl: int
    plugins: List[PluginMeta] = Field(default_factory=list)

    @property
    def expires_at(self) -> int:
        return self.fetched_at + self.ttl

    def is_fresh(self, now_ms: int) -> bool:
        return now_ms < self.expires_at
