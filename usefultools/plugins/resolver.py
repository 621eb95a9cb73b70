"""Registry resolver - discovers plugin packages on an npm-compatible registry.

Discovery runs two searches (by keyword and by free text), keeps the names
that pass the plugin naming rule, then downloads each package's latest
tarball and reads package/plugin.json out of it.
"""

import asyncio
import logging
from typing import Dict, List, Optional

import aiohttp
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from usefultools.constants import (
    MANIFEST_ENTRY,
    OFFICIAL_PACKAGE,
    PLUGIN_PACKAGE_PREFIX,
    SEARCH_PAGE_SIZE,
)
from usefultools.plugins import archive
from usefultools.plugins.errors import DecodeError, NotFoundError, PluginStoreError, TransportError
from usefultools.plugins.manifest import PluginManifest, PluginMeta

logger = logging.getLogger(__name__)


# ── npm registry responses ──────────────────────────────────

class NpmSearchPackage(BaseModel):
    name: str


class NpmSearchObject(BaseModel):
    package: NpmSearchPackage


class NpmSearchResponse(BaseModel):
    objects: List[NpmSearchObject] = Field(default_factory=list)


class NpmDist(BaseModel):
    tarball: Optional[str] = None


class NpmVersionDetail(BaseModel):
    version: Optional[str] = None
    dist: Optional[NpmDist] = None


class NpmPackageDetail(BaseModel):
    """GET {registry}/<package> response (only the fields we read)."""

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    dist_tags: Optional[Dict[str, str]] = Field(default=None, alias="dist-tags")
    versions: Optional[Dict[str, NpmVersionDetail]] = None


def is_plugin_package_name(name: str) -> bool:
    """Check whether a package name follows the plugin naming rule.

    Accepts usefultools-plugin-xxx and @scope/usefultools-plugin-xxx.
    """
    if name.startswith(PLUGIN_PACKAGE_PREFIX):
        return True
    _, sep, rest = name.partition("/")
    return bool(sep) and rest.startswith(PLUGIN_PACKAGE_PREFIX)


class RegistryResolver:
    """Resolves plugin descriptors from a package registry.

    Every public coroutine opens its own aiohttp session; helpers taking a
    session argument let one discovery pass reuse a single connection pool.
    """

    async def search_candidates(self, registry_url: str, query: str) -> List[str]:
        """Run one search and return the package names it lists.

        Search is advisory: any failure yields an empty list.
        """
        async with aiohttp.ClientSession() as session:
            return await self._search(session, registry_url, query) or []

    async def resolve_package(self, registry_url: str, package_name: str) -> List[PluginMeta]:
        """Resolve every plugin declared by the latest version of a package.

        Raises:
            TransportError: a request failed
            DecodeError: registry response or plugin.json is malformed
            NotFoundError: latest tag, version record, tarball URL or plugin.json missing
        """
        async with aiohttp.ClientSession() as session:
            return await self._resolve_package(session, registry_url, package_name)

    async def resolve_all(self, registry_url: str) -> List[PluginMeta]:
        """Discover and resolve all plugin packages on the registry.

        A package that fails to resolve is logged and skipped.

        Raises:
            TransportError: neither search request could be answered
        """
        async with aiohttp.ClientSession() as session:
            keyword_results = await self._search(session, registry_url, f"keywords:{PLUGIN_PACKAGE_PREFIX}")
            text_results = await self._search(session, registry_url, PLUGIN_PACKAGE_PREFIX)

            if keyword_results is None and text_results is None:
                raise TransportError(f"Registry search failed at {registry_url}", step="search")

            package_names = self._merge_candidates((keyword_results or []) + (text_results or []))
            logger.info(f"Found {len(package_names)} plugin package(s) on {registry_url}")

            plugins: List[PluginMeta] = []
            for package_name in package_names:
                try:
                    plugins.extend(await self._resolve_package(session, registry_url, package_name))
                except PluginStoreError as e:
                    logger.warning(f"Skipping package {package_name}: {e}")

            return plugins

    async def download_latest_tarball(self, registry_url: str, package_name: str) -> bytes:
        """Download the latest-version tarball of a package."""
        async with aiohttp.ClientSession() as session:
            tarball_url = await self._latest_tarball_url(session, registry_url, package_name)
            return await self._download(session, tarball_url, package_name)

    @staticmethod
    def _merge_candidates(names: List[str]) -> List[str]:
        """Dedupe names passing the naming rule, official package first."""
        seen = set()
        merged: List[str] = []
        for name in names:
            if not is_plugin_package_name(name) or name in seen:
                continue
            seen.add(name)
            if name == OFFICIAL_PACKAGE:
                merged.insert(0, name)
            else:
                merged.append(name)
        return merged

    async def _search(
        self, session: aiohttp.ClientSession, registry_url: str, query: str
    ) -> Optional[List[str]]:
        """Return package names, or None if the search could not be answered."""
        url = f"{registry_url}/-/v1/search"
        params = {"text": query, "size": str(SEARCH_PAGE_SIZE)}
        try:
            async with session.get(url, params=params) as response:
                if response.status != 200:
                    logger.warning(f"Search '{query}' returned HTTP {response.status}")
                    return None
                data = NpmSearchResponse.model_validate(await response.json(content_type=None))
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning(f"Search '{query}' failed: {e}")
            return None

        return [obj.package.name for obj in data.objects]

    async def _resolve_package(
        self, session: aiohttp.ClientSession, registry_url: str, package_name: str
    ) -> List[PluginMeta]:
        tarball_url = await self._latest_tarball_url(session, registry_url, package_name)
        tarball = await self._download(session, tarball_url, package_name)

        content = await asyncio.to_thread(archive.extract_text, tarball, MANIFEST_ENTRY)
        if content is None:
            raise NotFoundError(
                f"{MANIFEST_ENTRY} not found in package {package_name}",
                package=package_name,
                step="manifest",
            )

        entries = PluginManifest.parse(content, package=package_name)
        logger.debug(f"Package {package_name} declares {len(entries)} plugin(s)")
        return [entry.to_meta(package_name) for entry in entries]

    async def _latest_tarball_url(
        self, session: aiohttp.ClientSession, registry_url: str, package_name: str
    ) -> str:
        detail = await self._fetch_detail(session, registry_url, package_name)

        latest = (detail.dist_tags or {}).get("latest")
        if not latest:
            raise NotFoundError(
                f"Package {package_name} has no latest version", package=package_name, step="latest-tag"
            )

        version = (detail.versions or {}).get(latest)
        if version is None:
            raise NotFoundError(
                f"Version {latest} of {package_name} not found", package=package_name, step="version-record"
            )

        if version.dist is None or not version.dist.tarball:
            raise NotFoundError(
                f"No tarball URL for {package_name}@{latest}", package=package_name, step="tarball-url"
            )

        return version.dist.tarball

    async def _fetch_detail(
        self, session: aiohttp.ClientSession, registry_url: str, package_name: str
    ) -> NpmPackageDetail:
        url = f"{registry_url}/{package_name}"
        try:
            async with session.get(url) as response:
                if response.status != 200:
                    raise TransportError(
                        f"Package {package_name} does not exist or request failed (HTTP {response.status})",
                        package=package_name,
                        step="package-detail",
                    )
                payload = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(
                f"Failed to fetch package detail for {package_name}: {e}",
                package=package_name,
                step="package-detail",
            ) from e
        except ValueError as e:
            raise DecodeError(
                f"Invalid package detail for {package_name}: {e}", package=package_name, step="package-detail"
            ) from e

        try:
            return NpmPackageDetail.model_validate(payload)
        except ValidationError as e:
            raise DecodeError(
                f"Invalid package detail for {package_name}: {e}", package=package_name, step="package-detail"
            ) from e

    async def _download(self, session: aiohttp.ClientSession, url: str, package_name: str) -> bytes:
        try:
            async with session.get(url) as response:
                if response.status != 200:
                    raise TransportError(
                        f"Tarball download failed (HTTP {response.status}): {url}",
                        package=package_name,
                        step="download",
                    )
                return await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(
                f"Tarball download failed for {package_name}: {e}", package=package_name, step="download"
            ) from e
