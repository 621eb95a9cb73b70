"""Shared fixtures: in-memory package tarballs and a local fake npm registry."""

import io
import json
import tarfile
from typing import Dict, List, Optional, Union

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from usefultools.plugins.config import PluginConfig
from usefultools.plugins.manager import PluginManager


def make_tarball(files: Dict[str, Union[str, bytes]]) -> bytes:
    """Build a .tgz whose entries are added in dict order."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for path, content in files.items():
            data = content.encode("utf-8") if isinstance(content, str) else content
            info = tarfile.TarInfo(name=path)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def make_entry(plugin_id: str, version: str = "1.0.0", bundle: Optional[str] = None, **extra) -> dict:
    """A plugin.json entry as a package author would write it."""
    entry = {
        "id": plugin_id,
        "version": version,
        "author": "tester",
        "icon": "wrench",
        "title": plugin_id.replace("-", " ").title(),
        "subtitle": "",
        "description": f"{plugin_id} tool",
        "bgColor": "#ffffff",
        "categories": ["dev"],
        "bundle": bundle or f"dist/{plugin_id}.mjs",
    }
    entry.update(extra)
    return entry


def make_package_tarball(entries: List[dict], multi: Optional[bool] = None) -> bytes:
    """Tarball with package/plugin.json plus a bundle for every entry."""
    if multi is None:
        multi = len(entries) != 1
    manifest = {"plugins": entries} if multi else entries[0]
    files = {"package/plugin.json": json.dumps(manifest)}
    for entry in entries:
        files[f"package/{entry['bundle']}"] = f"export default {{ id: '{entry['id']}', version: '{entry['version']}' }}\n"
    return make_tarball(files)


class FakeRegistry:
    """Minimal npm registry: search, package detail and tarball download."""

    def __init__(self):
        self.details: Dict[str, dict] = {}
        self.tarballs: Dict[str, bytes] = {}
        self.search_results: List[str] = []
        self.search_status = 200
        self.queries: List[str] = []
        self.request_count = 0
        self.server: Optional[TestServer] = None

    @property
    def url(self) -> str:
        return str(self.server.make_url("")).rstrip("/")

    def add_package(self, name: str, tarball: bytes, version: str = "1.0.0", searchable: bool = True) -> None:
        key = name.replace("/", "__")
        self.tarballs[key] = tarball
        self.details[name] = {
            "name": name,
            "dist-tags": {"latest": version},
            "versions": {version: {"version": version, "dist": {"tarball": f"/tarballs/{key}.tgz"}}},
        }
        if searchable:
            self.search_results.append(name)

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/-/v1/search", self._search)
        app.router.add_get("/tarballs/{key}.tgz", self._tarball)
        app.router.add_get("/{name:.+}", self._detail)
        return app

    async def _search(self, request: web.Request) -> web.Response:
        self.request_count += 1
        self.queries.append(request.query.get("text", ""))
        if self.search_status != 200:
            return web.Response(status=self.search_status)
        objects = [{"package": {"name": name, "version": "1.0.0"}} for name in self.search_results]
        return web.json_response({"objects": objects, "total": len(objects)})

    async def _detail(self, request: web.Request) -> web.Response:
        self.request_count += 1
        detail = self.details.get(request.match_info["name"])
        if detail is None:
            return web.json_response({"error": "Not found"}, status=404)

        # tarball URLs are stored relative and made absolute per request
        detail = json.loads(json.dumps(detail))
        origin = str(request.url.origin())
        for version in (detail.get("versions") or {}).values():
            dist = version.get("dist") or {}
            if dist.get("tarball", "").startswith("/"):
                dist["tarball"] = origin + dist["tarball"]
        return web.json_response(detail)

    async def _tarball(self, request: web.Request) -> web.Response:
        self.request_count += 1
        data = self.tarballs.get(request.match_info["key"])
        if data is None:
            return web.Response(status=404)
        return web.Response(body=data, content_type="application/octet-stream")


@pytest_asyncio.fixture
async def registry():
    """A running FakeRegistry on a local port."""
    fake = FakeRegistry()
    server = TestServer(fake.build_app())
    await server.start_server()
    fake.server = server
    yield fake
    await server.close()


@pytest.fixture
def plugins_dir(tmp_path):
    return tmp_path / "plugins"


@pytest_asyncio.fixture
async def manager(plugins_dir, registry):
    """PluginManager pointed at the fake registry."""
    manager = PluginManager(plugins_dir)
    manager.set_config(PluginConfig(registry_url=registry.url))
    return manager
