"""Plugin store REST API endpoints."""

import logging
from pathlib import Path
from typing import Any, Dict

from fastapi import APIRouter, Body, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ValidationError

from usefultools.dependencies import get_plugin_manager
from usefultools.plugins.config import PluginConfig
from usefultools.plugins.errors import ErrorKind, PluginStoreError, PluginValidationError
from usefultools.plugins.manifest import PluginMeta

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/plugins", tags=["plugins"])

_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.TRANSPORT: 502,
    ErrorKind.DECODE: 502,
    ErrorKind.IO: 500,
}


class LocalPathRequest(BaseModel):
    """Request body naming a local file or directory."""

    path: str


def _http_error(error: PluginStoreError) -> HTTPException:
    status_code = _STATUS_BY_KIND.get(error.kind, 500)
    if status_code >= 500:
        logger.error(f"Plugin operation failed: {error}")
    return HTTPException(status_code=status_code, detail=error.to_dict())


@router.get("/registry")
async def fetch_registry(force_refresh: bool = False):
    """List plugins available on the registry (cached for one hour)."""
    manager = get_plugin_manager()
    try:
        plugins = await manager.fetch_registry(force_refresh)
    except PluginStoreError as e:
        raise _http_error(e)
    return {"plugins": [p.to_dict() for p in plugins]}


@router.get("/packages/{package_name:path}")
async def fetch_package(package_name: str):
    """Resolve the plugins declared by a single registry package."""
    manager = get_plugin_manager()
    try:
        plugins = await manager.fetch_package_by_name(package_name)
    except PluginStoreError as e:
        raise _http_error(e)
    return {"plugins": [p.to_dict() for p in plugins]}


@router.post("/install")
async def install_plugin(plugin: PluginMeta):
    """Download and install a plugin's bundle."""
    manager = get_plugin_manager()
    try:
        installed = await manager.install(plugin)
    except PluginStoreError as e:
        raise _http_error(e)
    return installed.to_dict()


@router.get("/installed")
async def list_installed():
    """List installed plugins."""
    manager = get_plugin_manager()
    try:
        plugins = await manager.list_installed()
    except PluginStoreError as e:
        raise _http_error(e)
    return {"plugins": [p.to_dict() for p in plugins]}


@router.delete("/installed/{plugin_id}")
async def uninstall_plugin(plugin_id: str):
    """Remove an installed plugin. Removing a plugin that is not installed succeeds."""
    manager = get_plugin_manager()
    try:
        await manager.uninstall(plugin_id)
    except PluginStoreError as e:
        raise _http_error(e)
    return {"message": f"Plugin '{plugin_id}' uninstalled"}


@router.get("/installed/{plugin_id}/bundle-path")
async def get_bundle_path(plugin_id: str):
    manager = get_plugin_manager()
    try:
        return {"path": manager.get_bundle_path(plugin_id)}
    except PluginStoreError as e:
        raise _http_error(e)


@router.get("/installed/{plugin_id}/bundle", response_class=PlainTextResponse)
async def read_bundle(plugin_id: str):
    manager = get_plugin_manager()
    try:
        return manager.read_bundle(plugin_id)
    except PluginStoreError as e:
        raise _http_error(e)


@router.get("/updates")
async def check_updates():
    """List registry plugins whose version differs from the installed one."""
    manager = get_plugin_manager()
    try:
        updates = await manager.check_updates()
    except PluginStoreError as e:
        raise _http_error(e)
    return {"plugins": [p.to_dict() for p in updates]}


@router.get("/config")
async def get_config():
    manager = get_plugin_manager()
    return manager.get_config().model_dump(by_alias=True)


@router.put("/config")
async def set_config(body: Dict[str, Any] = Body(...)):
    """Update plugin settings (registry URL)."""
    manager = get_plugin_manager()
    try:
        config = PluginConfig.model_validate(body)
    except ValidationError as e:
        raise _http_error(PluginValidationError(f"Invalid plugin config: {e}", step="config"))
    try:
        manager.set_config(config)
    except PluginStoreError as e:
        raise _http_error(e)
    return {"message": "Plugin config updated", "config": config.model_dump(by_alias=True)}


@router.post("/local/load")
async def load_local_plugins(body: LocalPathRequest):
    """Load plugins from a local development directory."""
    manager = get_plugin_manager()
    try:
        plugins = manager.load_local_plugins(Path(body.path))
    except PluginStoreError as e:
        raise _http_error(e)
    return {"plugins": [p.to_dict() for p in plugins]}


@router.post("/local/bundle", response_class=PlainTextResponse)
async def read_local_bundle(body: LocalPathRequest):
    manager = get_plugin_manager()
    try:
        return manager.read_local_bundle(Path(body.path))
    except PluginStoreError as e:
        raise _http_error(e)


@router.get("/doctor")
async def doctor():
    """Report plugin directories that are not complete installs."""
    manager = get_plugin_manager()
    return {"orphans": [path.name for path in manager.find_orphans()]}


@router.post("/doctor/prune")
async def prune_orphans():
    """Remove plugin directories left behind by failed installs."""
    manager = get_plugin_manager()
    try:
        removed = await manager.prune_orphans()
    except PluginStoreError as e:
        raise _http_error(e)
    return {"removed": removed}
