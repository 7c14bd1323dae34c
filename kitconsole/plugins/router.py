import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse

from kitconsole.config import settings
from kitconsole.errors import ErrorCategory
from kitconsole.plugins.launcher import ProcessLauncher
from kitconsole.plugins.packages import PackageResolver
from kitconsole.plugins.schemas import (
    Mode,
    PluginActionRequest,
    PluginListResponse,
    PluginModeView,
    StatusReport,
)
from kitconsole.plugins.service import PluginLifecycleService
from kitconsole.utils.dependencies import require_development
from kitconsole.utils.registry_client import RegistryClient

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_development)])

MANAGE_PREFIX = "/manage-prototype"

_plugin_service: Optional[PluginLifecycleService] = None


def build_plugin_service() -> PluginLifecycleService:
    registry = RegistryClient(settings.NPM_REGISTRY_URL, timeout=settings.REGISTRY_TIMEOUT)
    resolver = PackageResolver(settings.PROJECT_DIR, settings.known_plugins_path, registry)
    launcher = ProcessLauncher(settings.log_dir)
    return PluginLifecycleService(
        resolver,
        launcher,
        npm_command=settings.NPM_COMMAND,
        base_path=f"{settings.API_V1_STR}{MANAGE_PREFIX}",
    )


def get_plugin_service() -> PluginLifecycleService:
    global _plugin_service
    if _plugin_service is None:
        _plugin_service = build_plugin_service()
    return _plugin_service


def is_json_request(request: Request) -> bool:
    content_type = request.headers.get("content-type", "")
    return content_type.split(";")[0].strip().lower() == "application/json"


def status_response(report: StatusReport, **extra: Any) -> JSONResponse:
    payload = report.to_response()
    payload.update(extra)
    code = 500 if report.error == ErrorCategory.MANIFEST_READ_FAILURE.value else 200
    return JSONResponse(payload, status_code=code)


@router.get("/plugins", response_model=PluginListResponse)
async def list_plugins(
    search: Optional[str] = Query(None),
    service: PluginLifecycleService = Depends(get_plugin_service),
):
    """Plugins offered by the catalog, plus anything already installed."""
    return await service.list_plugins(installed_only=False, search=search)


@router.get("/plugins-installed", response_model=PluginListResponse)
async def list_installed_plugins(
    search: Optional[str] = Query(None),
    service: PluginLifecycleService = Depends(get_plugin_service),
):
    return await service.list_plugins(installed_only=True, search=search)


@router.get("/plugins/{mode}/status")
@router.post("/plugins/{mode}/status")
async def plugin_status(
    mode: Mode,
    package: str = Query(...),
    version: Optional[str] = Query(None),
    service: PluginLifecycleService = Depends(get_plugin_service),
):
    """Poll an operation. Read-only; call as often as needed."""
    report = await service.check_status(mode, package, version)
    return status_response(report)


@router.get("/plugins/{mode}", response_model=PluginModeView)
async def plugin_mode_view(
    mode: Mode,
    package: str = Query(...),
    version: Optional[str] = Query(None),
    service: PluginLifecycleService = Depends(get_plugin_service),
):
    """Confirmation data: the command that will run and where to go back to."""
    return await service.mode_view(mode, package, version)


@router.post("/plugins/{mode}")
async def plugin_mode_action(
    mode: Mode,
    request: Request,
    service: PluginLifecycleService = Depends(get_plugin_service),
):
    """
    Start an install, update or uninstall.

    Only the console's JavaScript may call this; plain form posts are sent
    back to the page they came from.
    """
    if not is_json_request(request):
        return_url = request.headers.get("referer") or str(request.url)
        return RedirectResponse(url=return_url, status_code=303)

    try:
        payload = PluginActionRequest.model_validate(await request.json())
    except ValueError as e:
        logger.warning(f"Rejected plugin request body: {e}")
        return JSONResponse(
            {"status": "error", "message": "Request body must contain a package name"},
            status_code=400,
        )

    if mode == Mode.STATUS:
        mode = service.relabel_mode_after_restart(mode, payload.package)
        report = await service.check_status(mode, payload.package, payload.version)
        return status_response(report, mode=mode.value)

    report = await service.start_operation(mode, payload.package, payload.version)
    return report.to_response()
