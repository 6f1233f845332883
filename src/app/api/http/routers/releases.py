"""Release management endpoints.

This module maps the ReleaseService operations onto HTTP. It carries no
release logic of its own: every handler builds the service request, awaits
the service and returns its response. Streaming operations are sent as
newline-delimited JSON.

Endpoint Summary:
    GET    /releases                    - List releases (NDJSON stream)
    POST   /releases                    - Install a release
    GET    /releases/{name}/status      - Status of a revision
    GET    /releases/{name}/content     - Full content of a revision
    GET    /releases/{name}/history     - Revision history
    PUT    /releases/{name}             - Upgrade a release
    POST   /releases/{name}/rollback    - Roll back a release
    DELETE /releases/{name}             - Uninstall a release
    POST   /releases/{name}/tests       - Run release tests (NDJSON stream)
    GET    /version                     - Service version
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from starlette.responses import StreamingResponse

from src.app.api.http.deps import get_release_service
from src.app.api.http.schemas.releases import (
    GetHistoryRequest,
    GetHistoryResponse,
    GetReleaseContentRequest,
    GetReleaseContentResponse,
    GetReleaseStatusRequest,
    GetReleaseStatusResponse,
    GetVersionResponse,
    InstallReleaseRequest,
    InstallReleaseResponse,
    ListReleasesRequest,
    ListReleasesResponse,
    ReleaseErrorResponse,
    RollbackReleaseOptions,
    RollbackReleaseRequest,
    RollbackReleaseResponse,
    SortBy,
    SortOrder,
    TestReleaseOptions,
    TestReleaseRequest,
    TestReleaseResponse,
    UninstallReleaseRequest,
    UninstallReleaseResponse,
    UpdateReleaseOptions,
    UpdateReleaseRequest,
    UpdateReleaseResponse,
)
from src.app.core.models import Status
from src.app.core.services.release_service import ReleaseService

NDJSON_MEDIA_TYPE = "application/x-ndjson"

router = APIRouter(prefix="/releases", tags=["releases"])
version_router = APIRouter(tags=["releases"])

_ERRORS = {
    400: {"description": "Malformed request", "model": ReleaseErrorResponse},
    404: {"description": "Release not found", "model": ReleaseErrorResponse},
    409: {"description": "Name in use or illegal transition", "model": ReleaseErrorResponse},
    423: {"description": "Another operation holds the release", "model": ReleaseErrorResponse},
    502: {"description": "Hook or cluster apply failure", "model": ReleaseErrorResponse},
    504: {"description": "Operation timed out", "model": ReleaseErrorResponse},
}


async def _ndjson(first: BaseModel, rest: AsyncIterator[BaseModel]) -> AsyncIterator[str]:
    yield first.model_dump_json() + "\n"
    async for item in rest:
        yield item.model_dump_json() + "\n"


async def _stream(messages: AsyncIterator[BaseModel]) -> StreamingResponse:
    """Start a stream, surfacing errors raised before the first message as HTTP errors."""
    first = await anext(messages)
    return StreamingResponse(_ndjson(first, messages), media_type=NDJSON_MEDIA_TYPE)


# =============================================================================
# Queries
# =============================================================================


@router.get(
    "",
    response_model=ListReleasesResponse,
    responses={400: _ERRORS[400], 404: _ERRORS[404]},
    summary="List releases",
    description="Stream a page of the latest revision of every matching release as NDJSON.",
)
async def list_releases(
    limit: int = Query(default=0),
    offset: str = Query(default=""),
    sort_by: SortBy = Query(default=SortBy.NAME),
    sort_order: SortOrder = Query(default=SortOrder.ASC),
    filter: str = Query(default=""),
    status_codes: list[Status] | None = Query(default=None),
    namespace: str = Query(default=""),
    service: ReleaseService = Depends(get_release_service),
) -> StreamingResponse:
    request = ListReleasesRequest(
        limit=limit,
        offset=offset,
        sort_by=sort_by,
        sort_order=sort_order,
        filter=filter,
        status_codes=status_codes or [],
        namespace=namespace,
    )
    return await _stream(service.list_releases(request))


@router.get(
    "/{name}/status",
    response_model=GetReleaseStatusResponse,
    responses={404: _ERRORS[404]},
    summary="Release status",
)
async def get_release_status(
    name: str,
    version: int = Query(default=0, ge=0),
    service: ReleaseService = Depends(get_release_service),
) -> GetReleaseStatusResponse:
    return await service.get_release_status(GetReleaseStatusRequest(name=name, version=version))


@router.get(
    "/{name}/content",
    response_model=GetReleaseContentResponse,
    responses={404: _ERRORS[404]},
    summary="Release content",
)
async def get_release_content(
    name: str,
    version: int = Query(default=0, ge=0),
    service: ReleaseService = Depends(get_release_service),
) -> GetReleaseContentResponse:
    return await service.get_release_content(GetReleaseContentRequest(name=name, version=version))


@router.get(
    "/{name}/history",
    response_model=GetHistoryResponse,
    responses={404: _ERRORS[404]},
    summary="Release history",
    description="Revisions of a release, newest first.",
)
async def get_history(
    name: str,
    max: int = Query(default=0, ge=0),
    service: ReleaseService = Depends(get_release_service),
) -> GetHistoryResponse:
    return await service.get_history(GetHistoryRequest(name=name, max=max))


# =============================================================================
# Mutations
# =============================================================================


@router.post(
    "",
    response_model=InstallReleaseResponse,
    responses={k: _ERRORS[k] for k in (400, 409, 423, 502, 504)},
    summary="Install a release",
)
async def install_release(
    request: InstallReleaseRequest,
    service: ReleaseService = Depends(get_release_service),
) -> InstallReleaseResponse:
    return await service.install_release(request)


@router.put(
    "/{name}",
    response_model=UpdateReleaseResponse,
    responses={k: _ERRORS[k] for k in (400, 404, 409, 423, 502, 504)},
    summary="Upgrade a release",
)
async def update_release(
    name: str,
    options: UpdateReleaseOptions,
    service: ReleaseService = Depends(get_release_service),
) -> UpdateReleaseResponse:
    request = UpdateReleaseRequest(name=name, **options.model_dump())
    return await service.update_release(request)


@router.post(
    "/{name}/rollback",
    response_model=RollbackReleaseResponse,
    responses={k: _ERRORS[k] for k in (404, 409, 423, 502, 504)},
    summary="Roll back a release",
)
async def rollback_release(
    name: str,
    options: RollbackReleaseOptions | None = None,
    service: ReleaseService = Depends(get_release_service),
) -> RollbackReleaseResponse:
    options = options or RollbackReleaseOptions()
    request = RollbackReleaseRequest(name=name, **options.model_dump())
    return await service.rollback_release(request)


@router.delete(
    "/{name}",
    response_model=UninstallReleaseResponse,
    responses={k: _ERRORS[k] for k in (404, 409, 423, 502, 504)},
    summary="Uninstall a release",
)
async def uninstall_release(
    name: str,
    disable_hooks: bool = Query(default=False),
    purge: bool = Query(default=False),
    timeout: int = Query(default=0, ge=0),
    description: str = Query(default=""),
    service: ReleaseService = Depends(get_release_service),
) -> UninstallReleaseResponse:
    request = UninstallReleaseRequest(
        name=name,
        disable_hooks=disable_hooks,
        purge=purge,
        timeout=timeout,
        description=description,
    )
    return await service.uninstall_release(request)


@router.post(
    "/{name}/tests",
    response_model=TestReleaseResponse,
    responses={k: _ERRORS[k] for k in (404, 409, 423)},
    summary="Run release tests",
    description="Stream progress and results of the release tests as NDJSON.",
)
async def run_release_test(
    name: str,
    options: TestReleaseOptions | None = None,
    service: ReleaseService = Depends(get_release_service),
) -> StreamingResponse:
    options = options or TestReleaseOptions()
    request = TestReleaseRequest(name=name, **options.model_dump())
    return await _stream(service.run_release_test(request))


# =============================================================================
# Version
# =============================================================================


@version_router.get(
    "/version",
    response_model=GetVersionResponse,
    summary="Service version",
)
async def get_version(
    service: ReleaseService = Depends(get_release_service),
) -> GetVersionResponse:
    return service.get_version()
