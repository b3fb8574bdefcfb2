from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from visitor_geo.clients.registry import build_default_registry
from visitor_geo.config import Settings
from visitor_geo.errors import StorageError
from visitor_geo.exception_handlers import (
    pydantic_validation_exception_handler,
    storage_exception_handler,
    unhandled_exception_handler,
)
from visitor_geo.geo_service import GeoResolutionService
from visitor_geo.logger import logger
from visitor_geo.models.geo import GeoResolution
from visitor_geo.models.request_models import IPResolveRequest, LogEventRequest, RefreshVisitorGeoRequest
from visitor_geo.models.response_models import (
    DeleteResponse,
    HealthResponse,
    LogEventResponse,
    ResolveAllResponse,
    VisitorListResponse,
)
from visitor_geo.resolver import GeoResolver
from visitor_geo.storage.base import BaseVisitorStore
from visitor_geo.storage.factory import create_visitor_store
from visitor_geo.visitor_log import VisitorLogService, extract_client_ip


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Own the visitor store for the lifetime of the process."""
    settings = Settings.from_env()
    store = await create_visitor_store(settings)
    resolver = GeoResolver(build_default_registry(settings), timeout_seconds=settings.provider_timeout_seconds)
    geo_service = GeoResolutionService(resolver, store, throttle_seconds=settings.resolve_all_delay_seconds)

    app.state.visitor_store = store
    app.state.resolver = resolver
    app.state.geo_service = geo_service
    app.state.visitor_log = VisitorLogService(store, geo_service)
    logger.info(f"Started Visitor Geolocation Service providers={resolver.provider_names}")
    try:
        yield
    finally:
        await store.close()
        logger.info("Stopped Visitor Geolocation Service")


app = FastAPI(
    title="Visitor Geolocation Service",
    version="0.1.0",
    description="Visitor event log with multi-provider IP geolocation.",
    lifespan=lifespan,
)


def get_visitor_store(request: Request) -> BaseVisitorStore:
    return request.app.state.visitor_store


def get_resolver(request: Request) -> GeoResolver:
    return request.app.state.resolver


def get_geo_service(request: Request) -> GeoResolutionService:
    return request.app.state.geo_service


def get_visitor_log(request: Request) -> VisitorLogService:
    return request.app.state.visitor_log


# Register global exception handlers using the shared handlers module.
app.add_exception_handler(ValidationError, pydantic_validation_exception_handler)
app.add_exception_handler(RequestValidationError, pydantic_validation_exception_handler)
app.add_exception_handler(StorageError, storage_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)


@app.get(
    "/health",
    tags=["health"],
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
)
async def health() -> HealthResponse:
    """Basic health check endpoint."""
    return HealthResponse(status="ok")


@app.get(
    "/v1/ip/resolve",
    response_model=GeoResolution,
    status_code=status.HTTP_200_OK,
    tags=["ip"],
    summary="Resolve an IP address against every geolocation provider.",
)
async def ip_resolve(
    request: Request,
    query: Annotated[IPResolveRequest, Depends()],
    resolver: Annotated[GeoResolver, Depends(get_resolver)],
) -> GeoResolution:
    """Resolve either a specific IP or the caller's IP. Nothing is persisted.

    - If `query.ip` is provided, that IP is used.
    - Otherwise, the client's IP is taken from forwarding headers or the socket peer.
    """
    ip = query.ip or extract_client_ip(request.headers, request.client.host if request.client else None)
    logger.info(f"Resolving ip path={request.url.path} method={request.method} ip={ip}")

    resolution = await resolver.resolve(ip)
    if resolution is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "ip_not_resolvable", "message": f"Could not resolve location for {ip!r}."},
        )
    return resolution


@app.post(
    "/v1/log",
    response_model=LogEventResponse,
    status_code=status.HTTP_200_OK,
    tags=["log"],
    summary="Record a visitor event.",
)
async def log_event(
    request: Request,
    event: LogEventRequest,
    visitor_log: Annotated[VisitorLogService, Depends(get_visitor_log)],
) -> LogEventResponse:
    stored = await visitor_log.record(
        request.headers, event, client_host=request.client.host if request.client else None
    )
    return LogEventResponse(ok=stored)


@app.get(
    "/v1/admin/visitors",
    response_model=VisitorListResponse,
    tags=["admin"],
    summary="List visitors, most recently seen first.",
)
async def list_visitors(
    store: Annotated[BaseVisitorStore, Depends(get_visitor_store)],
) -> VisitorListResponse:
    visitors = await store.list_visitors()
    # ISO timestamps sort chronologically; visitors never seen sort last.
    visitors.sort(
        key=lambda v: v.meta.last_seen.isoformat() if v.meta.last_seen else "",
        reverse=True,
    )
    return VisitorListResponse(visitors=visitors, count=len(visitors))


@app.delete(
    "/v1/admin/visitors",
    response_model=DeleteResponse,
    tags=["admin"],
    summary="Delete every visitor record.",
)
async def delete_all_visitors(
    store: Annotated[BaseVisitorStore, Depends(get_visitor_store)],
) -> DeleteResponse:
    deleted = await store.delete_all()
    logger.info(f"Deleted all visitors count={deleted}")
    return DeleteResponse(deleted=deleted)


@app.delete(
    "/v1/admin/visitors/{visitor_key}",
    response_model=DeleteResponse,
    tags=["admin"],
    summary="Delete one visitor record.",
)
async def delete_visitor(
    visitor_key: str,
    store: Annotated[BaseVisitorStore, Depends(get_visitor_store)],
) -> DeleteResponse:
    deleted = await store.delete_visitor(visitor_key)
    return DeleteResponse(deleted=1 if deleted else 0)


@app.post(
    "/v1/admin/visitors/geo",
    response_model=GeoResolution,
    tags=["admin"],
    summary="Re-resolve one visitor's location and overwrite the stored result.",
)
async def refresh_visitor_geo(
    body: RefreshVisitorGeoRequest,
    store: Annotated[BaseVisitorStore, Depends(get_visitor_store)],
    geo_service: Annotated[GeoResolutionService, Depends(get_geo_service)],
) -> GeoResolution:
    ip = body.ip
    if ip is None:
        visitor = await store.get_visitor(body.visitor_key)
        if visitor is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"code": "visitor_not_found", "message": f"Unknown visitor {body.visitor_key!r}."},
            )
        ip = visitor.ip

    resolution = await geo_service.force_resolve(ip, body.visitor_key)
    if resolution is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "ip_not_resolvable", "message": f"Could not resolve location for {ip!r}."},
        )
    return resolution


@app.post(
    "/v1/admin/visitors/geo/all",
    response_model=ResolveAllResponse,
    tags=["admin"],
    summary="Re-resolve the location of every visitor.",
)
async def refresh_all_visitors_geo(
    geo_service: Annotated[GeoResolutionService, Depends(get_geo_service)],
) -> ResolveAllResponse:
    summary = await geo_service.force_resolve_all()
    return ResolveAllResponse(updated=summary.updated, failed=summary.failed)
