from pydantic import BaseModel

from visitor_geo.models.visitor import Visitor


class HealthResponse(BaseModel):
    """Response model for the health check endpoint."""

    status: str


class LogEventResponse(BaseModel):
    ok: bool


class VisitorListResponse(BaseModel):
    """Visitors ordered by most recently seen first."""

    visitors: list[Visitor]
    count: int


class DeleteResponse(BaseModel):
    deleted: int


class ResolveAllResponse(BaseModel):
    """Counts from a bulk re-resolution run."""

    updated: int
    failed: int
