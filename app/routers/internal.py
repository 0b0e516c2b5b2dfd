"""
Internal router - health checks, relay statistics and mapping reload.
"""
import hmac
from typing import Dict, Optional

from fastapi import APIRouter, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from app.config import get_config
from app.logging import get_logger
from app.services.reload import reload_mapping
from app.services.stats import stats_collector

logger = get_logger(__name__)

router = APIRouter(tags=["internal"])


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(examples=["ok"])


class PlatformStatsResponse(BaseModel):
    """Relay statistics for a single inbound platform."""
    request_count: int = Field(examples=[100], description="Total number of inbound requests")
    mirrored: int = Field(examples=[90], description="Requests answered with the downstream response")
    not_found: int = Field(examples=[6], description="Requests with no mapped destination (404)")
    bad_gateway: int = Field(examples=[3], description="Requests whose forwarding failed (502)")
    rejected: int = Field(examples=[1], description="Requests refused before resolution")
    timeouts: int = Field(examples=[2], description="Forwarding failures caused by the timeout")
    incoming_bytes: int = Field(examples=[10240], description="Total body bytes received from callers")
    outgoing_bytes: int = Field(examples=[20480], description="Total body bytes mirrored back to callers")
    avg_forward_time_ms: float = Field(examples=[45.23], description="Average forwarding time in milliseconds")


class ReloadResponse(BaseModel):
    """Mapping reload result."""
    status: str = Field(examples=["reloaded"])
    platforms: int = Field(examples=[2], description="Platforms in the new table")
    entries: int = Field(examples=[5], description="Identifier entries across all platforms")
    loaded_at: float = Field(examples=[1700000000.0], description="Unix time the new table was read")


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="ok")


@router.get("/stats", response_model=Dict[str, PlatformStatsResponse])
async def stats() -> Dict[str, PlatformStatsResponse]:
    """
    Get relay statistics per platform since server start.

    Counters split every inbound request by its terminal outcome:
    mirrored, not found (404), bad gateway (502) or rejected.
    """
    return await stats_collector.get_all_stats()


@router.post(
    "/reload",
    response_model=ReloadResponse,
    responses={
        401: {"description": "Missing or wrong X-Reload-Token header"},
        500: {"description": "Mapping file could not be loaded, previous table still active"}
    }
)
async def reload(x_reload_token: Optional[str] = Header(default=None)):
    """
    Re-read the mapping file and swap it in atomically.
    In-flight requests finish against the table they started with.
    """
    expected = get_config().reload_token
    if expected and not hmac.compare_digest(expected.encode(), (x_reload_token or "").encode()):
        return JSONResponse(status_code=401, content={"error": "Invalid reload token"})

    logger.info("Mapping reload requested via control endpoint")
    try:
        table = reload_mapping()
    except ValueError:
        return JSONResponse(status_code=500, content={"error": "Failed to reload mapping"})

    return ReloadResponse(
        status="reloaded",
        platforms=table.platform_count,
        entries=table.entry_count,
        loaded_at=table.loaded_at
    )
