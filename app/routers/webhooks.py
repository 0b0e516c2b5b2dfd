"""
Webhooks router - relays Meta webhook calls to the destination mapped for them.
"""
from __future__ import annotations

import json
import time
from typing import Any, Optional

import httpx
from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from app.config import get_config
from app.logging import get_logger
from app.services.mapping import (
    ResolutionError,
    append_query_params,
    collect_candidates,
    resolve_destination,
)
from app.services.proxy import ForwardError, ForwardTimeoutError, forward_request
from app.services.stats import RelayOutcome, stats_collector
from app.state import app_state

logger = get_logger(__name__)

router = APIRouter(tags=["webhooks"])

# Inbound platforms, each served at /webhooks/<platform>
PLATFORMS = ("messenger", "instagram")

FORWARD_FAILED_MESSAGE = "Failed to forward webhook to downstream server"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def parse_json_body(content_type: str, raw_body: bytes) -> Optional[Any]:
    """
    Parse the body as JSON when it is declared as JSON.
    Unparseable bodies are treated as having no parsed form.
    """
    if "application/json" not in content_type.lower() or not raw_body:
        return None
    try:
        return json.loads(raw_body)
    except (ValueError, UnicodeDecodeError):
        return None


def _body_too_large(request: Request, raw_body: bytes | None, limit: int) -> bool:
    if raw_body is not None:
        return len(raw_body) > limit
    content_length = request.headers.get("content-length")
    if content_length:
        try:
            return int(content_length) > limit
        except ValueError:
            pass  # Malformed header, the body size check decides
    return False


def mirror_response(status_code: int, content: bytes, headers) -> Response:
    """Build the caller response from the downstream status, headers and body."""
    response = Response(content=content, status_code=status_code)
    for name, value in headers:
        response.headers.append(name, value)
    return response


async def relay(request: Request, platform: str) -> Response:
    """
    Resolve the destination for an inbound webhook, forward it and mirror the answer.

    **Flow:**
    1. Read the raw body and parse it when it is JSON
    2. Resolve the destination from the body ID, query IDs or the fallback entry
    3. Forward with the original method, sanitized headers and raw body
    4. Mirror the downstream status, headers and body
    """
    config = get_config()

    if _body_too_large(request, None, config.max_body_size):
        await stats_collector.record(platform, RelayOutcome.REJECTED)
        return _error(413, "Request body too large")

    raw_body = await request.body()
    if _body_too_large(request, raw_body, config.max_body_size):
        await stats_collector.record(platform, RelayOutcome.REJECTED)
        return _error(413, "Request body too large")

    # One snapshot for the whole request, a concurrent reload swaps the reference only
    table = app_state.mapping
    client = app_state.http_client
    if table is None or client is None:
        logger.error("Relay used before the mapping table or HTTP client was initialized")
        await stats_collector.record(platform, RelayOutcome.REJECTED, incoming_bytes=len(raw_body))
        return _error(503, "Relay not ready")

    parsed_body = parse_json_body(request.headers.get("content-type", ""), raw_body)
    query_items = request.query_params.multi_items()
    candidates = collect_candidates(parsed_body, query_items)

    try:
        resolution = resolve_destination(platform, candidates, table)
    except ResolutionError as e:
        logger.warning(f"No mapping found for {platform} request: {e.reason} (key={e.key})")
        await stats_collector.record(platform, RelayOutcome.NOT_FOUND, incoming_bytes=len(raw_body))
        return _error(404, f"No downstream URL mapped for key: {e.key or 'unknown'}")

    if resolution.is_fallback:
        logger.info(f"No identifier matched for {platform} (candidates: {candidates or 'none'}), using the fallback entry")

    start_time = time.monotonic()
    target_url = resolution.url
    try:
        target_url = append_query_params(resolution.url, query_items)
        downstream = await forward_request(
            url=target_url,
            method=request.method,
            incoming_headers=request.headers.raw,
            raw_body=raw_body,
            relay_key=resolution.key,
            client=client,
            timeout=config.forward_timeout
        )
    except (ForwardError, httpx.InvalidURL) as e:
        elapsed_ms = (time.monotonic() - start_time) * 1000
        timed_out = isinstance(e, ForwardTimeoutError)
        if timed_out:
            logger.error(f"Timeout forwarding {platform} webhook (key={resolution.key}) to {target_url}")
        else:
            logger.error(f"Error forwarding {platform} webhook (key={resolution.key}) to {target_url}: {e}")
        await stats_collector.record(
            platform,
            RelayOutcome.BAD_GATEWAY,
            incoming_bytes=len(raw_body),
            forward_time_ms=elapsed_ms,
            timed_out=timed_out
        )
        return _error(502, FORWARD_FAILED_MESSAGE)

    elapsed_ms = (time.monotonic() - start_time) * 1000
    logger.info(
        f"Webhook forwarded: {platform} key={resolution.key} -> {target_url} "
        f"[{downstream.status_code}] in {elapsed_ms:.1f}ms"
    )
    await stats_collector.record(
        platform,
        RelayOutcome.MIRRORED,
        incoming_bytes=len(raw_body),
        outgoing_bytes=len(downstream.content),
        forward_time_ms=elapsed_ms
    )

    return mirror_response(downstream.status_code, downstream.content, downstream.headers)


class PlatformRelay:
    """
    ASGI endpoint relaying one platform's webhooks.

    Starlette routes only accept every method when the endpoint is an ASGI
    app; a plain function endpoint would be limited to GET.
    """

    def __init__(self, platform: str):
        self.platform = platform

    async def __call__(self, scope, receive, send) -> None:
        request = Request(scope, receive, send)
        response = await relay(request, self.platform)
        await response(scope, receive, send)


for _platform in PLATFORMS:
    router.add_route(f"/webhooks/{_platform}", PlatformRelay(_platform), methods=None)
