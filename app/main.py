"""
Meta Webhook Relay

Entry point for the FastAPI application.
"""
from __future__ import annotations

import asyncio
import signal
from contextlib import asynccontextmanager

import httpx
import uvicorn
from fastapi import FastAPI
from dotenv import load_dotenv

from app.logging import configure_logging, get_logger
from app.state import app_state
from app.routers import internal, webhooks
from app.services.reload import reload_mapping
from app.config import get_config

load_dotenv()

logger = get_logger(__name__)


def _init_mapping() -> None:
    """Load the mapping table. Failure here aborts startup."""
    try:
        reload_mapping()
    except ValueError as e:
        raise RuntimeError(f"Cannot start without a mapping table: {e}") from e


def _init_http_client() -> None:
    """Initialize shared HTTP client for downstream requests."""
    app_state.http_client = httpx.AsyncClient(timeout=get_config().forward_timeout)
    logger.info("HTTP client initialized")


async def _shutdown_http_client() -> None:
    """Close the shared HTTP client."""
    if app_state.http_client:
        await app_state.http_client.aclose()
        app_state.http_client = None
        logger.info("HTTP client closed")


def _on_sighup() -> None:
    logger.info("Received SIGHUP, reloading mapping")
    try:
        reload_mapping()
    except ValueError:
        logger.warning("Keeping the previous mapping table")


def _install_reload_signal() -> bool:
    """Reload the mapping on SIGHUP where the platform and loop support it."""
    if not hasattr(signal, "SIGHUP"):
        return False
    try:
        asyncio.get_running_loop().add_signal_handler(signal.SIGHUP, _on_sighup)
    except (NotImplementedError, RuntimeError, ValueError):
        # Not on the main thread (e.g. under a test client) or no POSIX signals
        return False
    return True


def _remove_reload_signal() -> None:
    asyncio.get_running_loop().remove_signal_handler(signal.SIGHUP)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - handles startup and shutdown."""
    configure_logging(get_config().log_level)
    _init_mapping()
    _init_http_client()
    sighup_installed = _install_reload_signal()

    yield

    if sighup_installed:
        _remove_reload_signal()
    await _shutdown_http_client()

app = FastAPI(
    title="Meta Webhook Relay",
    description="Relays Messenger and Instagram webhooks to per-page destinations",
    lifespan=lifespan
)

app.include_router(webhooks.router)
app.include_router(internal.router)


if __name__ == "__main__":
    config = get_config()
    logger.info(f"Meta Webhook Relay starting on {config.host}:{config.port}")
    uvicorn.run(app, host=config.host, port=config.port, log_level="warning")
