#!/usr/bin/env python3
"""
Mock downstream server for testing the webhook relay.

Accepts any method on any path and echoes back what it received,
including the x-relay-key header the relay injects.

Query parameters understood by the mock:
- delay=<seconds>  sleep before answering (exercise the relay timeout)
- status=<code>    answer with this status code

Run with: python scripts/mock_downstream.py
Listens on: http://localhost:9001
"""
from __future__ import annotations

import asyncio
import base64
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import uvicorn

app = FastAPI(title="Mock Downstream Server", description="Test destination for the webhook relay")


def log_request(request: Request, body: bytes):
    """Log an incoming relayed webhook."""
    relay_key = request.headers.get("x-relay-key", "none")
    timestamp = datetime.now().strftime("%H:%M:%S")

    print(f"[{timestamp}] {request.method} {request.url.path} | key: {relay_key} | {len(body)} bytes")


@app.get("/health")
async def health():
    """Health check."""
    return {"status": "healthy", "server": "mock-downstream"}


@app.api_route("/{path:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
async def echo(path: str, request: Request):
    """Echo the relayed request back to the caller."""
    body = await request.body()
    log_request(request, body)

    delay = float(request.query_params.get("delay", 0))
    if delay:
        await asyncio.sleep(delay)

    return JSONResponse(
        status_code=int(request.query_params.get("status", 200)),
        headers={"X-Mock-Path": f"/{path}"},
        content={
            "method": request.method,
            "path": f"/{path}",
            "query": request.query_params.multi_items(),
            "relay_key": request.headers.get("x-relay-key"),
            "body_base64": base64.b64encode(body).decode(),
        }
    )


if __name__ == "__main__":
    print("\nMock Downstream Server")
    print("=" * 50)
    print("Listening on http://localhost:9001")
    print("Echoes every request; ?delay=<s> and ?status=<code> are honoured")
    print("=" * 50 + "\n")

    uvicorn.run(app, host="127.0.0.1", port=9001, log_level="warning")
