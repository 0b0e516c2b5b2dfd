"""
Proxy service - forwards relayed webhooks to their downstream destination.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

import httpx

from app.services.headers import HeaderPairs, header_name, response_header_pairs, sanitize_headers

# Header telling the destination which mapping entry selected it
RELAY_KEY_HEADER = "x-relay-key"

# Methods that never carry a body downstream
BODYLESS_METHODS = frozenset({"GET", "HEAD"})


@dataclass
class ForwardedResponse:
    """Downstream response, buffered and ready to mirror."""
    status_code: int
    content: bytes
    headers: HeaderPairs


class ForwardError(Exception):
    """The downstream exchange could not be completed."""

    def __init__(self, url: str, cause: BaseException):
        super().__init__(f"Forwarding to {url} failed: {cause!r}")
        self.url = url
        self.cause = cause


class ForwardTimeoutError(ForwardError):
    """The downstream did not complete the exchange before the deadline."""


def build_outbound_headers(
    incoming_headers: Iterable[Tuple[bytes, bytes]],
    relay_key: Optional[str]
) -> HeaderPairs:
    """
    Sanitize inbound headers and inject the relay key header.
    The key comes from the mapping file and may be non-ASCII, so it is sent as UTF-8.
    """
    headers = [
        (name, value) for name, value in sanitize_headers(incoming_headers)
        if header_name(name) != RELAY_KEY_HEADER
    ]
    if relay_key:
        headers.append((RELAY_KEY_HEADER, relay_key.encode("utf-8")))
    return headers


async def forward_request(
    url: str,
    method: str,
    incoming_headers: Iterable[Tuple[bytes, bytes]],
    raw_body: bytes,
    relay_key: Optional[str],
    client: httpx.AsyncClient,
    timeout: float
) -> ForwardedResponse:
    """
    Forward a webhook to its destination and buffer the response.

    Args:
        url: The destination URL, query already appended
        method: HTTP method of the inbound request
        incoming_headers: Inbound raw (name, value) header byte pairs
        raw_body: Inbound body bytes, sent untouched unless the method is GET/HEAD
        relay_key: Mapping key that selected the destination (for x-relay-key)
        client: Shared HTTP client for connection pooling
        timeout: Deadline in seconds for the whole exchange

    Returns:
        The downstream status, raw body and sanitized headers

    Raises:
        ForwardTimeoutError: the deadline passed before the body was read
        ForwardError: any other transport or protocol failure
    """
    method = method.upper()
    headers = build_outbound_headers(incoming_headers, relay_key)
    content = None if method in BODYLESS_METHODS else raw_body

    try:
        return await asyncio.wait_for(
            _exchange(client, method, url, headers, content, timeout),
            timeout=timeout
        )
    except (asyncio.TimeoutError, httpx.TimeoutException) as e:
        raise ForwardTimeoutError(url, e) from e
    except (httpx.RequestError, httpx.InvalidURL) as e:
        raise ForwardError(url, e) from e


async def _exchange(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    headers: HeaderPairs,
    content: Optional[bytes],
    timeout: float
) -> ForwardedResponse:
    request = client.build_request(method, url, headers=headers, content=content, timeout=timeout)
    response = await client.send(request, stream=True)
    try:
        # Raw chunks: content-encoded bodies are mirrored as received
        body = b"".join([chunk async for chunk in response.aiter_raw()])
    finally:
        await response.aclose()

    return ForwardedResponse(
        status_code=response.status_code,
        content=body,
        headers=sanitize_headers(response_header_pairs(response.headers))
    )
