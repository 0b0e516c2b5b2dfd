"""
Header sanitization for relayed requests and mirrored responses.
"""
from __future__ import annotations

from typing import AnyStr, Iterable, List, Tuple, Union

import httpx

HeaderName = Union[str, bytes]
HeaderPairs = List[Tuple[HeaderName, Union[str, bytes]]]

# Connection-level headers that must not cross the relay in either direction.
# content-length and host are recomputed for each hop.
HOP_BY_HOP_HEADERS = frozenset({
    "transfer-encoding", "connection", "keep-alive",
    "proxy-authenticate", "proxy-authorization",
    "te", "trailers", "upgrade", "content-length", "host",
})


def header_name(name: HeaderName) -> str:
    """Lower-cased header name, whether it arrived as text or raw bytes."""
    if isinstance(name, bytes):
        name = name.decode("latin-1")
    return name.lower()


def sanitize_headers(headers: Iterable[Tuple[HeaderName, AnyStr]]) -> HeaderPairs:
    """
    Drop hop-by-hop headers, keeping every other entry in order.
    Names keep their original casing and repeated headers keep all values.
    Raw byte pairs stay bytes so non-ASCII values pass through untouched.
    """
    return [(name, value) for name, value in headers if header_name(name) not in HOP_BY_HOP_HEADERS]


def response_header_pairs(headers: httpx.Headers) -> HeaderPairs:
    """Raw (name, value) pairs of a downstream response, as sent on the wire."""
    return [
        (name.decode("latin-1"), value.decode("latin-1"))
        for name, value in headers.raw
    ]
