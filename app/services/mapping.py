"""
Mapping service - loads the destination table and resolves platform identifiers to URLs.
"""
from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

import httpx

from app.logging import get_logger
from app.services.extract import extract_id

logger = get_logger(__name__)

# Reserved identifier matched when no candidate has its own entry
FALLBACK_KEY = "default"

# Query fields that may carry a routing identifier, in precedence order
QUERY_ID_FIELDS = ("id", "page_id", "ig_id")


@dataclass(frozen=True)
class MappingTable:
    """Immutable snapshot of the platform -> identifier -> URL table."""
    platforms: Mapping[str, Mapping[str, str]]
    source: str = ""
    loaded_at: float = field(default_factory=time.time)

    @classmethod
    def from_dict(cls, data: Mapping[str, Mapping[str, str]], source: str = "") -> "MappingTable":
        frozen = {
            platform: MappingProxyType(dict(entries))
            for platform, entries in data.items()
        }
        return cls(platforms=MappingProxyType(frozen), source=source)

    @property
    def platform_count(self) -> int:
        return len(self.platforms)

    @property
    def entry_count(self) -> int:
        return sum(len(entries) for entries in self.platforms.values())

    def get(self, platform: str) -> Any:
        return self.platforms.get(platform)


@dataclass(frozen=True)
class Resolution:
    """Outcome of a successful lookup."""
    key: str
    url: str

    @property
    def is_fallback(self) -> bool:
        return self.key == FALLBACK_KEY


class ResolutionError(Exception):
    """No destination could be resolved for a request."""

    def __init__(self, platform: str, key: Optional[str], reason: str):
        super().__init__(f"{reason} (platform={platform}, key={key})")
        self.platform = platform
        self.key = key
        self.reason = reason


class PlatformNotConfiguredError(ResolutionError):
    def __init__(self, platform: str):
        super().__init__(platform, None, "no such platform configured")


class UnmappedIdentifierError(ResolutionError):
    def __init__(self, platform: str, key: Optional[str]):
        super().__init__(platform, key, "unmapped identifier")


def load_mapping(path: str) -> MappingTable:
    """
    Load the mapping table from a JSON file.

    Args:
        path: Path to the mapping JSON file

    Returns:
        MappingTable snapshot of the file contents

    Raises:
        ValueError: If the file is missing or unreadable, is not valid JSON, or is not a JSON object
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ValueError(f"Mapping file not found: {path}")
    except OSError as e:
        raise ValueError(f"Cannot read mapping file {path}: {e}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in mapping file: {e}")

    if not isinstance(data, dict):
        raise ValueError("Mapping file must contain a JSON object")

    platforms = {}
    for platform, entries in data.items():
        if not isinstance(entries, dict):
            logger.warning(f"Ignoring platform '{platform}': expected an object of identifier -> URL")
            continue

        urls = {}
        for key, url in entries.items():
            if not isinstance(url, str) or not url:
                logger.warning(f"Ignoring '{platform}.{key}': destination must be a non-empty string")
                continue
            urls[str(key)] = url
        platforms[platform] = urls

    return MappingTable.from_dict(platforms, source=path)


def collect_candidates(parsed_body: Any, query_items: Sequence[Tuple[str, str]]) -> List[str]:
    """
    Build the ordered list of routing identifiers for a request.

    The body-derived ID comes first, followed by every value of the
    ``id``, ``page_id`` and ``ig_id`` query fields, in that order.
    """
    candidates: List[str] = []

    body_id = extract_id(parsed_body)
    if body_id is not None:
        candidates.append(body_id)

    for field_name in QUERY_ID_FIELDS:
        candidates.extend(value for key, value in query_items if key == field_name)

    return candidates


def resolve_destination(platform: str, candidates: Iterable[str], table: MappingTable) -> Resolution:
    """
    Resolve the downstream URL for a platform.
    The first candidate with an entry wins; the fallback entry is used only
    when no candidate matched.

    Raises:
        PlatformNotConfiguredError: the table has no entries for the platform
        UnmappedIdentifierError: no candidate matched and no fallback exists
    """
    entries = table.get(platform)
    if not isinstance(entries, Mapping):
        raise PlatformNotConfiguredError(platform)

    candidates = list(candidates)
    for candidate in candidates:
        if candidate and candidate in entries:
            return Resolution(key=candidate, url=entries[candidate])

    if FALLBACK_KEY in entries:
        return Resolution(key=FALLBACK_KEY, url=entries[FALLBACK_KEY])

    raise UnmappedIdentifierError(platform, candidates[0] if candidates else None)


def append_query_params(url: str, query_items: Sequence[Tuple[str, str]]) -> str:
    """
    Append the inbound query onto a destination URL.
    Parameters already on the destination are kept; repeated keys stay repeated.
    """
    if not query_items:
        return url
    target = httpx.URL(url)
    params = [*target.params.multi_items(), *query_items]
    return str(target.copy_with(params=params))
