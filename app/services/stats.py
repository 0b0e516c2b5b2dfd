"""
Stats service - counts relay outcomes per platform.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Dict


class RelayOutcome(str, Enum):
    """Terminal state of one relayed request."""
    MIRRORED = "mirrored"
    NOT_FOUND = "not_found"
    BAD_GATEWAY = "bad_gateway"
    REJECTED = "rejected"


@dataclass
class PlatformStats:
    """Statistics for a single inbound platform."""
    request_count: int = 0
    mirrored_count: int = 0
    not_found_count: int = 0
    bad_gateway_count: int = 0
    rejected_count: int = 0
    timeout_count: int = 0
    incoming_bytes: int = 0
    outgoing_bytes: int = 0
    forwarded_count: int = 0
    total_forward_time_ms: float = 0.0

    @property
    def avg_forward_time_ms(self) -> float:
        if self.forwarded_count == 0:
            return 0.0
        return self.total_forward_time_ms / self.forwarded_count

    def to_dict(self) -> Dict:
        return {
            "request_count": self.request_count,
            "mirrored": self.mirrored_count,
            "not_found": self.not_found_count,
            "bad_gateway": self.bad_gateway_count,
            "rejected": self.rejected_count,
            "timeouts": self.timeout_count,
            "incoming_bytes": self.incoming_bytes,
            "outgoing_bytes": self.outgoing_bytes,
            "avg_forward_time_ms": round(self.avg_forward_time_ms, 2)
        }


class StatsCollector:
    """Async-safe statistics collector keyed by platform."""

    def __init__(self):
        self._stats: Dict[str, PlatformStats] = {}
        self._lock = asyncio.Lock()

    async def record(
        self,
        platform: str,
        outcome: RelayOutcome,
        incoming_bytes: int = 0,
        outgoing_bytes: int = 0,
        forward_time_ms: float | None = None,
        timed_out: bool = False
    ):
        """Record the outcome of one relayed request."""
        async with self._lock:
            stats = self._stats.setdefault(platform, PlatformStats())
            stats.request_count += 1
            stats.incoming_bytes += incoming_bytes
            stats.outgoing_bytes += outgoing_bytes

            if outcome is RelayOutcome.MIRRORED:
                stats.mirrored_count += 1
            elif outcome is RelayOutcome.NOT_FOUND:
                stats.not_found_count += 1
            elif outcome is RelayOutcome.BAD_GATEWAY:
                stats.bad_gateway_count += 1
            else:
                stats.rejected_count += 1

            if timed_out:
                stats.timeout_count += 1
            if forward_time_ms is not None:
                stats.forwarded_count += 1
                stats.total_forward_time_ms += forward_time_ms

    async def get_all_stats(self) -> Dict[str, Dict]:
        """Get statistics for all platforms."""
        async with self._lock:
            return {platform: stats.to_dict() for platform, stats in self._stats.items()}


# Singleton instance
stats_collector = StatsCollector()
