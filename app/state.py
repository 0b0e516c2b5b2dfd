"""
Application state - shared state initialized at startup.
"""
from __future__ import annotations

import httpx

from app.services.mapping import MappingTable


class AppState:
    """
    Application state container.
    Initialized at startup via lifespan, read by the relay routes.

    ``mapping`` is only ever replaced as a whole; request handlers read it
    once and keep that snapshot for the rest of the request.
    """

    def __init__(self):
        self.mapping: MappingTable | None = None
        self.http_client: httpx.AsyncClient | None = None

    def swap_mapping(self, table: MappingTable) -> MappingTable | None:
        """Install a new mapping table and return the one it replaced."""
        previous, self.mapping = self.mapping, table
        return previous


app_state = AppState()
