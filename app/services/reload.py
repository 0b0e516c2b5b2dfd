"""
Mapping reload - reads the configured mapping file and swaps it in.
"""
from __future__ import annotations

from app.config import get_config
from app.logging import get_logger
from app.services.mapping import MappingTable, load_mapping
from app.state import app_state

logger = get_logger(__name__)


def reload_mapping(path: str | None = None) -> MappingTable:
    """
    Load the mapping file and make it the active table.

    The previously active table stays in place if loading fails.

    Raises:
        ValueError: If the mapping file cannot be loaded
    """
    path = path or get_config().mapping_path
    try:
        table = load_mapping(path)
    except ValueError as e:
        logger.error(f"Failed to load mapping from {path}: {e}")
        raise

    app_state.swap_mapping(table)
    logger.info(
        f"Mapping loaded from {path}: "
        f"{table.platform_count} platforms, {table.entry_count} entries"
    )
    return table
