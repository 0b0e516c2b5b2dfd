"""
Identifier extraction from Meta webhook payloads.
"""
from __future__ import annotations

import json
from typing import Any, Optional


def extract_id(body: Any) -> Optional[str]:
    """
    Extract the page / Instagram account ID from a parsed webhook body.

    Messenger and Instagram deliveries both carry it as ``entry[0].id``.
    Anything shaped differently yields None, which is a normal outcome.

    Non-string IDs are rendered as JSON spells them, except that integral
    floats drop their fraction (``1.0`` becomes ``"1"``) to match how
    JavaScript senders stringify numbers. Real Meta IDs arrive as strings.
    """
    if not isinstance(body, dict):
        return None

    entries = body.get("entry")
    if not isinstance(entries, list) or not entries:
        return None

    first_entry = entries[0]
    if not isinstance(first_entry, dict):
        return None

    entry_id = first_entry.get("id")
    if entry_id is None:
        return None
    if isinstance(entry_id, str):
        return entry_id
    if isinstance(entry_id, float) and entry_id.is_integer():
        entry_id = int(entry_id)
    # Render numbers and booleans the way the JSON payload spelled them
    return json.dumps(entry_id)
