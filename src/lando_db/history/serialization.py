"""On-disk history format.

A JSON array of entries, most-recent-last, so appending to the file mirrors
appending to the history. In memory the store is read most-recent-first,
so loading reverses the array.
"""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import TypeAdapter, ValidationError

from lando_db.models.domain import HistoryEntry

_ENTRIES = TypeAdapter(list[HistoryEntry])


def dump_entries(newest_first: Iterable[HistoryEntry]) -> str:
    oldest_first = list(reversed(list(newest_first)))
    return _ENTRIES.dump_json(oldest_first, indent=2).decode()


def load_entries(payload: str | bytes) -> list[HistoryEntry]:
    """Parse a saved history file and return it most-recent-first."""
    try:
        oldest_first = _ENTRIES.validate_json(payload)
    except ValidationError as e:
        raise ValueError(f"Invalid history file: {e}") from e
    return list(reversed(oldest_first))
