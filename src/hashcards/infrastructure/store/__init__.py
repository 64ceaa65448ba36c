# Review store adapters
from pathlib import Path

from hashcards.domain.constants import DB_FILENAME

from .sqlite_store import SqliteReviewStore


def open_store(directory: Path) -> SqliteReviewStore:
    """Open (creating if needed) the review database of a collection."""
    return SqliteReviewStore(directory / DB_FILENAME)


__all__ = ["SqliteReviewStore", "open_store"]
