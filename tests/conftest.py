from datetime import datetime, timezone

import pytest

from hashcards.infrastructure.store import SqliteReviewStore


@pytest.fixture
def now():
    """A fixed session instant."""
    return datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def collection_dir(tmp_path):
    """Creates an empty collection directory."""
    d = tmp_path / "cards"
    d.mkdir()
    return d


@pytest.fixture
def write_cards(collection_dir):
    """Writes a card file into the collection and returns its path."""

    def _write(relative: str, text: str):
        path = collection_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def memory_store():
    store = SqliteReviewStore(":memory:")
    yield store
    store.close()
