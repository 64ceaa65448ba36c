"""
Ports (interfaces) for review-state persistence.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterator

from .models import ReviewRecord


class ReviewStore(ABC):
    """
    Port for the durable fingerprint -> ReviewRecord mapping.

    Implementations:
        - SqliteReviewStore: one SQLite file inside the collection.

    All methods block; async callers dispatch them to a worker thread.
    Failures are raised as StoreError.
    """

    @abstractmethod
    def get(self, fingerprint: str) -> ReviewRecord | None:
        """Return the record for a card, or None if it was never answered."""

    @abstractmethod
    def put(self, fingerprint: str, record: ReviewRecord) -> None:
        """Atomically insert or replace a record. Durable on return."""

    @abstractmethod
    def iter_all(self) -> Iterator[tuple[str, ReviewRecord]]:
        """
        Iterate over every stored record.

        Each call starts a fresh iteration over a consistent snapshot.
        """

    @abstractmethod
    def delete(self, fingerprint: str) -> None:
        """Remove a record. Missing fingerprints are ignored."""

    @abstractmethod
    def close(self) -> None:
        """Release the underlying resources. Safe to call twice."""

    def __enter__(self) -> "ReviewStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
