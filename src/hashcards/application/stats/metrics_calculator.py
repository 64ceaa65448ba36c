"""
Metrics calculator for deriving insights from stored review records.

This is a pure computation module with no I/O.
"""

from dataclasses import dataclass
from datetime import datetime

from hashcards.application.scheduler import DAY
from hashcards.domain.models import Card, CardState, ReviewRecord


@dataclass
class EnrichedRecord:
    """
    A card's review record enriched with computed metrics.
    """

    # Card
    fingerprint: str
    deck: str

    # Stored record (None for cards never answered)
    state: CardState
    due: datetime | None
    interval_days: float
    ease: float | None
    reps: int
    lapses: int

    # Computed metrics
    is_due: bool
    lapse_rate: float | None  # lapses / reps
    days_overdue: int | None  # Negative if not yet due


class MetricsCalculator:
    """
    Computes derived metrics for one card at a fixed instant.

    Stateless and side-effect free.
    """

    def enrich(self, card: Card, record: ReviewRecord | None, now: datetime) -> EnrichedRecord:
        if record is None or record.state is CardState.NEW:
            return EnrichedRecord(
                fingerprint=card.fingerprint,
                deck=card.deck,
                state=CardState.NEW,
                due=None,
                interval_days=0.0,
                ease=record.ease if record else None,
                reps=0,
                lapses=0,
                is_due=True,
                lapse_rate=None,
                days_overdue=None,
            )

        return EnrichedRecord(
            fingerprint=card.fingerprint,
            deck=card.deck,
            state=record.state,
            due=record.due,
            interval_days=record.interval / DAY,
            ease=record.ease,
            reps=record.reps,
            lapses=record.lapses,
            is_due=record.due <= now,
            lapse_rate=self._compute_lapse_rate(record),
            days_overdue=self._compute_days_overdue(record, now),
        )

    def _compute_lapse_rate(self, record: ReviewRecord) -> float | None:
        """
        Compute lapse rate as lapses / successful reviews.
        """
        if record.reps == 0:
            return None
        return record.lapses / record.reps

    def _compute_days_overdue(self, record: ReviewRecord, now: datetime) -> int:
        """Whole days since the card became due (negative if not yet due)."""
        return (now - record.due) // DAY
