"""
Stats service: application layer orchestrator.

Joins the collection with the review store and summarizes the result.
"""

import logging
from collections import Counter, defaultdict
from dataclasses import asdict, dataclass, field
from datetime import datetime

from hashcards.application.collection import Collection
from hashcards.domain.models import CardState
from hashcards.domain.ports import ReviewStore

from .metrics_calculator import EnrichedRecord, MetricsCalculator

logger = logging.getLogger(__name__)


@dataclass
class DeckStats:
    cards: int = 0
    new: int = 0
    due: int = 0


@dataclass
class CollectionStats:
    """Summary printed by `hashcards stats`."""

    cards: int
    records: int
    orphans: int
    by_state: dict[str, int]
    due_now: int
    new: int
    overdue: int
    leeches: int
    mean_ease: float | None
    lapse_rate: float | None
    decks: dict[str, DeckStats] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


class StatsService:
    """
    Application service for fetching and summarizing review statistics.

    Depends on the ReviewStore abstraction, not on a concrete adapter.
    """

    def __init__(
        self,
        store: ReviewStore,
        calculator: MetricsCalculator | None = None,
        leech_threshold: int = 8,
    ):
        """
        Args:
            store: The review store (port) to read records from.
            calculator: Optional custom calculator; uses default if not provided.
            leech_threshold: Lapses at which a card counts as a leech.
        """
        self._store = store
        self._calc = calculator or MetricsCalculator()
        self._leech_threshold = leech_threshold

    def summarize(self, collection: Collection, now: datetime) -> CollectionStats:
        records = dict(self._store.iter_all())
        enriched = self._enrich(collection, records, now)

        by_state = Counter({state.value: 0 for state in CardState})
        decks: dict[str, DeckStats] = defaultdict(DeckStats)
        for item in enriched:
            by_state[item.state.value] += 1
            deck = decks[item.deck]
            deck.cards += 1
            if item.state is CardState.NEW:
                deck.new += 1
            elif item.is_due:
                deck.due += 1

        reviewed = [item for item in enriched if item.state is not CardState.NEW]
        total_reps = sum(item.reps for item in reviewed)
        total_lapses = sum(item.lapses for item in reviewed)

        stats = CollectionStats(
            cards=len(enriched),
            records=len(records),
            orphans=sum(1 for fp in records if fp not in collection),
            by_state=dict(by_state),
            due_now=sum(1 for item in reviewed if item.is_due),
            new=by_state[CardState.NEW.value],
            overdue=sum(1 for item in reviewed if item.days_overdue and item.days_overdue > 0),
            leeches=sum(1 for item in reviewed if item.lapses >= self._leech_threshold),
            mean_ease=(
                sum(item.ease for item in reviewed) / len(reviewed) if reviewed else None
            ),
            lapse_rate=total_lapses / total_reps if total_reps else None,
            decks=dict(sorted(decks.items())),
        )
        logger.debug(f"Stats: {stats.cards} cards, {stats.records} records")
        return stats

    def _enrich(self, collection, records, now) -> list[EnrichedRecord]:
        return [self._calc.enrich(card, records.get(card.fingerprint), now) for card in collection]
