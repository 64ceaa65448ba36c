"""
Session builder for drill sessions.

Builds the ordered review queue by:
1. Filtering cards by deck
2. Bucketing them into learning, review and new cards
3. Ordering each bucket and interleaving learning -> review -> new
4. Applying the new-card and total card limits
"""

import logging
import random
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime

from hashcards.application.scheduler import is_due, is_new
from hashcards.domain.models import Card, CardState, ReviewRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionOptions:
    """Options that shape the queue of one session."""

    now: datetime
    card_limit: int | None = None
    new_card_limit: int | None = None
    deck_filter: str | None = None
    shuffle: bool = False
    bury_siblings: bool = False


@dataclass
class SessionPlan:
    """Result of session building."""

    queue: list[str]  # Fingerprints in review order
    new_cards: set[str]  # Queued cards without a record or in state New
    siblings: dict[str, list[str]] = field(default_factory=dict)  # note -> members
    bury: set[str] = field(default_factory=set)

    def siblings_of(self, card: Card) -> list[str]:
        return [fp for fp in self.siblings.get(card.note_fingerprint, []) if fp != card.fingerprint]


def deck_matches(deck: str, deck_filter: str) -> bool:
    """True if `deck` is `deck_filter` or one of its descendants.

    An empty filter (or just "/") names the root and matches every deck.
    """
    prefix = deck_filter.strip("/")
    if not prefix:
        return True
    return deck == prefix or deck.startswith(prefix + "/")


def build_session(
    cards: Iterable[Card],
    records: Mapping[str, ReviewRecord],
    options: SessionOptions,
) -> SessionPlan:
    """
    Build the queue of a drill session.

    Args:
        cards: Every card in the collection.
        records: Stored review records by fingerprint. Records without a
            matching card (orphans) are ignored.
        options: Session options; `options.now` is the frozen session time.

    Returns:
        SessionPlan with the ordered queue, its new cards and the sibling index.
    """
    now = options.now
    selected = [
        card
        for card in cards
        if options.deck_filter is None or deck_matches(card.deck, options.deck_filter)
    ]

    new: list[Card] = []
    learning: list[tuple[datetime, str]] = []
    review: list[tuple[datetime, str]] = []

    for card in selected:
        record = records.get(card.fingerprint)
        if is_new(record):
            new.append(card)
        elif not is_due(record, now):
            continue
        elif record.state in (CardState.LEARNING, CardState.RELEARNING):
            learning.append((record.due, card.fingerprint))
        elif record.state is CardState.REVIEW:
            review.append((record.due, card.fingerprint))

    new_queue = sorted(card.fingerprint for card in new)
    if options.shuffle:
        random.Random(int(now.timestamp())).shuffle(new_queue)
    if options.new_card_limit is not None:
        new_queue = new_queue[: options.new_card_limit]

    queue = [fp for _, fp in sorted(learning)] + [fp for _, fp in sorted(review)] + new_queue
    if options.card_limit is not None:
        queue = queue[: options.card_limit]

    queued = set(queue)
    siblings: dict[str, list[str]] = {}
    if options.bury_siblings:
        groups: dict[str, list[str]] = defaultdict(list)
        for card in selected:
            groups[card.note_fingerprint].append(card.fingerprint)
        siblings = {note: members for note, members in groups.items() if len(members) > 1}

    logger.info(
        f"Session queue: {len(queue)} cards "
        f"({len(learning)} learning, {len(review)} review, {len(new_queue)} new before limits)"
    )
    return SessionPlan(
        queue=queue,
        new_cards={fp for fp in new_queue if fp in queued},
        siblings=siblings,
    )
