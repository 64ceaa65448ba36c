"""Plain JSON dump of a collection: every card with its review record."""

import logging
from datetime import datetime, timezone

from pydantic import BaseModel

from hashcards.application.collection import Collection
from hashcards.application.scheduler import DAY
from hashcards.consts import VERSION
from hashcards.domain.models import Card, CardKind, CardState, ReviewRecord

logger = logging.getLogger(__name__)


class ExportedRecord(BaseModel):
    state: CardState
    due: datetime
    interval_days: float
    ease: float
    reps: int
    lapses: int
    last_reviewed: datetime | None = None

    @classmethod
    def from_record(cls, record: ReviewRecord) -> "ExportedRecord":
        return cls(
            state=record.state,
            due=record.due,
            interval_days=record.interval / DAY,
            ease=record.ease,
            reps=record.reps,
            lapses=record.lapses,
            last_reviewed=record.last_reviewed,
        )


class ExportedCard(BaseModel):
    fingerprint: str
    note_fingerprint: str
    deck: str
    kind: CardKind
    question: str
    answer: str
    source: str
    line: int
    cloze_start: int | None = None
    cloze_end: int | None = None
    record: ExportedRecord | None = None

    @classmethod
    def from_card(cls, card: Card, record: ReviewRecord | None) -> "ExportedCard":
        return cls(
            fingerprint=card.fingerprint,
            note_fingerprint=card.note_fingerprint,
            deck=card.deck,
            kind=card.kind,
            question=card.question,
            answer=card.answer,
            source=card.source,
            line=card.line,
            cloze_start=card.cloze_start,
            cloze_end=card.cloze_end,
            record=ExportedRecord.from_record(record) if record is not None else None,
        )


class CollectionExport(BaseModel):
    hashcards_version: str = VERSION
    exported_at: datetime
    cards: list[ExportedCard]


def export_collection(
    collection: Collection,
    records: dict[str, ReviewRecord],
    now: datetime | None = None,
) -> CollectionExport:
    """Build the export document. Orphan records are left out."""
    export = CollectionExport(
        exported_at=now or datetime.now(timezone.utc),
        cards=[
            ExportedCard.from_card(card, records.get(card.fingerprint)) for card in collection
        ],
    )
    logger.info(f"Exported {len(export.cards)} cards")
    return export
