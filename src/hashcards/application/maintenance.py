"""Collection maintenance: integrity checks and orphan cleanup."""

import logging
from dataclasses import dataclass, field
from datetime import timedelta

from hashcards.application.collection import Collection
from hashcards.application.scheduler import DEFAULT_PARAMS, SchedulerParams
from hashcards.domain.models import Card, CardState, ReviewRecord
from hashcards.domain.ports import ReviewStore

logger = logging.getLogger(__name__)


@dataclass
class CheckReport:
    """Outcome of `check_collection`. Orphans are reported but tolerated."""

    cards: int
    duplicates: list[tuple[Card, Card]] = field(default_factory=list)
    invalid_records: list[tuple[str, str]] = field(default_factory=list)
    orphans: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.duplicates and not self.invalid_records

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "cards": self.cards,
            "duplicates": [
                {
                    "fingerprint": dup.fingerprint,
                    "first": f"{first.source}:{first.line}",
                    "duplicate": f"{dup.source}:{dup.line}",
                }
                for first, dup in self.duplicates
            ],
            "invalid_records": [
                {"fingerprint": fp, "reason": reason} for fp, reason in self.invalid_records
            ],
            "orphans": len(self.orphans),
        }


def validate_record(record: ReviewRecord, params: SchedulerParams = DEFAULT_PARAMS) -> list[str]:
    """Return the invariants a stored record violates (empty if none)."""
    problems = []
    if record.ease < params.min_ease:
        problems.append(f"ease {record.ease} below {params.min_ease}")
    if record.state is CardState.NEW and (record.reps or record.lapses):
        problems.append("new card with reps or lapses")
    if record.interval < timedelta(0):
        problems.append(f"negative interval {record.interval}")
    if record.state is not CardState.NEW and record.last_reviewed is None:
        problems.append(f"{record.state.value} card never reviewed")
    if record.last_reviewed is not None and record.last_reviewed > record.due:
        problems.append("reviewed after its due date")
    return problems


def check_collection(collection: Collection, store: ReviewStore) -> CheckReport:
    report = CheckReport(cards=len(collection), duplicates=list(collection.duplicates))
    for fingerprint, record in store.iter_all():
        if fingerprint not in collection:
            report.orphans.append(fingerprint)
        for problem in validate_record(record):
            report.invalid_records.append((fingerprint, problem))

    logger.info(
        f"Checked {report.cards} cards: {len(report.duplicates)} duplicates, "
        f"{len(report.invalid_records)} invalid records, {len(report.orphans)} orphans"
    )
    return report


def list_orphans(collection: Collection, store: ReviewStore) -> list[str]:
    """Fingerprints of stored records whose card no longer exists."""
    return [fp for fp, _ in store.iter_all() if fp not in collection]


def delete_orphans(collection: Collection, store: ReviewStore) -> list[str]:
    orphans = list_orphans(collection, store)
    for fingerprint in orphans:
        store.delete(fingerprint)
        logger.debug(f"Deleted orphan record {fingerprint}")
    if orphans:
        logger.info(f"Deleted {len(orphans)} orphan records")
    return orphans
