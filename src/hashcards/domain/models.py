"""
Domain models for cards and their review state.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

from .errors import UnknownGradeError

# Due instant of a card that has never been reviewed.
NEVER = datetime.min.replace(tzinfo=timezone.utc)


class CardKind(str, Enum):
    BASIC = "basic"
    CLOZE = "cloze"


class CardState(str, Enum):
    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"


class Grade(str, Enum):
    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"


class AnswerControls(str, Enum):
    """
    Grade alphabet offered to the learner.

    Binary offers only Again and Good; Hard and Easy are accepted but
    collapsed into Good.
    """

    FULL = "full"
    BINARY = "binary"

    @property
    def grades(self) -> list[Grade]:
        if self is AnswerControls.BINARY:
            return [Grade.AGAIN, Grade.GOOD]
        return [Grade.AGAIN, Grade.HARD, Grade.GOOD, Grade.EASY]

    def parse_grade(self, label: "Grade | str") -> Grade:
        if isinstance(label, Grade):
            grade = label
        else:
            try:
                grade = Grade(str(label).strip().lower())
            except ValueError:
                raise UnknownGradeError(label) from None
        if self is AnswerControls.BINARY and grade in (Grade.HARD, Grade.EASY):
            return Grade.GOOD
        return grade


@dataclass(frozen=True)
class Card:
    """
    A single reviewable card parsed from the collection.

    Attributes:
        fingerprint: SHA-256 of the card's normalized content; its identity.
        note_fingerprint: SHA-256 of the source note; shared by siblings.
        deck: Slash-separated deck path.
        kind: Basic question/answer or cloze deletion.
        question: Question text, or the full cloze text with brackets removed.
        answer: Answer text, or the deleted span of a cloze card.
        source: Source file relative to the collection root (POSIX).
        line: 1-based line where the card starts.
        cloze_start: Offset of the deletion in `question` (cloze only).
        cloze_end: End offset of the deletion in `question` (cloze only).
    """

    fingerprint: str
    note_fingerprint: str
    deck: str
    kind: CardKind
    question: str
    answer: str
    source: str
    line: int = 1
    cloze_start: int | None = None
    cloze_end: int | None = None


@dataclass(frozen=True)
class ReviewRecord:
    """
    Spaced-repetition state of one card.

    Attributes:
        state: Position in the New/Learning/Review/Relearning cycle.
        due: Instant the card becomes due (UTC).
        interval: Time between the last answer and `due`.
        ease: Interval multiplier for Review cards, never below 1.3.
        reps: Successful reviews.
        lapses: Failed reviews of a Review card.
        last_reviewed: Instant of the previous answer, if any.
        lapsed_interval: Review interval at the most recent lapse.
    """

    state: CardState
    due: datetime
    interval: timedelta
    ease: float
    reps: int = 0
    lapses: int = 0
    last_reviewed: datetime | None = None
    lapsed_interval: timedelta | None = None

    @classmethod
    def new(cls, ease: float) -> "ReviewRecord":
        """The implicit record of a card that has never been answered."""
        return cls(state=CardState.NEW, due=NEVER, interval=timedelta(0), ease=ease)

    @property
    def is_new(self) -> bool:
        return self.state is CardState.NEW
