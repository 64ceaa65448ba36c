import pytest

from hashcards.domain.errors import UnknownGradeError
from hashcards.domain.models import NEVER, AnswerControls, CardState, Grade, ReviewRecord


def test_full_controls_offer_four_grades():
    assert AnswerControls.FULL.grades == [Grade.AGAIN, Grade.HARD, Grade.GOOD, Grade.EASY]


def test_binary_controls_offer_again_and_good():
    assert AnswerControls.BINARY.grades == [Grade.AGAIN, Grade.GOOD]


@pytest.mark.parametrize(
    "label, expected",
    [("again", Grade.AGAIN), ("hard", Grade.HARD), ("Good", Grade.GOOD), (" easy ", Grade.EASY)],
)
def test_full_controls_parse_labels(label, expected):
    assert AnswerControls.FULL.parse_grade(label) is expected


@pytest.mark.parametrize(
    "label, expected",
    [("again", Grade.AGAIN), ("hard", Grade.GOOD), ("good", Grade.GOOD), ("easy", Grade.GOOD)],
)
def test_binary_controls_collapse_into_good(label, expected):
    assert AnswerControls.BINARY.parse_grade(label) is expected


def test_parse_grade_accepts_enum_members():
    assert AnswerControls.FULL.parse_grade(Grade.HARD) is Grade.HARD


def test_parse_grade_rejects_unknown_label():
    with pytest.raises(UnknownGradeError) as excinfo:
        AnswerControls.FULL.parse_grade("forgot")
    assert excinfo.value.status_code == 400
    assert excinfo.value.label == "forgot"


def test_new_record_defaults():
    record = ReviewRecord.new(ease=2.5)
    assert record.state is CardState.NEW
    assert record.is_new
    assert record.due == NEVER
    assert record.reps == 0 and record.lapses == 0
    assert record.last_reviewed is None
