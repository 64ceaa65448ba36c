"""
SM-2 style scheduler with learning steps.

This is a pure computation module: no I/O and no clock access. The caller
always passes `now`, which makes sessions replayable.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from hashcards.domain.models import CardState, Grade, ReviewRecord

MINUTE = timedelta(minutes=1)
DAY = timedelta(days=1)


@dataclass(frozen=True)
class SchedulerParams:
    """
    Tunable scheduler constants.

    Bump `version` whenever a default changes so that stored review data can
    be traced back to the parameters that produced it.
    """

    version: int = 1
    initial_ease: float = 2.5
    min_ease: float = 1.3
    learning_steps: tuple[timedelta, ...] = (timedelta(minutes=1), timedelta(minutes=10))
    relearning_steps: tuple[timedelta, ...] = (timedelta(minutes=10),)
    graduating_interval: timedelta = timedelta(days=1)
    easy_interval: timedelta = timedelta(days=4)
    easy_bonus: float = 1.3
    hard_multiplier: float = 1.2
    lapse_multiplier: float = 0.5
    min_lapse_interval: timedelta = timedelta(days=1)
    max_interval: timedelta = timedelta(days=36500)
    again_ease_delta: float = -0.20
    hard_ease_delta: float = -0.15
    easy_ease_delta: float = 0.15


DEFAULT_PARAMS = SchedulerParams()


def initial_record(params: SchedulerParams = DEFAULT_PARAMS) -> ReviewRecord:
    return ReviewRecord.new(ease=params.initial_ease)


def is_due(record: ReviewRecord, now: datetime) -> bool:
    return record.state is CardState.NEW or record.due <= now


def is_new(record: ReviewRecord | None) -> bool:
    return record is None or record.state is CardState.NEW


def apply(
    record: ReviewRecord,
    grade: Grade,
    now: datetime,
    params: SchedulerParams = DEFAULT_PARAMS,
) -> ReviewRecord:
    """Return the record that results from answering `record` with `grade` at `now`."""
    if record.state is CardState.REVIEW:
        result = _answer_review(record, grade, params)
    elif record.state is CardState.RELEARNING:
        result = _answer_steps(
            record,
            grade,
            steps=params.relearning_steps,
            state=CardState.RELEARNING,
            graduate_good=_lapse_interval(record, params),
            graduate_easy=_lapse_interval(record, params),
            params=params,
        )
    else:
        result = _answer_steps(
            record,
            grade,
            steps=params.learning_steps,
            state=CardState.LEARNING,
            graduate_good=params.graduating_interval,
            graduate_easy=params.easy_interval,
            params=params,
        )

    result = replace(result, due=now + result.interval, last_reviewed=now)

    assert result.ease >= params.min_ease, f"ease {result.ease} below {params.min_ease}"
    assert result.interval >= timedelta(0), f"negative interval {result.interval}"
    return result


def _answer_steps(
    record: ReviewRecord,
    grade: Grade,
    steps: tuple[timedelta, ...],
    state: CardState,
    graduate_good: timedelta,
    graduate_easy: timedelta,
    params: SchedulerParams,
) -> ReviewRecord:
    """
    Walk the learning (or relearning) steps.

    A New card sits before the first step, so its first Good lands on step 0.
    """
    if grade is Grade.EASY:
        return _graduate(record, graduate_easy, params)

    before_first = record.state is CardState.NEW
    current = _current_step(record.interval, steps)

    if grade is Grade.AGAIN:
        step = 0
    elif grade is Grade.HARD:
        step = 0 if before_first else current
    else:
        step = 0 if before_first else current + 1

    if step >= len(steps):
        return _graduate(record, graduate_good, params)

    return replace(record, state=state, interval=_round_minutes(steps[step], params))


def _answer_review(record: ReviewRecord, grade: Grade, params: SchedulerParams) -> ReviewRecord:
    if grade is Grade.AGAIN:
        ease = max(params.min_ease, record.ease + params.again_ease_delta)
        lapsed = replace(
            record, ease=ease, lapses=record.lapses + 1, lapsed_interval=record.interval
        )
        if not params.relearning_steps:
            return replace(
                lapsed,
                state=CardState.REVIEW,
                interval=_round_days(_lapse_interval(lapsed, params), params),
            )
        return replace(
            lapsed,
            state=CardState.RELEARNING,
            interval=_round_minutes(params.relearning_steps[0], params),
        )

    if grade is Grade.HARD:
        return replace(
            record,
            interval=_round_days(record.interval * params.hard_multiplier, params),
            ease=max(params.min_ease, record.ease + params.hard_ease_delta),
        )

    if grade is Grade.GOOD:
        return replace(
            record,
            interval=_round_days(record.interval * record.ease, params),
            reps=record.reps + 1,
        )

    return replace(
        record,
        interval=_round_days(record.interval * record.ease * params.easy_bonus, params),
        ease=record.ease + params.easy_ease_delta,
        reps=record.reps + 1,
    )


def _graduate(record: ReviewRecord, interval: timedelta, params: SchedulerParams) -> ReviewRecord:
    return replace(
        record,
        state=CardState.REVIEW,
        interval=_round_days(interval, params),
        reps=record.reps + 1,
    )


def _lapse_interval(record: ReviewRecord, params: SchedulerParams) -> timedelta:
    if record.lapsed_interval is None:
        return params.min_lapse_interval
    return max(params.min_lapse_interval, record.lapsed_interval * params.lapse_multiplier)


def _current_step(interval: timedelta, steps: tuple[timedelta, ...]) -> int:
    """Recover the step a learning card is on from its interval."""
    current = 0
    for i, step in enumerate(steps):
        if interval == step:
            return i
        if step <= interval:
            current = i
    return current


def _round_minutes(delta: timedelta, params: SchedulerParams) -> timedelta:
    minutes = max(0, round(delta / MINUTE))
    return min(minutes * MINUTE, params.max_interval)


def _round_days(delta: timedelta, params: SchedulerParams) -> timedelta:
    days = max(1, round(delta / DAY))
    return min(days * DAY, params.max_interval)
