"""DrillSession: holds the state of one drill session independent of HTTP."""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from hashcards.application import scheduler
from hashcards.application.collection import Collection, render_card
from hashcards.application.session_builder import SessionOptions, SessionPlan
from hashcards.domain.errors import NothingToUndoError, StaleCardError
from hashcards.domain.models import AnswerControls, Grade, ReviewRecord
from hashcards.domain.ports import ReviewStore

logger = logging.getLogger(__name__)


async def _shielded(coro, name: str):
    """Await `coro` in a task that outlives cancellation of the caller.

    If the caller is cancelled, a later failure of the task is logged here
    since nobody is left to receive it.
    """
    task = asyncio.ensure_future(coro)
    try:
        return await asyncio.shield(task)
    except asyncio.CancelledError:
        task.add_done_callback(lambda t: _log_detached_failure(t, name))
        raise


def _log_detached_failure(task: asyncio.Task, name: str) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"{name} failed after its request was cancelled: {exc}")


class SessionGuard:
    """
    Reader/writer guard for session state.

    Any number of shared holders may run together; an exclusive holder runs
    alone.
    """

    def __init__(self):
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False

    @asynccontextmanager
    async def shared(self):
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writer)
            self._readers += 1
        try:
            yield
        finally:
            async with self._cond:
                self._readers -= 1
                self._cond.notify_all()

    @asynccontextmanager
    async def exclusive(self):
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writer and self._readers == 0)
            self._writer = True
        try:
            yield
        finally:
            async with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass(frozen=True)
class CardView:
    fingerprint: str
    front: str
    back: str
    deck: str
    is_new: bool
    grades: list[str]


@dataclass(frozen=True)
class Progress:
    answered: int
    remaining: int
    new_answered: int


@dataclass
class _Snapshot:
    """In-memory state before an answer, plus the record it replaced."""

    fingerprint: str
    previous: ReviewRecord | None
    queue: list[str]
    bury: set[str]
    new_cards: set[str]
    answered: int
    new_answered: int


@dataclass
class DrillSession:
    """
    State of one drill session.

    Every operation runs under the session guard; answer, skip and undo hold
    it exclusively. Store calls go to the worker pool. The in-memory state is
    only changed after the store call it depends on has succeeded.
    """

    collection: Collection
    store: ReviewStore
    plan: SessionPlan
    options: SessionOptions
    controls: AnswerControls = AnswerControls.FULL
    params: scheduler.SchedulerParams = scheduler.DEFAULT_PARAMS

    queue: list[str] = field(init=False)
    bury: set[str] = field(init=False)
    new_cards: set[str] = field(init=False)
    current: str | None = field(default=None, init=False)
    answered: int = field(default=0, init=False)
    new_answered: int = field(default=0, init=False)

    def __post_init__(self):
        self.queue = list(self.plan.queue)
        self.bury = set(self.plan.bury)
        self.new_cards = set(self.plan.new_cards)
        self._history: list[_Snapshot] = []
        self._guard = SessionGuard()

    @property
    def started_at(self):
        return self.options.now

    @property
    def is_empty(self) -> bool:
        """True if the session was built without any card to drill."""
        return not self.plan.queue

    @property
    def is_completed(self) -> bool:
        if not self.queue:
            return True
        limit = self.options.card_limit
        return limit is not None and self.answered >= limit

    # ---------- Operations ----------

    async def peek(self) -> CardView | None:
        """Return the card at the head of the queue, or None once completed."""
        async with self._guard.exclusive():
            return self._peek()

    async def answer(self, fingerprint: str, grade: Grade | str) -> CardView | None:
        """
        Grade the current card and return the next one.

        The write and the in-memory update run in a shielded task so a
        cancelled request never leaves them half done.
        """
        grade = self.controls.parse_grade(grade)
        return await _shielded(self._answer(fingerprint, grade), "answer")

    async def skip(self) -> CardView | None:
        """Move the current card to the end of the queue without grading it."""
        async with self._guard.exclusive():
            if not self.is_completed:
                self.queue.append(self.queue.pop(0))
            return self._peek()

    async def undo(self) -> CardView | None:
        """Revert the most recent answer, in the store and in memory."""
        return await _shielded(self._undo(), "undo")

    async def progress(self) -> Progress:
        async with self._guard.shared():
            return self._progress()

    def close(self) -> None:
        self.store.close()

    # ---------- Internals ----------

    async def _answer(self, fingerprint: str, grade: Grade) -> CardView | None:
        async with self._guard.exclusive():
            if self.is_completed or self.queue[0] != fingerprint:
                raise StaleCardError(fingerprint)

            previous = await asyncio.to_thread(self.store.get, fingerprint)
            record = previous if previous is not None else scheduler.initial_record(self.params)
            updated = scheduler.apply(record, grade, self.started_at, self.params)
            await asyncio.to_thread(self.store.put, fingerprint, updated)

            self._history.append(
                _Snapshot(
                    fingerprint=fingerprint,
                    previous=previous,
                    queue=list(self.queue),
                    bury=set(self.bury),
                    new_cards=set(self.new_cards),
                    answered=self.answered,
                    new_answered=self.new_answered,
                )
            )

            self.queue.pop(0)
            if self.options.bury_siblings:
                self._bury_siblings_of(fingerprint)
            if grade is Grade.AGAIN and self.controls is AnswerControls.FULL:
                self.queue.append(fingerprint)

            self.answered += 1
            if scheduler.is_new(previous):
                self.new_answered += 1
            self.new_cards.discard(fingerprint)

            logger.debug(
                f"[session] {fingerprint[:12]} {grade.value}: {record.state.value} -> "
                f"{updated.state.value}, due {updated.due.isoformat()}"
            )
            return self._peek()

    async def _undo(self) -> CardView | None:
        async with self._guard.exclusive():
            if not self._history:
                raise NothingToUndoError()
            snapshot = self._history[-1]

            if snapshot.previous is None:
                await asyncio.to_thread(self.store.delete, snapshot.fingerprint)
            else:
                await asyncio.to_thread(self.store.put, snapshot.fingerprint, snapshot.previous)

            self._history.pop()
            self.queue = snapshot.queue
            self.bury = snapshot.bury
            self.new_cards = snapshot.new_cards
            self.answered = snapshot.answered
            self.new_answered = snapshot.new_answered

            logger.debug(f"[session] Undid answer to {snapshot.fingerprint[:12]}")
            return self._peek()

    def _bury_siblings_of(self, fingerprint: str) -> None:
        card = self.collection.get(fingerprint)
        if card is None:
            return
        siblings = self.plan.siblings_of(card)
        if not siblings:
            return
        self.bury.update(siblings)
        self.queue = [fp for fp in self.queue if fp not in self.bury]

    def _peek(self) -> CardView | None:
        if self.is_completed:
            self.current = None
            return None
        self.current = self.queue[0]
        return self._view(self.current)

    def _view(self, fingerprint: str) -> CardView:
        card = self.collection.get(fingerprint)
        front, back = render_card(card)
        return CardView(
            fingerprint=fingerprint,
            front=front,
            back=back,
            deck=card.deck,
            is_new=fingerprint in self.new_cards,
            grades=[g.value for g in self.controls.grades],
        )

    def _progress(self) -> Progress:
        remaining = len(self.queue)
        if self.options.card_limit is not None:
            remaining = min(remaining, max(0, self.options.card_limit - self.answered))
        return Progress(
            answered=self.answered,
            remaining=remaining,
            new_answered=self.new_answered,
        )
