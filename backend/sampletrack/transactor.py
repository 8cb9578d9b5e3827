"""Transaction boundaries with post-commit hooks.

A request owns one :class:`Transactor` (shared through the session) and so one
logical transaction: nested boundaries reuse the outermost one, which alone
commits or rolls back. Work that must only happen once the audit record is
durable (e.g. removing labware from storage) is registered with
:meth:`Transactor.run_after_commit` and runs after the commit, outside any
transaction. A failing hook never undoes the commit; its failure is collected
into a :class:`PostCommitOutcome` instead.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Generic, Iterator, TypeVar

from sqlalchemy.orm import Session

from .logger import get_logger

# purpose: single commit-or-rollback boundary per request plus an explicit post-commit phase
# status: active
# depends_on: sampletrack.database.SessionLocal

logger = get_logger(__name__)

T = TypeVar("T")

_SESSION_KEY = "sampletrack.transactor"


@dataclass
class PostCommitHook:
    description: str
    callback: Callable[[], object]


@dataclass
class PostCommitOutcome:
    ok: bool = True
    warnings: list[str] = field(default_factory=list)
    results: list[object] = field(default_factory=list)


@dataclass
class Committed(Generic[T]):
    """The committed result of a unit of work plus the hooks still to run."""

    name: str
    value: T
    hooks: list[PostCommitHook] = field(default_factory=list)
    outcome: PostCommitOutcome | None = None

    @property
    def has_hooks(self) -> bool:
        return bool(self.hooks)

    def complete(self) -> PostCommitOutcome:
        """Run the post-commit hooks once, collecting failures as warnings."""

        if self.outcome is not None:
            return self.outcome
        outcome = PostCommitOutcome()
        for hook in self.hooks:
            try:
                outcome.results.append(hook.callback())
            except Exception as exc:
                logger.exception("transaction.post_commit_failed", name=self.name, hook=hook.description)
                outcome.ok = False
                outcome.warnings.append(f"Failed to {hook.description}: {exc}")
        self.outcome = outcome
        return outcome


class Transactor:
    def __init__(self, db: Session):
        self.db = db
        self._depth = 0
        self._hooks: list[PostCommitHook] = []

    @classmethod
    def of(cls, db: Session) -> "Transactor":
        """Return the transactor bound to ``db``, creating it on first use."""

        transactor = db.info.get(_SESSION_KEY)
        if transactor is None:
            transactor = cls(db)
            db.info[_SESSION_KEY] = transactor
        return transactor

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @contextmanager
    def transaction(self, name: str = "transaction") -> Iterator["Transactor"]:
        """Commit on normal exit, roll back and re-raise on any exception.

        Hooks registered inside the outermost boundary are left in
        place after the commit; call :meth:`take_hooks` to claim them.
        """

        if self._depth:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        self._depth = 1
        self._hooks = []
        try:
            yield self
            self.db.commit()
        except BaseException:
            self.db.rollback()
            self._hooks = []
            logger.debug("transaction.rolled_back", name=name)
            raise
        finally:
            self._depth = 0
        logger.debug("transaction.committed", name=name, hooks=len(self._hooks))

    def take_hooks(self) -> list[PostCommitHook]:
        hooks, self._hooks = self._hooks, []
        return hooks

    def run_after_commit(self, callback: Callable[[], object], description: str = "complete post-commit step") -> None:
        if not self._depth:
            raise RuntimeError("run_after_commit requires an open transaction")
        self._hooks.append(PostCommitHook(description, callback))

    def transact_two_phase(self, name: str, work: Callable[[], T]) -> Committed[T]:
        """Run ``work`` in a boundary and return the committed value with its hooks unrun.

        Inside an enclosing boundary nothing is committed here and the hooks stay
        with the outer boundary, so the returned :class:`Committed` carries none.
        """

        if self._depth:
            with self.transaction(name):
                return Committed(name, work())
        with self.transaction(name):
            value = work()
        return Committed(name, value, self.take_hooks())

    def transact(self, name: str, work: Callable[[], T]) -> T:
        """Run ``work`` and commit, running any post-commit hooks afterwards."""

        committed = self.transact_two_phase(name, work)
        committed.complete()
        return committed.value
