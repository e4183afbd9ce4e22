"""
Ledger Service - the transactional update contract shared by every resource

A ledger update:
1. opens a transaction (session autobegin)
2. re-fetches its subject rows (``fetch_subject``)
3. checks the resource's invariant, raising a typed error on failure
4. writes the ledger event
5. applies each quantity delta with a single guarded UPDATE (``apply_delta``)
6. commits and returns the refreshed rows

Each resource kind supplies a ``LedgerOperation`` subclass for steps 2-5;
``LedgerService.apply`` owns steps 1 and 6.
"""

from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Optional, Type, TypeVar, Union

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from school_ledger.core.database import run_in_transaction
from school_ledger.core.exceptions import SchoolLedgerError, ValidationError
from school_ledger.core.logging_config import logger

M = TypeVar("M")
R = TypeVar("R")

Bound = Union[int, ColumnElement, None]


async def fetch_subject(
    db: AsyncSession,
    model: Type[M],
    subject_id: Optional[str],
    not_found: Callable[[str], SchoolLedgerError],
    lock: bool = True,
) -> M:
    """
    Load the current row of ``model`` or raise ``not_found(subject_id)``.

    ``populate_existing`` overwrites whatever the identity map holds, and the
    row is selected FOR UPDATE on dialects that support it (SQLite ignores the
    clause; its writers serialize on the database lock instead).
    """
    if subject_id is None or not str(subject_id).strip():
        raise ValidationError(f"{model.__name__} id is required", field="id")

    stmt = select(model).where(model.id == str(subject_id)).execution_options(populate_existing=True)
    if lock:
        stmt = stmt.with_for_update()

    subject = (await db.execute(stmt)).scalar_one_or_none()
    if subject is None:
        raise not_found(str(subject_id))
    return subject


async def apply_delta(
    db: AsyncSession,
    model: Type[M],
    subject_id: str,
    field: str,
    delta: int,
    on_violation: Callable[[Optional[int]], SchoolLedgerError],
    minimum: Bound = 0,
    maximum: Bound = None,
    extra_values: Optional[dict] = None,
) -> M:
    """
    ``UPDATE model SET field = field + delta WHERE id = :id AND field + delta
    BETWEEN minimum AND maximum``, then return the refreshed row.

    Bounds may be ints or column expressions (``LibraryBook.total_copies``).
    When no row matches, a concurrent update consumed the headroom:
    ``on_violation(current_value)`` is raised and the caller's transaction
    rolls back. ``extra_values`` are set in the same statement.
    """
    column = getattr(model, field)
    new_value = column + delta

    conditions = [model.id == subject_id]
    if minimum is not None:
        conditions.append(new_value >= minimum)
    if maximum is not None:
        conditions.append(new_value <= maximum)

    values = {field: new_value}
    if extra_values:
        values.update(extra_values)

    result = await db.execute(
        update(model)
        .where(*conditions)
        .values(values)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        current = (await db.execute(select(column).where(model.id == subject_id))).scalar_one_or_none()
        logger.warning(
            f"Guarded update rejected: {model.__tablename__}.{field} {delta:+d} on {subject_id} (current {current})",
            extra={
                "event_type": "ledger_guard",
                "subject_type": model.__tablename__,
                "subject_id": subject_id,
                "field": field,
                "delta": delta,
                "current_value": current,
            }
        )
        raise on_violation(current)

    refreshed = await db.execute(
        select(model).where(model.id == subject_id).execution_options(populate_existing=True)
    )
    return refreshed.scalar_one()


@dataclass
class LedgerEntry:
    """One DerivedState change, recorded for the audit log"""
    subject_type: str
    subject_id: str
    field: str
    delta: int


class LedgerOperation(Generic[R]):
    """
    One kind of ledger update.

    Subclasses implement ``load`` (fetch subjects), ``check`` (invariant)
    and ``write`` (event + deltas). They must not commit; ``LedgerService``
    does. State kept on ``self`` is rebuilt by ``load`` on every attempt.
    """

    kind: str = "ledger_update"
    # Retry once after a unique-key race (the loser re-runs and sees the winner's row)
    retry_on_integrity_error: bool = False

    def __init__(self, performed_by: Optional[str] = None):
        self.performed_by = performed_by
        self.entries: List[LedgerEntry] = []

    async def load(self, db: AsyncSession) -> None:
        pass

    async def check(self, db: AsyncSession) -> None:
        pass

    async def write(self, db: AsyncSession) -> R:
        raise NotImplementedError

    async def change(
        self,
        db: AsyncSession,
        model: Type[M],
        subject_id: str,
        field: str,
        delta: int,
        on_violation: Callable[[Optional[int]], SchoolLedgerError],
        minimum: Bound = 0,
        maximum: Bound = None,
        extra_values: Optional[dict] = None,
    ) -> M:
        """``apply_delta`` plus an audit entry"""
        subject = await apply_delta(
            db, model, subject_id, field, delta, on_violation,
            minimum=minimum, maximum=maximum, extra_values=extra_values,
        )
        self.entries.append(LedgerEntry(model.__tablename__, subject_id, field, delta))
        return subject

    def subject_id(self) -> str:
        return ""

    async def run(self, db: AsyncSession) -> R:
        self.entries = []
        await self.load(db)
        await self.check(db)
        return await self.write(db)


class LedgerService:
    """Runs ledger operations atomically and logs what they committed"""

    async def apply(self, db: AsyncSession, operation: LedgerOperation[R]) -> R:
        retries_left = 1 if operation.retry_on_integrity_error else 0

        while True:
            try:
                result = await run_in_transaction(db, operation.run)
            except IntegrityError:
                if retries_left == 0:
                    raise
                retries_left -= 1
                logger.info(
                    f"Retrying {operation.kind} after unique-key race",
                    extra={"event_type": "ledger_retry", "ledger_kind": operation.kind}
                )
                continue

            self._log(operation)
            return result

    def _log(self, operation: LedgerOperation[Any]) -> None:
        if not operation.entries:
            logger.log_ledger_event(
                operation.kind,
                operation.subject_id(),
                performed_by=operation.performed_by,
            )
            return
        for entry in operation.entries:
            logger.log_ledger_event(
                operation.kind,
                entry.subject_id,
                delta=entry.delta,
                performed_by=operation.performed_by,
                subject_type=entry.subject_type,
                field=entry.field,
            )


ledger_service = LedgerService()
