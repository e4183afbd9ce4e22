"""
Batch Service - chunked bulk operations with per-row failure accounting

Rows are processed in chunks of IMPORT_BATCH_SIZE; each chunk commits in its
own transaction. A row whose handler raises a ledger error (or a pydantic
validation error) is recorded as failed and the batch carries on. If the
chunk's transaction itself fails (store error on flush or commit) the chunk
is rolled back and every row in it is reported failed; earlier chunks stay
committed and the next chunk is attempted.

Row handlers must detect row errors before writing anything for that row:
the store has no per-row savepoint.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from school_ledger.core.config import settings
from school_ledger.core.exceptions import SchoolLedgerError
from school_ledger.core.logging_config import logger

T = TypeVar("T")

RowHandler = Callable[[AsyncSession, T, int], Awaitable[Any]]


@dataclass
class RowError:
    row: int
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {"row": self.row, "error": self.error}


@dataclass
class BatchResult:
    success_count: int = 0
    failure_count: int = 0
    errors: List[RowError] = field(default_factory=list)

    def fail(self, row: int, error: str) -> None:
        self.failure_count += 1
        self.errors.append(RowError(row, error))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "errors": [e.to_dict() for e in sorted(self.errors, key=lambda e: e.row)],
        }


def describe_row_error(exc: Exception) -> str:
    """Human-readable message for a failed row"""
    if isinstance(exc, PydanticValidationError):
        parts = []
        for err in exc.errors():
            location = ".".join(str(p) for p in err.get("loc", ()) if p != "__root__")
            parts.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
        return "; ".join(parts) or "Invalid row"
    if isinstance(exc, SchoolLedgerError):
        return exc.message
    return str(exc)


def map_row(raw: Mapping[str, Any], mapping: Mapping[str, str]) -> Dict[str, Any]:
    """
    Translate a source row into internal field names.

    ``mapping`` is ``{internal_field: source_column}``; when the mapped
    column is absent from the row the internal field name itself is tried.
    Strings are stripped and blanks become None.
    """
    mapped: Dict[str, Any] = {}
    keys = set(mapping) | {k for k in raw if k not in mapping.values()}
    for internal in keys:
        source = mapping.get(internal, internal)
        value = raw.get(source) if source in raw else raw.get(internal)
        if isinstance(value, str):
            value = value.strip() or None
        mapped[internal] = value
    return mapped


class BatchRunner:
    """Runs a row handler over a sequence in independently committed chunks"""

    def __init__(self, name: str, batch_size: Optional[int] = None):
        self.name = name
        self.batch_size = max(1, batch_size or settings.IMPORT_BATCH_SIZE)

    async def run(
        self,
        db: AsyncSession,
        rows: Sequence[T],
        handler: RowHandler,
        on_rollback: Optional[Callable[[], None]] = None,
    ) -> BatchResult:
        result = BatchResult()

        for start in range(0, len(rows), self.batch_size):
            chunk = rows[start:start + self.batch_size]
            chunk_ok = 0
            chunk_errors: List[RowError] = []

            try:
                for offset, row in enumerate(chunk):
                    row_number = start + offset + 1
                    try:
                        await handler(db, row, row_number)
                        chunk_ok += 1
                    except (SchoolLedgerError, PydanticValidationError) as exc:
                        chunk_errors.append(RowError(row_number, describe_row_error(exc)))
                await db.commit()

            except SQLAlchemyError as exc:
                await db.rollback()
                if on_rollback:
                    on_rollback()
                message = f"Batch failed: {type(exc).__name__}: {getattr(exc, 'orig', None) or exc}"
                logger.error(
                    f"[{self.name}] chunk starting at row {start + 1} rolled back: {message}",
                    extra={
                        "event_type": "batch_chunk_failed",
                        "batch": self.name,
                        "first_row": start + 1,
                        "rows": len(chunk),
                    }
                )
                for offset in range(len(chunk)):
                    result.fail(start + offset + 1, message)
                continue

            result.success_count += chunk_ok
            for err in chunk_errors:
                result.fail(err.row, err.error)

        logger.info(
            f"[{self.name}] processed {len(rows)} rows: {result.success_count} ok, {result.failure_count} failed",
            extra={
                "event_type": "batch_complete",
                "batch": self.name,
                "success_count": result.success_count,
                "failure_count": result.failure_count,
            }
        )
        return result
