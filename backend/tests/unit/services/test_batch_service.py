"""
Unit Tests for chunked batch processing
"""
import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError

from school_ledger.core.exceptions import ValidationError
from school_ledger.models import SchoolClass
from school_ledger.services.batch_service import BatchResult, BatchRunner, map_row


class TestMapRow:

    def test_mapped_columns_and_passthrough(self):
        raw = {"Student Name": "  Asha ", "email": "asha@example.com", "Section": ""}

        mapped = map_row(raw, {"name": "Student Name"})

        assert mapped == {"name": "Asha", "email": "asha@example.com", "Section": None}

    def test_falls_back_to_internal_name(self):
        mapped = map_row({"name": "Ravi"}, {"name": "Full Name"})

        assert mapped["name"] == "Ravi"

    def test_missing_column_is_none(self):
        mapped = map_row({}, {"admission_no": "Adm No"})

        assert mapped == {"admission_no": None}

    def test_non_strings_untouched(self):
        mapped = map_row({"Adm No": 1042}, {"admission_no": "Adm No"})

        assert mapped["admission_no"] == 1042


class TestBatchResult:

    def test_errors_sorted_by_row(self):
        result = BatchResult(success_count=1)
        result.fail(7, "late")
        result.fail(2, "early")

        assert result.to_dict() == {
            "success_count": 1,
            "failure_count": 2,
            "errors": [{"row": 2, "error": "early"}, {"row": 7, "error": "late"}],
        }


class TestBatchRunner:

    @pytest.mark.asyncio
    async def test_row_errors_do_not_stop_the_batch(self, db_session):
        async def handler(session, row, row_number):
            if row % 3 == 0:
                raise ValidationError(f"bad value {row}")

        result = await BatchRunner("test", batch_size=3).run(db_session, list(range(1, 8)), handler)

        assert result.success_count == 5
        assert result.failure_count == 2
        assert [e["row"] for e in result.to_dict()["errors"]] == [3, 6]
        assert result.to_dict()["errors"][0]["error"] == "bad value 3"

    @pytest.mark.asyncio
    async def test_failed_chunk_rolls_back_only_itself(self, db_session):
        rollbacks = []

        async def handler(session, row, row_number):
            if row_number == 5:
                raise SQLAlchemyError("disk I/O error")
            session.add(SchoolClass(name=f"Class {row}", section="A", academic_year="2024-2025"))
            await session.flush()

        result = await BatchRunner("test", batch_size=3).run(
            db_session, list(range(1, 7)), handler, on_rollback=lambda: rollbacks.append(True)
        )

        assert result.success_count == 3
        assert result.failure_count == 3
        assert [e["row"] for e in result.to_dict()["errors"]] == [4, 5, 6]
        assert rollbacks == [True]

        stored = await db_session.scalar(select(func.count()).select_from(SchoolClass))
        assert stored == 3

    @pytest.mark.asyncio
    async def test_row_numbers_are_one_based(self, db_session):
        seen = []

        async def handler(session, row, row_number):
            seen.append(row_number)

        await BatchRunner("test", batch_size=2).run(db_session, ["a", "b", "c"], handler)

        assert seen == [1, 2, 3]
