"""
Fee Service - fee records and their payment status

Status is the subject state here: moving to PAID stamps paid_date, moving
away from PAID clears it, and a PAID fee cannot be deleted.
"""

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from school_ledger.core.database import run_in_transaction
from school_ledger.core.exceptions import (
    ClassNotFoundError,
    FeeNotFoundError,
    InvalidStateTransitionError,
    StudentNotFoundError,
    ValidationError,
)
from school_ledger.core.logging_config import logger
from school_ledger.models import Fee, FeeStatus, SchoolClass, Student
from school_ledger.schemas.fee import BulkFeeCreate, FeeCreate, FeeUpdate
from school_ledger.services.batch_service import BatchResult, BatchRunner
from school_ledger.services.ledger_service import LedgerOperation, fetch_subject, ledger_service
from school_ledger.utils.dates import school_today
from school_ledger.utils.pagination import PaginationParams, paginate


class UpdateFee(LedgerOperation[Fee]):
    kind = "fee_update"

    def __init__(self, fee_id: str, data: FeeUpdate, performed_by: Optional[str] = None):
        super().__init__(performed_by)
        self.fee_id = fee_id
        self.data = data

    def subject_id(self) -> str:
        return self.fee_id

    async def load(self, db: AsyncSession) -> None:
        self.fee = await fetch_subject(db, Fee, self.fee_id, FeeNotFoundError)

    async def write(self, db: AsyncSession) -> Fee:
        fee = self.fee
        for field in ("amount", "type", "due_date", "remarks"):
            value = getattr(self.data, field)
            if value is not None:
                setattr(fee, field, value)

        status = self.data.status
        if status is not None and status != fee.status:
            if status == FeeStatus.PAID:
                fee.paid_date = self.data.paid_date or school_today()
            elif fee.status == FeeStatus.PAID:
                fee.paid_date = None
            fee.status = status
        elif self.data.paid_date is not None and fee.status == FeeStatus.PAID:
            fee.paid_date = self.data.paid_date

        await db.flush()
        return fee


class FeeService:
    """Service for student fees"""

    async def create_fee(self, db: AsyncSession, data: FeeCreate, performed_by: Optional[str] = None) -> Fee:
        async def _work(session: AsyncSession) -> Fee:
            await fetch_subject(session, Student, data.student_id, StudentNotFoundError, lock=False)
            fee = Fee(
                student_id=data.student_id,
                amount=data.amount,
                type=data.type,
                status=data.status,
                due_date=data.due_date,
                paid_date=school_today() if data.status == FeeStatus.PAID else None,
                remarks=data.remarks,
            )
            session.add(fee)
            await session.flush()
            return fee

        fee = await run_in_transaction(db, _work)
        logger.log_ledger_event("fee_create", fee.id, performed_by=performed_by, status=fee.status.value)
        return fee

    async def create_class_fees(
        self, db: AsyncSession, data: BulkFeeCreate, performed_by: Optional[str] = None
    ) -> BatchResult:
        """One PENDING fee per enrolled student, committed in chunks"""
        await fetch_subject(db, SchoolClass, data.class_id, ClassNotFoundError, lock=False)
        student_ids = (await db.execute(
            select(Student.id).where(Student.class_id == data.class_id).order_by(Student.admission_no)
        )).scalars().all()
        if not student_ids:
            raise ValidationError("No students found in the selected class", field="class_id")

        async def _create(session: AsyncSession, student_id: str, row_number: int) -> None:
            session.add(Fee(
                student_id=student_id,
                amount=data.amount,
                type=data.type,
                status=FeeStatus.PENDING,
                due_date=data.due_date,
                remarks=data.description,
            ))
            await session.flush()

        result = await BatchRunner("class_fees").run(db, list(student_ids), _create)
        logger.log_ledger_event(
            "fee_bulk_create", data.class_id, performed_by=performed_by, fees_created=result.success_count
        )
        return result

    async def update_fee(
        self, db: AsyncSession, fee_id: str, data: FeeUpdate, performed_by: Optional[str] = None
    ) -> Fee:
        return await ledger_service.apply(db, UpdateFee(fee_id, data, performed_by))

    async def delete_fee(self, db: AsyncSession, fee_id: str) -> None:
        async def _work(session: AsyncSession) -> None:
            fee = await fetch_subject(session, Fee, fee_id, FeeNotFoundError)
            if fee.status == FeeStatus.PAID:
                raise InvalidStateTransitionError("Cannot delete a paid fee", current=fee.status.value)
            await session.execute(delete(Fee).where(Fee.id == fee.id))

        await run_in_transaction(db, _work)
        logger.info(f"Deleted fee {fee_id}")

    async def list_fees(
        self,
        db: AsyncSession,
        params: PaginationParams,
        student_id: Optional[str] = None,
        class_id: Optional[str] = None,
        status: Optional[FeeStatus] = None,
        type: Optional[str] = None,
    ) -> dict:
        query = select(Fee).order_by(Fee.due_date.desc(), Fee.created_at.desc())
        if student_id:
            query = query.where(Fee.student_id == student_id)
        if class_id:
            query = query.join(Student, Fee.student_id == Student.id).where(Student.class_id == class_id)
        if status is not None:
            query = query.where(Fee.status == status)
        if type:
            query = query.where(Fee.type == type)
        return await paginate(db, query, params)


fee_service = FeeService()
