"""
Class Service - class sections (name + section + academic year)
"""

from sqlalchemy import select, func, delete
from sqlalchemy.ext.asyncio import AsyncSession

from school_ledger.core.database import run_in_transaction
from school_ledger.core.exceptions import ConflictError, ClassNotFoundError
from school_ledger.core.logging_config import logger
from school_ledger.models.school import SchoolClass, Student
from school_ledger.schemas.school import ClassCreate
from school_ledger.services.ledger_service import fetch_subject
from school_ledger.utils.pagination import PaginationParams, paginate


class ClassService:

    async def find_class(self, db: AsyncSession, name: str, section: str, academic_year: str):
        result = await db.execute(
            select(SchoolClass).where(
                SchoolClass.name == name,
                SchoolClass.section == section,
                SchoolClass.academic_year == academic_year,
            )
        )
        return result.scalar_one_or_none()

    async def create_class(self, db: AsyncSession, data: ClassCreate) -> SchoolClass:
        async def _work(session: AsyncSession) -> SchoolClass:
            if await self.find_class(session, data.name, data.section, data.academic_year):
                raise ConflictError(
                    "Class with this name, section, and academic year already exists",
                    details={"name": data.name, "section": data.section, "academic_year": data.academic_year},
                )
            school_class = SchoolClass(name=data.name, section=data.section, academic_year=data.academic_year)
            session.add(school_class)
            await session.flush()
            return school_class

        school_class = await run_in_transaction(db, _work)
        logger.info(f"Created class {school_class.name}-{school_class.section} ({school_class.academic_year})")
        return school_class

    async def get_class(self, db: AsyncSession, class_id: str) -> SchoolClass:
        return await fetch_subject(db, SchoolClass, class_id, ClassNotFoundError, lock=False)

    async def list_classes(self, db: AsyncSession, params: PaginationParams, academic_year: str = None) -> dict:
        query = select(SchoolClass).order_by(SchoolClass.academic_year.desc(), SchoolClass.name, SchoolClass.section)
        if academic_year:
            query = query.where(SchoolClass.academic_year == academic_year)
        return await paginate(db, query, params)

    async def delete_class(self, db: AsyncSession, class_id: str) -> None:
        """Blocked while students are enrolled"""
        async def _work(session: AsyncSession) -> None:
            school_class = await fetch_subject(session, SchoolClass, class_id, ClassNotFoundError)
            enrolled = await session.scalar(
                select(func.count()).select_from(Student).where(Student.class_id == school_class.id)
            )
            if enrolled:
                raise ConflictError(
                    "Cannot delete a class with enrolled students",
                    details={"class_id": school_class.id, "enrolled_students": enrolled},
                )
            await session.execute(delete(SchoolClass).where(SchoolClass.id == school_class.id))

        await run_in_transaction(db, _work)
        logger.info(f"Deleted class {class_id}")


class_service = ClassService()
