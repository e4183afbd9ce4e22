"""
Pagination Utility Module

Every list endpoint returns ``{items, pagination: {total, page, limit, pages}}``.
"""
from typing import Any, List, Optional, Type

from fastapi import Query
from pydantic import BaseModel
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from school_ledger.core.config import settings


class PaginationParams(BaseModel):
    """Standard pagination parameters"""
    page: int = 1
    limit: int = 10

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def pagination_params(
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, description="Items per page"),
) -> PaginationParams:
    """FastAPI dependency for ``?page=&limit=``"""
    return PaginationParams(page=page, limit=limit)


def create_paginated_response(items: List[Any], total: int, page: int, limit: int) -> dict:
    pages = (total + limit - 1) // limit if total > 0 else 0
    return {
        "items": items,
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "pages": pages,
        },
    }


async def paginate(
    db: AsyncSession,
    query: Select,
    params: PaginationParams,
    count_query: Optional[Select] = None
) -> dict:
    """
    Apply pagination to a SQLAlchemy query.

    Returns the ORM rows for the requested page plus the pagination block;
    callers serialize ``items`` with their response schema.
    """
    page = max(1, params.page)
    limit = max(1, min(settings.MAX_PAGE_SIZE, params.limit))

    if count_query is None:
        count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_query)).scalar() or 0

    result = await db.execute(query.offset((page - 1) * limit).limit(limit))
    items = result.scalars().all()

    return create_paginated_response(list(items), total, page, limit)


def serialize_page(page: dict, schema: Type[BaseModel]) -> dict:
    """Convert a ``paginate`` result's ORM rows with a response schema"""
    return {
        "items": [schema.model_validate(item) for item in page["items"]],
        "pagination": page["pagination"],
    }
