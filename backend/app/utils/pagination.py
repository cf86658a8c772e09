"""
Pagination Utility Module

Provides standardized pagination helpers for list endpoints.
"""
from typing import TypeVar, Generic, List, Callable, Any
from fastapi import Query
from pydantic import BaseModel
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

T = TypeVar('T')

MAX_PAGE_SIZE = 100


class PaginationParams(BaseModel):
    """Standard pagination parameters"""
    page: int = 1
    page_size: int = 10

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def pagination_params(
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    page_size: int = Query(10, ge=1, le=MAX_PAGE_SIZE, description="Items per page"),
) -> PaginationParams:
    """FastAPI dependency reading ?page=&page_size="""
    return PaginationParams(page=page, page_size=page_size)


class Page(BaseModel, Generic[T]):
    """Standard paginated response"""
    items: List[T]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


async def paginate(
    db: AsyncSession,
    query: Select,
    params: PaginationParams,
) -> dict:
    """
    Apply pagination to a SQLAlchemy query.

    Args:
        db: Database session
        query: Base SQLAlchemy query (already ordered)
        params: Page number and size

    Returns:
        Dictionary with items, total, page, page_size, total_pages, has_next, has_previous
    """
    page = max(1, params.page)
    page_size = max(1, min(MAX_PAGE_SIZE, params.page_size))

    count_stmt = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_stmt)).scalar() or 0
    total_pages = (total + page_size - 1) // page_size if total > 0 else 1

    result = await db.execute(query.offset((page - 1) * page_size).limit(page_size))
    items = result.scalars().all()

    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_previous": page > 1
    }


def map_page(page: dict, mapper: Callable[[Any], Any]) -> dict:
    """Convert the entities of a paginated result with mapper"""
    return {**page, "items": [mapper(item) for item in page["items"]]}
