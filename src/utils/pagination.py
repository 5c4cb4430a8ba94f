"""Pagination helpers for ledger and withdrawal listings."""

import math
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select


@dataclass
class PaginationParams:
    """Page number (1-based) and page size."""

    page: int = 1
    page_size: int = 20

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass
class PaginatedResult[T]:
    """One page of items plus the total count."""

    items: list[T]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.total > 0 else 1

    @property
    def has_more(self) -> bool:
        return self.page < self.total_pages


async def paginate_query[T](
    db: AsyncSession,
    query: Select,
    params: PaginationParams,
) -> tuple[list[T], int]:
    """Run a select for one page and count all matching rows.

    Args:
        db: Database session
        query: Ordered select over a single entity
        params: Pagination parameters

    Returns:
        Tuple of (items, total_count)
    """
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_query)).scalar() or 0

    result = await db.execute(query.offset(params.offset).limit(params.page_size))
    items = list(result.scalars().all())

    return items, total
