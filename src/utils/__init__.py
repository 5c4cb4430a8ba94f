"""Settlement utility functions.

Money arithmetic, time helpers, pagination and caching used across the
application.
"""

from src.utils.amount import ZERO, round_money, to_decimal
from src.utils.pagination import PaginationParams, paginate_query

__all__ = [
    "ZERO",
    "PaginationParams",
    "paginate_query",
    "round_money",
    "to_decimal",
]
