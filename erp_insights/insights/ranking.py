"""
Ranking / Top-N Selector
"""

from typing import Any, Callable, List, Sequence, TypeVar

from erp_insights.insights.exceptions import InvalidInputError

T = TypeVar("T")


def validate_limit(limit: int, max_limit: int) -> int:
    """
    Raises:
        InvalidInputError: If limit is not positive or exceeds max_limit
    """
    if limit is None or limit < 1:
        raise InvalidInputError("limit must be a positive integer")
    if limit > max_limit:
        raise InvalidInputError(f"limit must not exceed {max_limit}")
    return limit


def top_n(
    rows: Sequence[T],
    metric: Callable[[T], Any],
    key: Callable[[T], Any],
    limit: int,
) -> List[T]:
    """
    Rank rows by ``metric`` descending, ties broken by ascending ``key``.

    Two stable sorts: first by the tie-break key, then by the metric.
    """
    if limit < 1:
        raise InvalidInputError("limit must be a positive integer")
    ranked = sorted(rows, key=key)
    ranked.sort(key=metric, reverse=True)
    return ranked[:limit]
