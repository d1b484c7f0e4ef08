"""Pagination helpers."""

from typing import Any, Iterable


def paginate(limit: int, offset: int, max_limit: int = 200) -> tuple[int, int]:
    """Clamp limit/offset; return (limit, offset)."""
    return max(1, min(limit, max_limit)), max(0, offset)


def page(key: str, items: Iterable[Any], limit: int, offset: int) -> dict[str, Any]:
    """List response body: {key: [...], "limit": ..., "offset": ...}."""
    return {key: list(items), "limit": limit, "offset": offset}
