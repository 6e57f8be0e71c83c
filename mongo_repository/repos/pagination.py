"""Shared utilities for offset pagination."""

from collections.abc import Sequence

from mongo_repository.schemas.pagination import MetaPagination, PaginationResult


def build_meta_pagination(page_index: int, page_size: int, total_count: int) -> MetaPagination:
    """Compute page metadata from the requested page and the filtered total.

    Args:
        page_index: 1-based page number (values below 1 are clamped to 1)
        page_size: Rows per page (values below 1 are clamped to 1)
        total_count: Number of rows matching the filter, ignoring paging

    Returns:
        MetaPagination describing the requested page
    """
    page_index = max(1, page_index)
    page_size = max(1, page_size)
    total_count = max(0, total_count)

    page_count = -(-total_count // page_size)
    data_count = max(min(total_count - (page_index - 1) * page_size, page_size), 0)

    # Only the description resets for a page past the end; page_index is reported as requested.
    current_index = (page_index - 1) * page_size
    if current_index > total_count:
        current_index = 0

    first = 0 if total_count == 0 else current_index + 1
    info = f"Data {first} ~ {current_index + data_count} of {total_count}"

    return MetaPagination(
        page_index=page_index,
        page_size=page_size,
        page_count=page_count,
        data_count=data_count,
        info=info,
    )


def paginate[T](
    rows: Sequence[T], page_index: int, page_size: int, total_count: int
) -> PaginationResult[T]:
    """Pair one page of rows with freshly computed metadata."""
    return PaginationResult(
        rows=list(rows), meta=build_meta_pagination(page_index, page_size, total_count)
    )
