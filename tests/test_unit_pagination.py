"""
Tests for the pagination calculator.

Tests cover:
- Page count ceiling division
- Rows on the last (partial) page
- Clamping of index and size below 1
- Pages past the end
- Empty result sets
- The wire shape of PaginationResult
"""

import pytest
from pydantic import ValidationError

from mongo_repository.repos.pagination import build_meta_pagination, paginate


class TestPageArithmetic:
    """Tests for page_count and data_count."""

    @pytest.mark.parametrize(
        ("total", "size", "expected"),
        [(0, 10, 0), (1, 10, 1), (10, 10, 1), (11, 10, 2), (25, 10, 3), (100, 7, 15)],
    )
    def test_page_count_is_ceiling(self, total, size, expected):
        meta = build_meta_pagination(1, size, total)
        assert meta.page_count == expected

    def test_full_page(self):
        meta = build_meta_pagination(2, 10, 25)
        assert meta.data_count == 10
        assert meta.info == "Data 11 ~ 20 of 25"

    def test_last_partial_page(self):
        meta = build_meta_pagination(3, 10, 25)
        assert meta.page_index == 3
        assert meta.page_size == 10
        assert meta.page_count == 3
        assert meta.data_count == 5
        assert meta.info == "Data 21 ~ 25 of 25"

    def test_data_count_never_exceeds_page_size(self):
        for total in range(0, 60):
            for index in range(1, 8):
                meta = build_meta_pagination(index, 7, total)
                assert 0 <= meta.data_count <= 7


class TestClamping:
    """Tests for inputs below 1."""

    @pytest.mark.parametrize("index", [0, -1, -100])
    def test_page_index_clamped(self, index):
        meta = build_meta_pagination(index, 10, 25)
        assert meta.page_index == 1
        assert meta.data_count == 10
        assert meta.info == "Data 1 ~ 10 of 25"

    @pytest.mark.parametrize("size", [0, -5])
    def test_page_size_clamped(self, size):
        meta = build_meta_pagination(1, size, 3)
        assert meta.page_size == 1
        assert meta.page_count == 3
        assert meta.data_count == 1


class TestEdgeCases:
    """Tests for empty results and pages past the end."""

    def test_empty_result(self):
        meta = build_meta_pagination(1, 10, 0)
        assert meta.page_count == 0
        assert meta.data_count == 0
        assert meta.info == "Data 0 ~ 0 of 0"

    def test_page_past_end_resets_description_only(self):
        meta = build_meta_pagination(5, 10, 25)
        assert meta.page_index == 5
        assert meta.data_count == 0
        assert meta.info == "Data 1 ~ 0 of 25"

    def test_page_starting_exactly_at_end(self):
        meta = build_meta_pagination(3, 10, 20)
        assert meta.data_count == 0
        assert meta.info == "Data 21 ~ 20 of 20"


class TestPaginationResult:
    """Tests for PaginationResult."""

    def test_paginate_pairs_rows_with_meta(self):
        result = paginate(["a", "b"], 1, 2, 5)
        assert result.rows == ["a", "b"]
        assert result.meta.page_count == 3

    def test_to_response_flattens_with_camel_case(self):
        result = paginate([{"id": 1}], 2, 1, 3)
        assert result.to_response() == {
            "rows": [{"id": 1}],
            "pageIndex": 2,
            "pageSize": 1,
            "pageCount": 3,
            "dataCount": 1,
            "info": "Data 2 ~ 2 of 3",
        }

    def test_meta_is_immutable(self):
        meta = build_meta_pagination(1, 10, 5)
        with pytest.raises(ValidationError):
            meta.page_index = 2
