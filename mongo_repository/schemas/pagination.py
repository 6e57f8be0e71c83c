"""Offset pagination schemas."""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class MetaPagination(BaseModel):
    """Page metadata computed fresh for every paginated query."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    page_index: int
    page_size: int
    page_count: int
    data_count: int
    info: str


class PaginationResult[T](BaseModel):
    """One page of rows paired with its metadata."""

    model_config = ConfigDict(frozen=True)

    rows: list[T]
    meta: MetaPagination

    def to_response(self) -> dict[str, Any]:
        """Flatten into the wire shape ``{rows, pageIndex, pageSize, pageCount, dataCount, info}``."""
        data = self.model_dump(mode="json", by_alias=True)
        return {"rows": data["rows"], **data["meta"]}
