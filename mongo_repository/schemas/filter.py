"""Base filter schema shared by every entity filter."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mongo_repository.core.config import settings


class FilterBase(BaseModel):
    """
    Query criteria common to all entities.

    Concrete filters subclass this and add optional entity-specific criteria.
    A criterion left as ``None`` contributes nothing to the combined filter.

    Both snake_case names and the camelCase wire names are accepted:
        FilterBase(page_index=2) == FilterBase.model_validate({"pageIndex": 2})
    """

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    sort: str | None = None
    from_to_key: str | None = Field(default=None, alias="fromToKey")
    from_: int | None = Field(default=None, alias="from")
    to: int | None = None
    page_index: int = Field(default=1, alias="pageIndex")
    page_size: int = Field(default_factory=lambda: settings.default_page_size, alias="pageSize")

    @field_validator("page_index", "page_size")
    @classmethod
    def clamp_to_one(cls, v: int) -> int:
        """Clamp pagination inputs to a minimum of 1."""
        return max(1, v)

    @property
    def skip(self) -> int:
        """Number of rows before the requested page."""
        return (self.page_index - 1) * self.page_size

    def criteria(self) -> dict[str, Any]:
        """Return the entity-specific criteria that are set."""
        return {
            name: value
            for name in type(self).model_fields
            if name not in BASE_FILTER_FIELDS and (value := getattr(self, name)) is not None
        }


BASE_FILTER_FIELDS = frozenset(FilterBase.model_fields)
