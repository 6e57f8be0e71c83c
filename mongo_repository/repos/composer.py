"""
Filter and update composition.

A repository does not know how an entity's filter or update objects map to
MongoDB. That knowledge lives in a composer: a strategy object supplied at
construction that turns a filter into a query document and an update into
an update document. The helpers here are the building blocks composers use.

Example:
    class UserComposer:
        def compose_filter(self, filter: UserFilter, fields: FieldRegistry) -> dict:
            clauses = [always_true()]
            if filter.name is not None:
                clauses.append(eq_filter("name", filter.name, fields))
            clauses.append(from_to_filter("created_at", filter, fields))
            return combine_filters(*clauses)

        def compose_update(self, update: UserUpdate, fields: FieldRegistry) -> dict:
            return set_update({"name": update.name}, fields)
"""

import logging
from collections.abc import Mapping
from typing import Any, Protocol

from pydantic import BaseModel

from mongo_repository.core.errors import ValidationError
from mongo_repository.repos.fields import ID_FIELD, STORAGE_ID_KEY, FieldRegistry
from mongo_repository.schemas.filter import FilterBase

logger = logging.getLogger(__name__)


class FilterComposer[M: BaseModel, F: FilterBase, U](Protocol):
    """Per-entity mapping from filter/update objects to MongoDB documents."""

    def compose_filter(self, filter: F, fields: FieldRegistry[M]) -> dict[str, Any]:
        """Return the combined filter: one AND-ed clause per criterion that is set."""
        ...

    def compose_update(self, update: U, fields: FieldRegistry[M]) -> dict[str, Any]:
        """Return an update document touching only the fields that are set."""
        ...


def always_true() -> dict[str, Any]:
    """The empty predicate, matching every document."""
    return {}


def combine_filters(*clauses: Mapping[str, Any]) -> dict[str, Any]:
    """AND clauses together, dropping empty ones.

    Returns the empty predicate when nothing is left, the clause itself when
    one is left, and an ``$and`` otherwise.
    """
    remaining = [dict(clause) for clause in clauses if clause]
    if not remaining:
        return always_true()
    if len(remaining) == 1:
        return remaining[0]
    return {"$and": remaining}


def eq_filter(field: str, value: Any, fields: FieldRegistry) -> dict[str, Any]:
    """Equality clause on a model field."""
    return {fields.storage_key(field): value}


def from_to_filter(default_field: str, filter: FilterBase, fields: FieldRegistry) -> dict[str, Any]:
    """
    Build the half-open range clause ``[from, to)``.

    The range applies to ``filter.from_to_key`` when set, otherwise to
    ``default_field``. ``id`` targets the ``_id`` key.

    Args:
        default_field: Field used when the filter names none
        filter: Filter carrying from/to bounds
        fields: Registry of the model being queried

    Returns:
        Range clause, or the empty predicate when neither bound is set

    Raises:
        ValidationError: If the range field is not a field of the model
    """
    field = filter.from_to_key or default_field
    if field == ID_FIELD:
        field = STORAGE_ID_KEY
    if field != STORAGE_ID_KEY and field not in fields:
        logger.warning(f"Rejected range filter on unknown field '{field}'")
        raise ValidationError(
            f"Invalid fromToKey: '{field}'",
            details={"fromToKey": field},
        )

    bounds: dict[str, Any] = {}
    if filter.from_ is not None:
        bounds["$gte"] = filter.from_
    if filter.to is not None:
        bounds["$lt"] = filter.to
    if not bounds:
        return always_true()
    return {fields.storage_key(field): bounds}


def set_update(values: Mapping[str, Any], fields: FieldRegistry) -> dict[str, Any]:
    """One ``$set`` entry per value that is not None. Empty when nothing is set."""
    to_set = {fields.storage_key(name): value for name, value in values.items() if value is not None}
    if not to_set:
        return {}
    return {"$set": to_set}


class DefaultComposer:
    """
    Composer for entities whose filter criteria and update fields are named
    after model fields.

    - every criterion that is set becomes an equality clause
    - ``from``/``to`` become a range clause on ``range_field`` unless the
      filter names another field via ``fromToKey``
    - every update field that is set becomes a ``$set``
    """

    def __init__(self, range_field: str = ID_FIELD):
        self.range_field = range_field

    def compose_filter(self, filter: FilterBase, fields: FieldRegistry) -> dict[str, Any]:
        clauses = [always_true()]
        for name, value in filter.criteria().items():
            if name not in fields:
                raise ValidationError(
                    f"Filter criterion '{name}' is not a field of {fields.model.__name__}",
                    details={"criterion": name},
                )
            clauses.append(eq_filter(name, value, fields))
        clauses.append(from_to_filter(self.range_field, filter, fields))
        return combine_filters(*clauses)

    def compose_update(self, update: BaseModel, fields: FieldRegistry) -> dict[str, Any]:
        values = update.model_dump(mode="python")
        unknown = [name for name, value in values.items() if value is not None and name not in fields]
        if unknown:
            raise ValidationError(
                f"Update fields {unknown} are not fields of {fields.model.__name__}",
                details={"fields": unknown},
            )
        document = set_update(values, fields)
        if not document:
            raise ValidationError("Update has no fields to set")
        return document
