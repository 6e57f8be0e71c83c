"""Sort token resolution."""

import logging
import re

from pymongo import ASCENDING, DESCENDING

from mongo_repository.repos.fields import STORAGE_ID_KEY, FieldRegistry

logger = logging.getLogger(__name__)

SortSpec = list[tuple[str, int]]

DEFAULT_SORT: SortSpec = [(STORAGE_ID_KEY, DESCENDING)]

_SEPARATORS = re.compile(r"[-._]")
_DIRECTIONS = {"asc": ASCENDING, "desc": DESCENDING}


def resolve_sort(token: str, fields: FieldRegistry) -> SortSpec:
    """
    Resolve a sort token such as ``name-asc`` into a pymongo sort spec.

    The token must split on exactly one of ``-``, ``.`` or ``_`` into a field
    name (matched case-insensitively against the model) and a direction
    (``asc``/``desc``, any case). Anything else degrades to DEFAULT_SORT,
    descending by identity. Never raises; callers needing strict validation
    must check the token themselves.

    Examples:
        resolve_sort("name-asc", fields)      -> [("name", 1)]
        resolve_sort("Name.DESC", fields)     -> [("name", -1)]
        resolve_sort("first_name_asc", fields) -> DEFAULT_SORT (three parts)
    """
    parts = _SEPARATORS.split(token)
    if len(parts) != 2:
        logger.debug(f"Sort token '{token}' is malformed; using default sort")
        return list(DEFAULT_SORT)

    field_name, direction = parts
    canonical = fields.resolve(field_name, ignore_case=True)
    if canonical is None:
        logger.debug(f"Sort token '{token}' names an unknown field; using default sort")
        return list(DEFAULT_SORT)

    order = _DIRECTIONS.get(direction.lower())
    if order is None:
        logger.debug(f"Sort token '{token}' has an unknown direction; using default sort")
        return list(DEFAULT_SORT)

    return [(fields.storage_key(canonical), order)]
