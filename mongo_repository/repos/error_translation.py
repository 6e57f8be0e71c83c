"""
Translation of storage write errors into domain errors.

Only uniqueness violations are translated. Everything else the driver
raises propagates unchanged.
"""

import logging
import re
from collections.abc import Iterator
from contextlib import contextmanager

from pymongo.errors import BulkWriteError, DuplicateKeyError

from mongo_repository.core.errors import ConflictError

logger = logging.getLogger(__name__)

DUPLICATE_KEY_CODES = frozenset({11000, 11001, 12582})

_DUPLICATE_KEY_PATTERN = re.compile(r"key:\s*({.*?})")


def extract_duplicate_key(message: str) -> str:
    """Extract the ``{...}`` key payload from a duplicate key error message.

    Example:
        'E11000 ... dup key: { name: "alice" }' -> "{ name: 'alice' }"
    """
    match = _DUPLICATE_KEY_PATTERN.search(message)
    if match is None:
        return ""
    return match.group(1).replace('"', "'")


def duplicate_key_error(message: str) -> ConflictError:
    """Build the 409 ConflictError for a duplicate key message."""
    key = extract_duplicate_key(message)
    return ConflictError(f"Data with key {key} already exists", details={"key": key})


@contextmanager
def translate_write_errors(collection: str) -> Iterator[None]:
    """
    Re-raise uniqueness violations as ConflictError.

    Args:
        collection: Collection name, for logging

    Raises:
        ConflictError: On DuplicateKeyError, or a BulkWriteError whose first
            write error is a duplicate key
    """
    try:
        yield
    except DuplicateKeyError as e:
        error = duplicate_key_error(str(e))
        logger.warning(
            f"Duplicate key writing to {collection}",
            extra={"collection": collection, "key": error.details["key"]},
        )
        raise error from e
    except BulkWriteError as e:
        write_errors = e.details.get("writeErrors") or []
        if not write_errors or write_errors[0].get("code") not in DUPLICATE_KEY_CODES:
            raise
        error = duplicate_key_error(write_errors[0].get("errmsg", ""))
        logger.warning(
            f"Duplicate key in bulk write to {collection}",
            extra={
                "collection": collection,
                "key": error.details["key"],
                "inserted": e.details.get("nInserted", 0),
            },
        )
        raise error from e
