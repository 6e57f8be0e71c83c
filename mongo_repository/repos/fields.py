"""
Field registry for repository models.

Built once when a repository is constructed. Maps each logical field name of
a pydantic model to the key it is stored under, and converts between model
instances and MongoDB documents. Validation that needs to know the model's
fields (sort tokens, range filter keys, projections) goes through here.
"""

import logging
from typing import Any

from pydantic import BaseModel

from mongo_repository.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

ID_FIELD = "id"
STORAGE_ID_KEY = "_id"


class FieldRegistry[M: BaseModel]:
    """Logical field name -> storage key mapping for one model type."""

    def __init__(self, model: type[M], storage_keys: dict[str, str], input_keys: dict[str, str]):
        self.model = model
        self._storage_keys = storage_keys
        # storage key -> key accepted by model validation (alias or name)
        self._input_keys = input_keys
        self._lower_names = {name.lower(): name for name in storage_keys}

    @classmethod
    def from_model(cls, model: type[M]) -> "FieldRegistry[M]":
        """
        Build the registry for a pydantic model.

        Args:
            model: Model class to register

        Returns:
            FieldRegistry for the model

        Raises:
            ConfigurationError: If the model has no ``id`` field
        """
        fields = model.model_fields
        if ID_FIELD not in fields:
            raise ConfigurationError(
                f"Model {model.__name__} doesn't have field id",
                details={"model": model.__name__},
            )

        storage_keys: dict[str, str] = {}
        input_keys: dict[str, str] = {}
        for name, info in fields.items():
            storage_key = STORAGE_ID_KEY if name == ID_FIELD else (info.alias or name)
            storage_keys[name] = storage_key
            input_keys[storage_key] = info.alias or name

        logger.debug(
            f"Registered {len(storage_keys)} fields for {model.__name__}",
            extra={"model": model.__name__},
        )
        return cls(model, storage_keys, input_keys)

    @property
    def field_names(self) -> list[str]:
        return list(self._storage_keys)

    def __contains__(self, name: object) -> bool:
        return name in self._storage_keys

    def resolve(self, name: str, ignore_case: bool = False) -> str | None:
        """Return the canonical field name for ``name``, or None if unknown."""
        if name in self._storage_keys:
            return name
        if ignore_case:
            return self._lower_names.get(name.lower())
        return None

    def storage_key(self, name: str) -> str:
        """
        Return the storage key for a field.

        ``id`` and ``_id`` both map to ``_id``. Names that are not model fields
        (dotted paths into sub-documents, for instance) are returned unchanged.
        """
        if name == STORAGE_ID_KEY:
            return STORAGE_ID_KEY
        return self._storage_keys.get(name, name)

    def to_document(self, model: M) -> dict[str, Any]:
        """Serialize a model instance into a MongoDB document."""
        data = model.model_dump(mode="python")
        return {self.storage_key(name): value for name, value in data.items()}

    def to_model(self, document: dict[str, Any]) -> M:
        """Validate a MongoDB document into a model instance."""
        data = {self._input_keys.get(key, key): value for key, value in document.items()}
        return self.model.model_validate(data)


def document_loader(result_type: type[BaseModel] | None):
    """
    Return a callable turning a raw document into ``result_type``.

    Models with an ``id`` field go through a FieldRegistry so ``_id`` lands on
    ``id``; other models are validated as-is. ``None`` keeps raw dicts.
    """
    if result_type is None:
        return dict
    if ID_FIELD in result_type.model_fields:
        return FieldRegistry.from_model(result_type).to_model
    return result_type.model_validate
