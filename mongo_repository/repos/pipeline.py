"""
Composable aggregation pipelines.

An AggregationPipeline is an immutable list of stages bound to a collection.
Every builder method returns a new pipeline, so a base pipeline can be shared
between a page query and its count query.
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any

from motor.motor_asyncio import AsyncIOMotorCollection
from pydantic import BaseModel

from mongo_repository.core.cancellation import CancellationToken
from mongo_repository.core.observability import db_metrics
from mongo_repository.repos.fields import document_loader

logger = logging.getLogger(__name__)

Loader = Callable[[dict[str, Any]], Any]

COUNT_FIELD = "count"


class AggregationPipeline:
    """Stage builder and executor over one collection."""

    def __init__(
        self,
        collection: AsyncIOMotorCollection,
        stages: list[dict[str, Any]] | None = None,
        loader: Loader = dict,
        cancel: CancellationToken | None = None,
    ):
        self.collection = collection
        self._stages = list(stages or [])
        self.loader = loader
        self.cancel = cancel or CancellationToken.none()

    @property
    def stages(self) -> list[dict[str, Any]]:
        return list(self._stages)

    def _with(self, *stages: Mapping[str, Any], loader: Loader | None = None) -> "AggregationPipeline":
        return AggregationPipeline(
            self.collection,
            self._stages + [dict(stage) for stage in stages],
            loader or self.loader,
            self.cancel,
        )

    def add_stage(self, stage: Mapping[str, Any]) -> "AggregationPipeline":
        return self._with(stage)

    def match(self, query: Mapping[str, Any]) -> "AggregationPipeline":
        return self._with({"$match": dict(query)})

    def sort(self, spec: list[tuple[str, int]]) -> "AggregationPipeline":
        return self._with({"$sort": dict(spec)})

    def skip(self, count: int) -> "AggregationPipeline":
        return self._with({"$skip": count})

    def limit(self, count: int) -> "AggregationPipeline":
        return self._with({"$limit": count})

    def project(self, projection: Mapping[str, Any]) -> "AggregationPipeline":
        return self._with({"$project": dict(projection)})

    def unwind(self, field: str, preserve_empty: bool = False) -> "AggregationPipeline":
        path = field if field.startswith("$") else f"${field}"
        if preserve_empty:
            return self._with({"$unwind": {"path": path, "preserveNullAndEmptyArrays": True}})
        return self._with({"$unwind": path})

    def lookup(
        self, from_collection: str, local_field: str, foreign_field: str, as_field: str
    ) -> "AggregationPipeline":
        return self._with(
            {
                "$lookup": {
                    "from": from_collection,
                    "localField": local_field,
                    "foreignField": foreign_field,
                    "as": as_field,
                }
            }
        )

    def count(self) -> "AggregationPipeline":
        """Pipeline yielding a single ``{"count": n}`` row (none when empty)."""
        return self._with({"$count": COUNT_FIELD}, loader=dict)

    def with_output(self, output: type[BaseModel] | Loader | None) -> "AggregationPipeline":
        """Change how result rows are materialized.

        Accepts a pydantic model type, a plain callable, or None for raw dicts.
        """
        if output is None or isinstance(output, type) and issubclass(output, BaseModel):
            loader = document_loader(output)
        else:
            loader = output
        return AggregationPipeline(self.collection, self._stages, loader, self.cancel)

    async def to_list(self, cancel: CancellationToken | None = None) -> list[Any]:
        """Run the pipeline and materialize every row."""
        token = cancel or self.cancel
        collection_name = self.collection.name
        with db_metrics.track("aggregate", collection_name):
            cursor = self.collection.aggregate(self._stages)
            try:
                documents = await token.run(cursor.to_list(length=None))
            finally:
                await cursor.close()
        logger.debug(
            f"Aggregated {len(documents)} rows from {collection_name}",
            extra={"collection": collection_name, "stages": len(self._stages)},
        )
        return [self.loader(document) for document in documents]

    async def first(self, cancel: CancellationToken | None = None) -> Any | None:
        rows = await self.limit(1).to_list(cancel)
        return rows[0] if rows else None

    async def total(self, cancel: CancellationToken | None = None) -> int:
        """Run a ``count()`` pipeline and return the number, 0 if nothing matched."""
        row = await self.first(cancel)
        return int(row[COUNT_FIELD]) if row else 0
