"""
Generic MongoDB repository.

Gives every entity type the same query, mutation, pagination and streaming
operations. Entity-specific knowledge is limited to the model type and a
composer (see ``mongo_repository.repos.composer``) that turns filter and
update objects into MongoDB documents.

All operations are async. Each accepts a keyword ``cancel`` token; when it
is omitted the repository's default token is used, normally the
application lifetime's ``stopping`` token.

Usage:
    repo = MongoRepository(get_database(), "users", User, DefaultComposer())
    page = await repo.find_with_pagination(UserFilter(page_index=2, sort="name-asc"))
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Coroutine, Sequence
from contextlib import aclosing
from typing import Any

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCursor, AsyncIOMotorDatabase
from pydantic import BaseModel
from pymongo import ReturnDocument
from pymongo.results import DeleteResult, UpdateResult

from mongo_repository.core.cancellation import CancellationToken
from mongo_repository.core.config import settings
from mongo_repository.core.errors import ValidationError
from mongo_repository.core.observability import db_metrics
from mongo_repository.repos.composer import FilterComposer
from mongo_repository.repos.error_translation import translate_write_errors
from mongo_repository.repos.fields import ID_FIELD, STORAGE_ID_KEY, FieldRegistry, document_loader
from mongo_repository.repos.lookup import lookup
from mongo_repository.repos.pagination import paginate
from mongo_repository.repos.pipeline import AggregationPipeline, Loader
from mongo_repository.repos.sorting import resolve_sort
from mongo_repository.schemas.filter import FilterBase
from mongo_repository.schemas.pagination import PaginationResult

logger = logging.getLogger(__name__)


async def _run_together(*coroutines: Coroutine[Any, Any, Any]) -> list[Any]:
    """
    Await coroutines concurrently.

    If one fails, the others are cancelled and awaited before its exception
    is re-raised as-is, so callers can release shared resources afterwards.
    """
    try:
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(coroutine) for coroutine in coroutines]
    except ExceptionGroup as eg:
        raise eg.exceptions[0] from None
    return [task.result() for task in tasks]


class MongoRepository[M: BaseModel, F: FilterBase, U]:
    """Query engine for one collection of ``M`` documents."""

    def __init__(
        self,
        database: AsyncIOMotorDatabase,
        collection_name: str,
        model: type[M],
        composer: FilterComposer[M, F, U],
        *,
        cancel: CancellationToken | None = None,
        stream_batch_size: int | None = None,
    ):
        """
        Args:
            database: Motor database handle
            collection_name: Collection holding ``M`` documents
            model: Pydantic model type; must declare an ``id`` field
            composer: Filter/update composer for ``M``
            cancel: Default cancellation token for every operation
            stream_batch_size: Rows per batch yielded by ``stream``

        Raises:
            ConfigurationError: If ``model`` has no ``id`` field. Raised before
                the database handle is touched.
        """
        self.fields: FieldRegistry[M] = FieldRegistry.from_model(model)
        self.model = model
        self.composer = composer
        self.database = database
        self.collection_name = collection_name
        self.collection = database[collection_name]
        self.cancel = cancel or CancellationToken.none()
        self.stream_batch_size = stream_batch_size or settings.stream_batch_size

    @classmethod
    def from_client(
        cls,
        client: AsyncIOMotorClient,
        database_name: str,
        collection_name: str,
        model: type[M],
        composer: FilterComposer[M, F, U],
        **kwargs: Any,
    ) -> "MongoRepository[M, F, U]":
        """Build a repository from a client and a database name."""
        return cls(client[database_name], collection_name, model, composer, **kwargs)

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------

    def compose_filter(self, filter: F) -> dict[str, Any]:
        return self.composer.compose_filter(filter, self.fields)

    def compose_update(self, update: U) -> dict[str, Any]:
        return self.composer.compose_update(update, self.fields)

    def _token(self, cancel: CancellationToken | None) -> CancellationToken:
        return cancel or self.cancel

    def _find_cursor(
        self, filter: F, projection: dict[str, Any] | None = None
    ) -> AsyncIOMotorCursor:
        cursor = self.collection.find(self.compose_filter(filter), projection)
        if filter.sort is not None:
            cursor = cursor.sort(resolve_sort(filter.sort, self.fields))
        return cursor

    def _projection_for(self, projection_type: type[BaseModel]) -> dict[str, Any]:
        projection: dict[str, Any] = {
            self.fields.storage_key(name): 1 for name in projection_type.model_fields
        }
        projection.setdefault(STORAGE_ID_KEY, 0)
        return projection

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def exists(self, filter: F, *, cancel: CancellationToken | None = None) -> bool:
        """Return True if any document matches the filter."""
        query = self.compose_filter(filter)
        with db_metrics.track("exists", self.collection_name):
            document = await self._token(cancel).run(
                self.collection.find_one(query, {STORAGE_ID_KEY: 1})
            )
        return document is not None

    async def find_by_id(
        self,
        id: Any,
        id_field: str | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> M | None:
        """
        Look up one document by identity.

        Args:
            id: Value to match
            id_field: Model field to match instead of ``id``

        Returns:
            The model, or None when nothing matches

        Raises:
            ValidationError: If ``id_field`` is not a field of the model
        """
        field = id_field or ID_FIELD
        if field != STORAGE_ID_KEY and field not in self.fields:
            raise ValidationError(
                f"Invalid id field: '{field}'", details={"id_field": field}
            )

        with db_metrics.track("find_by_id", self.collection_name):
            document = await self._token(cancel).run(
                self.collection.find_one({self.fields.storage_key(field): id})
            )
        if document is None:
            logger.debug(f"No {self.model.__name__} with {field}={id!r}")
            return None
        return self.fields.to_model(document)

    async def find(self, filter: F, *, cancel: CancellationToken | None = None) -> list[M]:
        """Return every matching document, sorted when the filter carries a sort token."""
        cursor = self._find_cursor(filter)
        with db_metrics.track("find", self.collection_name):
            try:
                documents = await self._token(cancel).run(cursor.to_list(length=None))
            finally:
                await cursor.close()

        logger.info(
            f"Retrieved {len(documents)} {self.model.__name__} rows",
            extra={"collection": self.collection_name},
        )
        return [self.fields.to_model(document) for document in documents]

    async def find_with_pagination(
        self, filter: F, *, cancel: CancellationToken | None = None
    ) -> PaginationResult[M]:
        """
        Return one page of matching documents with its metadata.

        The page fetch and the total count run concurrently with the same
        filter. The count ignores sort, skip and limit. If either fails, the
        other is cancelled and awaited before the cursor is closed.
        """
        token = self._token(cancel)
        query = self.compose_filter(filter)
        cursor = self.collection.find(query)
        if filter.sort is not None:
            cursor = cursor.sort(resolve_sort(filter.sort, self.fields))
        cursor = cursor.skip(filter.skip).limit(filter.page_size)

        with db_metrics.track("find_with_pagination", self.collection_name):
            try:
                total, documents = await _run_together(
                    token.run(self.collection.count_documents(query)),
                    token.run(cursor.to_list(length=None)),
                )
            finally:
                await cursor.close()

        rows = [self.fields.to_model(document) for document in documents]
        result = paginate(rows, filter.page_index, filter.page_size, total)
        logger.info(
            f"Paginated {self.model.__name__}: {result.meta.info}",
            extra={"collection": self.collection_name, "page_index": filter.page_index},
        )
        return result

    async def project[P: BaseModel](
        self,
        filter: F,
        projection_type: type[P],
        *,
        cancel: CancellationToken | None = None,
    ) -> list[P]:
        """Like ``find``, but fetch only ``projection_type``'s fields and return that type."""
        cursor = self._find_cursor(filter, self._projection_for(projection_type))
        loader = document_loader(projection_type)
        with db_metrics.track("project", self.collection_name):
            try:
                documents = await self._token(cancel).run(cursor.to_list(length=None))
            finally:
                await cursor.close()
        return [loader(document) for document in documents]

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def _stream_cursor(
        self, cursor: AsyncIOMotorCursor, loader: Loader, token: CancellationToken
    ) -> AsyncIterator[list[Any]]:
        cursor = cursor.batch_size(self.stream_batch_size)
        batches = 0
        try:
            while True:
                documents = await token.run(cursor.to_list(length=self.stream_batch_size))
                if not documents:
                    break
                batches += 1
                db_metrics.batch_streamed(self.collection_name)
                yield [loader(document) for document in documents]
        finally:
            await cursor.close()
            logger.debug(
                f"Closed stream over {self.collection_name} after {batches} batches",
                extra={"collection": self.collection_name},
            )

    async def stream(
        self, filter: F, *, cancel: CancellationToken | None = None
    ) -> AsyncIterator[list[M]]:
        """
        Yield matching documents in batches without materializing them all.

        The server cursor is closed when iteration ends, when the token fires,
        or when the generator is closed. Wrap it in ``contextlib.aclosing`` to
        release the cursor promptly when breaking out early:

            async with aclosing(repo.stream(filter)) as batches:
                async for batch in batches:
                    ...
        """
        batches = self._stream_cursor(
            self._find_cursor(filter), self.fields.to_model, self._token(cancel)
        )
        async with aclosing(batches):
            async for batch in batches:
                yield batch

    async def stream_projection[P: BaseModel](
        self,
        filter: F,
        projection_type: type[P],
        *,
        cancel: CancellationToken | None = None,
    ) -> AsyncIterator[list[P]]:
        """Like ``stream``, but fetch only ``projection_type``'s fields and return that type."""
        cursor = self._find_cursor(filter, self._projection_for(projection_type))
        batches = self._stream_cursor(cursor, document_loader(projection_type), self._token(cancel))
        async with aclosing(batches):
            async for batch in batches:
                yield batch

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def aggregate(
        self, filter: F, *, cancel: CancellationToken | None = None
    ) -> AggregationPipeline:
        """Open a pipeline matching the filter, sorted when it carries a sort token.

        Further stages (joins, projections) are added by the caller before
        ``to_list``.
        """
        pipeline = AggregationPipeline(
            self.collection, loader=self.fields.to_model, cancel=self._token(cancel)
        ).match(self.compose_filter(filter))
        if filter.sort is not None:
            pipeline = pipeline.sort(resolve_sort(filter.sort, self.fields))
        return pipeline

    def aggregate_with_pagination(
        self, filter: F, *, cancel: CancellationToken | None = None
    ) -> tuple[AggregationPipeline, AggregationPipeline]:
        """
        Open a paged pipeline and its count pipeline over the same match.

        Returns:
            Tuple of (page pipeline with skip/limit, count pipeline)
        """
        pipeline = self.aggregate(filter, cancel=cancel)
        page = pipeline.skip(filter.skip).limit(filter.page_size)
        return page, pipeline.count()

    async def to_pagination(
        self,
        pipeline: AggregationPipeline,
        filter: F,
        count_pipeline: AggregationPipeline,
        *,
        cancel: CancellationToken | None = None,
    ) -> PaginationResult[Any]:
        """Materialize a paged pipeline and its count concurrently."""
        rows, total = await _run_together(
            pipeline.to_list(cancel), count_pipeline.total(cancel)
        )
        return paginate(rows, filter.page_index, filter.page_size, total)

    def lookup(
        self,
        pipeline: AggregationPipeline,
        foreign_collection: str,
        local_field: str,
        foreign_field: str,
        as_field: str,
        *,
        result_type: type[BaseModel] | None = None,
        preserve_unmatched: bool = False,
    ) -> AggregationPipeline:
        """Join a pipeline over this collection to ``foreign_collection``.

        See ``mongo_repository.repos.lookup.lookup``.
        """
        return lookup(
            pipeline,
            foreign_collection,
            local_field,
            foreign_field,
            as_field,
            fields=self.fields,
            result_type=result_type,
            preserve_unmatched=preserve_unmatched,
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _to_insert_document(self, model: M) -> dict[str, Any]:
        document = self.fields.to_document(model)
        if document.get(STORAGE_ID_KEY) is None:
            # Let the server assign an ObjectId.
            document.pop(STORAGE_ID_KEY, None)
        return document

    async def insert_one(self, model: M, *, cancel: CancellationToken | None = None) -> Any:
        """
        Insert one document.

        Returns:
            The inserted ``_id``

        Raises:
            ConflictError: If the document violates a unique index
        """
        document = self._to_insert_document(model)
        with db_metrics.track("insert_one", self.collection_name):
            with translate_write_errors(self.collection_name):
                result = await self._token(cancel).run(self.collection.insert_one(document))

        logger.info(
            f"Inserted {self.model.__name__} {result.inserted_id}",
            extra={"collection": self.collection_name},
        )
        return result.inserted_id

    async def insert_many(
        self, models: Sequence[M], *, cancel: CancellationToken | None = None
    ) -> list[Any]:
        """
        Insert documents in order, stopping at the first failure.

        Returns:
            The inserted ``_id`` values

        Raises:
            ConflictError: If a document violates a unique index. Documents
                before it remain inserted.
        """
        if not models:
            return []

        documents = [self._to_insert_document(model) for model in models]
        with db_metrics.track("insert_many", self.collection_name):
            with translate_write_errors(self.collection_name):
                result = await self._token(cancel).run(self.collection.insert_many(documents))

        logger.info(
            f"Inserted {len(result.inserted_ids)} {self.model.__name__} rows",
            extra={"collection": self.collection_name},
        )
        return list(result.inserted_ids)

    async def update_one(
        self,
        filter: F,
        update: U,
        upsert: bool = False,
        *,
        cancel: CancellationToken | None = None,
    ) -> UpdateResult:
        """Apply the update to the first matching document."""
        query = self.compose_filter(filter)
        changes = self.compose_update(update)
        with db_metrics.track("update_one", self.collection_name):
            result = await self._token(cancel).run(
                self.collection.update_one(query, changes, upsert=upsert)
            )

        logger.info(
            f"Updated {self.model.__name__}: matched={result.matched_count} "
            f"modified={result.modified_count} upserted={result.upserted_id}",
            extra={"collection": self.collection_name},
        )
        return result

    async def update_many(
        self,
        filter: F,
        update: U,
        upsert: bool = False,
        *,
        cancel: CancellationToken | None = None,
    ) -> UpdateResult:
        """Apply the update to every matching document."""
        query = self.compose_filter(filter)
        changes = self.compose_update(update)
        with db_metrics.track("update_many", self.collection_name):
            result = await self._token(cancel).run(
                self.collection.update_many(query, changes, upsert=upsert)
            )

        logger.info(
            f"Updated {self.model.__name__}: matched={result.matched_count} "
            f"modified={result.modified_count} upserted={result.upserted_id}",
            extra={"collection": self.collection_name},
        )
        return result

    async def find_one_and_update(
        self,
        filter: F,
        update: U,
        return_updated: bool = False,
        *,
        cancel: CancellationToken | None = None,
    ) -> M | None:
        """
        Atomically update the first matching document and return it.

        Args:
            return_updated: Return the document as it is after the update
                instead of before

        Returns:
            The document, or None when nothing matched
        """
        query = self.compose_filter(filter)
        changes = self.compose_update(update)
        return_document = ReturnDocument.AFTER if return_updated else ReturnDocument.BEFORE
        with db_metrics.track("find_one_and_update", self.collection_name):
            document = await self._token(cancel).run(
                self.collection.find_one_and_update(
                    query, changes, return_document=return_document
                )
            )
        return self.fields.to_model(document) if document is not None else None

    async def delete_one(
        self, filter: F, *, cancel: CancellationToken | None = None
    ) -> M | None:
        """Atomically delete the first matching document and return it (None if none matched)."""
        query = self.compose_filter(filter)
        with db_metrics.track("delete_one", self.collection_name):
            document = await self._token(cancel).run(self.collection.find_one_and_delete(query))

        if document is None:
            logger.debug(f"Nothing to delete in {self.collection_name}")
            return None
        logger.info(
            f"Deleted {self.model.__name__} {document.get(STORAGE_ID_KEY)}",
            extra={"collection": self.collection_name},
        )
        return self.fields.to_model(document)

    async def delete_many(
        self, filter: F, *, cancel: CancellationToken | None = None
    ) -> DeleteResult:
        """Delete every matching document. An empty filter deletes the whole collection."""
        query = self.compose_filter(filter)
        with db_metrics.track("delete_many", self.collection_name):
            result = await self._token(cancel).run(self.collection.delete_many(query))

        logger.info(
            f"Deleted {result.deleted_count} {self.model.__name__} rows",
            extra={"collection": self.collection_name},
        )
        return result

    async def replace(
        self,
        filter: F,
        model: M,
        upsert: bool = False,
        *,
        cancel: CancellationToken | None = None,
    ) -> M | None:
        """
        Atomically replace the first matching document.

        Returns:
            The document as it was before replacement, or None when nothing
            matched (an upsert that inserts also returns None)
        """
        query = self.compose_filter(filter)
        document = self._to_insert_document(model)
        with db_metrics.track("replace", self.collection_name):
            with translate_write_errors(self.collection_name):
                previous = await self._token(cancel).run(
                    self.collection.find_one_and_replace(query, document, upsert=upsert)
                )
        return self.fields.to_model(previous) if previous is not None else None
