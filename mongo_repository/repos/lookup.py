"""Cross-collection joins on top of aggregation pipelines."""

from pydantic import BaseModel

from mongo_repository.repos.fields import FieldRegistry
from mongo_repository.repos.pipeline import AggregationPipeline


def lookup(
    pipeline: AggregationPipeline,
    foreign_collection: str,
    local_field: str,
    foreign_field: str,
    as_field: str,
    *,
    fields: FieldRegistry | None = None,
    result_type: type[BaseModel] | None = None,
    preserve_unmatched: bool = False,
) -> AggregationPipeline:
    """
    Join each row to its match in ``foreign_collection``.

    Appends ``$lookup`` -> ``$unwind`` -> ``$project`` so each row carries a
    single joined document under ``as_field`` and no longer carries
    ``local_field``.

    By default rows without a match are dropped by the unwind (inner join).
    Pass ``preserve_unmatched=True`` to keep them with ``as_field`` absent.

    Args:
        pipeline: Open pipeline over the base collection
        foreign_collection: Name of the collection to join
        local_field: Base field holding the foreign key
        foreign_field: Field of the foreign document it must equal
        as_field: Field receiving the joined document
        fields: Registry of the base model, to map model field names to keys
        result_type: Model to validate joined rows into (raw dicts if None)
        preserve_unmatched: Keep base rows that have no match

    Returns:
        New pipeline; the input pipeline is unchanged
    """
    local_key = fields.storage_key(local_field) if fields else local_field

    joined = (
        pipeline.lookup(foreign_collection, local_key, foreign_field, as_field)
        .unwind(as_field, preserve_empty=preserve_unmatched)
        .project({local_key: 0})
    )
    return joined.with_output(result_type)
