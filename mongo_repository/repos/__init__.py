"""
Repository layer for data access operations.

This package contains the generic MongoDB repository and the building blocks
it is made of: field registry, filter/update composition, sort resolution,
pagination, aggregation pipelines, joins and error translation.
"""

from .base import MongoRepository as MongoRepository
from .composer import DefaultComposer as DefaultComposer
from .composer import FilterComposer as FilterComposer
from .fields import FieldRegistry as FieldRegistry
from .pipeline import AggregationPipeline as AggregationPipeline
