"""
Pydantic schemas for repository inputs and outputs.
"""

# Re-export schemas for convenient imports.
from .filter import FilterBase as FilterBase
from .pagination import MetaPagination as MetaPagination
from .pagination import PaginationResult as PaginationResult
