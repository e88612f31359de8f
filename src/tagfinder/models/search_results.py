"""
Search result models for tagfinder.

A query evaluation returns every matching item, ordered by path, together
with the total count. Pagination is left to the caller.
"""

from typing import Dict, List, Any
from pydantic import BaseModel, Field, model_validator

from .catalog import Item


class MatchedItems(BaseModel):
    """
    The full, ordered match set of a query.

    Attributes:
        query: The query text that produced this result
        items: Matching items sorted by path (byte-wise, ascending)
        total_count: Number of matching items
    """

    query: str = Field("", description="Query that produced the result")
    items: List[Item] = Field(default_factory=list, description="Matching items in path order")
    total_count: int = Field(0, ge=0, description="Number of matching items")

    @model_validator(mode='after')
    def validate_count(self):
        """The count always describes the full item list."""
        if self.total_count != len(self.items):
            raise ValueError(
                f"total_count ({self.total_count}) does not match number of items ({len(self.items)})"
            )
        return self

    def get_paths(self) -> List[str]:
        return [item.path for item in self.items]

    def get_ids(self) -> List[int]:
        return [item.id for item in self.items]

    def is_empty(self) -> bool:
        return self.total_count == 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert the result to a dictionary for the calling layer."""
        return {
            'query': self.query,
            'total_count': self.total_count,
            'items': [item.to_dict() for item in self.items],
        }

    def __str__(self) -> str:
        return f"Query: '{self.query}' | Matches: {self.total_count}"
