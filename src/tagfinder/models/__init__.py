"""
Data models for tagfinder.

This module contains the catalog records, query results and engine
configuration shared across the package.
"""

from .catalog import Item, ResolvedTagRef, Tag, TagGroup
from .config import EngineConfig, UnresolvedTagPolicy
from .search_results import MatchedItems

__all__ = [
    'Item',
    'ResolvedTagRef',
    'Tag',
    'TagGroup',
    'EngineConfig',
    'UnresolvedTagPolicy',
    'MatchedItems',
]
