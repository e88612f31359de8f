"""
Result assembly for query evaluation.

Both evaluation paths hand their matches to the ResultAssembler, which
produces the same MatchedItems shape regardless of where the items came
from.
"""

import logging
from typing import Iterable

from ..models.catalog import Item
from ..models.search_results import MatchedItems
from .snapshot import InMemoryCatalog


logger = logging.getLogger(__name__)


def path_sort_key(item: Item) -> bytes:
    """Byte-wise UTF-8 ordering, the same order SQLite uses for TEXT."""
    return item.path.encode('utf-8', 'surrogatepass')


class ResultAssembler:
    """De-duplicates matches by id and orders them by path."""

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def assemble(self, items: Iterable[Item], query: str = "") -> MatchedItems:
        """
        Build the full, ordered match set.

        Args:
            items: Matching items, possibly repeated and in any order
            query: Query text recorded on the result

        Returns:
            MatchedItems with every distinct item, sorted by path
        """
        unique = {}
        for item in items:
            unique.setdefault(item.id, item)

        ordered = sorted(unique.values(), key=path_sort_key)
        self.logger.debug(f"Assembled {len(ordered)} items for query '{query}'")
        return MatchedItems(query=query, items=ordered, total_count=len(ordered))

    def assemble_ids(self, ids: Iterable[int], catalog: InMemoryCatalog, query: str = "") -> MatchedItems:
        """
        Build a match set from item ids looked up in a snapshot.

        Raises:
            KeyError: If an id is not in the snapshot
        """
        items = []
        for item_id in ids:
            item = catalog.get_item(item_id)
            if item is None:
                raise KeyError(f"Item {item_id} is not in the snapshot")
            items.append(item)
        return self.assemble(items, query)
