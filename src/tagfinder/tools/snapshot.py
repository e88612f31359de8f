"""
In-memory snapshot of the item library.

The snapshot answers catalog lookups from plain lists and is the data
source of the in-memory evaluation path.
"""

from typing import Dict, Iterable, List, Optional, Set, Tuple

from ..models.catalog import Item, Tag, TagGroup
from .base import TagCatalog


class InMemoryCatalog(TagCatalog):
    """
    Items, tags and tag groups held in memory.

    Args:
        items: Tracked items
        tags: All tags
        groups: All tag groups
        item_tags: (item_id, tag_id) attachment pairs
    """

    def __init__(
        self,
        items: Iterable[Item] = (),
        tags: Iterable[Tag] = (),
        groups: Iterable[TagGroup] = (),
        item_tags: Iterable[Tuple[int, int]] = (),
    ):
        self._items = sorted(items, key=lambda item: item.id)
        self._tags = sorted(tags, key=lambda tag: tag.id)
        self._groups = sorted(groups, key=lambda group: group.id)
        self._items_by_id = {item.id: item for item in self._items}

        self._item_tags: Dict[int, Set[int]] = {item.id: set() for item in self._items}
        for item_id, tag_id in item_tags:
            self._item_tags.setdefault(item_id, set()).add(tag_id)

    def get_tags(self) -> List[Tag]:
        return list(self._tags)

    def get_tag_groups(self) -> List[TagGroup]:
        return list(self._groups)

    def get_items(self) -> List[Item]:
        return list(self._items)

    def get_item(self, item_id: int) -> Optional[Item]:
        return self._items_by_id.get(item_id)

    def get_item_tag_ids(self) -> Dict[int, Set[int]]:
        """Tag ids attached to each item, keyed by item id."""
        return {item_id: set(tag_ids) for item_id, tag_ids in self._item_tags.items()}

    def tag_ids_for(self, item_id: int) -> Set[int]:
        return self._item_tags.get(item_id, set())

    def __len__(self) -> int:
        return len(self._items)
