"""
Abstract collaborator interfaces consumed by the query engine.

The engine reads tags through a TagCatalog while validating, and runs
compiled filters through an ItemStore. Both are read-only from the
engine's point of view.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Set

from ..models.catalog import Item, ResolvedTagRef, Tag, TagGroup
from ..query.patterns import like_to_regex


def fold_tag_text(text: str) -> str:
    """Case-fold tag or group text for case-insensitive comparisons."""
    return text.strip().casefold()


class TagCatalog(ABC):
    """Read-only access to tags and tag groups."""

    @abstractmethod
    def get_tags(self) -> List[Tag]:
        """All tags, in id order."""
        pass

    @abstractmethod
    def get_tag_groups(self) -> List[TagGroup]:
        """All tag groups, in id order."""
        pass

    def _groups_named(self, group: Optional[str]) -> Optional[Set[int]]:
        if group is None:
            return None
        wanted = fold_tag_text(group)
        return {g.id for g in self.get_tag_groups() if fold_tag_text(g.name) == wanted}

    def list_tags_matching(self, text: str, group: Optional[str] = None) -> List[ResolvedTagRef]:
        """
        Find tags whose value equals `text`, ignoring case.

        Args:
            text: Tag value to look up (exact match, not substring)
            group: Restrict the lookup to the group with this name

        Returns:
            Every matching tag; several when the value exists in more than
            one group, none when nothing matches
        """
        wanted = fold_tag_text(text)
        group_ids = self._groups_named(group)
        return [
            ResolvedTagRef(tag_id=tag.id, group_id=tag.group_id)
            for tag in self.get_tags()
            if fold_tag_text(tag.value) == wanted
            and (group_ids is None or tag.group_id in group_ids)
        ]

    def list_tags_like(self, pattern: str, group: Optional[str] = None) -> List[ResolvedTagRef]:
        """
        Find tags whose value matches a LIKE pattern, ignoring case.

        Args:
            pattern: LIKE pattern with backslash escapes
            group: Restrict the lookup to the group with this name

        Returns:
            Every matching tag
        """
        regex = like_to_regex(fold_tag_text(pattern))
        group_ids = self._groups_named(group)
        return [
            ResolvedTagRef(tag_id=tag.id, group_id=tag.group_id)
            for tag in self.get_tags()
            if regex.fullmatch(fold_tag_text(tag.value))
            and (group_ids is None or tag.group_id in group_ids)
        ]


class ItemStore(TagCatalog):
    """A tag catalog that can also execute compiled filters over items."""

    @abstractmethod
    def list_items_matching(self, compiled_filter, timeout: Optional[float] = None) -> List[Item]:
        """
        Run a compiled relational filter.

        Args:
            compiled_filter: CompiledFilter produced by the SQL compiler
            timeout: Abort after this many seconds

        Returns:
            Matching items ordered by path

        Raises:
            ExecutionError: If the storage engine fails or times out
        """
        pass

    @abstractmethod
    def get_items(self) -> List[Item]:
        """All items, in id order."""
        pass

    @abstractmethod
    def get_item_tag_ids(self) -> Dict[int, Set[int]]:
        """Tag ids attached to each item, keyed by item id."""
        pass

    @abstractmethod
    def snapshot(self) -> TagCatalog:
        """Copy the library into an in-memory catalog for reference evaluation."""
        pass
