"""
Unit tests for result assembly.
"""

import pytest

from tagfinder.models.catalog import Item
from tagfinder.tools.assembler import ResultAssembler, path_sort_key
from tagfinder.tools.snapshot import InMemoryCatalog


def item(item_id, path):
    return Item(id=item_id, path=path)


class TestResultAssembler:
    """Test cases for ResultAssembler."""

    def test_deduplicates_by_id(self):
        """Test repeated matches appear once."""
        result = ResultAssembler().assemble([item(1, "/a"), item(2, "/b"), item(1, "/a")], "q")

        assert result.get_ids() == [1, 2]
        assert result.total_count == 2
        assert result.query == "q"

    def test_orders_by_utf8_bytes(self):
        """Test ordering is byte-wise, so upper case sorts before lower case."""
        items = [item(1, "/b"), item(2, "/é"), item(3, "/B"), item(4, "/a/z"), item(5, "/a")]
        result = ResultAssembler().assemble(items)

        assert result.get_paths() == ["/B", "/a", "/a/z", "/b", "/é"]

    def test_astral_characters_sort_last(self):
        """Test characters outside the BMP sort after U+FFFD."""
        astral = item(1, "/\U0001F600")
        private = item(2, "/\uFFFD")

        assert path_sort_key(private) < path_sort_key(astral)

    def test_empty(self):
        """Test no matches yields an empty result."""
        result = ResultAssembler().assemble([])
        assert result.is_empty()


class TestAssembleIds:
    """Test cases for assembling from snapshot ids."""

    def test_looks_up_items(self):
        """Test ids are resolved through the snapshot."""
        snapshot = InMemoryCatalog(items=[item(1, "/z"), item(2, "/y")])
        result = ResultAssembler().assemble_ids([1, 2, 1], snapshot)

        assert result.get_paths() == ["/y", "/z"]

    def test_missing_id(self):
        """Test unknown ids raise KeyError."""
        snapshot = InMemoryCatalog(items=[item(1, "/z")])
        with pytest.raises(KeyError):
            ResultAssembler().assemble_ids([1, 7], snapshot)
