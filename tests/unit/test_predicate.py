"""
Unit tests for the in-memory predicate compiler.
"""

import pytest

from tagfinder.models.catalog import Item
from tagfinder.query.parser import parse
from tagfinder.query.predicate import compile_predicate, evaluate
from tagfinder.query.validator import QueryValidator, ValidatedQuery

from conftest import JAN_1_2024, DAY


@pytest.fixture
def matches(catalog, clock):
    validator = QueryValidator(catalog, clock=clock)

    def run(query, item, tag_ids=frozenset()):
        predicate = compile_predicate(validator.validate(parse(query), query))
        return predicate(item, set(tag_ids))
    return run


def file(path, size=100, modified=None, created=0):
    return Item(id=1, path=path, size=size, modified_time=modified, created_at=created)


def directory(path):
    return Item(id=2, path=path, is_directory=True)


class TestTags:
    """Test cases for tag membership."""

    def test_equality(self, matches):
        """Test any resolved id counts as a match."""
        item = file("/a.txt")
        assert matches("tag = work", item, {3})
        assert matches("tag = work", item, {1, 99})
        assert not matches("tag = work", item, {2})

    def test_not_equal(self, matches):
        """Test != means the item has none of the ids."""
        item = file("/a.txt")
        assert matches("tag != Done", item, {1})
        assert not matches("tag != Done", item, {1, 2})

    def test_unresolved(self, matches):
        """Test unresolved tags never match, and always match when negated."""
        item = file("/a.txt")
        assert not matches("tag = nonexistent", item, {1, 2, 3})
        assert matches("tag != nonexistent", item, set())

    def test_scenario_and(self, matches):
        """Test both tags are required by AND."""
        assert matches('tag = Done AND tag = "2024"', file("/a"), {2, 5})
        assert not matches('tag = Done AND tag = "2024"', file("/b"), {2})


class TestText:
    """Test cases for name and path matching."""

    def test_glob_is_exact(self, matches):
        """Test *.jpg does not match .jpeg or substrings."""
        assert matches('name ~ "*.jpg"', file("/p/photo.jpg"))
        assert not matches('name ~ "*.jpg"', file("/p/photo.jpeg"))
        assert not matches('name ~ "*.jpg"', file("/p/notes.txt"))
        assert not matches('name ~ "*.jpg"', file("/p.jpg/notes.txt"))

    def test_case_insensitive(self, matches):
        """Test ASCII case is ignored."""
        assert matches('name ~ "*.jpg"', file("/p/PARTY.JPG"))
        assert matches('name = "party.jpg"', file("/p/Party.JPG"))
        assert matches('path = "/P/PARTY.jpg"', file("/p/Party.JPG"))

    def test_non_ascii_case_is_significant(self, matches):
        """Test non-ASCII letters are compared as stored."""
        assert matches('name = "Über.txt"', file("/x/ÜBER.TXT"))
        assert not matches('name = "über.txt"', file("/x/ÜBER.TXT"))

    def test_windows_separators(self, matches):
        """Test file names after a backslash separator."""
        assert matches("name = photo.jpg", file("C:\\Users\\me\\photo.jpg"))

    def test_directory_name(self, matches):
        """Test a path without separators is its own name."""
        assert matches("name = music", directory("music"))

    def test_literal_functions(self, matches):
        """Test functions treat % and _ literally."""
        item = file("/docs/100%_done.txt")
        assert matches('contains(name, "%_")', item)
        assert not matches('contains(name, "%_")', file("/docs/100pct-done.txt"))
        assert matches('startsWith(path, "/DOCS/")', item)
        assert matches('endsWith(name, ".TXT")', item)

    def test_in(self, matches):
        """Test name IN."""
        assert matches("name IN (a.txt, b.txt)", file("/x/B.TXT"))
        assert not matches("name IN (a.txt, b.txt)", file("/x/c.txt"))


class TestNumbers:
    """Test cases for size and date comparisons."""

    def test_size_excludes_directories(self, matches):
        """Test directories have size 0 for comparisons."""
        assert matches("size > 10MB", file("/big", size=20_000_000))
        assert not matches("size > 10MB", file("/small", size=5_000_000))
        assert not matches("size > 10MB", directory("/dir"))
        assert matches("size = 0", directory("/dir"))

    def test_size_boundaries(self, matches):
        """Test inclusive and exclusive size bounds."""
        exact = file("/exact", size=10 * 1024 * 1024)
        assert not matches("size > 10MB", exact)
        assert matches("size >= 10MB", exact)
        assert matches("size <= 10MB", exact)
        assert not matches("size != 10MB", exact)

    @pytest.mark.parametrize("offset,expected", [
        (-1, {"<", "<=", "!="}),
        (0, {"=", ">=", "<="}),
        (DAY - 1, {"=", ">=", "<="}),
        (DAY, {">", ">=", "!="}),
    ])
    def test_day_range(self, matches, offset, expected):
        """Test comparator semantics on a calendar day."""
        item = file("/f", modified=JAN_1_2024 + offset)
        for symbol in ("=", "!=", ">", ">=", "<", "<="):
            assert matches(f"modified {symbol} 2024-01-01", item) == (symbol in expected), symbol

    def test_missing_time_is_zero(self, matches):
        """Test a missing modification time compares as epoch 0."""
        item = file("/f", modified=None)
        assert matches("modified < 2024-01-01", item)
        assert matches("modified = 0", item)

    def test_created(self, matches):
        """Test created compares the tracking time."""
        assert matches("created >= 2024-01-01", file("/f", created=JAN_1_2024 + 5))


class TestTypes:
    """Test cases for the type field."""

    def test_directory(self, matches):
        """Test type = directory."""
        assert matches("type = directory", directory("/d"))
        assert not matches("type = directory", file("/d.txt"))

    def test_extensions(self, matches):
        """Test extension kinds, case-insensitive, files only."""
        assert matches("type = image", file("/a/B.PNG"))
        assert not matches("type = image", directory("/a/folder.png"))
        assert matches("type IN (audio, video)", file("/a/clip.MKV"))

    def test_unknown_kind(self, matches):
        """Test unknown kinds match nothing, and everything when negated."""
        assert not matches("type = gizmo", file("/a.gizmo"))
        assert matches("type != gizmo", file("/a.gizmo"))


class TestHelpers:
    """Test cases for module helpers."""

    def test_evaluate(self, catalog):
        """Test evaluate() on a single item."""
        validated = QueryValidator(catalog).validate(parse("size > 1 AND NOT name = x"))
        assert evaluate(validated, file("/a/y", size=2), set())
        assert not evaluate(validated, file("/a/x", size=2), set())

    def test_unvalidated_tree_rejected(self):
        """Test raw parse trees cannot be compiled."""
        with pytest.raises(TypeError):
            compile_predicate(ValidatedQuery(root=parse("tag = a"), source="", node_count=1))
