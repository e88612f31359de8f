"""
Property tests that compare evaluation paths and equivalent rewrites.

Random queries are built from a fixed set of comparisons over the shared
library. Every query must give the same ids through SQLite and through the
in-memory predicate, and algebraically equivalent queries must give the
same ids as each other.
"""

import random

import pytest

from tagfinder.engine import QueryEngine
from tagfinder.query.parser import parse
from tagfinder.query.printer import to_query_string


ATOMS = [
    'tag = vacation',
    'tag = "status:work"',
    'tag != archived',
    'tag IN (family, "2024")',
    'tag ~ "20*"',
    'tag = nonexistent',
    'name ~ "*.jpg"',
    'name = "notes.txt"',
    'name != photo.jpg',
    'path ~ "/docs/*"',
    'contains(name, "%")',
    'startsWith(path, "/PHOTOS")',
    'endsWith(name, ".txt")',
    'size > 10MB',
    'size <= 4KB',
    'size = 0',
    'modified >= 2024-01-01',
    'modified < 2024-01-15',
    'modified = 2024-01-01',
    'modified != 2024-01-01',
    'modified > -7d',
    'created < 2024-01-01',
    'type = directory',
    'type = image',
    'type != audio',
    'type IN (archive, document)',
]

SEEDS = range(20)


def random_query(rng: random.Random, depth: int = 3) -> str:
    if depth == 0 or rng.random() < 0.3:
        return rng.choice(ATOMS)

    choice = rng.random()
    if choice < 0.2:
        return f"NOT ({random_query(rng, depth - 1)})"
    operator = "AND" if choice < 0.6 else "OR"
    return f"({random_query(rng, depth - 1)}) {operator} ({random_query(rng, depth - 1)})"


@pytest.fixture
def engine(library, clock):
    store, _ = library
    with QueryEngine(store, clock=clock) as engine:
        yield engine


def ids(engine, query):
    return engine.evaluate(query).get_ids()


class TestBackendsAgree:
    """SQLite and the in-memory predicate return the same matches."""

    @pytest.mark.parametrize("atom", ATOMS)
    def test_atoms(self, engine, atom):
        """Test every comparison on its own."""
        assert engine.evaluate_reference(atom) == engine.evaluate(atom)

    @pytest.mark.parametrize("seed", SEEDS)
    def test_random_queries(self, engine, seed):
        """Test random boolean combinations."""
        query = random_query(random.Random(seed))
        assert engine.evaluate_reference(query) == engine.evaluate(query), query


class TestEquivalentRewrites:
    """Equivalent queries return the same matches."""

    @pytest.mark.parametrize("seed", SEEDS)
    def test_double_negation(self, engine, seed):
        """Test NOT NOT x matches x."""
        query = random_query(random.Random(seed))
        assert ids(engine, f"NOT NOT ({query})") == ids(engine, query)

    @pytest.mark.parametrize("seed", SEEDS)
    def test_distributive_law(self, engine, seed):
        """Test a AND (b OR c) matches (a AND b) OR (a AND c)."""
        rng = random.Random(seed)
        a, b, c = (random_query(rng, 1) for _ in range(3))

        left = f"({a}) AND (({b}) OR ({c}))"
        right = f"(({a}) AND ({b})) OR (({a}) AND ({c}))"
        assert ids(engine, left) == ids(engine, right)

    @pytest.mark.parametrize("seed", SEEDS)
    def test_de_morgan(self, engine, seed):
        """Test NOT (a OR b) matches NOT a AND NOT b."""
        rng = random.Random(seed)
        a, b = random_query(rng, 1), random_query(rng, 1)

        assert ids(engine, f"NOT (({a}) OR ({b}))") == ids(engine, f"NOT ({a}) AND NOT ({b})")

    @pytest.mark.parametrize("seed", SEEDS)
    def test_complement_partitions_items(self, engine, seed):
        """Test x and NOT x split the library between them."""
        query = random_query(random.Random(seed))
        matched = set(ids(engine, query))
        unmatched = set(ids(engine, f"NOT ({query})"))

        assert matched.isdisjoint(unmatched)
        assert len(matched | unmatched) == 12

    @pytest.mark.parametrize("seed", SEEDS)
    def test_printed_query_is_equivalent(self, engine, seed):
        """Test the canonical text re-parses to the same tree and matches."""
        query = random_query(random.Random(seed))
        printed = to_query_string(parse(query))

        assert parse(printed) == parse(query)
        assert ids(engine, printed) == ids(engine, query)
