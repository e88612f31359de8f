"""
Query engine entry point.

QueryEngine ties the pipeline together: lex and parse the text, validate
it against the store's tag catalog, compile it, and either run it through
the storage collaborator or evaluate it in memory over a snapshot.
"""

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

from .models.config import EngineConfig
from .models.search_results import MatchedItems
from .query.errors import QueryError
from .query.parser import parse
from .query.predicate import compile_predicate
from .query.sql_compiler import CompiledFilter, compile_sql
from .query.temporal import Clock
from .query.validator import QueryValidator, ValidatedQuery
from .tools.assembler import ResultAssembler
from .tools.base import ItemStore, TagCatalog
from .tools.sqlite_store import SQLiteStore


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompiledQuery:
    """
    A validated query and its relational filter.

    Attributes:
        validated: The validated tree
        filter: SQL filter compiled from it
    """
    validated: ValidatedQuery
    filter: CompiledFilter

    @property
    def source(self) -> str:
        return self.validated.source


class QueryEngine:
    """
    Evaluates query strings against an item store.

    Lexing, parsing and validation happen on the calling thread and fail
    before the store is touched. Nothing is cached between calls.
    """

    def __init__(
        self,
        store: ItemStore,
        config: Optional[EngineConfig] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize the engine.

        Args:
            store: Storage collaborator that also serves as the tag catalog
            config: Engine configuration (defaults when omitted)
            clock: Callable returning the current aware datetime, used for
                relative dates
        """
        self.store = store
        self.config = config or EngineConfig()
        self.clock = clock
        self.assembler = ResultAssembler()
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.execution.max_workers,
            thread_name_prefix='tagfinder-query',
        )
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @classmethod
    def from_config(cls, config: EngineConfig, clock: Optional[Clock] = None) -> 'QueryEngine':
        """Create an engine over the SQLite library named in the configuration."""
        store = SQLiteStore(
            config.storage.get_full_path(),
            progress_interval=config.execution.progress_interval,
        )
        return cls(store, config=config, clock=clock)

    def _validate(self, query: str, catalog: TagCatalog) -> ValidatedQuery:
        node = parse(query, max_length=self.config.limits.max_query_length)
        validator = QueryValidator(catalog, self.config, self.clock)
        return validator.validate(node, query)

    def compile(self, query: str) -> CompiledQuery:
        """
        Validate and compile a query without executing it.

        Args:
            query: Query text

        Returns:
            CompiledQuery holding the validated tree and SQL filter

        Raises:
            LexError, ParseError, ValidationError: On invalid queries
            ExecutionError: If the tag catalog cannot be read
        """
        try:
            validated = self._validate(query, self.store)
        except QueryError as e:
            self.logger.debug(f"Rejected query '{query}': {e}")
            raise e.with_source(query)

        return CompiledQuery(validated=validated, filter=compile_sql(validated))

    def evaluate(self, query: str) -> MatchedItems:
        """
        Evaluate a query through the storage collaborator.

        Args:
            query: Query text

        Returns:
            Every matching item, ordered by path

        Raises:
            QueryError: Any lexing, parsing, validation or execution error
        """
        started = time.perf_counter()
        compiled = self.compile(query)

        try:
            items = self.store.list_items_matching(
                compiled.filter,
                timeout=self.config.execution.timeout_seconds,
            )
        except QueryError as e:
            raise e.with_source(query)

        result = self.assembler.assemble(items, query)
        self._log_timing(query, started, result)
        return result

    def evaluate_reference(self, query: str) -> MatchedItems:
        """
        Evaluate a query in memory over a snapshot of the store.

        Produces the same match set as evaluate() and is used to check the
        relational backend.

        Args:
            query: Query text

        Returns:
            Every matching item, ordered by path
        """
        started = time.perf_counter()
        try:
            snapshot = self.store.snapshot()
            validated = self._validate(query, snapshot)
        except QueryError as e:
            raise e.with_source(query)

        predicate = compile_predicate(validated)
        tag_ids = snapshot.get_item_tag_ids()
        matches = [
            item for item in snapshot.get_items()
            if predicate(item, tag_ids.get(item.id, set()))
        ]

        result = self.assembler.assemble(matches, query)
        self._log_timing(query, started, result)
        return result

    def submit(self, query: str) -> 'Future[MatchedItems]':
        """
        Evaluate a query on a worker thread.

        Returns:
            Future resolving to the MatchedItems, or raising its QueryError
        """
        return self._executor.submit(self.evaluate, query)

    def _log_timing(self, query: str, started: float, result: MatchedItems) -> None:
        elapsed = time.perf_counter() - started
        if elapsed >= self.config.execution.slow_query_seconds:
            self.logger.warning(f"Slow query ({elapsed:.2f}s, {result.total_count} matches): {query}")
        else:
            self.logger.debug(f"Query matched {result.total_count} items in {elapsed:.3f}s")

    def close(self) -> None:
        """Wait for submitted queries and stop the worker threads."""
        self._executor.shutdown(wait=True)

    def __enter__(self) -> 'QueryEngine':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
