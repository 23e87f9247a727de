"""
Fluent query builder for Graphor SDK.

This module compiles filter/sort/paging criteria plus a Schema projection into
one DQL query, runs it through a BackendClient and decodes the results:
- FilterGroup: isolated filter accumulator (where/has/or_/regex/identify)
- QueryBuilder: FilterGroup plus sort, take, paging and execution
- Query: protocol shared by QueryBuilder and RelationBuilder

Example:
    >>> q = db.query(User).where("age", "ge", 18).sort("name", "asc").take(10)
    >>> users = q.all()

Invariants:
    - Soft-deleted nodes are always filtered out
    - Every builder call returns the builder (fluent chaining)
    - A builder is single-use and not safe to share between threads
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from typing import Any, Protocol, TypeVar

from pydantic import TypeAdapter, ValidationError

from . import dql
from .auth import Auth
from .backend.base import BackendClient
from .decoder import QueryData, decode, decode_all, unwrap_results
from .errors import DecodeError
from .schema import NOT_DELETED, Schema, count_schema

logger = logging.getLogger(__name__)

ASC = "asc"
DESC = "desc"

DEFAULT_SORT_KEY = "created_at"

ROOT_TEMPLATE = """
{
    q(func: eq(tag, #{tag}), #{sorting}#{take}) #{filter} { #{body} }
}"""

_PLACEHOLDER = re.compile(r"#\{(\w+)\}")

F = TypeVar("F", bound="FilterGroup")
Branch = Callable[["FilterGroup"], Any]


def is_zero_bound(value: Any) -> bool:
    """Zero value of a paging bound: None, 0, "" or False."""
    if value is None:
        return True
    if isinstance(value, (bool, int, float, str)):
        return not value
    return False


def _arg_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def copy_into(rows: list[Any], target: Any) -> Any:
    """Structural copy of raw rows into a list or a pydantic-validatable type."""
    if isinstance(target, list):
        target[:] = rows
        return target
    try:
        return TypeAdapter(target).validate_python(rows)
    except ValidationError as e:
        raise DecodeError(f"Results do not match {target!r}: {e}", body=rows) from e


def render_template(template: str, args: Mapping[str, Any]) -> str:
    """Replace ``#{name}`` placeholders; unknown names are left as is."""
    return _PLACEHOLDER.sub(
        lambda m: _arg_text(args[m.group(1)]) if m.group(1) in args else m.group(0),
        template,
    )


class FilterGroup:
    """Accumulates filter expressions that are AND-joined on compile.

    ``or_`` branches each receive a fresh FilterGroup so filters added inside
    one branch never leak into a sibling branch or the outer query.
    """

    def __init__(self) -> None:
        self.filters: list[dql.Expr] = []

    def where(self: F, field: str, op: str, value: Any) -> F:
        """Append ``op(field, value)``; value is rendered as a DQL literal."""
        self.filters.append(dql.compare(op, field, value))
        return self

    def between(self: F, field: str, low: Any, high: Any) -> F:
        """Half-open range: ``low <= field < high``."""
        return self.where(field, "ge", low).where(field, "lt", high)

    def has(self: F, edge: str) -> F:
        self.filters.append(dql.has(edge))
        return self

    def has_not(self: F, edge: str) -> F:
        self.filters.append(dql.Not(dql.has(edge)))
        return self

    def or_(self: F, *branches: Branch) -> F:
        """Append the disjunction of ``branches``.

        Each branch is called with its own empty FilterGroup; its filters are
        AND-joined, and the branches are OR-joined into one filter. A branch
        that adds no filter matches everything, so the whole disjunction is
        then dropped.
        """
        groups: list[dql.And] = []
        for branch in branches:
            group = FilterGroup()
            result = branch(group)
            if isinstance(result, FilterGroup):
                group = result
            if not group.filters:
                return self
            groups.append(dql.And(tuple(group.filters)))

        if groups:
            self.filters.append(dql.Or(tuple(groups)))
        return self

    def regex(self: F, field: str, pattern: str) -> F:
        """Append ``regexp(field, /pattern/)``."""
        self.filters.append(dql.regexp(field, pattern))
        return self

    def scope(self: F, fn: Callable[[F], Any]) -> F:
        """Apply a reusable filter fragment to this builder."""
        fn(self)
        return self

    def identify(self: F, *uids: str) -> F:
        """Restrict to ``uids``; an empty or malformed set matches nothing."""
        self.filters.append(dql.uid_in(*uids))
        return self

    def filter_clause(self, *extra: dql.Expr) -> str:
        """Render ``@filter(...)`` with ``extra`` appended to the filters."""
        return f"@filter({dql.conjunction([*self.filters, *extra])})"


class Query(Protocol):
    """Operations shared by QueryBuilder and RelationBuilder."""

    def sort(self, key: str, order: str = DESC) -> Query: ...

    def take(self, count: int) -> Query: ...

    def where(self, field: str, op: str, value: Any) -> Query: ...

    def between(self, field: str, low: Any, high: Any) -> Query: ...

    def has(self, edge: str) -> Query: ...

    def has_not(self, edge: str) -> Query: ...

    def or_(self, *branches: Branch) -> Query: ...

    def regex(self, field: str, pattern: str) -> Query: ...

    def scope(self, fn: Callable[[Any], Any]) -> Query: ...

    def identify(self, *uids: str) -> Query: ...

    def paging(self, since: Any, until: Any, count: int) -> Query: ...

    def debug(self) -> Query: ...

    def execute(self) -> list[Any]: ...

    def first(self) -> QueryData | None: ...

    def all(self) -> list[QueryData]: ...

    def get(self, target: Any) -> Any: ...

    def exists(self) -> bool: ...

    def count(self) -> int: ...


class QueryBuilder(FilterGroup):
    """Builds and runs one query over nodes of a Schema's tag.

    Attributes:
        schema: Projection used for the query body and for decoding
    """

    def __init__(
        self,
        backend: BackendClient,
        schema: Schema,
        *,
        auth: Auth | None = None,
        template: str = ROOT_TEMPLATE,
        args: Mapping[str, Any] | None = None,
    ) -> None:
        """Initialize a builder.

        Args:
            backend: Client that runs the compiled query
            schema: Projection of the queried node type
            auth: Login holder used by boolean edges
            template: DQL template with ``#{name}`` placeholders
            args: Values for template placeholders
        """
        super().__init__()
        self.schema = schema
        self._backend = backend
        self._auth = auth
        self._template = template
        self._args: dict[str, Any] = dict(args or {})
        self._sort_key = DEFAULT_SORT_KEY
        self._sort_order = DESC
        self._take = 0
        self._debug = False

    @property
    def sort_key(self) -> str:
        return self._sort_key

    @property
    def sort_order(self) -> str:
        return self._sort_order

    @property
    def take_count(self) -> int:
        return self._take

    @property
    def auth(self) -> Auth | None:
        return self._auth

    def is_order_asc(self) -> bool:
        return self._sort_order == ASC

    def sort(self, key: str, order: str = DESC) -> QueryBuilder:
        """Sort by ``key`` in ``order`` ("asc" or "desc").

        Raises:
            ValueError: If order is neither "asc" nor "desc"
        """
        if order not in (ASC, DESC):
            raise ValueError(f"sort order must be 'asc' or 'desc', got {order!r}")
        self._sort_key = key
        self._sort_order = order
        return self

    def take(self, count: int) -> QueryBuilder:
        """Cap the number of results (0 = unlimited)."""
        self._take = count
        return self

    def paging(self, since: Any, until: Any, count: int) -> QueryBuilder:
        """Cursor pagination on the current sort key.

        Ascending sorts select ``since <= key < until``; descending sorts
        select ``until < key <= since``. A zero-valued bound is skipped.
        """
        key = self._sort_key
        if not is_zero_bound(since):
            self.where(key, "ge" if self.is_order_asc() else "le", since)
        if not is_zero_bound(until):
            self.where(key, "lt" if self.is_order_asc() else "gt", until)
        return self.take(count)

    def debug(self) -> QueryBuilder:
        """Log the compiled query before it is sent."""
        self._debug = True
        return self

    def compile(self, args: Mapping[str, Any] | None = None) -> str:
        """Render the query text.

        Args:
            args: Placeholder values that override the builder defaults
                (``tag``, ``filter`` and ``body`` are always computed)

        Returns:
            DQL query text
        """
        values: dict[str, Any] = {
            "sorting": f"order{self._sort_order}: {self._sort_key}",
            "take": f", first: {self._take}" if self._take > 0 else "",
        }
        values.update(self._args)
        values.update(args or {})
        values["tag"] = self.schema.tag
        values["filter"] = self.filter_clause(dql.Raw(NOT_DELETED))
        values["body"] = self.schema.build(self._auth)
        return render_template(self._template, values)

    def run(self, text: str) -> list[Any]:
        """Send compiled ``text`` and return the rows of the root block."""
        if self._debug:
            logger.info(f"Query:\n{text}")
        return unwrap_results(self._backend.query(text))

    def execute(self) -> list[Any]:
        """Compile, run and return the raw rows (one group-by level unwrapped)."""
        return self.run(self.compile())

    def first(self) -> QueryData | None:
        """First decoded result, or None when nothing matches."""
        rows = self.take(1).execute()
        if not rows:
            return None
        return decode(self.schema, rows[0])

    def all(self) -> list[QueryData]:
        return decode_all(self.schema, self.execute())

    def get(self, target: Any) -> Any:
        """Copy the raw results into ``target``.

        Args:
            target: A type understood by pydantic (e.g. ``list[User]``), in
                which case the validated value is returned; or a list, which
                is filled in place and returned

        Raises:
            DecodeError: If the results do not validate against ``target``
        """
        return copy_into(self.execute(), target)

    def exists(self) -> bool:
        return len(self.take(1).all()) > 0

    def count(self) -> int:
        """Number of matching nodes."""
        self.schema = count_schema(self.schema.tag)
        rows = self.execute()
        if not rows:
            return 0
        return decode(self.schema, rows[0]).get_int("count")


def raw_query(
    backend: BackendClient,
    template: str,
    schema: Schema,
    args: Mapping[str, Any] | None = None,
    *,
    auth: Auth | None = None,
) -> QueryBuilder:
    """Builder over a caller-supplied template.

    The template may use ``#{tag}``, ``#{sorting}``, ``#{take}``,
    ``#{filter}``, ``#{body}`` and any name given in ``args``; caller ``args``
    override the computed ``sorting`` and ``take``.
    """
    return QueryBuilder(backend, schema, auth=auth, template=template, args=args)
