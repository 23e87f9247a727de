"""
Relation builder for Graphor SDK.

A RelationBuilder queries and mutates the children of one parent node along
one declared edge. It wraps a QueryBuilder over the child schema: filter and
limit calls pass straight through, while where/sort on a declared facet are
redirected to the edge's facet instead of a child field.

Example:
    >>> posts = db.relation(user, UserSchema.relations["posts"])
    >>> posts.where("pinned", "eq", True).sort("pinned_at", "desc").all()
    >>> posts.add(post, {"pinned": True})

Invariants:
    - Reverse edges (``~edge``) are read-only
    - Mutations only reference committed uids, except add() of a pending child
    - Precondition violations are logged and ignored, never raised
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from . import dql
from .auth import Auth
from .backend.base import BackendClient
from .decoder import QueryData, decode, decode_all
from .migrations import is_reversed
from .model import Model
from .query import ASC, DESC, Branch, QueryBuilder, copy_into, is_zero_bound
from .schema import RelationSchema, Schema, count_schema

logger = logging.getLogger(__name__)

RELATION_TEMPLATE = """
{
    q(func: #{root}) {
        #{edge} #{sorting} #{facets} #{facets_filter} #{filter} #{take} { #{body} }
    }
}"""


class RelationBuilder:
    """Query and mutate ``parent``'s children along one relation edge.

    Attributes:
        parent: Node whose edge is traversed
        relation: Declared relation being traversed
    """

    def __init__(
        self,
        backend: BackendClient,
        parent: Model,
        relation: RelationSchema,
        *,
        auth: Auth | None = None,
    ) -> None:
        self.parent = parent
        self.relation = relation
        self._backend = backend
        self._query = QueryBuilder(
            backend,
            relation.schema(),
            auth=auth,
            template=RELATION_TEMPLATE,
            args={"root": dql.uid_in(parent.uid).render(), "edge": relation.edge},
        )
        self._facet_filters: list[dql.Expr] = []
        self._sorted_by_facet = False

    @property
    def schema(self) -> Schema:
        return self._query.schema

    @property
    def sort_key(self) -> str:
        return self._query.sort_key

    @property
    def sorted_by_facet(self) -> bool:
        return self._sorted_by_facet

    def is_order_asc(self) -> bool:
        return self._query.is_order_asc()

    # Field-resolution sensitive operations

    def sort(self, key: str, order: str = DESC) -> RelationBuilder:
        self._query.sort(key, order)
        self._sorted_by_facet = key in self.relation.facets
        return self

    def where(self, field: str, op: str, value: Any) -> RelationBuilder:
        """Filter children, or the edge facets when ``field`` is a facet."""
        facet = self.relation.facet(field)
        if facet is not None:
            self._facet_filters.append(dql.compare(op, facet.edge, value))
        else:
            self._query.where(field, op, value)
        return self

    def between(self, field: str, low: Any, high: Any) -> RelationBuilder:
        return self.where(field, "ge", low).where(field, "lt", high)

    def paging(self, since: Any, until: Any, count: int) -> RelationBuilder:
        key = self.sort_key
        asc = self.is_order_asc()
        if not is_zero_bound(since):
            self.where(key, "ge" if asc else "le", since)
        if not is_zero_bound(until):
            self.where(key, "lt" if asc else "gt", until)
        return self.take(count)

    # Pass-through operations

    def take(self, count: int) -> RelationBuilder:
        self._query.take(count)
        return self

    def has(self, edge: str) -> RelationBuilder:
        self._query.has(edge)
        return self

    def has_not(self, edge: str) -> RelationBuilder:
        self._query.has_not(edge)
        return self

    def or_(self, *branches: Branch) -> RelationBuilder:
        self._query.or_(*branches)
        return self

    def regex(self, field: str, pattern: str) -> RelationBuilder:
        self._query.regex(field, pattern)
        return self

    def scope(self, fn: Callable[[RelationBuilder], Any]) -> RelationBuilder:
        fn(self)
        return self

    def identify(self, *uids: str) -> RelationBuilder:
        self._query.identify(*uids)
        return self

    def debug(self) -> RelationBuilder:
        self._query.debug()
        return self

    # Execution

    def compile(self) -> str:
        """Render the traversal query rooted at the parent uid."""
        facets: list[str] = []
        order = ASC if self.is_order_asc() else DESC

        if self._sorted_by_facet:
            facets.append(f"order{order}: {self.relation.facets[self.sort_key].edge}")
            sorting = ""
        else:
            sorting = f"(order{order}: {self.sort_key})"

        facets.extend(f"{name}: {facet.edge}" for name, facet in self.relation.facets.items())

        take = self._query.take_count
        return self._query.compile(
            {
                "sorting": sorting,
                "facets": f"@facets({', '.join(facets)})" if facets else "",
                "facets_filter": (
                    f"@facets({dql.conjunction(self._facet_filters)})" if self._facet_filters else ""
                ),
                "take": f"(first: {take})" if take > 0 else "",
            }
        )

    def execute(self) -> list[Any]:
        """Rows of the root block: the parent node wrapping its children."""
        return self._query.run(self.compile())

    def _children(self) -> list[Any]:
        rows = self.execute()
        if not rows or not isinstance(rows[0], dict):
            return []
        children = rows[0].get(self.relation.edge)
        if isinstance(children, dict):
            return [children]
        if not isinstance(children, list):
            return []
        return children

    def first(self) -> QueryData | None:
        children = self.take(1)._children()
        if not children:
            return None
        return decode(self.schema, children[0])

    def all(self) -> list[QueryData]:
        return decode_all(self.schema, self._children())

    def get(self, target: Any) -> Any:
        """Like QueryBuilder.get; the rows are the parent wrapper nodes."""
        return copy_into(self.execute(), target)

    def exists(self) -> bool:
        return len(self.take(1).all()) > 0

    def count(self) -> int:
        """Number of children along the edge matching the filters."""
        self._query.schema = count_schema(self.schema.tag)
        children = self._children()
        if not children:
            return 0
        return decode(self.schema, children[0]).get_int("count")

    # Mutations

    def add(self, child: Model, facets: dict[str, Any] | None = None) -> None:
        """Attach ``child`` under the edge (has-many relations only)."""
        if not self.relation.has_many:
            logger.warning(
                "Relation.add failed: don't use add() on a has-one relation, use set() instead"
            )
            return
        self._add(child, facets)

    def set(self, child: Model, facets: dict[str, Any] | None = None) -> None:
        """Replace the edge's child (has-one relations)."""
        if self.relation.has_many:
            logger.warning(
                f"Relation.set failed: don't use set() on has-many relation '{self.relation.edge}', use add() instead"
            )
            return
        self.clear()
        self._add(child, facets)

    def remove(self, child: Model) -> None:
        """Detach exactly ``child`` from the edge."""
        if self.parent is None or not self.parent.is_saved():
            logger.warning("Relation.remove failed: parent is empty or not saved")
            return
        if child is None or not child.is_saved():
            logger.warning("Relation.remove failed: child is empty or not saved")
            return
        if is_reversed(self.relation.edge):
            logger.warning("Relation.remove failed: can't remove from reversed edge")
            return
        if not self.relation.has_many:
            logger.warning(
                "Relation.remove failed: don't use remove() on a has-one relation, use clear() instead"
            )
            return

        self._backend.delete({"uid": self.parent.uid, self.relation.edge: {"uid": child.uid}})

    def clear(self) -> None:
        """Detach every child of the edge."""
        if self.parent is None or not self.parent.is_saved():
            logger.warning("Relation.clear failed: parent is empty or not saved")
            return
        if is_reversed(self.relation.edge):
            logger.warning("Relation.clear failed: can't clear reversed edge")
            return

        self._backend.delete({"uid": self.parent.uid, self.relation.edge: None})

    def _add(self, child: Model, facets: dict[str, Any] | None) -> None:
        if self.parent is None or not self.parent.is_saved():
            logger.warning("Relation.add failed: parent is empty or not saved")
            return
        if child is None or child.is_empty():
            logger.warning("Relation.add failed: child is empty")
            return
        if is_reversed(self.relation.edge):
            logger.warning("Relation.add failed: can't add to reversed edge")
            return

        edge = self.relation.edge
        target: dict[str, Any] = {"uid": child.uid}
        for name, value in (facets or {}).items():
            facet = self.relation.facet(name)
            if facet is None:
                logger.warning(f"Relation.add: unknown facet '{name}' on edge '{edge}' ignored")
                continue
            target[f"{edge}|{facet.edge}"] = value

        self._backend.insert({"uid": self.parent.uid, edge: target})
