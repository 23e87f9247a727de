"""
Schema types for Graphor SDK.

This module describes, for one entity type, what a query projects and how
results are re-hydrated:
- Schema: tag, scalar fields, boolean edges and relations of a node type
- Boolean: an edge probed for existence, filtered against the login uid
- RelationSchema: a nested edge to another node type, with facets
- Facet: a key/value annotation stored on an edge

Schemas are built once at startup and never mutated.

Invariants:
    - uid, created_at, updated_at and deleted_at are always projected
    - Booleans are omitted entirely when nobody is logged in
    - Relation counts never include soft-deleted children

Example:
    >>> User = Schema(
    ...     tag=1,
    ...     fields=("name", "email"),
    ...     relations={
    ...         "posts": RelationSchema(
    ...             edge="posted",
    ...             has_many=True,
    ...             include=True,
    ...             count_field="post_count",
    ...             schema_func=lambda: Post,
    ...         ),
    ...     },
    ... )
    >>> body = User.build(auth)
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from dataclasses import field as dataclass_field

from .auth import Auth

SYSTEM_FIELDS = ("uid", "created_at", "updated_at", "deleted_at")

LOGIN_UID_PLACEHOLDER = "#{login_uid}"

NOT_DELETED = "not has(deleted_at)"


@dataclass(frozen=True)
class Facet:
    """Facet declared on a relation.

    Attributes:
        edge: Facet key as stored on the backend edge
    """

    edge: str


@dataclass(frozen=True)
class Boolean:
    """Edge projected as a true/false flag.

    Attributes:
        edge: Edge to probe
        filter: DQL filter applied to the edge; ``#{login_uid}`` is
            replaced with the current login uid
    """

    edge: str
    filter: str = ""


@dataclass(frozen=True)
class RelationSchema:
    """Nested edge from one node type to another.

    Attributes:
        edge: Edge name (``~edge`` for a reverse edge)
        has_many: Whether the edge holds many children
        include: Whether to project the children in queries
        include_options: Raw DQL inserted after the edge (e.g. ``(first: 3)``)
        count_field: Alias under which to project the child count
        facets: Facet name -> Facet
        schema_func: Returns the related node type's Schema
    """

    edge: str
    schema_func: Callable[[], Schema] = dataclass_field(default=lambda: empty_schema())
    has_many: bool = False
    include: bool = False
    include_options: str = ""
    count_field: str = ""
    facets: Mapping[str, Facet] = dataclass_field(default_factory=dict)

    def schema(self) -> Schema:
        """Resolve the related schema."""
        return self.schema_func()

    def facet(self, name: str) -> Facet | None:
        return self.facets.get(name)


@dataclass(frozen=True)
class Schema:
    """Projection of one node type.

    Attributes:
        tag: Integer type discriminator indexed by the backend
        fields: Scalar fields to project
        booleans: Flag name -> Boolean
        relations: Relation name -> RelationSchema
        extra: Raw projection lines appended verbatim
    """

    tag: int = 0
    fields: tuple[str, ...] = ()
    booleans: Mapping[str, Boolean] = dataclass_field(default_factory=dict)
    relations: Mapping[str, RelationSchema] = dataclass_field(default_factory=dict)
    extra: tuple[str, ...] = ()

    def build(self, auth: Auth | None = None) -> str:
        """Render the projection body for a query.

        Args:
            auth: Login holder used to fill boolean filters

        Returns:
            Newline-joined projection lines
        """
        lines = list(self.fields)
        lines.extend(SYSTEM_FIELDS)
        lines.extend(self.extra)

        login_uid = auth.get_login_uid() if auth is not None and auth.is_logged_in() else None
        for name, boolean in self.booleans.items():
            if login_uid is None:
                continue
            flt = boolean.filter.replace(LOGIN_UID_PLACEHOLDER, login_uid)
            if flt:
                lines.append(f"{name}: {boolean.edge} @filter({flt}) {{ uid }}")
            else:
                lines.append(f"{name}: {boolean.edge} {{ uid }}")

        for name, rel in self.relations.items():
            if rel.count_field:
                lines.append(f"{rel.count_field}: count({rel.edge}) @filter({NOT_DELETED})")
            if rel.include:
                options = f" {rel.include_options}" if rel.include_options else ""
                lines.append(f"{name}: {rel.edge}{options} {{\n{rel.schema().build(auth)}\n}}")

        return "\n".join(lines)

    def edges(self) -> list[str]:
        """Every edge this schema references, booleans first."""
        names = [b.edge for b in self.booleans.values()]
        names.extend(r.edge for r in self.relations.values())
        return names

    def __hash__(self) -> int:
        return hash((self.tag, self.fields))


def empty_schema() -> Schema:
    """Schema with no tag and nothing declared."""
    return Schema()


def count_schema(tag: int) -> Schema:
    """Count-only projection sharing ``tag``.

    Only the count line is rendered; the system fields are not requested.
    """
    return _CountSchema(tag=tag)


@dataclass(frozen=True)
class _CountSchema(Schema):
    def build(self, auth: Auth | None = None) -> str:
        return "count: count(uid)"

    def __hash__(self) -> int:
        return hash(("count", self.tag))
