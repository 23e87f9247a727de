"""
Base schema generation for Graphor SDK.

Every edge referenced by an entity schema becomes a count-indexed uid list
predicate. An edge that some schema traverses in reverse (``~edge``) is
declared with ``@reverse`` so the backend maintains the reverse traversal.

Example:
    >>> print(base_migrations([User, Post]))
    posted: [uid] @count @reverse .
    tag: int @index(int) .
    ...
"""

from __future__ import annotations

from collections.abc import Iterable

from .schema import Schema

REVERSE_PREFIX = "~"

MODEL_PREDICATES = """
tag: int @index(int) .
created_at: int @index(int) .
updated_at: int @index(int) .
deleted_at: int .
"""


def is_reversed(edge: str) -> bool:
    """Whether ``edge`` is a reverse traversal (``~edge``)."""
    return edge.startswith(REVERSE_PREFIX)


def reverse_edge(edge: str) -> str:
    """Toggle the reverse marker: ``a`` <-> ``~a``."""
    if is_reversed(edge):
        return edge[len(REVERSE_PREFIX):]
    return REVERSE_PREFIX + edge


def edge_reversibility(schemas: Iterable[Schema]) -> dict[str, bool]:
    """Forward edge name -> whether any schema traverses it in reverse."""
    reversible: dict[str, bool] = {}
    for schema in schemas:
        for edge in schema.edges():
            if is_reversed(edge):
                reversible[reverse_edge(edge)] = True
            else:
                reversible.setdefault(edge, False)
    return reversible


def base_migrations(schemas: Iterable[Schema]) -> str:
    """Schema text declaring every referenced edge plus the model predicates.

    Args:
        schemas: Entity schemas of the application

    Returns:
        Schema text for the backend's alter operation
    """
    lines = []
    for name, reversible in sorted(edge_reversibility(schemas).items()):
        lines.append(f"{name}: [uid] @count @reverse ." if reversible else f"{name}: [uid] @count .")
    return "\n".join(lines) + MODEL_PREDICATES
