"""
Graphor Python SDK - Object-graph mapper for Dgraph.

This SDK maps application entities onto a Dgraph graph:
- Schema declarations (Schema, RelationSchema, Facet, Boolean)
- Fluent query and relation builders compiled to DQL
- Model base class with uid and timestamp bookkeeping
- Atomic mutation batches with temporary uid resolution

Example:
    >>> from graphor_sdk import Graphor, Model, Schema, RelationSchema
    >>>
    >>> # Define entities
    >>> class User(Model):
    ...     name: str = ""
    >>>
    >>> UserSchema = Schema(tag=1, fields=("name",))
    >>>
    >>> # Connect, save and query
    >>> with Graphor.connect("localhost", 9080) as db:
    ...     user = User(name="Alice")
    ...     with db.transaction():
    ...         db.save(user, UserSchema)
    ...     db.query(UserSchema).where("name", "eq", "Alice").first()

Invariants:
    - Every node carries its schema's integer tag
    - Soft-deleted nodes are excluded from every query
    - Writes are atomic per commit

Version: 1.0.0
"""

__version__ = "1.0.0"

from .auth import Auth
from .backend import BackendClient, DgraphClient, InMemoryBackend, MutationBatch
from .client import Graphor
from .config import Settings, setup_logging
from .coordinator import BatchState, MutationCoordinator
from .decoder import QueryData, ResultShape, decode, decode_all, parse_response
from .errors import (
    CommitError,
    ConnectionError,
    DecodeError,
    DeletionError,
    DropDatabaseError,
    GraphorError,
    InsertionError,
    MigrationError,
    NoUidReturnedError,
    QueryError,
)
from .migrations import base_migrations, is_reversed, reverse_edge
from .model import Model, init_model
from .query import ASC, DESC, FilterGroup, Query, QueryBuilder, raw_query
from .relation import RelationBuilder
from .schema import Boolean, Facet, RelationSchema, Schema, count_schema, empty_schema

__all__ = [
    # Version
    "__version__",
    # Session
    "Graphor",
    "Auth",
    "Settings",
    "setup_logging",
    # Schema types
    "Schema",
    "RelationSchema",
    "Facet",
    "Boolean",
    "empty_schema",
    "count_schema",
    # Entities
    "Model",
    "init_model",
    # Queries
    "Query",
    "QueryBuilder",
    "FilterGroup",
    "RelationBuilder",
    "raw_query",
    "ASC",
    "DESC",
    "QueryData",
    "ResultShape",
    "decode",
    "decode_all",
    "parse_response",
    # Mutations
    "MutationCoordinator",
    "BatchState",
    # Migrations
    "base_migrations",
    "is_reversed",
    "reverse_edge",
    # Backends
    "BackendClient",
    "MutationBatch",
    "DgraphClient",
    "InMemoryBackend",
    # Errors
    "GraphorError",
    "ConnectionError",
    "DropDatabaseError",
    "MigrationError",
    "InsertionError",
    "DeletionError",
    "CommitError",
    "QueryError",
    "DecodeError",
    "NoUidReturnedError",
]
