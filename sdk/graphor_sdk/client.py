"""
Graphor session context.

This module provides the entry point applications hold on to:
- Graphor: owns a backend client, the login holder and a mutation
  coordinator, and hands out query and relation builders bound to them

Example:
    >>> with Graphor.connect("localhost", 9080) as db:
    ...     db.migrate_database([UserSchema, PostSchema])
    ...     with db.transaction():
    ...         db.save(user, UserSchema)
    ...     adults = db.query(UserSchema).where("age", "ge", 18).all()

Invariants:
    - All state (batch, login, uid counter) belongs to one Graphor instance
    - Two instances never share a pending batch
    - Builders handed out by a context use that context's backend and login

How to change safely:
    - Keep Graphor a thin facade; behavior lives in the builders and the
      coordinator
    - New backends only need to satisfy BackendClient
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from . import migrations
from .auth import Auth
from .backend.base import BackendClient
from .backend.dgraph import DEFAULT_PORT, DgraphClient
from .config import Settings
from .coordinator import MutationCoordinator
from .model import Model
from .query import QueryBuilder, raw_query
from .relation import RelationBuilder
from .schema import RelationSchema, Schema

logger = logging.getLogger(__name__)


class Graphor:
    """Session context over one backend.

    Attributes:
        backend: Client that runs queries and commits batches
        auth: Login holder used by boolean edges
        settings: Configuration the context was created with
    """

    def __init__(
        self,
        backend: BackendClient,
        auth: Auth | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize a context.

        Args:
            backend: Connected backend client
            auth: Login holder (a fresh logged-out one if omitted)
            settings: Configuration (environment defaults if omitted)
        """
        self.backend = backend
        self.auth = auth if auth is not None else Auth()
        self.settings = settings if settings is not None else Settings()
        self._coordinator = MutationCoordinator(backend)

    @classmethod
    def connect(
        cls,
        host: str = "localhost",
        port: int = DEFAULT_PORT,
        *,
        timeout: float | None = None,
        auth: Auth | None = None,
    ) -> Graphor:
        """Open a context over a Dgraph alpha at ``host:port``.

        Raises:
            ConnectionError: If the gRPC stub cannot be created
        """
        backend = DgraphClient(host, port, timeout=timeout)
        backend.connect()
        return cls(backend, auth=auth)

    @classmethod
    def from_settings(cls, settings: Settings | None = None, *, auth: Auth | None = None) -> Graphor:
        """Open a context configured from ``settings`` (or the environment)."""
        settings = settings if settings is not None else Settings()
        backend = DgraphClient(
            settings.dgraph_host,
            settings.dgraph_port,
            timeout=settings.query_timeout,
        )
        backend.connect()
        logger.info(f"Graphor connected to {settings.dgraph_endpoint}")
        return cls(backend, auth=auth, settings=settings)

    @property
    def coordinator(self) -> MutationCoordinator:
        return self._coordinator

    def close(self) -> None:
        self.backend.close()

    def __enter__(self) -> Graphor:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # Reads

    def query(self, schema: Schema) -> QueryBuilder:
        """Builder over nodes tagged with ``schema.tag``."""
        builder = QueryBuilder(self.backend, schema, auth=self.auth)
        if self.settings.debug_queries:
            builder.debug()
        return builder

    def raw_query(
        self, template: str, schema: Schema, args: Mapping[str, Any] | None = None
    ) -> QueryBuilder:
        """Builder over a caller-supplied query template."""
        builder = raw_query(self.backend, template, schema, args, auth=self.auth)
        if self.settings.debug_queries:
            builder.debug()
        return builder

    def relation(self, parent: Model, relation: RelationSchema) -> RelationBuilder:
        """Builder over ``parent``'s children along ``relation``."""
        builder = RelationBuilder(self.backend, parent, relation, auth=self.auth)
        if self.settings.debug_queries:
            builder.debug()
        return builder

    # Writes

    def save(self, model: Model | None, schema: Schema) -> None:
        self._coordinator.save(model, schema)

    def delete(self, model: Model | None) -> None:
        self._coordinator.delete(model)

    def hard_delete(self, model: Model | None) -> None:
        self._coordinator.hard_delete(model)

    def mutate(self, execute: Callable[[], Any]) -> dict[str, str]:
        """Run ``execute`` and commit everything it enqueued atomically.

        Returns:
            Token -> permanent uid map from the backend
        """
        return self._coordinator.mutate(execute)

    @contextmanager
    def transaction(self) -> Iterator[Graphor]:
        """Commit everything enqueued in the block atomically.

        Example:
            >>> with db.transaction():
            ...     db.save(post, PostSchema)
            ...     db.relation(user, UserSchema.relations["posts"]).add(post)
        """
        with self._coordinator.transaction():
            yield self

    # Administration

    def clear_database(self) -> None:
        """Drop all data and schema."""
        self.backend.drop_all()
        logger.info("Database cleared")

    def migrate_database(self, schemas: Iterable[Schema]) -> None:
        """Apply the base schema generated for ``schemas``."""
        self.backend.apply_schema(self.base_migrations(schemas))
        logger.info("Base migrations applied")

    @staticmethod
    def base_migrations(schemas: Iterable[Schema]) -> str:
        return migrations.base_migrations(schemas)
