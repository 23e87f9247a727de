"""
Dgraph backend client for Graphor SDK.

This module provides the gRPC communication layer to a Dgraph alpha through
pydgraph. Query builders and the mutation coordinator use it through the
BackendClient protocol; applications normally construct it via
Graphor.connect() or Graphor.from_settings().

Invariants:
    - One pending MutationBatch per client instance
    - Deletions are sent before insertions, inside one transaction
    - Every transaction is discarded on the way out, committed or not
"""

from __future__ import annotations

import json
import logging
from typing import Any

import grpc
import pydgraph

from ..decoder import parse_response
from ..errors import (
    CommitError,
    ConnectionError,
    DeletionError,
    DropDatabaseError,
    InsertionError,
    MigrationError,
    QueryError,
)
from .base import Document, MutationBatch

logger = logging.getLogger(__name__)

DEFAULT_PORT = 9080


class DgraphClient:
    """BackendClient over a Dgraph alpha gRPC endpoint.

    Example:
        >>> backend = DgraphClient("localhost", 9080)
        >>> backend.connect()
        >>> rows = backend.query('{ q(func: has(tag)) { uid } }')
        >>> backend.close()
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = DEFAULT_PORT,
        *,
        credentials: grpc.ChannelCredentials | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            host: Dgraph alpha hostname
            port: Dgraph alpha gRPC port
            credentials: Optional TLS credentials
            timeout: Per-request timeout in seconds (None = no timeout)
        """
        self._host = host
        self._port = port
        self._credentials = credentials
        self._timeout = timeout
        self._stub: pydgraph.DgraphClientStub | None = None
        self._client: pydgraph.DgraphClient | None = None
        self._batch = MutationBatch()

    @property
    def address(self) -> str:
        return f"{self._host}:{self._port}"

    @property
    def batch(self) -> MutationBatch:
        """The pending batch (read-only use)."""
        return self._batch

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    def connect(self) -> None:
        """Create the gRPC stub. Safe to call more than once."""
        if self._client is not None:
            return

        try:
            self._stub = pydgraph.DgraphClientStub(
                self.address,
                credentials=self._credentials,
                options=[
                    ("grpc.max_send_message_length", 50 * 1024 * 1024),
                    ("grpc.max_receive_message_length", 50 * 1024 * 1024),
                ],
            )
            self._client = pydgraph.DgraphClient(self._stub)
        except Exception as e:
            self._stub = None
            raise ConnectionError(f"Failed to connect: {e}", address=self.address) from e

        logger.debug(f"Connected to Dgraph at {self.address}")

    def close(self) -> None:
        """Close the connection."""
        if self._stub is not None:
            self._stub.close()
            self._stub = None
            self._client = None
            logger.debug("Disconnected from Dgraph")

    def __enter__(self) -> DgraphClient:
        self.connect()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _ensure_connected(self) -> pydgraph.DgraphClient:
        if self._client is None:
            raise ConnectionError("Not connected. Call connect() first.", address=self.address)
        return self._client

    def drop_all(self) -> None:
        client = self._ensure_connected()
        try:
            client.alter(pydgraph.Operation(drop_all=True), timeout=self._timeout)
        except Exception as e:
            raise DropDatabaseError(str(e)) from e
        logger.info("Dropped all data")

    def apply_schema(self, text: str) -> None:
        client = self._ensure_connected()
        try:
            client.alter(pydgraph.Operation(schema=text), timeout=self._timeout)
        except Exception as e:
            raise MigrationError(str(e), body=text) from e
        logger.info("Applied schema")

    def insert(self, document: Document) -> None:
        self._batch.insertions.append(document)

    def delete(self, document: Document) -> None:
        self._batch.deletions.append(document)

    def begin_batch(self) -> None:
        self._batch = MutationBatch()

    def commit_batch(self) -> dict[str, str]:
        batch, self._batch = self._batch, MutationBatch()
        if batch.is_empty():
            return {}

        client = self._ensure_connected()
        txn = client.txn()
        try:
            if batch.deletions:
                try:
                    txn.mutate(del_obj=batch.deletions, timeout=self._timeout)
                except Exception as e:
                    raise DeletionError(str(e), deletion=json.dumps(batch.deletions)) from e

            uids: dict[str, str] = {}
            if batch.insertions:
                try:
                    response = txn.mutate(set_obj=batch.insertions, timeout=self._timeout)
                except Exception as e:
                    raise InsertionError(str(e), insertion=json.dumps(batch.insertions)) from e
                uids = dict(response.uids)

            try:
                txn.commit(timeout=self._timeout)
            except Exception as e:
                raise CommitError(str(e)) from e
        finally:
            txn.discard()

        logger.debug(
            f"Committed batch: {len(batch.deletions)} deletion(s), "
            f"{len(batch.insertions)} insertion(s), {len(uids)} new uid(s)"
        )
        return uids

    def query(self, text: str) -> list[Any]:
        client = self._ensure_connected()
        txn = client.txn(read_only=True)
        try:
            try:
                response = txn.query(text, timeout=self._timeout)
            except Exception as e:
                raise QueryError(str(e), query=text) from e
        finally:
            txn.discard()

        return parse_response(response.json)
