"""
Base protocol and types for the graph backend client.

This module defines the BackendClient protocol that query builders and the
mutation coordinator talk to, plus the MutationBatch each client keeps.

Invariants:
    - insert()/delete() only append to the pending batch; nothing is sent
    - commit_batch() sends deletions before insertions in one transaction
    - commit_batch() clears the batch whether it succeeds or fails
    - query() returns the rows of the root block as sent by the backend

How to change safely:
    - Protocol changes require updating DgraphClient and InMemoryBackend
    - Documents are plain JSON-ready dicts; never pre-render them to text
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol, runtime_checkable

Document = Dict[str, Any]


@dataclass
class MutationBatch:
    """Pending insertion and deletion documents of one transactional scope.

    Attributes:
        insertions: Set-JSON documents, in enqueue order
        deletions: Delete-JSON documents, in enqueue order
    """

    insertions: List[Document] = field(default_factory=list)
    deletions: List[Document] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.insertions and not self.deletions

    def clear(self) -> None:
        self.insertions.clear()
        self.deletions.clear()


@runtime_checkable
class BackendClient(Protocol):
    """Protocol for graph backend clients.

    Example:
        >>> backend = DgraphClient("localhost", 9080)
        >>> backend.begin_batch()
        >>> backend.insert({"uid": "_:a", "name": "Alice", "tag": 1})
        >>> uids = backend.commit_batch()
        >>> uids["a"]
        '0x2a'
    """

    @abstractmethod
    def query(self, text: str) -> List[Any]:
        """Run a read-only query.

        Args:
            text: DQL query with a root block named ``q``

        Returns:
            Rows bound to ``q``

        Raises:
            QueryError: If the backend rejects the query
            DecodeError: If the response cannot be parsed
        """
        ...

    @abstractmethod
    def insert(self, document: Document) -> None:
        """Append a set document to the pending batch."""
        ...

    @abstractmethod
    def delete(self, document: Document) -> None:
        """Append a delete document to the pending batch."""
        ...

    @abstractmethod
    def begin_batch(self) -> None:
        """Discard the pending batch and start a new one."""
        ...

    @abstractmethod
    def commit_batch(self) -> Dict[str, str]:
        """Send the pending batch as one transaction.

        Returns:
            Temporary token (without ``_:``) -> permanent uid

        Raises:
            DeletionError: If the deletion half is rejected
            InsertionError: If the insertion half is rejected
            CommitError: If the transaction fails to commit
        """
        ...

    @abstractmethod
    def drop_all(self) -> None:
        """Remove all data and schema.

        Raises:
            DropDatabaseError: If the backend refuses
        """
        ...

    @abstractmethod
    def apply_schema(self, text: str) -> None:
        """Apply schema text.

        Raises:
            MigrationError: If the schema is rejected
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Release the connection."""
        ...
