"""
Error types for Graphor SDK.

This module defines all exception types raised by the SDK:
- GraphorError: Base exception
- ConnectionError: Backend connection issues
- DropDatabaseError / MigrationError: Schema operations
- InsertionError / DeletionError / CommitError: Mutation commit failures
- QueryError: Query execution failures
- DecodeError: Malformed backend responses
- NoUidReturnedError: A new entity got no permanent uid after commit

Invariants:
    - All errors inherit from GraphorError
    - Errors carry the offending query or document in details
    - Relation precondition violations are logged, never raised
"""

from __future__ import annotations

from typing import Any


class GraphorError(Exception):
    """Base exception for all Graphor SDK errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "GRAPHOR_ERROR"
        self.details = details or {}

    def add(self, key: str, value: Any) -> GraphorError:
        """Attach a context value and return self for chaining."""
        self.details[key] = value
        return self

    def __str__(self) -> str:
        text = f"[{self.code}] {self.message}"
        for key, value in self.details.items():
            text += f"\n  {key}: {value}"
        return text


class ConnectionError(GraphorError):
    """Failed to connect to the graph backend."""

    def __init__(self, message: str, address: str | None = None) -> None:
        super().__init__(
            message,
            code="CONNECTION_REFUSED",
            details={"address": address},
        )
        self.address = address


class DropDatabaseError(GraphorError):
    """Dropping all data from the backend failed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="DROP_DB_FAILED")


class MigrationError(GraphorError):
    """Applying a schema to the backend failed.

    Attributes:
        body: The schema text that was rejected
    """

    def __init__(self, message: str, body: str | None = None) -> None:
        super().__init__(
            message,
            code="MIGRATION_FAILED",
            details={"migration_body": body},
        )
        self.body = body


class InsertionError(GraphorError):
    """The insertion half of a batch was rejected."""

    def __init__(self, message: str, insertion: str | None = None) -> None:
        super().__init__(
            message,
            code="INSERTION_FAILED",
            details={"insertion": insertion},
        )


class DeletionError(GraphorError):
    """The deletion half of a batch was rejected."""

    def __init__(self, message: str, deletion: str | None = None) -> None:
        super().__init__(
            message,
            code="DELETION_FAILED",
            details={"deletion": deletion},
        )


class CommitError(GraphorError):
    """The transaction could not be committed.

    Raised when:
    - The transaction was aborted by a concurrent write
    - The backend rejected the commit
    """

    def __init__(self, message: str) -> None:
        super().__init__(message, code="MUTATION_COMMIT_FAILED")


class QueryError(GraphorError):
    """Query execution failed."""

    def __init__(self, message: str, query: str | None = None) -> None:
        super().__init__(
            message,
            code="QUERY_FAILED",
            details={"q": query},
        )
        self.query = query


class DecodeError(GraphorError):
    """A backend response could not be decoded."""

    def __init__(self, message: str, body: Any = None) -> None:
        super().__init__(
            message,
            code="UNMARSHALIZE_FAILED",
            details={"body": body},
        )


class NoUidReturnedError(GraphorError):
    """The commit response lacked a uid for a newly created entity.

    Attributes:
        tokens: Temporary tokens missing from the response
    """

    def __init__(self, message: str, tokens: list[str] | None = None) -> None:
        tokens = tokens or []
        super().__init__(
            message,
            code="NO_UID_RETURNED",
            details={"tokens": tokens},
        )
        self.tokens = tokens
