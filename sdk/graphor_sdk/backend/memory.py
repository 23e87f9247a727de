"""
In-memory backend client for testing.

This module provides a BackendClient that never talks to a server:
- Every compiled query is recorded; responses are scripted by the test
- Committed batches are recorded and new uids are minted sequentially
- Failures can be injected for the next commit or query

Invariants:
    - Same batch semantics as DgraphClient (deletions first, cleared on commit)
    - Minted uids are unique per instance and start at 0x1

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with the BackendClient protocol
"""

from __future__ import annotations

import copy
import logging
from collections import deque
from collections.abc import Callable
from typing import Any, Deque, Dict, List, Optional, Set

from ..decoder import parse_response
from ..errors import GraphorError
from .base import Document, MutationBatch

logger = logging.getLogger(__name__)

Responder = Callable[[str], Any]


class InMemoryBackend:
    """Recording BackendClient for unit tests.

    Attributes:
        queries: Every query text received, in order
        commits: Every batch committed, in order
        schemas: Every schema text applied
        dropped: Number of drop_all() calls

    Example:
        >>> backend = InMemoryBackend()
        >>> backend.push_response({"q": [{"uid": "0x1", "name": "Alice"}]})
        >>> backend.query("{ q(func: uid(0x1)) { uid name } }")
        [{'uid': '0x1', 'name': 'Alice'}]
    """

    def __init__(self, responder: Optional[Responder] = None) -> None:
        """Initialize the backend.

        Args:
            responder: Optional callable mapping query text to a response
                body; used when no pushed response is queued
        """
        self.queries: List[str] = []
        self.commits: List[MutationBatch] = []
        self.schemas: List[str] = []
        self.dropped = 0
        self._responses: Deque[Any] = deque()
        self._responder = responder
        self._batch = MutationBatch()
        self._next_uid = 1
        self._omit_tokens: Set[str] = set()
        self._commit_error: Optional[GraphorError] = None
        self._query_error: Optional[GraphorError] = None
        self._closed = False

    @property
    def batch(self) -> MutationBatch:
        return self._batch

    @property
    def last_query(self) -> str:
        return self.queries[-1] if self.queries else ""

    # Test helpers

    def push_response(self, body: Any) -> None:
        """Queue a response body ({"q": [...]}, a JSON string, or a row list)."""
        self._responses.append(body)

    def fail_next_commit(self, error: GraphorError) -> None:
        self._commit_error = error

    def fail_next_query(self, error: GraphorError) -> None:
        self._query_error = error

    def omit_uid_for(self, token: str) -> None:
        """Leave ``token`` out of the uid map of subsequent commits."""
        self._omit_tokens.add(token)

    # BackendClient

    def query(self, text: str) -> List[Any]:
        self.queries.append(text)
        logger.debug(f"InMemoryBackend query: {text}")

        if self._query_error is not None:
            error, self._query_error = self._query_error, None
            raise error

        if self._responses:
            body = self._responses.popleft()
        elif self._responder is not None:
            body = self._responder(text)
        else:
            body = None

        if body is None:
            return []
        if isinstance(body, (list, dict)):
            body = copy.deepcopy(body)
        if isinstance(body, list):
            return body
        return parse_response(body)

    def insert(self, document: Document) -> None:
        self._batch.insertions.append(document)

    def delete(self, document: Document) -> None:
        self._batch.deletions.append(document)

    def begin_batch(self) -> None:
        self._batch = MutationBatch()

    def commit_batch(self) -> Dict[str, str]:
        batch, self._batch = self._batch, MutationBatch()

        if self._commit_error is not None:
            error, self._commit_error = self._commit_error, None
            raise error

        uids: Dict[str, str] = {}
        for document in batch.insertions:
            for token in _blank_tokens(document):
                if token in uids or token in self._omit_tokens:
                    continue
                uids[token] = hex(self._next_uid)
                self._next_uid += 1

        self.commits.append(batch)
        return uids

    def drop_all(self) -> None:
        self.dropped += 1

    def apply_schema(self, text: str) -> None:
        self.schemas.append(text)

    def close(self) -> None:
        self._closed = True

    @property
    def is_closed(self) -> bool:
        return self._closed


def _blank_tokens(document: Any) -> List[str]:
    """Temporary uid tokens (without ``_:``) referenced in a document."""
    tokens: List[str] = []
    if isinstance(document, dict):
        uid = document.get("uid")
        if isinstance(uid, str) and uid.startswith("_:"):
            tokens.append(uid[2:])
        for value in document.values():
            if isinstance(value, (dict, list)):
                tokens.extend(_blank_tokens(value))
    elif isinstance(document, list):
        for item in document:
            tokens.extend(_blank_tokens(item))
    return tokens
