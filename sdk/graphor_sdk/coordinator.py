"""
Mutation coordinator for Graphor SDK.

The coordinator turns model saves and deletes into documents on the
backend's pending batch, commits the batch as one transaction, and resolves
the temporary uids of newly created models to the permanent uids the
backend assigned.

State machine:
    IDLE --begin()--> ACCUMULATING --commit()--> IDLE

Example:
    >>> with coordinator.transaction():
    ...     coordinator.save(user, UserSchema)
    ...     coordinator.save(post, PostSchema)
    >>> user.uid
    '0x2a'

Invariants:
    - A model gets a temporary uid exactly once, at its first save
    - created_at is stamped once; updated_at on every save
    - A failed or abandoned batch resets the models it created to unsaved
    - Uids are only resolved if every expected token came back

How to change safely:
    - Keep deletions and insertions in the backend batch, not here
    - Never emit a zero created_at/deleted_at into a document
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from enum import Enum
from typing import Any

from . import timestamp
from .backend.base import BackendClient
from .errors import NoUidReturnedError
from .model import TEMP_UID_PREFIX, Model
from .schema import Schema

logger = logging.getLogger(__name__)

TOKEN_PREFIX = "model"
TOKEN_WRAP = 1_000_000_000


class BatchState(Enum):
    """Whether a transactional scope is open."""

    IDLE = "idle"
    ACCUMULATING = "accumulating"


class MutationCoordinator:
    """Batches model writes and commits them atomically.

    Not thread-safe: one transactional scope at a time per coordinator.
    """

    def __init__(self, backend: BackendClient) -> None:
        self._backend = backend
        self._registered: list[Model] = []
        self._index = 0
        self._state = BatchState.IDLE

    @property
    def state(self) -> BatchState:
        return self._state

    @property
    def registered(self) -> list[Model]:
        """Models awaiting a permanent uid."""
        return list(self._registered)

    def _next_token(self) -> str:
        self._index = (self._index + 1) % TOKEN_WRAP
        return f"{TOKEN_PREFIX}{self._index}"

    def save(self, model: Model | None, schema: Schema) -> None:
        """Enqueue an upsert of ``model`` projected to ``schema``.

        Args:
            model: Entity to save (None is ignored)
            schema: Declares which fields are written
        """
        if model is None:
            return

        now = timestamp.now()
        if model.is_empty():
            model.set_uid(TEMP_UID_PREFIX + self._next_token())
            model.mark_created(now)
            self._registered.append(model)

        model.mark_updated(now)

        document: dict[str, Any] = model.project(schema.fields)
        document["uid"] = model.uid
        document["tag"] = schema.tag
        document["updated_at"] = model.updated_at
        if model.created_at > 0:
            document["created_at"] = model.created_at
        if model.deleted_at > 0:
            document["deleted_at"] = model.deleted_at

        self._backend.insert(document)

    def delete(self, model: Model | None) -> None:
        """Enqueue a soft delete: only deleted_at is written."""
        if model is None or model.is_empty():
            return

        model.mark_deleted(timestamp.now())
        self._backend.insert({"uid": model.uid, "deleted_at": model.deleted_at})

    def hard_delete(self, model: Model | None) -> None:
        """Enqueue physical removal of a committed node."""
        if model is None or not model.is_saved():
            return

        self._backend.delete({"uid": model.uid})

    def begin(self) -> None:
        """Open a scope with an empty batch."""
        self._registered = []
        self._backend.begin_batch()
        self._state = BatchState.ACCUMULATING
        logger.debug("Mutation batch started")

    def abandon(self) -> None:
        """Drop the pending batch without sending it.

        Models created in the batch go back to being unsaved, so a later
        save() registers them again.
        """
        _reset_pending(self._registered)
        self._registered = []
        self._backend.begin_batch()
        self._state = BatchState.IDLE
        logger.debug("Mutation batch abandoned")

    def commit(self) -> dict[str, str]:
        """Send the batch and resolve temporary uids.

        Returns:
            Token -> permanent uid map from the backend

        Raises:
            DeletionError, InsertionError, CommitError: From the backend;
                models created in the batch are reset to unsaved
            NoUidReturnedError: If a saved model's token is missing from
                the response; no model is updated
        """
        registered, self._registered = self._registered, []
        self._state = BatchState.IDLE

        try:
            uids = self._backend.commit_batch()
        except Exception:
            _reset_pending(registered)
            raise

        pending = [m for m in registered if m.is_new()]
        missing = [m.temp_token() for m in pending if m.temp_token() not in uids]
        if missing:
            raise NoUidReturnedError("Mutate failed: no uid returned", tokens=missing)

        for model in pending:
            model.set_uid(uids[model.temp_token()])

        logger.debug(f"Mutation batch committed, {len(pending)} uid(s) resolved")
        return uids

    def mutate(self, execute: Callable[[], Any]) -> dict[str, str]:
        """Run ``execute`` inside a scope and commit what it enqueued.

        An exception from ``execute`` abandons the batch and propagates.
        """
        self.begin()
        try:
            execute()
        except BaseException:
            self.abandon()
            raise
        return self.commit()

    @contextmanager
    def transaction(self) -> Iterator[MutationCoordinator]:
        """Context-manager form of mutate()."""
        self.begin()
        try:
            yield self
        except BaseException:
            self.abandon()
            raise
        self.commit()


def _reset_pending(models: list[Model]) -> None:
    for model in models:
        if model.is_new():
            model.set_uid("")
            model.mark_created(0)
