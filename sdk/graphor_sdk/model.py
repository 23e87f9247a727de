"""
Entity base class for Graphor SDK.

Application entities subclass Model and declare their schema fields as
ordinary pydantic fields. The system attributes (uid and the three
timestamps) are private: only the mutation coordinator and hydration from
query results change them.

Example:
    >>> class User(Model):
    ...     name: str = ""
    ...     email: str = ""
    >>>
    >>> user = User(name="Alice")
    >>> user.is_empty()
    True
    >>> user = User.from_data(db.query(UserSchema).identify("0x1").first())
    >>> user.uid
    '0x1'

Invariants:
    - uid is "" until saved, "_:<token>" until committed, then permanent
    - Timestamps are Unix milliseconds; 0 means unset
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, PrivateAttr

from .decoder import QueryData

TEMP_UID_PREFIX = "_:"

M = TypeVar("M", bound="Model")


class Model(BaseModel):
    """Base class for persisted entities."""

    model_config = ConfigDict(extra="ignore")

    _uid: str = PrivateAttr(default="")
    _created_at: int = PrivateAttr(default=0)
    _updated_at: int = PrivateAttr(default=0)
    _deleted_at: int = PrivateAttr(default=0)
    _data: QueryData | None = PrivateAttr(default=None)

    @property
    def uid(self) -> str:
        return self._uid

    @property
    def created_at(self) -> int:
        return self._created_at

    @property
    def updated_at(self) -> int:
        return self._updated_at

    @property
    def deleted_at(self) -> int:
        return self._deleted_at

    @property
    def data(self) -> QueryData | None:
        """Decoded result this model was hydrated from, if any."""
        return self._data

    def set_uid(self, uid: str) -> None:
        self._uid = uid

    # Timestamps are only stamped by the mutation coordinator.

    def mark_created(self, timestamp: int) -> None:
        self._created_at = timestamp

    def mark_updated(self, timestamp: int) -> None:
        self._updated_at = timestamp

    def mark_deleted(self, timestamp: int) -> None:
        self._deleted_at = timestamp

    def is_empty(self) -> bool:
        """Never saved: no uid at all."""
        return self._uid == ""

    def is_new(self) -> bool:
        """Saved in the pending batch but not committed yet."""
        return self._uid.startswith(TEMP_UID_PREFIX)

    def is_saved(self) -> bool:
        """Has a permanent uid."""
        return not self.is_empty() and not self.is_new()

    def temp_token(self) -> str:
        """Token of a temporary uid, without the ``_:`` prefix."""
        return self._uid[len(TEMP_UID_PREFIX):] if self.is_new() else ""

    def project(self, fields: tuple[str, ...]) -> dict[str, Any]:
        """JSON-ready values of ``fields`` that this model defines."""
        dumped = self.model_dump(mode="json", by_alias=True)
        return {name: dumped[name] for name in fields if name in dumped}

    @classmethod
    def from_data(cls: type[M], data: Mapping[str, Any]) -> M:
        """Build a model from a decoded query result."""
        model = cls.model_validate(dict(data))
        _hydrate_system(model, data)
        return model


def init_model(model: Model, data: Mapping[str, Any]) -> None:
    """Refresh ``model`` in place from a decoded query result."""
    fresh = type(model).model_validate(dict(data))
    for name in type(model).model_fields:
        if name in data:
            setattr(model, name, getattr(fresh, name))
    _hydrate_system(model, data)


def _hydrate_system(model: Model, data: Mapping[str, Any]) -> None:
    qd = data if isinstance(data, QueryData) else QueryData(data)
    model._uid = qd.get_string("uid")
    model._created_at = qd.get_int("created_at")
    model._updated_at = qd.get_int("updated_at")
    model._deleted_at = qd.get_int("deleted_at")
    model._data = qd
