"""
Login session holder.

Boolean edges in a schema are filtered against the logged-in node, so the
projection depends on who is asking. Each Graphor context owns one Auth.
"""

from __future__ import annotations


class Auth:
    """Holds the uid of the currently logged-in node ("" when anonymous)."""

    def __init__(self, login_uid: str = "") -> None:
        self._login_uid = login_uid

    def get_login_uid(self) -> str:
        return self._login_uid

    def set_login_uid(self, uid: str) -> None:
        self._login_uid = uid

    def logout(self) -> None:
        self._login_uid = ""

    def is_logged_in(self) -> bool:
        return self._login_uid != ""
