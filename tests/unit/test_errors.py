"""
Unit tests for error types.
"""

import pytest

from sdk.graphor_sdk import errors


class TestGraphorError:
    """Tests for GraphorError."""

    def test_str_includes_code_and_details(self):
        error = errors.QueryError("bad query", query="{ q }")

        assert str(error) == "[QUERY_FAILED] bad query\n  q: { q }"

    def test_add_chains(self):
        error = errors.GraphorError("oops").add("a", 1).add("b", 2)

        assert error.details == {"a": 1, "b": 2}
        assert error.code == "GRAPHOR_ERROR"

    @pytest.mark.parametrize(
        "error,code",
        [
            (errors.ConnectionError("x", address="h:1"), "CONNECTION_REFUSED"),
            (errors.DropDatabaseError("x"), "DROP_DB_FAILED"),
            (errors.MigrationError("x", body="s"), "MIGRATION_FAILED"),
            (errors.InsertionError("x", insertion="[]"), "INSERTION_FAILED"),
            (errors.DeletionError("x", deletion="[]"), "DELETION_FAILED"),
            (errors.CommitError("x"), "MUTATION_COMMIT_FAILED"),
            (errors.QueryError("x", query="q"), "QUERY_FAILED"),
            (errors.DecodeError("x", body="b"), "UNMARSHALIZE_FAILED"),
            (errors.NoUidReturnedError("x", tokens=["t"]), "NO_UID_RETURNED"),
        ],
    )
    def test_codes(self, error, code):
        assert error.code == code
        assert isinstance(error, errors.GraphorError)

    def test_context_details(self):
        assert errors.MigrationError("x", body="s").details == {"migration_body": "s"}
        assert errors.InsertionError("x", insertion="[1]").details == {"insertion": "[1]"}
        assert errors.DeletionError("x", deletion="[2]").details == {"deletion": "[2]"}
