"""
Integration tests for DgraphClient with a mocked pydgraph.

Tests cover:
- Connection lifecycle
- Commit ordering (deletions, insertions, commit) in one transaction
- Error wrapping for every backend call
- Query execution through the builders
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from sdk.graphor_sdk.backend.dgraph import DgraphClient
from sdk.graphor_sdk.client import Graphor
from sdk.graphor_sdk.errors import (
    CommitError,
    ConnectionError,
    DeletionError,
    DropDatabaseError,
    InsertionError,
    MigrationError,
    QueryError,
)
from tests.schemas import User, UserSchema


@pytest.fixture
def pydgraph_mock():
    with patch("sdk.graphor_sdk.backend.dgraph.pydgraph") as mock:
        yield mock


@pytest.fixture
def txn(pydgraph_mock):
    txn = MagicMock()
    txn.mutate.return_value.uids = {"model1": "0x10"}
    pydgraph_mock.DgraphClient.return_value.txn.return_value = txn
    return txn


@pytest.fixture
def client(pydgraph_mock, txn):
    client = DgraphClient("dgraph", 9080, timeout=5)
    client.connect()
    return client


class TestConnection:
    """Tests for connect/close."""

    def test_connect_creates_stub(self, pydgraph_mock):
        client = DgraphClient("dgraph", 9180)

        client.connect()

        args, kwargs = pydgraph_mock.DgraphClientStub.call_args
        assert args == ("dgraph:9180",)
        assert ("grpc.max_receive_message_length", 50 * 1024 * 1024) in kwargs["options"]
        assert client.is_connected

    def test_connect_failure(self, pydgraph_mock):
        pydgraph_mock.DgraphClientStub.side_effect = RuntimeError("refused")

        with pytest.raises(ConnectionError) as exc_info:
            DgraphClient("dgraph").connect()

        assert exc_info.value.address == "dgraph:9080"

    def test_requires_connection(self, pydgraph_mock):
        with pytest.raises(ConnectionError):
            DgraphClient().query("{ q() {} }")

    def test_close(self, pydgraph_mock, client):
        client.close()

        pydgraph_mock.DgraphClientStub.return_value.close.assert_called_once()
        assert not client.is_connected

    def test_context_manager(self, pydgraph_mock):
        with DgraphClient() as client:
            assert client.is_connected

        assert not client.is_connected


class TestCommit:
    """Tests for commit_batch()."""

    def test_order_and_uids(self, client, txn):
        client.delete({"uid": "0x1", "posted": None})
        client.insert({"uid": "_:model1", "name": "a"})

        uids = client.commit_batch()

        assert uids == {"model1": "0x10"}
        calls = [c[0] for c in txn.method_calls]
        assert calls == ["mutate", "mutate", "commit", "discard"]
        assert txn.mutate.call_args_list[0].kwargs == {
            "del_obj": [{"uid": "0x1", "posted": None}],
            "timeout": 5,
        }
        assert txn.mutate.call_args_list[1].kwargs == {
            "set_obj": [{"uid": "_:model1", "name": "a"}],
            "timeout": 5,
        }
        assert client.batch.is_empty()

    def test_empty_batch_skips_transaction(self, client, txn):
        assert client.commit_batch() == {}
        txn.commit.assert_not_called()

    def test_deletion_failure(self, client, txn):
        txn.mutate.side_effect = RuntimeError("rejected")
        client.delete({"uid": "0x1"})

        with pytest.raises(DeletionError) as exc_info:
            client.commit_batch()

        assert json.loads(exc_info.value.details["deletion"]) == [{"uid": "0x1"}]
        txn.commit.assert_not_called()
        txn.discard.assert_called_once()

    def test_insertion_failure(self, client, txn):
        txn.mutate.side_effect = RuntimeError("rejected")
        client.insert({"uid": "_:model1"})

        with pytest.raises(InsertionError) as exc_info:
            client.commit_batch()

        assert exc_info.value.code == "INSERTION_FAILED"
        txn.discard.assert_called_once()

    def test_commit_failure(self, client, txn):
        txn.commit.side_effect = RuntimeError("aborted")
        client.insert({"uid": "_:model1"})

        with pytest.raises(CommitError):
            client.commit_batch()

        txn.discard.assert_called_once()
        assert client.batch.is_empty()


class TestQuery:
    """Tests for query()."""

    def test_read_only_query(self, pydgraph_mock, client, txn):
        txn.query.return_value.json = b'{"q": [{"uid": "0x1"}]}'

        rows = client.query("{ q(func: uid(0x1)) { uid } }")

        assert rows == [{"uid": "0x1"}]
        pydgraph_mock.DgraphClient.return_value.txn.assert_called_with(read_only=True)
        txn.discard.assert_called_once()

    def test_query_failure(self, client, txn):
        txn.query.side_effect = RuntimeError("syntax")

        with pytest.raises(QueryError) as exc_info:
            client.query("{ bad }")

        assert exc_info.value.query == "{ bad }"
        txn.discard.assert_called_once()


class TestAlter:
    """Tests for drop_all() and apply_schema()."""

    def test_drop_all(self, pydgraph_mock, client):
        client.drop_all()

        pydgraph_mock.Operation.assert_called_with(drop_all=True)

    def test_drop_all_failure(self, pydgraph_mock, client):
        pydgraph_mock.DgraphClient.return_value.alter.side_effect = RuntimeError("denied")

        with pytest.raises(DropDatabaseError):
            client.drop_all()

    def test_apply_schema_failure(self, pydgraph_mock, client):
        pydgraph_mock.DgraphClient.return_value.alter.side_effect = RuntimeError("bad schema")

        with pytest.raises(MigrationError) as exc_info:
            client.apply_schema("name: nope .")

        assert exc_info.value.body == "name: nope ."


class TestGraphorOverDgraph:
    """Graphor context driving a mocked Dgraph."""

    def test_save_and_query(self, client, txn):
        db = Graphor(client)
        user = User(name="alice")

        with db.transaction():
            db.save(user, UserSchema)

        assert user.uid == "0x10"

        txn.query.return_value.json = json.dumps({"q": [{"uid": "0x10", "name": "alice"}]})
        found = User.from_data(db.query(UserSchema).identify("0x10").first())

        assert found.uid == "0x10"
        assert found.name == "alice"
