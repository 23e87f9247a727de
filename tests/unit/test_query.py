"""
Unit tests for the query builder.

Tests cover:
- Compiled query text (tag, sort, take, filters, projection)
- or_ branch isolation
- identify() with empty/invalid uids
- paging bounds by sort direction
- Execution helpers (first/all/get/exists/count)
- Group-by results
"""

import pytest
from pydantic import BaseModel

from sdk.graphor_sdk.auth import Auth
from sdk.graphor_sdk.backend.memory import InMemoryBackend
from sdk.graphor_sdk.errors import DecodeError, QueryError
from sdk.graphor_sdk.query import (
    ASC,
    DESC,
    QueryBuilder,
    is_zero_bound,
    raw_query,
    render_template,
)
from sdk.graphor_sdk.schema import Boolean, Schema

Item = Schema(tag=3, fields=("name", "age"))


class TestCompile:
    """Tests for QueryBuilder.compile()."""

    @pytest.fixture
    def backend(self):
        return InMemoryBackend()

    @pytest.fixture
    def query(self, backend):
        return QueryBuilder(backend, Item)

    def test_default_query(self, query):
        """Tag filter, default sort and soft-delete exclusion."""
        text = query.compile()

        assert "q(func: eq(tag, 3), orderdesc: created_at)" in text
        assert "@filter(not has(deleted_at))" in text
        assert "{ name\nage\nuid\ncreated_at\nupdated_at\ndeleted_at }" in text

    def test_sort_and_take(self, query):
        text = query.sort("name", ASC).take(10).compile()

        assert "q(func: eq(tag, 3), orderasc: name, first: 10)" in text

    def test_take_zero_is_unlimited(self, query):
        assert "first" not in query.take(0).compile()

    def test_invalid_sort_order_raises(self, query):
        with pytest.raises(ValueError):
            query.sort("name", "up")

    def test_where_filters_are_and_joined(self, query):
        text = query.where("age", "ge", 18).where("name", "eq", "bob").compile()

        assert '@filter(ge(age, 18) and eq(name, "bob") and not has(deleted_at))' in text

    def test_string_values_are_escaped(self, query):
        text = query.where("name", "eq", 'x") or has(secret').compile()

        assert 'eq(name, "x\\") or has(secret")' in text

    def test_between_is_half_open(self, query):
        text = query.between("age", 18, 30).compile()

        assert "ge(age, 18) and lt(age, 30)" in text

    def test_has_and_has_not(self, query):
        text = query.has("email").has_not("phone").compile()

        assert "has(email) and not has(phone) and not has(deleted_at)" in text

    def test_regex(self, query):
        assert "regexp(name, /^al/i)" in query.regex("name", "/^al/i").compile()

    def test_regex_trailing_text_stays_in_literal(self, query):
        text = query.regex("name", "/a/ ) or has(email").compile()

        assert "regexp(name, /\\/a\\/ ) or has(email/) and not has(deleted_at)" in text

    def test_scope_applies_fragment(self, query):
        def adults(q):
            q.where("age", "ge", 18)

        assert "ge(age, 18)" in query.scope(adults).compile()

    def test_builder_is_fluent(self, query):
        assert query.where("age", "ge", 1).has("name").take(1).sort("age") is query


class TestOr:
    """Tests for or_() branch isolation."""

    @pytest.fixture
    def query(self):
        return QueryBuilder(InMemoryBackend(), Item)

    def test_branches_are_or_joined(self, query):
        text = query.or_(
            lambda g: g.where("age", "lt", 18).has("guardian"),
            lambda g: g.where("age", "gt", 65),
        ).compile()

        expected = "((lt(age, 18) and has(guardian)) or (gt(age, 65)))"
        assert f"@filter({expected} and not has(deleted_at))" in text

    def test_branch_filters_do_not_leak(self, query):
        """Filters added in one branch never appear in a sibling or the outer query."""
        query.where("name", "eq", "bob")
        query.or_(lambda g: g.has("a"), lambda g: g.has("b"))

        assert len(query.filters) == 2
        text = query.compile()
        assert '@filter(eq(name, "bob") and ((has(a)) or (has(b))) and not has(deleted_at))' in text

    def test_empty_branch_drops_disjunction(self, query):
        """A branch without filters matches everything."""
        query.or_(lambda g: g.has("a"), lambda g: None)

        assert query.filters == []

    def test_no_branches(self, query):
        query.or_()

        assert query.filters == []


class TestIdentify:
    """Tests for identify()."""

    @pytest.fixture
    def query(self):
        return QueryBuilder(InMemoryBackend(), Item)

    def test_valid_uids(self, query):
        assert "uid(<0x1>, <0x2>)" in query.identify("0x1", "0x2").compile()

    def test_empty_matches_nothing(self, query):
        assert "uid(<0x0>)" in query.identify().compile()

    def test_invalid_matches_nothing(self, query):
        assert "uid(<0x0>)" in query.identify("0x1", "nope").compile()

    @pytest.mark.parametrize("uid", ["0xzz", "0x1>) or has(<name"])
    def test_malformed_hex_matches_nothing(self, query, uid):
        text = query.identify(uid).compile()

        assert "uid(<0x0>)" in text
        assert "has(<name" not in text


class TestPaging:
    """Tests for paging()."""

    @pytest.fixture
    def query(self):
        return QueryBuilder(InMemoryBackend(), Item)

    def test_desc_bounds(self, query):
        text = query.sort("created_at", DESC).paging(200, 100, 20).compile()

        assert "le(created_at, 200) and gt(created_at, 100)" in text
        assert "first: 20" in text

    def test_asc_bounds(self, query):
        text = query.sort("created_at", ASC).paging(100, 200, 20).compile()

        assert "ge(created_at, 100) and lt(created_at, 200)" in text

    def test_zero_bounds_skipped(self, query):
        query.paging(0, None, 5)

        assert query.filters == []
        assert query.take_count == 5

    @pytest.mark.parametrize(
        "value,expected",
        [(None, True), (0, True), ("", True), (False, True), (1, False), ("a", False)],
    )
    def test_is_zero_bound(self, value, expected):
        assert is_zero_bound(value) is expected


class TestExecution:
    """Tests for running queries against InMemoryBackend."""

    @pytest.fixture
    def backend(self):
        return InMemoryBackend()

    def test_all_decodes_rows(self, backend):
        backend.push_response({"q": [{"uid": "0x1", "name": "a"}, {"uid": "0x2", "name": "b"}]})

        rows = QueryBuilder(backend, Item).all()

        assert [r.uid for r in rows] == ["0x1", "0x2"]
        assert backend.last_query.startswith("\n{\n    q(func: eq(tag, 3)")

    def test_first(self, backend):
        backend.push_response({"q": [{"uid": "0x1"}]})

        row = QueryBuilder(backend, Item).first()

        assert row.uid == "0x1"
        assert "first: 1" in backend.last_query

    def test_first_none_when_empty(self, backend):
        assert QueryBuilder(backend, Item).first() is None

    def test_exists(self, backend):
        backend.push_response({"q": [{"uid": "0x1"}]})

        assert QueryBuilder(backend, Item).exists() is True
        assert QueryBuilder(backend, Item).exists() is False

    def test_count(self, backend):
        backend.push_response({"q": [{"count": 42}]})

        assert QueryBuilder(backend, Item).where("age", "ge", 18).count() == 42
        assert "{ count: count(uid) }" in backend.last_query
        assert "ge(age, 18)" in backend.last_query

    def test_count_without_rows_is_zero(self, backend):
        assert QueryBuilder(backend, Item).count() == 0

    def test_get_into_list(self, backend):
        backend.push_response({"q": [{"uid": "0x1"}]})
        target = ["stale"]

        result = QueryBuilder(backend, Item).get(target)

        assert result is target
        assert target == [{"uid": "0x1"}]

    def test_get_into_pydantic_type(self, backend):
        class Row(BaseModel):
            uid: str
            name: str = ""

        backend.push_response({"q": [{"uid": "0x1", "name": "a"}]})

        rows = QueryBuilder(backend, Item).get(list[Row])

        assert rows == [Row(uid="0x1", name="a")]

    def test_get_mismatch_raises_decode_error(self, backend):
        class Row(BaseModel):
            uid: int

        backend.push_response({"q": [{"uid": "not-a-number"}]})

        with pytest.raises(DecodeError):
            QueryBuilder(backend, Item).get(list[Row])

    def test_groupby_unwrapped(self, backend):
        backend.push_response({"q": [{"@groupby": [{"age": 30, "count": 2}]}]})

        rows = QueryBuilder(backend, Item).execute()

        assert rows == [{"age": 30, "count": 2}]

    def test_query_error_propagates(self, backend):
        backend.fail_next_query(QueryError("boom", query="q"))

        with pytest.raises(QueryError):
            QueryBuilder(backend, Item).all()

    def test_debug_logs_query(self, backend, caplog):
        with caplog.at_level("INFO", logger="sdk.graphor_sdk.query"):
            QueryBuilder(backend, Item).debug().all()

        assert "eq(tag, 3)" in caplog.text

    def test_booleans_use_auth(self, backend):
        schema = Schema(tag=1, booleans={"liked": Boolean("likes", "uid(#{login_uid})")})

        QueryBuilder(backend, schema, auth=Auth("0x7")).all()

        assert "liked: likes @filter(uid(0x7)) { uid }" in backend.last_query


class TestRawQuery:
    """Tests for raw_query() and template rendering."""

    def test_template_placeholders(self):
        backend = InMemoryBackend()
        template = "{ q(func: eq(tag, #{tag}), #{sorting}) @groupby(#{field}) { count(uid) } }"

        raw_query(backend, template, Item, {"field": "age"}).execute()

        assert backend.last_query == (
            "{ q(func: eq(tag, 3), orderdesc: created_at) @groupby(age) { count(uid) } }"
        )

    def test_args_override_sorting(self):
        text = raw_query(InMemoryBackend(), "#{sorting}", Item, {"sorting": "orderasc: name"}).compile()

        assert text == "orderasc: name"

    def test_unknown_placeholders_kept(self):
        assert render_template("#{a} #{b}", {"a": 1}) == "1 #{b}"

    def test_bool_args_render_lowercase(self):
        assert render_template("#{flag}", {"flag": True}) == "true"
