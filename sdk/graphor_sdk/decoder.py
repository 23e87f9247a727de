"""
Result decoding for Graphor SDK.

This module turns backend responses into schema-shaped records:
- parse_response: JSON response body -> list of raw result nodes
- result_shape / unwrap_results: flatten the @groupby aggregation shape
- decode: raw result node -> QueryData, following the Schema tree

Invariants:
    - Declared booleans always decode to True or False
    - Missing has-many relations decode to [] (never None)
    - Missing has-one relations stay unset
    - Shape mismatches raise DecodeError, never TypeError/KeyError
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from .errors import DecodeError
from .schema import Schema

GROUPBY_KEY = "@groupby"


class QueryData(dict):
    """Decoded result node with typed accessors for system keys."""

    @property
    def uid(self) -> str:
        return self.get_string("uid")

    def get_string(self, key: str, default: str = "") -> str:
        value = self.get(key)
        if value is None:
            return default
        if not isinstance(value, str):
            raise DecodeError(f"'{key}' is not a string", body=value)
        return value

    def get_int(self, key: str, default: int = 0) -> int:
        """Integer value of ``key``; JSON numbers may arrive as floats."""
        value = self.get(key)
        if value is None:
            return default
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise DecodeError(f"'{key}' is not a number", body=value)
        return int(value)


class ResultShape(Enum):
    """Shape of the rows returned for the root binding.

    FLAT is a plain list of nodes. GROUPED is what a ``@groupby`` query
    returns: a single entry whose ``@groupby`` key holds the aggregate rows.
    """

    FLAT = "flat"
    GROUPED = "grouped"


def result_shape(results: list[Any]) -> ResultShape:
    if results and isinstance(results[0], dict) and GROUPBY_KEY in results[0]:
        return ResultShape.GROUPED
    return ResultShape.FLAT


def unwrap_results(results: list[Any]) -> list[Any]:
    """Return the rows of ``results``, unwrapping one GROUPED level."""
    if result_shape(results) is ResultShape.GROUPED:
        rows = results[0][GROUPBY_KEY]
        if not isinstance(rows, list):
            raise DecodeError(f"'{GROUPBY_KEY}' is not a list", body=rows)
        return rows
    return results


def parse_response(payload: bytes | str | dict[str, Any], root: str = "q") -> list[Any]:
    """Parse a query response and return the rows bound to ``root``.

    Args:
        payload: Raw JSON bytes/str, or an already-parsed object
        root: Name of the query block

    Returns:
        Rows under ``root`` (empty when the block is absent or null)

    Raises:
        DecodeError: If the body is not JSON or has the wrong shape
    """
    if isinstance(payload, (bytes, str)):
        text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        if not text.strip():
            return []
        try:
            body = json.loads(text)
        except json.JSONDecodeError as e:
            raise DecodeError(f"Response is not valid JSON: {e}", body=text) from e
    else:
        body = payload

    if not isinstance(body, dict):
        raise DecodeError("Response is not a JSON object", body=body)

    rows = body.get(root)
    if rows is None:
        return []
    if not isinstance(rows, list):
        raise DecodeError(f"Block '{root}' is not a list", body=rows)
    return rows


def decode(schema: Schema, node: Any) -> QueryData:
    """Decode one raw result node against ``schema``.

    Args:
        schema: Projection the node was queried with
        node: Raw node (a JSON object)

    Returns:
        QueryData with booleans and relations normalized

    Raises:
        DecodeError: If ``node`` or a relation value has the wrong shape
    """
    if not isinstance(node, dict):
        raise DecodeError("Result node is not an object", body=node)

    data = QueryData(node)

    for name in schema.booleans:
        data[name] = name in node

    for name, rel in schema.relations.items():
        if not rel.include:
            continue

        children = _children(name, node.get(name))
        if children is None:
            if rel.has_many:
                data[name] = []
            continue

        child_schema = rel.schema()
        if rel.has_many:
            data[name] = [decode(child_schema, child) for child in children]
        elif children:
            data[name] = decode(child_schema, children[0])
        else:
            data.pop(name, None)

    return data


def decode_all(schema: Schema, nodes: list[Any]) -> list[QueryData]:
    return [decode(schema, node) for node in nodes]


def _children(name: str, value: Any) -> list[Any] | None:
    # uid edges come back as lists; single-uid predicates as one object
    if value is None:
        return None
    if isinstance(value, dict):
        return [value]
    if isinstance(value, list):
        return value
    raise DecodeError(f"Relation '{name}' is not an object or list", body=value)
