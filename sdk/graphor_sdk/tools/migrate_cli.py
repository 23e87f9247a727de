"""
Migration CLI tool for Graphor.

This tool manages the base schema of a Dgraph alpha:
- print: Emit the base schema generated from entity schemas
- apply: Apply the base schema to the configured backend
- drop: Drop all data and schema

Usage:
    graphor-migrate print --module myapp.schemas
    graphor-migrate apply --module myapp.schemas --host dgraph --port 9080
    graphor-migrate drop --yes

Connection settings default to the GRAPHOR_* environment (see config.Settings).

Invariants:
    - print never contacts the backend
    - drop refuses to run without --yes
    - Failures exit non-zero with the error on stderr

How to change safely:
    - Add new commands, don't modify existing ones
    - Keep print output byte-identical to base_migrations()
"""

from __future__ import annotations

import argparse
import importlib
import logging
import sys
from collections.abc import Sequence

from ..backend.base import BackendClient
from ..backend.dgraph import DgraphClient
from ..config import Settings, setup_logging
from ..errors import GraphorError
from ..migrations import base_migrations
from ..schema import Schema

logger = logging.getLogger(__name__)


class MigrateCLI:
    """CLI tool for base schema management.

    Example:
        >>> cli = MigrateCLI()
        >>> print(cli.render([UserSchema, PostSchema]))
        >>> cli.apply(backend, [UserSchema, PostSchema])
    """

    def render(self, schemas: Sequence[Schema]) -> str:
        """Base schema text for ``schemas``."""
        return base_migrations(schemas)

    def apply(self, backend: BackendClient, schemas: Sequence[Schema]) -> str:
        """Apply the base schema and return the applied text.

        Raises:
            MigrationError: If the backend rejects the schema
        """
        text = self.render(schemas)
        backend.apply_schema(text)
        logger.info(f"Applied base schema for {len(schemas)} schema(s)")
        return text

    def drop(self, backend: BackendClient) -> None:
        """Drop all data and schema.

        Raises:
            DropDatabaseError: If the backend refuses
        """
        backend.drop_all()
        logger.info("Dropped all data")


def load_schemas(module_path: str) -> list[Schema]:
    """Load entity schemas from a module.

    The module must expose ``schemas`` (an iterable of Schema) or a
    ``get_schemas()`` function returning one.

    Raises:
        ValueError: If the module exposes neither
    """
    module = importlib.import_module(module_path)
    if hasattr(module, "schemas"):
        return list(module.schemas)
    if hasattr(module, "get_schemas"):
        return list(module.get_schemas())
    raise ValueError(f"Module {module_path} has no 'schemas' or 'get_schemas()'")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Graphor schema migration tool")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # print command
    print_parser = subparsers.add_parser("print", help="Print the base schema")
    print_parser.add_argument(
        "--module", required=True, help="Python module containing entity schemas"
    )

    # apply command
    apply_parser = subparsers.add_parser("apply", help="Apply the base schema")
    apply_parser.add_argument(
        "--module", required=True, help="Python module containing entity schemas"
    )
    _add_connection_args(apply_parser)

    # drop command
    drop_parser = subparsers.add_parser("drop", help="Drop all data and schema")
    drop_parser.add_argument("--yes", action="store_true", help="Confirm dropping all data")
    _add_connection_args(drop_parser)

    return parser


def _add_connection_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--host", help="Dgraph alpha host (default: GRAPHOR_DGRAPH_HOST)")
    parser.add_argument("--port", type=int, help="Dgraph alpha port (default: GRAPHOR_DGRAPH_PORT)")


def _backend(args: argparse.Namespace, settings: Settings) -> DgraphClient:
    backend = DgraphClient(
        args.host or settings.dgraph_host,
        args.port or settings.dgraph_port,
        timeout=settings.query_timeout,
    )
    backend.connect()
    return backend


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point for the migration tool."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = Settings()
    setup_logging(settings)
    cli = MigrateCLI()

    try:
        if args.command == "print":
            print(cli.render(load_schemas(args.module)))

        elif args.command == "apply":
            schemas = load_schemas(args.module)
            backend = _backend(args, settings)
            try:
                cli.apply(backend, schemas)
            finally:
                backend.close()
            print(f"Base schema applied to {backend.address}")

        elif args.command == "drop":
            if not args.yes:
                print("Refusing to drop all data without --yes", file=sys.stderr)
                sys.exit(2)
            backend = _backend(args, settings)
            try:
                cli.drop(backend)
            finally:
                backend.close()
            print(f"All data dropped on {backend.address}")

    except (GraphorError, ValueError, ImportError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
