"""
CLI tools for Graphor administration.

This module provides command-line tools for:
- migrate: Print or apply the base schema, or drop all data

Invariants:
    - Destructive commands require explicit confirmation
"""

from .migrate_cli import MigrateCLI

__all__ = ["MigrateCLI"]
