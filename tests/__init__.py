"""
Graphor Test Suite.

This package contains:
- unit/: Unit tests (no external dependencies, InMemoryBackend)
- integration/: DgraphClient against a mocked pydgraph
- e2e/: End-to-end tests against a live Dgraph alpha
- schemas.py: Entity schemas shared by the tests
"""
