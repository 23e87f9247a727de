"""
Backend clients for Graphor SDK.

- BackendClient: protocol the query builders and coordinator depend on
- DgraphClient: production client over pydgraph/gRPC
- InMemoryBackend: recording client for tests
"""

from .base import BackendClient, Document, MutationBatch
from .dgraph import DgraphClient
from .memory import InMemoryBackend

__all__ = [
    "BackendClient",
    "Document",
    "MutationBatch",
    "DgraphClient",
    "InMemoryBackend",
]
