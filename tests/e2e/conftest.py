"""
E2E test fixtures for Graphor.

These tests require a running Dgraph alpha (GRAPHOR_DGRAPH_HOST /
GRAPHOR_DGRAPH_PORT, default localhost:9080). They drop all data.
"""

import os
import socket
import time
from typing import Generator

import pytest

from sdk.graphor_sdk.client import Graphor
from sdk.graphor_sdk.config import Settings
from tests.schemas import schemas

E2E_ENABLED = os.environ.get("GRAPHOR_E2E_TESTS", "0") == "1"


def wait_for_service(host: str, port: int, timeout: int = 60) -> bool:
    """Wait for a service to become available."""
    start = time.time()
    while time.time() - start < timeout:
        try:
            with socket.create_connection((host, port), timeout=1):
                return True
        except OSError:
            time.sleep(1)
    return False


@pytest.fixture(scope="session")
def settings() -> Settings:
    if not E2E_ENABLED:
        pytest.skip("E2E tests disabled. Set GRAPHOR_E2E_TESTS=1 to enable.")
    settings = Settings()
    assert wait_for_service(settings.dgraph_host, settings.dgraph_port), "Dgraph not ready"
    return settings


@pytest.fixture
def db(settings) -> Generator[Graphor, None, None]:
    """Fresh database with the base schema applied."""
    with Graphor.from_settings(settings) as db:
        db.clear_database()
        db.migrate_database(schemas)
        yield db
