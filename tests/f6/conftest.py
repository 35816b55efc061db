"""Fixtures for F6 tests - Web API and CLI."""

import pytest
from fastapi.testclient import TestClient

from ecertify.web.api import create_app


@pytest.fixture
def client(services):
    """Test client bound to the isolated services."""
    with TestClient(create_app()) as test_client:
        yield test_client
