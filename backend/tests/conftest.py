"""Shared test fixtures and configuration for backend tests."""
import pytest
from fastapi.testclient import TestClient

from duochat.config import AppConfig
from duochat.main import create_app


@pytest.fixture
def api_client():
    """Provide a TestClient for a fresh app with default settings.

    Each call builds its own app so matchmaking state never leaks
    between tests.
    """
    with TestClient(create_app(AppConfig())) as client:
        yield client
