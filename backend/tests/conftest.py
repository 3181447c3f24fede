"""Pytest configuration and fixtures."""
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure backend root is on path when running pytest from repo root or backend
backend = Path(__file__).resolve().parent.parent
if str(backend) not in sys.path:
    sys.path.insert(0, str(backend))

from main import create_app  # noqa: E402
from settings import Settings  # noqa: E402


@pytest.fixture
def settings(tmp_path):
    return Settings(environment="test", public_dir=str(tmp_path / "no-public"))


@pytest.fixture
def app(settings):
    """Fresh app per test: its own metrics registry and stats aggregator."""
    return create_app(settings)


@pytest.fixture
def client(app):
    # The /error route must come back as a 500 response, not a raised exception
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
