"""
Pytest configuration and shared fixtures for backend tests.

WHAT: Centralized test configuration with markers and the fake backend
WHY: Enable test organization, filtering, and shared test utilities
HOW: Point the local store at a temp directory, define markers and fixtures
"""

import os
import shutil
import tempfile
from pathlib import Path

# Must run before busqai.core.config is imported anywhere
TEST_DATA_DIR = Path(tempfile.mkdtemp(prefix="busqai-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DATA_DIR / 'test.db'}"
os.environ["LOG_FILE"] = str(TEST_DATA_DIR / "logs" / "app.log")
os.environ["SUPABASE_URL"] = "http://supabase.test"
os.environ["SUPABASE_ANON_KEY"] = "anon-test-key"

import pytest

from busqai.core.database import get_db, init_db
from busqai.core.models import ShoppingListEntry, StoredSession
from busqai.models.marketplace import Product

from tests.fixtures.fake_data_service import FakeBackend, FakeDataService

BUYER_ID = "buyer-1"
SELLER_ID = "seller-1"
CHAT_ID = "chat-1"


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (isolated component tests)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (multiple components)"
    )
    config.addinivalue_line(
        "markers", "negotiation: Message store, state machine and view controller"
    )
    config.addinivalue_line(
        "markers", "realtime: Change feed subscription, reconnection and typing"
    )
    config.addinivalue_line(
        "markers", "gateway: FastAPI endpoints, error mapping and SSE"
    )


def pytest_sessionfinish(session, exitstatus):
    shutil.rmtree(TEST_DATA_DIR, ignore_errors=True)


@pytest.fixture
def clean_db():
    """
    Fresh local store for each test.

    WHAT: Create tables and empty them
    WHY: Shopping list and session tests must not see each other's rows
    HOW: init_db() then delete all rows
    """
    init_db()
    with get_db() as db:
        db.query(ShoppingListEntry).delete()
        db.query(StoredSession).delete()
    yield


@pytest.fixture
def backend():
    """In-memory backend shared by every party of a test."""
    return FakeBackend()


@pytest.fixture
def buyer_service(backend):
    return FakeDataService(backend, user_id=BUYER_ID)


@pytest.fixture
def seller_service(backend):
    return FakeDataService(backend, user_id=SELLER_ID)


@pytest.fixture
def product():
    """Listed product priced at 50."""
    return Product(id="product-1", seller_id=SELLER_ID, title="Hand-woven basket", price=50.0, stock=3)
