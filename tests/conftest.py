"""
Pytest configuration and fixtures for the inventory API tests.
"""

import sys
from pathlib import Path
from typing import AsyncGenerator

import mongomock
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app import create_app
from config import Config
from models import MongoStore


# =============================================================================
# Test Settings
# =============================================================================

class InMemoryConfig(Config):
    MONGODB_URI = "mongodb://localhost:27017/medsupply_test"
    MONGODB_DB = "medsupply_test"
    CORS_ORIGINS = ["*"]
    # fast hashing keeps the auth tests quick
    PASSWORD_HASH_METHOD = "pbkdf2:sha256:1000"


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
def store() -> MongoStore:
    """In-memory MongoDB with the production indexes."""
    db = mongomock.MongoClient()[InMemoryConfig.MONGODB_DB]
    mongo_store = MongoStore(db)
    mongo_store.ensure_indexes()
    return mongo_store


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest.fixture
def app(store):
    return create_app(config=InMemoryConfig, store=store)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client for API tests."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# =============================================================================
# Data Fixtures
# =============================================================================

@pytest.fixture
def signup_data() -> dict:
    return {
        "username": "alice",
        "password": "pw1",
        "hospital": "H1",
        "email": "a@x.com",
        "region": "R1",
    }


@pytest.fixture
def content_data() -> dict:
    return {
        "userId": "user-1",
        "name": "Surgical masks",
        "quantity": 500,
        "expiryDate": "2027-06-30",
        "manufacturingDate": "2025-01-15",
        "hospital": "H1",
        "region": "R1",
    }
