"""
Pytest configuration and shared fixtures for Banbooru tests.

Provides:
- Nostr key fixtures (service, uploader, admin, stranger)
- Sample stored object descriptors
- Logging configuration
"""

from __future__ import annotations

import hashlib
import logging

import pytest
from nostr_sdk import Keys

from banbooru.models.stored_object import StoredObject


# Valid secp256k1 test keys (DO NOT USE IN PRODUCTION)
SERVICE_HEX_KEY = (
    "67dea2ed018072d675f5415ecfaed7d2597555e202d85b3d65ea4e58d2d92ffa"  # pragma: allowlist secret
)

SAMPLE_BODY = b"hello banbooru"


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


# ============================================================================
# Key Fixtures
# ============================================================================


@pytest.fixture
def service_keys() -> Keys:
    """Keys the file server signs provenance events with."""
    return Keys.parse(SERVICE_HEX_KEY)


@pytest.fixture
def uploader_keys() -> Keys:
    return Keys.generate()


@pytest.fixture
def admin_keys() -> Keys:
    return Keys.generate()


@pytest.fixture
def stranger_keys() -> Keys:
    return Keys.generate()


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def sample_body() -> bytes:
    return SAMPLE_BODY


@pytest.fixture
def sample_hash() -> str:
    return hashlib.sha256(SAMPLE_BODY).hexdigest()


@pytest.fixture
def sample_object(sample_hash: str) -> StoredObject:
    """Descriptor of the sample body as a blob store would return it."""
    return StoredObject(
        key=sample_hash,
        size=len(SAMPLE_BODY),
        etag="etag-1",
        sha256=sample_hash,
        content_type="text/plain",
        cache_control="public, max-age=31536000, immutable",
    )
