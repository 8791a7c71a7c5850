"""Shared fixtures and helpers for the services.server test package."""

from __future__ import annotations

from collections.abc import Callable

import pytest
from fastapi.testclient import TestClient
from nostr_sdk import Keys

from banbooru.models.constants import Role
from banbooru.nips.nip98 import build_auth_header
from banbooru.services.server.configs import FileServerConfig
from banbooru.services.server.service import FileServer
from banbooru.stores.blob import BlobStoreConfig, MemoryBlobStore
from banbooru.stores.roles import MemoryRoleStore
from banbooru.utils.keys import KeysConfig


BASE_URL = "http://testserver"

AuthHeaders = Callable[..., dict[str, str]]


@pytest.fixture
def banned_keys() -> Keys:
    return Keys.generate()


@pytest.fixture
def blob_store() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def role_store(uploader_keys: Keys, admin_keys: Keys, banned_keys: Keys) -> MemoryRoleStore:
    """Uploader is a user, admin is an admin, banned is banned, stranger has no role."""
    return MemoryRoleStore(
        {
            uploader_keys.public_key().to_hex(): Role.USER,
            admin_keys.public_key().to_hex(): Role.ADMIN,
            banned_keys.public_key().to_hex(): Role.BANNED,
        }
    )


@pytest.fixture
def server_config(service_keys: Keys) -> FileServerConfig:
    """Minimal file server config for testing."""
    return FileServerConfig(
        interval=60.0,
        host="127.0.0.1",
        port=9999,
        blob_store=BlobStoreConfig(backend="memory"),
        keys=KeysConfig(keys=service_keys),
    )


@pytest.fixture
def file_server(
    server_config: FileServerConfig, blob_store: MemoryBlobStore, role_store: MemoryRoleStore
) -> FileServer:
    return FileServer(config=server_config, blob_store=blob_store, role_store=role_store)


@pytest.fixture
def test_client(file_server: FileServer) -> TestClient:
    """FastAPI TestClient from the file server."""
    app = file_server._build_app()
    return TestClient(app)


@pytest.fixture
def auth_headers() -> AuthHeaders:
    """Build an ``Authorization`` header for a request against the test client."""

    def _headers(
        keys: Keys,
        method: str,
        file_hash: str,
        *,
        body: bytes | None = None,
        url: str | None = None,
        created_at: int | None = None,
    ) -> dict[str, str]:
        header = build_auth_header(
            keys,
            method=method,
            url=url or f"{BASE_URL}/file/{file_hash}",
            body=body,
            created_at=created_at,
        )
        return {"Authorization": header}

    return _headers
