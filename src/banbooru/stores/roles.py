"""
Role store collaborators and the role resolver.

A role store maps a hex public key to a [Role][banbooru.models.constants.Role].
Absence of an entry means "no role": the caller may read but never write.
Values outside the known roles are logged and treated as absent, so a typo
in the store can never grant access.

Implementations:
    MemoryRoleStore: Dictionary seeded from configuration.
    PostgresRoleStore: ``pubkey_role`` table read through an asyncpg
        [Pool][banbooru.core.pool.Pool].
"""

from __future__ import annotations

from typing import Literal, Protocol, runtime_checkable

import asyncpg
from pydantic import BaseModel, Field, field_validator

from banbooru.core.exceptions import StorageError
from banbooru.core.logger import Logger
from banbooru.core.pool import Pool, PoolConfig
from banbooru.models.constants import HEX_KEY_PATTERN, Role


_logger = Logger("roles")


@runtime_checkable
class RoleStore(Protocol):
    """Narrow contract the file server needs from a role store."""

    async def get(self, pubkey: str) -> str | None:
        """Return the raw role value stored for *pubkey*, or ``None``."""
        ...


async def resolve_role(store: RoleStore, pubkey: str) -> Role | None:
    """Look up and parse the role of *pubkey*.

    Raises:
        StorageError: The store could not be read.
    """
    raw = await store.get(pubkey)
    if raw is None:
        return None
    try:
        return Role(raw)
    except ValueError:
        _logger.warning("unknown_role", pubkey=pubkey, role=raw)
        return None


class MemoryRoleStore:
    """Role store backed by a dictionary."""

    def __init__(self, roles: dict[str, Role | str] | None = None) -> None:
        self._roles: dict[str, str] = {k.lower(): str(v) for k, v in (roles or {}).items()}

    async def get(self, pubkey: str) -> str | None:
        return self._roles.get(pubkey.lower())

    def set(self, pubkey: str, role: Role | str | None) -> None:
        """Assign or clear (``None``) a role."""
        if role is None:
            self._roles.pop(pubkey.lower(), None)
        else:
            self._roles[pubkey.lower()] = str(role)


class PostgresRoleStore:
    """Role store reading ``SELECT role FROM <table> WHERE pubkey = $1``.

    The table is expected to hold lowercase hex public keys::

        CREATE TABLE pubkey_role (
            pubkey TEXT PRIMARY KEY,
            role   TEXT NOT NULL
        );
    """

    def __init__(self, pool: Pool, table: str = "pubkey_role", timeout: float = 5.0) -> None:
        if not table.isidentifier():
            raise ValueError(f"invalid table name: {table!r}")
        self._pool = pool
        self._query = f"SELECT role FROM {table} WHERE pubkey = $1"  # noqa: S608
        self._timeout = timeout

    @property
    def pool(self) -> Pool:
        return self._pool

    async def get(self, pubkey: str) -> str | None:
        try:
            value = await self._pool.fetchval(self._query, pubkey.lower(), timeout=self._timeout)
        except (asyncpg.PostgresError, TimeoutError) as e:
            raise StorageError(f"role lookup failed: {e}") from e
        return str(value) if value is not None else None


class RoleStoreConfig(BaseModel):
    """Role store backend selection.

    Attributes:
        backend: ``memory`` or ``postgres``.
        roles: Static assignments for the memory backend.
        table: Table name for the postgres backend.
        pool: Connection pool settings for the postgres backend.
    """

    backend: Literal["memory", "postgres"] = Field(default="memory")
    roles: dict[str, Role] = Field(default_factory=dict)
    table: str = Field(default="pubkey_role", min_length=1)
    pool: PoolConfig | None = Field(default=None)

    @field_validator("roles")
    @classmethod
    def _validate_pubkeys(cls, v: dict[str, Role]) -> dict[str, Role]:
        for pubkey in v:
            if not HEX_KEY_PATTERN.match(pubkey):
                raise ValueError(f"role key must be a 64-char hex public key: {pubkey!r}")
        return {k.lower(): role for k, role in v.items()}


def create_role_store(config: RoleStoreConfig) -> MemoryRoleStore | PostgresRoleStore:
    """Instantiate the configured role store backend (postgres pools start disconnected)."""
    if config.backend == "postgres":
        return PostgresRoleStore(Pool(config.pool or PoolConfig()), table=config.table)
    return MemoryRoleStore(dict(config.roles))
