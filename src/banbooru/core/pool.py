"""
Async PostgreSQL connection pool built on asyncpg.

Backs the [PostgresRoleStore][banbooru.stores.roles.PostgresRoleStore]. The
pool retries connection establishment with exponential or linear backoff
and retries single queries on transient connection errors
(``InterfaceError``, ``ConnectionDoesNotExistError``). Query-level errors
such as a missing table propagate immediately.

Examples:
    ```python
    pool = Pool(PoolConfig.model_validate({"database": {"host": "db"}}))

    async with pool:
        role = await pool.fetchval("SELECT role FROM pubkey_role WHERE pubkey = $1", pk)
    ```
"""

from __future__ import annotations

import asyncio
import os
from typing import Any

import asyncpg
from pydantic import BaseModel, Field, SecretStr, ValidationInfo, field_validator, model_validator

from .exceptions import ConnectionPoolError
from .logger import Logger


_DEFAULT_PASSWORD_ENV = "DB_PASSWORD"  # pragma: allowlist secret


class DatabaseConfig(BaseModel):
    """PostgreSQL connection parameters.

    The password is read from the environment variable named by
    ``password_env``; it is never taken from configuration files.
    """

    host: str = Field(default="localhost", min_length=1, description="Database hostname")
    port: int = Field(default=5432, ge=1, le=65535, description="Database port")
    database: str = Field(default="banbooru", min_length=1, description="Database name")
    user: str = Field(default="banbooru", min_length=1, description="Database user")
    password_env: str = Field(
        default=_DEFAULT_PASSWORD_ENV,
        min_length=1,
        description="Environment variable name for database password",
    )
    password: SecretStr = Field(description="Database password (loaded from password_env)")

    @model_validator(mode="before")
    @classmethod
    def resolve_password(cls, data: Any) -> Any:
        """Resolve the database password from the environment variable."""
        if isinstance(data, dict) and "password" not in data:
            env_var = data.get("password_env", _DEFAULT_PASSWORD_ENV)
            value = os.getenv(env_var)
            if not value:
                raise ValueError(f"{env_var} environment variable not set")
            data["password"] = SecretStr(value)
        return data


class PoolLimitsConfig(BaseModel):
    """Connection pool size limits."""

    min_size: int = Field(default=1, ge=1, le=100, description="Minimum connections")
    max_size: int = Field(default=5, ge=1, le=200, description="Maximum connections")
    acquisition_timeout: float = Field(default=10.0, ge=0.1, description="Connect timeout")

    @field_validator("max_size")
    @classmethod
    def validate_max_size(cls, v: int, info: ValidationInfo) -> int:
        min_size = info.data.get("min_size", 1)
        if v < min_size:
            raise ValueError(f"max_size ({v}) must be >= min_size ({min_size})")
        return v


class PoolRetryConfig(BaseModel):
    """Backoff strategy for connection and query retries.

    Exponential backoff waits ``initial_delay * 2^attempt``; linear backoff
    waits ``initial_delay * (attempt + 1)``. Both are capped at ``max_delay``.
    """

    max_attempts: int = Field(default=3, ge=1, le=10, description="Max retry attempts")
    initial_delay: float = Field(default=0.5, ge=0.01, description="Initial retry delay")
    max_delay: float = Field(default=5.0, ge=0.01, description="Maximum retry delay")
    exponential_backoff: bool = Field(default=True, description="Use exponential backoff")

    @field_validator("max_delay")
    @classmethod
    def validate_max_delay(cls, v: float, info: ValidationInfo) -> float:
        initial_delay = info.data.get("initial_delay", 0.5)
        if v < initial_delay:
            raise ValueError(f"max_delay ({v}) must be >= initial_delay ({initial_delay})")
        return v


class PoolConfig(BaseModel):
    """Aggregate configuration for the connection pool."""

    database: DatabaseConfig = Field(default_factory=lambda: DatabaseConfig.model_validate({}))
    limits: PoolLimitsConfig = Field(default_factory=PoolLimitsConfig)
    retry: PoolRetryConfig = Field(default_factory=PoolRetryConfig)
    application_name: str = Field(default="banbooru", description="Reported application name")


class Pool:
    """Async PostgreSQL connection pool manager.

    Created disconnected; call [connect()][banbooru.core.pool.Pool.connect]
    or use the async context manager.
    """

    def __init__(self, config: PoolConfig | None = None) -> None:
        self._config = config or PoolConfig()
        self._pool: asyncpg.Pool[asyncpg.Record] | None = None
        self._connection_lock = asyncio.Lock()
        self._logger = Logger("pool")

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> Pool:
        return cls(config=PoolConfig(**config_dict))

    def _retry_delay(self, attempt: int) -> float:
        retry = self._config.retry
        if retry.exponential_backoff:
            delay = retry.initial_delay * (2**attempt)
        else:
            delay = retry.initial_delay * (attempt + 1)
        return float(min(delay, retry.max_delay))

    async def connect(self) -> None:
        """Create the asyncpg pool, retrying with backoff.

        Raises:
            ConnectionPoolError: If all retry attempts are exhausted.
        """
        async with self._connection_lock:
            if self._pool is not None:
                return

            db = self._config.database
            self._logger.info("connection_starting", host=db.host, port=db.port, database=db.database)

            for attempt in range(self._config.retry.max_attempts):
                try:
                    self._pool = await asyncpg.create_pool(
                        host=db.host,
                        port=db.port,
                        database=db.database,
                        user=db.user,
                        password=db.password.get_secret_value(),
                        min_size=self._config.limits.min_size,
                        max_size=self._config.limits.max_size,
                        timeout=self._config.limits.acquisition_timeout,
                        server_settings={"application_name": self._config.application_name},
                    )
                    self._logger.info("connection_established")
                    return
                except (asyncpg.PostgresError, OSError, ConnectionError) as e:
                    if attempt + 1 >= self._config.retry.max_attempts:
                        self._logger.error("connection_failed", attempts=attempt + 1, error=str(e))
                        raise ConnectionPoolError(
                            f"Failed to connect after {attempt + 1} attempts: {e}"
                        ) from e
                    delay = self._retry_delay(attempt)
                    self._logger.warning(
                        "connection_retry", attempt=attempt + 1, delay=delay, error=str(e)
                    )
                    await asyncio.sleep(delay)

    async def close(self) -> None:
        """Close the pool. Idempotent."""
        async with self._connection_lock:
            if self._pool is not None:
                try:
                    await self._pool.close()
                    self._logger.info("connection_closed")
                finally:
                    self._pool = None

    async def fetchval(self, query: str, *args: Any, timeout: float | None = None) -> Any:  # noqa: ASYNC109
        """Return the first column of the first row, retrying transient failures.

        Raises:
            ConnectionPoolError: If the pool is not connected or every
                attempt hit a connection-level error.
        """
        if self._pool is None:
            raise ConnectionPoolError("Pool is not connected")

        max_attempts = self._config.retry.max_attempts
        for attempt in range(max_attempts):
            try:
                async with self._pool.acquire() as conn:
                    return await conn.fetchval(query, *args, timeout=timeout)
            except (asyncpg.InterfaceError, asyncpg.ConnectionDoesNotExistError) as e:
                if attempt + 1 >= max_attempts:
                    self._logger.error("query_failed", attempts=max_attempts, error=str(e))
                    raise ConnectionPoolError(
                        f"fetchval failed after {max_attempts} attempts: {e}"
                    ) from e
                delay = self._retry_delay(attempt)
                self._logger.warning("query_retry", attempt=attempt + 1, delay_s=delay, error=str(e))
                await asyncio.sleep(delay)
        return None

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    @property
    def config(self) -> PoolConfig:
        return self._config

    async def __aenter__(self) -> Pool:
        await self.connect()
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.close()

    def __repr__(self) -> str:
        db = self._config.database
        return f"Pool(host={db.host}, database={db.database}, connected={self.is_connected})"
