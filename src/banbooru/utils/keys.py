"""Service signing key loading.

The file server signs every provenance event with its own Nostr key. The
key is read from an environment variable (nsec1 bech32 or 64-char hex) and
never from configuration files.

Warning:
    Private keys must never be written to configuration files, source code
    or logs.

Examples:
    ```python
    import os

    os.environ["PRIVATE_KEY"] = "nsec1..."  # pragma: allowlist secret
    keys = load_keys_from_env("PRIVATE_KEY")
    keys.public_key().to_hex()
    ```
"""

from __future__ import annotations

import os
from typing import Any

from nostr_sdk import Keys
from pydantic import BaseModel, Field, model_validator


ENV_PRIVATE_KEY = "PRIVATE_KEY"  # pragma: allowlist secret


def load_keys_from_env(env_var: str) -> Keys:
    """Load Nostr keys from an environment variable.

    Raises:
        ValueError: If the variable is not set or empty.
        nostr_sdk.NostrSdkError: If the value is not a valid secret key.
    """
    value = os.getenv(env_var)
    if not value:
        raise ValueError(
            f"{env_var} environment variable is required. Generate one with: openssl rand -hex 32"
        )
    return Keys.parse(value)


class KeysConfig(BaseModel):
    """Pydantic model that loads the service keys from ``keys_env``.

    Passing ``keys`` explicitly skips the environment lookup.

    Warning:
        ``keys`` holds a live private key; never serialize this model.
    """

    model_config = {"arbitrary_types_allowed": True}

    keys_env: str = Field(
        default=ENV_PRIVATE_KEY,
        min_length=1,
        description="Environment variable name for private key",
    )
    keys: Keys = Field(description="Keys loaded from keys_env (required)")

    @model_validator(mode="before")
    @classmethod
    def _load_keys_from_env(cls, data: Any) -> Any:
        if isinstance(data, dict) and "keys" not in data:
            data = {**data, "keys": load_keys_from_env(data.get("keys_env", ENV_PRIVATE_KEY))}
        return data

    @property
    def public_key(self) -> str:
        """Hex public key of the service."""
        return str(self.keys.public_key().to_hex())
