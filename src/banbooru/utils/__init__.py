"""Helpers shared by services.

Attributes:
    KeysConfig: Pydantic model loading the service Nostr keys from the environment.
    load_keys_from_env: Parse a secret key from an environment variable.
"""

from .keys import ENV_PRIVATE_KEY, KeysConfig, load_keys_from_env


__all__ = ["ENV_PRIVATE_KEY", "KeysConfig", "load_keys_from_env"]
