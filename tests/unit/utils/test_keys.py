"""
Unit tests for utils.keys module.

Tests:
- ENV_PRIVATE_KEY constant
- load_keys_from_env() - environment variable loading with various key formats
- KeysConfig - Pydantic model for the service keys
"""

import os
from unittest.mock import patch

import pytest
from nostr_sdk import Keys, NostrSdkError
from pydantic import ValidationError

from banbooru.utils.keys import ENV_PRIVATE_KEY, KeysConfig, load_keys_from_env


# =============================================================================
# Test Constants
# =============================================================================

# Valid secp256k1 test keys (DO NOT USE IN PRODUCTION)
VALID_HEX_KEY = (
    "67dea2ed018072d675f5415ecfaed7d2597555e202d85b3d65ea4e58d2d92ffa"  # pragma: allowlist secret
)
VALID_NSEC_KEY = (
    "nsec1vl029mgpspedva04g90vltkh6fvh240zqtv9k0t9af8935ke9laqsnlfe5"  # pragma: allowlist secret
)


class TestEnvPrivateKeyConstant:
    def test_constant_value(self) -> None:
        assert ENV_PRIVATE_KEY == "PRIVATE_KEY"  # pragma: allowlist secret


# =============================================================================
# load_keys_from_env() Tests
# =============================================================================


class TestLoadKeysFromEnv:
    def test_missing_variable(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError, match="PRIVATE_KEY environment variable is required"):
                load_keys_from_env("PRIVATE_KEY")

    def test_empty_variable(self) -> None:
        with patch.dict(os.environ, {"PRIVATE_KEY": ""}):
            with pytest.raises(ValueError):
                load_keys_from_env("PRIVATE_KEY")

    def test_hex_key(self) -> None:
        with patch.dict(os.environ, {"PRIVATE_KEY": VALID_HEX_KEY}):
            keys = load_keys_from_env("PRIVATE_KEY")
        assert keys.secret_key().to_hex() == VALID_HEX_KEY

    def test_nsec_and_hex_are_the_same_key(self) -> None:
        with patch.dict(os.environ, {"A_KEY": VALID_HEX_KEY, "B_KEY": VALID_NSEC_KEY}):
            assert (
                load_keys_from_env("A_KEY").public_key().to_hex()
                == load_keys_from_env("B_KEY").public_key().to_hex()
            )

    def test_invalid_key(self) -> None:
        with patch.dict(os.environ, {"PRIVATE_KEY": "not-a-key"}):
            with pytest.raises(NostrSdkError):
                load_keys_from_env("PRIVATE_KEY")


# =============================================================================
# KeysConfig Tests
# =============================================================================


class TestKeysConfig:
    def test_loads_from_default_env(self) -> None:
        with patch.dict(os.environ, {"PRIVATE_KEY": VALID_HEX_KEY}):
            config = KeysConfig.model_validate({})
        assert config.keys_env == "PRIVATE_KEY"
        assert config.public_key == Keys.parse(VALID_HEX_KEY).public_key().to_hex()

    def test_custom_env(self) -> None:
        with patch.dict(os.environ, {"FILE_SERVER_KEY": VALID_NSEC_KEY}):
            config = KeysConfig.model_validate({"keys_env": "FILE_SERVER_KEY"})
        assert config.keys.secret_key().to_hex() == VALID_HEX_KEY

    def test_explicit_keys_skip_env(self) -> None:
        keys = Keys.generate()
        with patch.dict(os.environ, {}, clear=True):
            config = KeysConfig(keys=keys)
        assert config.keys is keys

    def test_missing_env(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises((ValidationError, ValueError)):
                KeysConfig.model_validate({})
