"""
Unit tests for nips.nip26 delegation.

Tests:
- DelegationConditions parsing and evaluation
- sign_delegation() / verify_delegation()
- resolve_delegator() on signed file metadata events
"""

from __future__ import annotations

import hashlib
import logging
import time

import pytest
from nostr_sdk import Keys

from banbooru.models.event import DelegationTag, FileMetadataEvent, SignedEvent
from banbooru.models.stored_object import StoredObject
from banbooru.nips.nip26 import (
    DelegationConditions,
    delegation_token,
    resolve_delegator,
    sign_delegation,
    validate_delegation,
    verify_delegation,
)
from banbooru.nips.nip94 import build_file_metadata_event


URL = "https://files.example/file/"


def _secret(keys: Keys) -> str:
    return keys.secret_key().to_hex()


def _pubkey(keys: Keys) -> str:
    return keys.public_key().to_hex()


# =============================================================================
# Conditions Tests
# =============================================================================


class TestDelegationConditions:
    def test_empty_allows_everything(self) -> None:
        conditions = DelegationConditions.parse("")
        assert conditions.allows(1, 0)
        assert conditions.allows(1063, 2_000_000_000)

    def test_parse_all_clauses(self) -> None:
        conditions = DelegationConditions.parse("kind=1063&kind=1&created_at<200&created_at>100")
        assert conditions.kinds == frozenset({1, 1063})
        assert conditions.created_before == 200
        assert conditions.created_after == 100

    def test_kind_restriction(self) -> None:
        conditions = DelegationConditions.parse("kind=1063")
        assert conditions.allows(1063, 5)
        assert not conditions.allows(1, 5)

    def test_time_bounds_are_exclusive(self) -> None:
        conditions = DelegationConditions.parse("created_at>100&created_at<200")
        assert conditions.allows(1, 150)
        assert not conditions.allows(1, 100)
        assert not conditions.allows(1, 200)

    def test_repeated_bounds_keep_the_tightest(self) -> None:
        conditions = DelegationConditions.parse("created_at<300&created_at<200&created_at>5&created_at>50")
        assert conditions.created_before == 200
        assert conditions.created_after == 50

    @pytest.mark.parametrize("raw", ["kind=abc", "created_at=5", "foo=bar", "kind<1"])
    def test_unsupported_clause(self, raw: str) -> None:
        with pytest.raises(ValueError, match="unsupported"):
            DelegationConditions.parse(raw)


# =============================================================================
# Signing Tests
# =============================================================================


class TestSignAndVerify:
    def test_token_digest(self) -> None:
        expected = hashlib.sha256(b"nostr:delegation:" + b"ab" * 32 + b":kind=1").digest()
        assert delegation_token("ab" * 32, "kind=1") == expected

    def test_round_trip(self, uploader_keys: Keys, service_keys: Keys) -> None:
        tag = sign_delegation(_secret(uploader_keys), _pubkey(service_keys), "kind=1063")
        assert tag.delegator == _pubkey(uploader_keys)
        assert tag.conditions == "kind=1063"
        assert verify_delegation(tag, _pubkey(service_keys))

    def test_wrong_delegatee(
        self, uploader_keys: Keys, service_keys: Keys, stranger_keys: Keys
    ) -> None:
        tag = sign_delegation(_secret(uploader_keys), _pubkey(service_keys), "kind=1063")
        assert not verify_delegation(tag, _pubkey(stranger_keys))

    def test_tampered_conditions(self, uploader_keys: Keys, service_keys: Keys) -> None:
        tag = sign_delegation(_secret(uploader_keys), _pubkey(service_keys), "kind=1063")
        forged = DelegationTag(delegator=tag.delegator, conditions="", sig=tag.sig)
        assert not verify_delegation(forged, _pubkey(service_keys))

    def test_invalid_conditions_rejected_before_signing(
        self, uploader_keys: Keys, service_keys: Keys
    ) -> None:
        with pytest.raises(ValueError):
            sign_delegation(_secret(uploader_keys), _pubkey(service_keys), "bogus")

    def test_validate_reports_reasons(self, uploader_keys: Keys, service_keys: Keys) -> None:
        delegatee = _pubkey(service_keys)
        tag = sign_delegation(_secret(uploader_keys), delegatee, "kind=1063&created_at<1000")
        assert validate_delegation(tag, delegatee=delegatee, kind=1063, created_at=999) is None
        assert validate_delegation(tag, delegatee=delegatee, kind=1063, created_at=1000) == (
            "delegation conditions not satisfied"
        )
        assert validate_delegation(tag, delegatee="00" * 32, kind=1063, created_at=1) == (
            "invalid delegation signature"
        )


# =============================================================================
# resolve_delegator() Tests
# =============================================================================


class TestResolveDelegator:
    def _metadata(
        self, sample_object: StoredObject, keys: Keys, delegation: DelegationTag | None
    ) -> FileMetadataEvent:
        return build_file_metadata_event(
            sample_object, URL + sample_object.key, keys, delegation=delegation
        )

    def test_no_delegation(self, sample_object: StoredObject, service_keys: Keys) -> None:
        assert resolve_delegator(self._metadata(sample_object, service_keys, None)) is None

    def test_valid_delegation(
        self, sample_object: StoredObject, service_keys: Keys, uploader_keys: Keys
    ) -> None:
        expires = int(time.time()) + 3600
        tag = sign_delegation(
            _secret(uploader_keys), _pubkey(service_keys), f"kind=1063&created_at<{expires}"
        )
        event = self._metadata(sample_object, service_keys, tag)
        assert resolve_delegator(event) == _pubkey(uploader_keys)

    def test_delegation_for_other_delegatee(
        self,
        sample_object: StoredObject,
        service_keys: Keys,
        uploader_keys: Keys,
        stranger_keys: Keys,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        tag = sign_delegation(_secret(uploader_keys), _pubkey(stranger_keys), "kind=1063")
        event = self._metadata(sample_object, service_keys, tag)
        with caplog.at_level(logging.WARNING, logger="banbooru.nips.nip26"):
            assert resolve_delegator(event) is None
        assert "delegation_invalid" in caplog.text

    def test_expired_delegation(
        self, sample_object: StoredObject, service_keys: Keys, uploader_keys: Keys
    ) -> None:
        tag = sign_delegation(_secret(uploader_keys), _pubkey(service_keys), "created_at<1000")
        assert resolve_delegator(self._metadata(sample_object, service_keys, tag)) is None

    def test_kind_not_delegated(
        self, sample_object: StoredObject, service_keys: Keys, uploader_keys: Keys
    ) -> None:
        tag = sign_delegation(_secret(uploader_keys), _pubkey(service_keys), "kind=1")
        assert resolve_delegator(self._metadata(sample_object, service_keys, tag)) is None

    def test_malformed_tag_never_raises(self, caplog: pytest.LogCaptureFixture) -> None:
        event = SignedEvent(
            id="a" * 64,
            pubkey="b" * 64,
            created_at=1,
            kind=1063,
            tags=(("delegation", "nothex"),),
            content="",
            sig="c" * 128,
        )
        with caplog.at_level(logging.WARNING, logger="banbooru.nips.nip26"):
            assert resolve_delegator(event) is None
        assert "delegation_malformed" in caplog.text
