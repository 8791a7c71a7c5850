"""
Unit tests for models.event module.

Tests:
- SignedEvent shape validation and serialization
- AuthEvent kind and tag requirements
- FileMetadataEvent kind and tag requirements
- DelegationTag parsing
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

import pytest

from banbooru.models.constants import EventKind
from banbooru.models.event import (
    AuthEvent,
    DelegationTag,
    FileMetadataEvent,
    SignedEvent,
    canonical_serialization,
    compute_event_id,
)


PUBKEY = "b" * 64
SIG = "c" * 128
FILE_HASH = "d" * 64


def _event_dict(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": "a" * 64,
        "pubkey": PUBKEY,
        "created_at": 1_700_000_000,
        "kind": 1,
        "tags": [],
        "content": "",
        "sig": SIG,
    }
    data.update(overrides)
    return data


def _auth_dict(**overrides: Any) -> dict[str, Any]:
    tags = [["u", "https://files.example/file/abc"], ["method", "PUT"]]
    data = _event_dict(kind=EventKind.HTTP_AUTH, tags=tags)
    data.update(overrides)
    return data


def _metadata_dict(**overrides: Any) -> dict[str, Any]:
    tags = [
        ["url", f"https://files.example/file/{FILE_HASH}"],
        ["m", "image/png"],
        ["x", FILE_HASH],
        ["size", "42"],
    ]
    data = _event_dict(kind=EventKind.FILE_METADATA, tags=tags)
    data.update(overrides)
    return data


# =============================================================================
# Canonical Serialization Tests
# =============================================================================


class TestCanonicalSerialization:
    def test_compact_json_array(self) -> None:
        raw = canonical_serialization(PUBKEY, 1, 2, [["t", "x"]], "hi")
        assert raw == f'[0,"{PUBKEY}",1,2,[["t","x"]],"hi"]'.encode()

    def test_unicode_is_not_escaped(self) -> None:
        raw = canonical_serialization(PUBKEY, 1, 2, [], "café")
        assert "café".encode() in raw

    def test_event_id_is_sha256(self) -> None:
        raw = canonical_serialization(PUBKEY, 1, 2, [], "")
        assert compute_event_id(PUBKEY, 1, 2, [], "") == hashlib.sha256(raw).hexdigest()

    def test_escapes_only_nip01_characters(self) -> None:
        raw = canonical_serialization(PUBKEY, 1, 2, [["t", 'a"b']], "x\n\t\\y")
        assert raw.endswith(b'[["t","a\\"b"]],"x\\n\\t\\\\y"]')

    def test_other_control_characters_are_verbatim(self) -> None:
        raw = canonical_serialization(PUBKEY, 1, 2, [], "a\x01b\x7f")
        assert raw.endswith(b',"a\x01b\x7f"]')
        assert b"\\u00" not in raw


# =============================================================================
# SignedEvent Tests
# =============================================================================


class TestSignedEvent:
    def test_from_dict(self) -> None:
        event = SignedEvent.from_dict(_event_dict(tags=[["t", "x", "y"]]))
        assert event.tags == (("t", "x", "y"),)
        assert event.kind == 1

    def test_round_trip_json(self) -> None:
        event = SignedEvent.from_dict(_event_dict(tags=[["t", "x"]], content="hello"))
        assert SignedEvent.from_json(event.to_json()) == event
        assert json.loads(event.to_json())["tags"] == [["t", "x"]]

    def test_is_frozen(self) -> None:
        event = SignedEvent.from_dict(_event_dict())
        with pytest.raises(AttributeError):
            event.kind = 2  # type: ignore[misc]

    @pytest.mark.parametrize(
        "overrides",
        [
            {"id": "a" * 63},
            {"id": "A" * 64},
            {"pubkey": "z" * 64},
            {"sig": "c" * 64},
            {"created_at": -1},
            {"created_at": True},
            {"kind": 70_000},
            {"content": "a\x00b"},
            {"tags": "not-a-list"},
            {"tags": [[]]},
            {"tags": [["t", 1]]},
        ],
    )
    def test_invalid_shapes(self, overrides: dict[str, Any]) -> None:
        with pytest.raises(ValueError):
            SignedEvent.from_dict(_event_dict(**overrides))

    def test_missing_fields(self) -> None:
        data = _event_dict()
        del data["sig"]
        with pytest.raises(ValueError, match="missing fields: sig"):
            SignedEvent.from_dict(data)

    def test_not_an_object(self) -> None:
        with pytest.raises(ValueError, match="JSON object"):
            SignedEvent.from_dict(["not", "an", "object"])  # type: ignore[arg-type]

    def test_invalid_json(self) -> None:
        with pytest.raises(ValueError, match="not valid JSON"):
            SignedEvent.from_json("{nope")

    def test_deeply_nested_json(self) -> None:
        with pytest.raises(ValueError, match="nested too deeply"):
            SignedEvent.from_json("[" * 1_000_000)

    @pytest.mark.parametrize(
        "overrides",
        [{"content": "\ud800"}, {"tags": [["t", "\udfff"]]}],
    )
    def test_lone_surrogate_rejected(self, overrides: dict[str, Any]) -> None:
        raw = json.dumps(_event_dict(**overrides))
        with pytest.raises(ValueError, match="not valid UTF-8"):
            SignedEvent.from_json(raw)

    def test_tag_access(self) -> None:
        event = SignedEvent.from_dict(_event_dict(tags=[["a"], ["b", "1"], ["b", "2"]]))
        assert event.find_tag("b") == ("b", "1")
        assert event.tag_value("b") == "1"
        assert event.tag_value("a") is None
        assert event.find_tag("missing") is None

    def test_compute_id_ignores_stored_id(self) -> None:
        event = SignedEvent.from_dict(_event_dict())
        assert event.compute_id() == compute_event_id(PUBKEY, 1_700_000_000, 1, [], "")


# =============================================================================
# AuthEvent Tests
# =============================================================================


class TestAuthEvent:
    def test_properties(self) -> None:
        event = AuthEvent.from_dict(_auth_dict())
        assert event.url == "https://files.example/file/abc"
        assert event.method == "PUT"
        assert event.payload is None

    def test_payload(self) -> None:
        data = _auth_dict()
        data["tags"].append(["payload", FILE_HASH])
        assert AuthEvent.from_dict(data).payload == FILE_HASH

    def test_wrong_kind(self) -> None:
        with pytest.raises(ValueError, match="kind 27235"):
            AuthEvent.from_dict(_auth_dict(kind=1))

    @pytest.mark.parametrize("missing", ["u", "method"])
    def test_required_tags(self, missing: str) -> None:
        data = _auth_dict()
        data["tags"] = [t for t in data["tags"] if t[0] != missing]
        with pytest.raises(ValueError, match=f"'{missing}' tag"):
            AuthEvent.from_dict(data)

    def test_is_signed_event(self) -> None:
        assert isinstance(AuthEvent.from_dict(_auth_dict()), SignedEvent)


# =============================================================================
# FileMetadataEvent Tests
# =============================================================================


class TestFileMetadataEvent:
    def test_properties(self) -> None:
        event = FileMetadataEvent.from_dict(_metadata_dict())
        assert event.url.endswith(FILE_HASH)
        assert event.mime_type == "image/png"
        assert event.sha256 == FILE_HASH
        assert event.size == 42
        assert event.delegation is None

    def test_wrong_kind(self) -> None:
        with pytest.raises(ValueError, match="kind 1063"):
            FileMetadataEvent.from_dict(_metadata_dict(kind=EventKind.HTTP_AUTH))

    @pytest.mark.parametrize("missing", ["url", "m", "x", "size"])
    def test_required_tags(self, missing: str) -> None:
        data = _metadata_dict()
        data["tags"] = [t for t in data["tags"] if t[0] != missing]
        with pytest.raises(ValueError, match=f"'{missing}' tag"):
            FileMetadataEvent.from_dict(data)

    def test_uppercase_x_rejected(self) -> None:
        data = _metadata_dict()
        data["tags"][2] = ["x", FILE_HASH.upper()]
        with pytest.raises(ValueError, match="x tag"):
            FileMetadataEvent.from_dict(data)

    def test_non_numeric_size_rejected(self) -> None:
        data = _metadata_dict()
        data["tags"][3] = ["size", "-1"]
        with pytest.raises(ValueError, match="size tag"):
            FileMetadataEvent.from_dict(data)

    def test_delegation(self) -> None:
        data = _metadata_dict()
        data["tags"].append(["delegation", PUBKEY, "kind=1063", SIG])
        delegation = FileMetadataEvent.from_dict(data).delegation
        assert delegation == DelegationTag(delegator=PUBKEY, conditions="kind=1063", sig=SIG)

    def test_malformed_delegation_raises_on_access(self) -> None:
        data = _metadata_dict()
        data["tags"].append(["delegation", "short", "kind=1063", SIG])
        event = FileMetadataEvent.from_dict(data)
        with pytest.raises(ValueError):
            _ = event.delegation


# =============================================================================
# DelegationTag Tests
# =============================================================================


class TestDelegationTag:
    def test_round_trip(self) -> None:
        tag = ("delegation", PUBKEY, "kind=1063", SIG)
        assert DelegationTag.from_tag(tag).to_tag() == tag

    @pytest.mark.parametrize(
        "tag",
        [
            ("delegation", PUBKEY, "kind=1063"),
            ("other", PUBKEY, "kind=1063", SIG),
            ("delegation", PUBKEY.upper(), "kind=1063", SIG),
            ("delegation", PUBKEY, "kind=1063", "00"),
        ],
    )
    def test_malformed(self, tag: tuple[str, ...]) -> None:
        with pytest.raises(ValueError):
            DelegationTag.from_tag(tag)
