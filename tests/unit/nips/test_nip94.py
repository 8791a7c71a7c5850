"""Unit tests for nips.nip94 file metadata events."""

from __future__ import annotations

from nostr_sdk import Keys

from banbooru.models.constants import EventKind
from banbooru.models.stored_object import StoredObject
from banbooru.nips.nip01 import verify_event
from banbooru.nips.nip26 import sign_delegation
from banbooru.nips.nip94 import build_file_metadata_event, file_metadata_tags


class TestFileMetadataTags:
    def test_required_tags(self, sample_object: StoredObject) -> None:
        tags = file_metadata_tags(sample_object, "https://files.example/file/x")
        assert tags == [
            ["url", "https://files.example/file/x"],
            ["m", "text/plain"],
            ["x", sample_object.sha256],
            ["size", str(sample_object.size)],
        ]

    def test_default_media_type(self, sample_hash: str) -> None:
        obj = StoredObject(key=sample_hash, size=1, etag="e", sha256=sample_hash)
        assert ["m", "application/octet-stream"] in file_metadata_tags(obj, "u")


class TestBuildFileMetadataEvent:
    def test_signed_by_service(self, sample_object: StoredObject, service_keys: Keys) -> None:
        url = f"https://files.example/file/{sample_object.key}"
        event = build_file_metadata_event(sample_object, url, service_keys)
        assert event.kind == EventKind.FILE_METADATA
        assert event.pubkey == service_keys.public_key().to_hex()
        assert event.url == url
        assert event.sha256 == sample_object.sha256
        assert event.size == sample_object.size
        assert event.mime_type == "text/plain"
        assert verify_event(event)

    def test_with_delegation(
        self, sample_object: StoredObject, service_keys: Keys, uploader_keys: Keys
    ) -> None:
        tag = sign_delegation(
            uploader_keys.secret_key().to_hex(), service_keys.public_key().to_hex(), "kind=1063"
        )
        event = build_file_metadata_event(sample_object, "u", service_keys, delegation=tag)
        assert event.delegation == tag
        assert verify_event(event)
