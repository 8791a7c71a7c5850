"""
NIP-94 file metadata events.

Builds the kind 1063 provenance statement written next to every stored
object. The event is signed with the **service** keys, not the uploader's:
it attests what the server stored. An uploader can still claim ownership by
handing the server a NIP-26 delegation, which is copied into the event's
``delegation`` tag.

Tags produced: ``url``, ``m`` (media type), ``x`` (hex SHA-256), ``size``
and optionally ``delegation``.
"""

from __future__ import annotations

from nostr_sdk import EventBuilder, Keys, Kind, Tag

from banbooru.models.constants import DEFAULT_CONTENT_TYPE, EventKind
from banbooru.models.event import DelegationTag, FileMetadataEvent
from banbooru.models.stored_object import StoredObject


def file_metadata_tags(
    obj: StoredObject, url: str, delegation: DelegationTag | None = None
) -> list[list[str]]:
    """Return the raw tag list describing *obj*."""
    tags = [
        ["url", url],
        ["m", obj.content_type or DEFAULT_CONTENT_TYPE],
        ["x", obj.sha256],
        ["size", str(obj.size)],
    ]
    if delegation is not None:
        tags.append(list(delegation.to_tag()))
    return tags


def build_file_metadata_event(
    obj: StoredObject,
    url: str,
    keys: Keys,
    delegation: DelegationTag | None = None,
) -> FileMetadataEvent:
    """Build and sign the kind 1063 event for a stored object.

    Args:
        obj: Descriptor returned by the blob store after the write.
        url: Canonical public URL of the object.
        keys: Service signing keys.
        delegation: Optional NIP-26 delegation granted to the service keys.
    """
    tags = [Tag.parse(t) for t in file_metadata_tags(obj, url, delegation)]
    signed = EventBuilder(Kind(EventKind.FILE_METADATA), "").tags(tags).sign_with_keys(keys)
    return FileMetadataEvent.from_json(signed.as_json())
