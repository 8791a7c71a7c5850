"""Pure frozen dataclass models with zero I/O.

Attributes:
    SignedEvent: Generic Nostr event envelope.
    AuthEvent: NIP-98 HTTP-auth event (kind 27235).
    FileMetadataEvent: NIP-94 file metadata event (kind 1063).
    DelegationTag: NIP-26 delegation tag.
    StoredObject: Blob store object descriptor.
    Role: Role assigned to a public key.
"""

from .constants import (
    DEFAULT_CONTENT_TYPE,
    HEX_KEY_PATTERN,
    METADATA_SUFFIX,
    EventKind,
    Role,
    ServiceName,
)
from .event import (
    AuthEvent,
    DelegationTag,
    FileMetadataEvent,
    SignedEvent,
    Tag,
    compute_event_id,
)
from .stored_object import PutOptions, StoredObject, StoredObjectBody


__all__ = [
    "DEFAULT_CONTENT_TYPE",
    "HEX_KEY_PATTERN",
    "METADATA_SUFFIX",
    "AuthEvent",
    "DelegationTag",
    "EventKind",
    "FileMetadataEvent",
    "PutOptions",
    "Role",
    "ServiceName",
    "SignedEvent",
    "StoredObject",
    "StoredObjectBody",
    "Tag",
    "compute_event_id",
]
