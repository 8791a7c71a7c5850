"""Shared constants for the models layer.

See Also:
    [banbooru.models.event][]: Uses [EventKind][banbooru.models.constants.EventKind]
        to type HTTP-auth and file-metadata events.
    [banbooru.stores.roles][]: Resolves [Role][banbooru.models.constants.Role]
        values from the role store.
"""

from __future__ import annotations

import re
from enum import IntEnum, StrEnum


class ServiceName(StrEnum):
    """Canonical service identifiers used in logging and metrics labels."""

    FILE_SERVER = "file_server"


class EventKind(IntEnum):
    """Nostr event kinds handled by Banbooru.

    Attributes:
        FILE_METADATA: Kind 1063 -- NIP-94 file metadata, written as the
            provenance sidecar of every stored object.
        HTTP_AUTH: Kind 27235 -- NIP-98 HTTP authentication token, carried
            in the ``Authorization`` header.
    """

    FILE_METADATA = 1063
    HTTP_AUTH = 27235


class Role(StrEnum):
    """Role assigned to a public key in the role store.

    A public key with no entry has no role: it may read but never write.
    """

    ADMIN = "admin"
    USER = "user"
    BANNED = "banned"


EVENT_KIND_MAX = 65_535

HEX_KEY_PATTERN = re.compile(r"^[0-9A-Fa-f]{64}$")
"""Pattern for SHA-256 hashes in URL paths (either case accepted)."""

METADATA_SUFFIX = ".metadata.json"
"""Suffix of the provenance sidecar key: ``<hash>.metadata.json``."""

DEFAULT_CONTENT_TYPE = "application/octet-stream"
