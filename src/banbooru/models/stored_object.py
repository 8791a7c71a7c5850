"""
Descriptors exchanged with the blob store.

The blob store owns object bytes; the core only ever sees these frozen
descriptors. For content objects ``key == sha256(body)`` always holds.
Provenance sidecars (``<hash>.metadata.json``) are stored through the same
interface but are not content addressed.

See Also:
    [BlobStore][banbooru.stores.blob.BlobStore]: The protocol producing and
        consuming these types.
"""

from __future__ import annotations

from dataclasses import dataclass

from ._validation import validate_hex, validate_int, validate_str_no_null


@dataclass(frozen=True, slots=True)
class PutOptions:
    """Options for [BlobStore.put()][banbooru.stores.blob.BlobStore.put].

    Attributes:
        sha256: Expected lowercase hex SHA-256 of the body. When set, the
            store rejects mismatching bodies before committing anything.
        content_type: Media type recorded as HTTP metadata.
        cache_control: ``Cache-Control`` value recorded as HTTP metadata.
        only_if_absent: Create-if-absent semantics; an existing key raises
            [ConflictError][banbooru.core.exceptions.ConflictError].
    """

    sha256: str | None = None
    content_type: str | None = None
    cache_control: str | None = None
    only_if_absent: bool = False


@dataclass(frozen=True, slots=True)
class StoredObject:
    """Metadata of an object held by the blob store.

    Attributes:
        key: Object key.
        size: Body length in bytes.
        etag: Store-assigned object identity (unquoted).
        sha256: Lowercase hex SHA-256 checksum computed by the store.
        content_type: Recorded media type, if any.
        cache_control: Recorded ``Cache-Control`` value, if any.
    """

    key: str
    size: int
    etag: str
    sha256: str
    content_type: str | None = None
    cache_control: str | None = None

    def __post_init__(self) -> None:
        validate_str_no_null(self.key, "key")
        validate_int(self.size, "size")
        validate_str_no_null(self.etag, "etag")
        validate_hex(self.sha256, "sha256", 64)

    @property
    def http_etag(self) -> str:
        """The etag quoted for use in an HTTP ``ETag`` header."""
        return f'"{self.etag}"'

    def http_headers(self) -> dict[str, str]:
        """Build the response headers describing this object."""
        headers = {"etag": self.http_etag}
        if self.content_type:
            headers["content-type"] = self.content_type
        if self.cache_control:
            headers["cache-control"] = self.cache_control
        return headers


@dataclass(frozen=True, slots=True)
class StoredObjectBody:
    """A [StoredObject][banbooru.models.stored_object.StoredObject] together with its bytes."""

    info: StoredObject
    body: bytes
