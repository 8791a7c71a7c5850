"""Provenance sidecars for stored objects.

After an upload is committed the file server schedules a
[ProvenanceJob][banbooru.services.server.provenance.ProvenanceJob] that
signs a NIP-94 file metadata event with the service keys and stores it as
``<hash>.metadata.json``. The job runs after the response has been
prepared; its failures are logged and counted but never reach the client,
so an object may legitimately exist without a sidecar (only admins can
delete such objects).

The uploader can attach a NIP-26 delegation in the ``X-Nip-26-Delegation``
header; [parse_delegation_header()][banbooru.services.server.provenance.parse_delegation_header]
turns it into a [DelegationTag][banbooru.models.event.DelegationTag] that
ends up in the sidecar.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from banbooru.core.exceptions import ValidationError
from banbooru.core.logger import Logger
from banbooru.models.constants import METADATA_SUFFIX
from banbooru.models.event import DelegationTag, FileMetadataEvent
from banbooru.models.stored_object import PutOptions, StoredObject
from banbooru.nips.nip01 import verify_event
from banbooru.nips.nip94 import build_file_metadata_event


if TYPE_CHECKING:
    from nostr_sdk import Keys

    from banbooru.stores.blob import BlobStore


DELEGATION_HEADER = "X-Nip-26-Delegation"
METADATA_CONTENT_TYPE = "application/json"

_logger = Logger("provenance")


def metadata_key(key: str) -> str:
    """Return the sidecar key for the content object *key*."""
    return f"{key}{METADATA_SUFFIX}"


def file_url(base: str, key: str) -> str:
    """Return the canonical public URL of the content object *key*."""
    return f"{base.rstrip('/')}/file/{key}"


class _DelegationHeader(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    delegator: str = Field(alias="from")
    cond: str
    sig: str


def parse_delegation_header(value: str | None) -> DelegationTag | None:
    """Parse the ``{"from", "cond", "sig"}`` JSON carried by ``X-Nip-26-Delegation``.

    Only the shape is checked here; the signature is checked against the
    service key by the caller.

    Raises:
        ValidationError: The header is present but not a well-formed delegation.
    """
    if value is None or not value.strip():
        return None
    try:
        header = _DelegationHeader.model_validate(json.loads(value))
        return DelegationTag(delegator=header.delegator, conditions=header.cond, sig=header.sig)
    except (ValueError, TypeError) as e:
        raise ValidationError(f"invalid {DELEGATION_HEADER} header") from e


async def load_provenance(store: BlobStore, key: str) -> FileMetadataEvent | None:
    """Load and verify the sidecar of *key*.

    A missing, unreadable or forged sidecar yields ``None``. Storage
    failures propagate.
    """
    item = await store.get(metadata_key(key))
    if item is None:
        return None
    try:
        event = FileMetadataEvent.from_json(item.body)
    except ValueError as e:
        _logger.warning("provenance_malformed", key=key, error=str(e))
        return None
    if event.sha256 != key:
        _logger.warning("provenance_mismatch", key=key, x=event.sha256)
        return None
    if not verify_event(event):
        _logger.warning("provenance_invalid_signature", key=key, event=event.id)
        return None
    return event


class ProvenanceJob:
    """One-shot job writing the provenance sidecar of a freshly stored object.

    Args:
        store: Blob store receiving the sidecar.
        keys: Service signing keys.
        obj: Descriptor of the stored content object.
        url: Canonical public URL of the object.
        delegation: Verified delegation granted to the service keys, if any.
        on_done: Called with ``True`` on success and ``False`` on failure.
    """

    def __init__(
        self,
        store: BlobStore,
        keys: Keys,
        obj: StoredObject,
        url: str,
        delegation: DelegationTag | None = None,
        on_done: Callable[[bool], None] | None = None,
    ) -> None:
        self._store = store
        self._keys = keys
        self._obj = obj
        self._url = url
        self._delegation = delegation
        self._on_done = on_done

    @property
    def key(self) -> str:
        return metadata_key(self._obj.key)

    async def run(self) -> FileMetadataEvent | None:
        """Build, sign and store the sidecar; return it, or ``None`` on failure."""
        try:
            event = build_file_metadata_event(
                self._obj, self._url, self._keys, delegation=self._delegation
            )
            await self._store.put(
                self.key,
                event.to_json().encode(),
                PutOptions(content_type=METADATA_CONTENT_TYPE),
            )
        except Exception as e:  # Intentionally broad: provenance never fails the request
            _logger.error("provenance_failed", key=self.key, error=str(e), error_type=type(e).__name__)
            self._notify(ok=False)
            return None

        _logger.info(
            "provenance_written",
            key=self.key,
            event=event.id,
            delegated=self._delegation is not None,
        )
        self._notify(ok=True)
        return event

    def _notify(self, *, ok: bool) -> None:
        if self._on_done is not None:
            self._on_done(ok)
