"""
Blob store collaborators.

The file server only talks to blobs through the
[BlobStore][banbooru.stores.blob.BlobStore] protocol: ``head``, ``get``,
``put`` and ``delete``. ``put`` honors two options that the authorization
core relies on:

* ``sha256`` -- the body is hashed before anything is committed and a
  mismatch raises [ChecksumMismatchError][banbooru.core.exceptions.ChecksumMismatchError],
  so a wrong body never remains under the key;
* ``only_if_absent`` -- create-if-absent; an existing key raises
  [ConflictError][banbooru.core.exceptions.ConflictError].

The file server checks existence with ``head`` before calling ``put``. The
two calls are not atomic, so two concurrent uploads of the same content can
both pass the check; ``only_if_absent`` is then the only backstop and the
loser receives a 409.

Implementations:
    MemoryBlobStore: Process-local dictionary, for tests and development.
    FilesystemBlobStore: One file per object under a root directory.
"""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import json
import os
import tempfile
import uuid
from pathlib import Path
from typing import Any, Literal, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from banbooru.core.exceptions import ChecksumMismatchError, ConflictError, StorageError
from banbooru.models.stored_object import PutOptions, StoredObject, StoredObjectBody


@runtime_checkable
class BlobStore(Protocol):
    """Narrow contract the file server needs from a blob store."""

    async def head(self, key: str) -> StoredObject | None:
        """Return object metadata, or ``None`` if *key* does not exist."""
        ...

    async def get(self, key: str) -> StoredObjectBody | None:
        """Return object metadata and bytes, or ``None`` if *key* does not exist."""
        ...

    async def put(self, key: str, body: bytes, options: PutOptions | None = None) -> StoredObject:
        """Store *body* under *key*.

        Raises:
            ChecksumMismatchError: ``options.sha256`` does not match *body*.
            ConflictError: ``options.only_if_absent`` and *key* exists.
            StorageError: The backend failed.
        """
        ...

    async def delete(self, key: str) -> None:
        """Remove *key*; deleting a missing key is not an error."""
        ...


def _check_checksum(body: bytes, options: PutOptions) -> str:
    digest = hashlib.sha256(body).hexdigest()
    if options.sha256 is not None and options.sha256.lower() != digest:
        raise ChecksumMismatchError(
            f"SHA-256 of the body is {digest}, expected {options.sha256.lower()}"
        )
    return digest


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


class MemoryBlobStore:
    """Dictionary-backed blob store.

    All operations run on the event loop without awaiting, so each one is
    atomic with respect to other coroutines.
    """

    def __init__(self) -> None:
        self._objects: dict[str, StoredObjectBody] = {}

    async def head(self, key: str) -> StoredObject | None:
        item = self._objects.get(key)
        return item.info if item is not None else None

    async def get(self, key: str) -> StoredObjectBody | None:
        return self._objects.get(key)

    async def put(self, key: str, body: bytes, options: PutOptions | None = None) -> StoredObject:
        options = options or PutOptions()
        digest = _check_checksum(body, options)
        if options.only_if_absent and key in self._objects:
            raise ConflictError(f"object {key} already exists")
        info = StoredObject(
            key=key,
            size=len(body),
            etag=uuid.uuid4().hex,
            sha256=digest,
            content_type=options.content_type,
            cache_control=options.cache_control,
        )
        self._objects[key] = StoredObjectBody(info=info, body=bytes(body))
        return info

    async def delete(self, key: str) -> None:
        self._objects.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._objects

    def __len__(self) -> int:
        return len(self._objects)


# ---------------------------------------------------------------------------
# Filesystem
# ---------------------------------------------------------------------------


class FilesystemBlobStore:
    """Blob store keeping one file per object under ``root``.

    Layout::

        <root>/<key>              object bytes
        <root>/.meta/<key>.json   HTTP metadata and checksum

    New objects are written to a temporary file and published with
    ``os.link``, which fails if the target exists; that gives
    create-if-absent semantics without a lock. Blocking I/O runs in a worker
    thread via ``asyncio.to_thread``.
    """

    _META_DIR = ".meta"

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)
        self._meta = self._root / self._META_DIR
        self._meta.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def _paths(self, key: str) -> tuple[Path, Path]:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise StorageError(f"invalid object key: {key!r}")
        return self._root / key, self._meta / f"{key}.json"

    def _read_info(self, key: str) -> StoredObject | None:
        data_path, meta_path = self._paths(key)
        try:
            stat = data_path.stat()
            meta = json.loads(meta_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            raise StorageError(f"failed to read metadata for {key}: {e}") from e
        return StoredObject(
            key=key,
            size=stat.st_size,
            etag=f"{stat.st_mtime_ns:x}-{stat.st_size:x}",
            sha256=meta["sha256"],
            content_type=meta.get("content_type"),
            cache_control=meta.get("cache_control"),
        )

    def _read(self, key: str) -> StoredObjectBody | None:
        info = self._read_info(key)
        if info is None:
            return None
        data_path, _ = self._paths(key)
        try:
            body = data_path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"failed to read {key}: {e}") from e
        return StoredObjectBody(info=info, body=body)

    def _publish(self, path: Path, data: bytes, mode: Literal["link", "replace"]) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            if mode == "link":
                os.link(tmp_name, path)
            else:
                os.replace(tmp_name, path)
        finally:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_name)

    def _write(self, key: str, body: bytes, options: PutOptions) -> StoredObject:
        digest = _check_checksum(body, options)
        data_path, meta_path = self._paths(key)
        meta: dict[str, Any] = {
            "sha256": digest,
            "content_type": options.content_type,
            "cache_control": options.cache_control,
        }
        mode: Literal["link", "replace"] = "link" if options.only_if_absent else "replace"

        created = False
        try:
            self._publish(data_path, body, mode)
            created = mode == "link"
            self._publish(meta_path, json.dumps(meta).encode(), "replace")
        except FileExistsError as e:
            raise ConflictError(f"object {key} already exists") from e
        except OSError as e:
            # A linked data file without metadata would block every retry with 409
            if created:
                with contextlib.suppress(OSError):
                    data_path.unlink()
            raise StorageError(f"failed to write {key}: {e}") from e

        info = self._read_info(key)
        if info is None:
            raise StorageError(f"object {key} vanished after write")
        return info

    def _delete(self, key: str) -> None:
        data_path, meta_path = self._paths(key)
        try:
            data_path.unlink(missing_ok=True)
            meta_path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"failed to delete {key}: {e}") from e

    async def head(self, key: str) -> StoredObject | None:
        return await asyncio.to_thread(self._read_info, key)

    async def get(self, key: str) -> StoredObjectBody | None:
        return await asyncio.to_thread(self._read, key)

    async def put(self, key: str, body: bytes, options: PutOptions | None = None) -> StoredObject:
        return await asyncio.to_thread(self._write, key, body, options or PutOptions())

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._delete, key)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class BlobStoreConfig(BaseModel):
    """Blob store backend selection.

    Attributes:
        backend: ``memory`` (lost on restart) or ``filesystem``.
        root: Directory for the filesystem backend.
    """

    backend: Literal["memory", "filesystem"] = Field(default="filesystem")
    root: Path = Field(default=Path("data/blobs"), description="Filesystem backend root")


def create_blob_store(config: BlobStoreConfig) -> BlobStore:
    """Instantiate the configured blob store backend."""
    if config.backend == "memory":
        return MemoryBlobStore()
    return FilesystemBlobStore(config.root)
