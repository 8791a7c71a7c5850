"""External collaborators: blob storage and role assignments.

Attributes:
    BlobStore: Protocol for object bytes (``head``/``get``/``put``/``delete``).
    RoleStore: Protocol for public key role lookup.
"""

from .blob import (
    BlobStore,
    BlobStoreConfig,
    FilesystemBlobStore,
    MemoryBlobStore,
    create_blob_store,
)
from .roles import (
    MemoryRoleStore,
    PostgresRoleStore,
    RoleStore,
    RoleStoreConfig,
    create_role_store,
    resolve_role,
)


__all__ = [
    "BlobStore",
    "BlobStoreConfig",
    "FilesystemBlobStore",
    "MemoryBlobStore",
    "MemoryRoleStore",
    "PostgresRoleStore",
    "RoleStore",
    "RoleStoreConfig",
    "create_blob_store",
    "create_role_store",
    "resolve_role",
]
