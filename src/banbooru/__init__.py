r"""Banbooru -- content-addressed file store authorized by Nostr events.

Uploads and deletes are authorized with NIP-98 HTTP-auth tokens, every
stored object gets a NIP-94 provenance event signed by the server, and
NIP-26 delegations let uploaders keep ownership of what the server signs.

Imports flow strictly downward:

```text
              services         HTTP surface and access policy
             /   |   \
          core  nips  stores   Infrastructure, protocol and collaborators
             \   |   /
              models           Pure frozen dataclasses (zero I/O)
```

Note:
    Top-level imports (``from banbooru import FileServer``) use lazy
    loading and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("banbooru")

__all__ = [
    "AuthEvent",
    "BaseService",
    "FileMetadataEvent",
    "FileServer",
    "FileServerConfig",
    "Logger",
    "Role",
    "SignedEvent",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "BaseService": ("banbooru.core", "BaseService"),
    "Logger": ("banbooru.core", "Logger"),
    "AuthEvent": ("banbooru.models", "AuthEvent"),
    "FileMetadataEvent": ("banbooru.models", "FileMetadataEvent"),
    "Role": ("banbooru.models", "Role"),
    "SignedEvent": ("banbooru.models", "SignedEvent"),
    "FileServer": ("banbooru.services", "FileServer"),
    "FileServerConfig": ("banbooru.services", "FileServerConfig"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value  # Cache for subsequent access
        return value
    raise AttributeError(f"module 'banbooru' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
