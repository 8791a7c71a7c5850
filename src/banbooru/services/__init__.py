"""Banbooru services.

Services are the top layer of the package, depending on
[banbooru.core][banbooru.core], [banbooru.nips][banbooru.nips],
[banbooru.stores][banbooru.stores] and [banbooru.models][banbooru.models].
Each service extends [BaseService][banbooru.core.base_service.BaseService]
and implements ``async def run()`` for one cycle of work.

Attributes:
    FileServer: HTTP file store with NIP-98 authorization and NIP-94
        provenance sidecars.
"""

from .server import FileServer, FileServerConfig


__all__ = ["FileServer", "FileServerConfig"]
