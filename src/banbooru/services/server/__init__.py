"""Content-addressed file server authorized by NIP-98 tokens.

See Also:
    [FileServer][banbooru.services.server.service.FileServer]: The service class.
    [FileServerConfig][banbooru.services.server.configs.FileServerConfig]:
        Service configuration.
"""

from .configs import FileServerConfig
from .policy import Allow, Caller, Deny, authorize_delete, authorize_write, enforce
from .provenance import ProvenanceJob, load_provenance, parse_delegation_header
from .service import FileServer


__all__ = [
    "Allow",
    "Caller",
    "Deny",
    "FileServer",
    "FileServerConfig",
    "ProvenanceJob",
    "authorize_delete",
    "authorize_write",
    "enforce",
    "load_provenance",
    "parse_delegation_header",
]
