"""Nostr Implementation Possibilities used by Banbooru.

Attributes:
    nip01: Event id and Schnorr signature verification.
    nip26: Delegated signing: conditions, signatures and delegator resolution.
    nip94: File metadata (provenance) event construction.
    nip98: HTTP authentication token decoding and request binding.
"""

from .nip01 import verify_event
from .nip26 import DelegationConditions, resolve_delegator, sign_delegation, verify_delegation
from .nip94 import build_file_metadata_event
from .nip98 import authenticate, build_auth_header, decode_auth_header, validate_auth_event


__all__ = [
    "DelegationConditions",
    "authenticate",
    "build_auth_header",
    "build_file_metadata_event",
    "decode_auth_header",
    "resolve_delegator",
    "sign_delegation",
    "validate_auth_event",
    "verify_delegation",
    "verify_event",
]
