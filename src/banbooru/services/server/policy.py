"""Access policy for writes and deletes.

Each gate is a pure decision stage that returns a tagged
[Decision][banbooru.services.server.policy.Decision] (``Allow`` or
``Deny``) instead of raising, so the file server composes them explicitly:
authenticate, resolve the role, decide, then
[enforce()][banbooru.services.server.policy.enforce].

Delete rules (inclusive OR): the caller must hold a write role and be an
admin, the publisher of the object's provenance event, or the delegator
resolved from that event. Without a valid provenance event only admins may
delete.
"""

from __future__ import annotations

from dataclasses import dataclass

from banbooru.core.exceptions import AuthorizationError
from banbooru.models.constants import Role
from banbooru.models.event import AuthEvent, FileMetadataEvent
from banbooru.nips.nip26 import resolve_delegator


WRITE_ROLES = frozenset({Role.ADMIN, Role.USER})


@dataclass(frozen=True, slots=True)
class Caller:
    """An authenticated request issuer and its resolved role."""

    auth: AuthEvent
    role: Role | None

    @property
    def pubkey(self) -> str:
        return self.auth.pubkey


@dataclass(frozen=True, slots=True)
class Allow:
    caller: Caller
    reason: str


@dataclass(frozen=True, slots=True)
class Deny:
    reason: str


Decision = Allow | Deny


def authorize_write(auth: AuthEvent, role: Role | None) -> Decision:
    """Permit uploads for ``admin`` and ``user`` roles only."""
    if role in WRITE_ROLES:
        return Allow(Caller(auth, role), f"role {role}")
    return Deny(f"role {role or 'none'} may not upload")


def authorize_delete(
    auth: AuthEvent, role: Role | None, metadata: FileMetadataEvent | None
) -> Decision:
    """Decide whether the signer of *auth* may delete the object described by *metadata*.

    Args:
        auth: The verified, request-bound auth event.
        role: The signer's role, ``None`` when it has none.
        metadata: The verified provenance event, or ``None`` if the object
            has no (valid) sidecar.
    """
    if role not in WRITE_ROLES:
        return Deny(f"role {role or 'none'} may not delete")
    caller = Caller(auth, role)
    if role == Role.ADMIN:
        return Allow(caller, "admin")
    if metadata is None:
        return Deny("no provenance record, only admins may delete")
    if metadata.pubkey == auth.pubkey:
        return Allow(caller, "publisher")
    if resolve_delegator(metadata) == auth.pubkey:
        return Allow(caller, "delegator")
    return Deny("caller is neither the publisher nor the delegator")


def enforce(decision: Decision) -> Caller:
    """Unwrap an ``Allow`` or raise [AuthorizationError][banbooru.core.exceptions.AuthorizationError]."""
    if isinstance(decision, Deny):
        raise AuthorizationError(decision.reason)
    return decision.caller
