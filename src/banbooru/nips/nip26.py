"""
NIP-26 delegated event signing.

A delegation lets one identity (the delegator) authorize another (the
delegatee) to sign events on its behalf. The delegatee attaches the tag
``["delegation", <delegator>, <conditions>, <sig>]`` where ``sig`` is a
BIP-340 Schnorr signature by the delegator over
``sha256("nostr:delegation:<delegatee>:<conditions>")``.

Conditions are ``&``-joined clauses:

* ``kind=<n>`` -- the event kind must be one of the listed kinds (OR);
* ``created_at<<t>`` -- the event must be created before ``t``;
* ``created_at><t>`` -- the event must be created after ``t``.

An empty condition string places no restriction.

Resolution never raises: [resolve_delegator()][banbooru.nips.nip26.resolve_delegator]
logs the reason and returns ``None`` ("not delegated") on any failure. It
does not fall back to the publisher; callers decide that explicitly.

Note:
    Schnorr signatures over arbitrary 32-byte messages are produced and
    checked with ``coincurve``; the ``nostr_sdk`` bindings only expose
    Schnorr operations through whole events.
"""

from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass, field

from coincurve import PrivateKey, PublicKeyXOnly

from banbooru.models.event import DelegationTag, SignedEvent


logger = logging.getLogger("banbooru.nips.nip26")

_CLAUSE = re.compile(r"^(kind)=(\d+)$|^(created_at)([<>])(\d+)$")


@dataclass(frozen=True, slots=True)
class DelegationConditions:
    """Parsed delegation conditions.

    Attributes:
        kinds: Allowed kinds; empty means any kind.
        created_before: Exclusive upper bound on ``created_at``.
        created_after: Exclusive lower bound on ``created_at``.
    """

    kinds: frozenset[int] = field(default_factory=frozenset)
    created_before: int | None = None
    created_after: int | None = None

    @classmethod
    def parse(cls, conditions: str) -> DelegationConditions:
        """Parse a condition string.

        Raises:
            ValueError: On an unknown or malformed clause.
        """
        kinds: set[int] = set()
        before: int | None = None
        after: int | None = None
        for clause in filter(None, conditions.split("&")):
            match = _CLAUSE.match(clause)
            if match is None:
                raise ValueError(f"unsupported delegation condition: {clause!r}")
            if match.group(1):
                kinds.add(int(match.group(2)))
            elif match.group(4) == "<":
                value = int(match.group(5))
                before = value if before is None else min(before, value)
            else:
                value = int(match.group(5))
                after = value if after is None else max(after, value)
        return cls(kinds=frozenset(kinds), created_before=before, created_after=after)

    def allows(self, kind: int, created_at: int) -> bool:
        if self.kinds and kind not in self.kinds:
            return False
        if self.created_before is not None and not created_at < self.created_before:
            return False
        return self.created_after is None or created_at > self.created_after


def delegation_token(delegatee: str, conditions: str) -> bytes:
    """Return the 32-byte digest the delegator signs."""
    return hashlib.sha256(f"nostr:delegation:{delegatee}:{conditions}".encode()).digest()


def sign_delegation(secret_key: str, delegatee: str, conditions: str) -> DelegationTag:
    """Create a delegation tag granting *delegatee* authority under *conditions*.

    Args:
        secret_key: Delegator secret key as 64 hex characters.
        delegatee: Hex public key receiving the authority.
        conditions: Condition string, validated before signing.

    Raises:
        ValueError: If the key or the conditions are malformed.
    """
    DelegationConditions.parse(conditions)
    private_key = PrivateKey(bytes.fromhex(secret_key))
    sig = private_key.sign_schnorr(delegation_token(delegatee, conditions))
    return DelegationTag(
        delegator=private_key.public_key_xonly.format().hex(),
        conditions=conditions,
        sig=sig.hex(),
    )


def verify_delegation(delegation: DelegationTag, delegatee: str) -> bool:
    """Check the delegator's signature for *delegatee*. Never raises."""
    try:
        public_key = PublicKeyXOnly(bytes.fromhex(delegation.delegator))
        return bool(
            public_key.verify(
                bytes.fromhex(delegation.sig),
                delegation_token(delegatee, delegation.conditions),
            )
        )
    except (ValueError, TypeError) as e:
        logger.debug("delegation_signature_error delegator=%s error=%s", delegation.delegator, e)
        return False


def validate_delegation(
    delegation: DelegationTag, *, delegatee: str, kind: int, created_at: int
) -> str | None:
    """Return the reason *delegation* does not apply, or ``None`` when it does."""
    try:
        conditions = DelegationConditions.parse(delegation.conditions)
    except ValueError as e:
        return str(e)
    if not verify_delegation(delegation, delegatee):
        return "invalid delegation signature"
    if not conditions.allows(kind, created_at):
        return "delegation conditions not satisfied"
    return None


def resolve_delegator(event: SignedEvent) -> str | None:
    """Return the delegator of *event*, or ``None`` when it is not (validly) delegated."""
    tag = event.find_tag("delegation")
    if tag is None:
        return None

    try:
        delegation = DelegationTag.from_tag(tag)
    except ValueError as e:
        logger.warning("delegation_malformed event=%s error=%s", event.id[:16], e)
        return None

    reason = validate_delegation(
        delegation, delegatee=event.pubkey, kind=event.kind, created_at=event.created_at
    )
    if reason is not None:
        logger.warning(
            "delegation_invalid event=%s delegator=%s reason=%s",
            event.id[:16],
            delegation.delegator,
            reason,
        )
        return None
    return delegation.delegator
