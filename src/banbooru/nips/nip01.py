"""NIP-01 event signature verification.

[verify_event()][banbooru.nips.nip01.verify_event] is the single place where
Banbooru checks that a [SignedEvent][banbooru.models.event.SignedEvent] was
really produced by its ``pubkey``. It is a pure function: no I/O, no state,
and it never raises, so callers can treat ``False`` exactly like a missing
token.

The id is recomputed from the NIP-01 serialization in
[canonical_serialization()][banbooru.models.event.canonical_serialization]
and the BIP-340 Schnorr signature over it is checked with ``coincurve``,
the same primitive [banbooru.nips.nip26][] uses for delegation tokens.
"""

from __future__ import annotations

import logging

from coincurve import PublicKeyXOnly

from banbooru.models.event import SignedEvent


logger = logging.getLogger("banbooru.nips.nip01")


def verify_event(event: SignedEvent) -> bool:
    """Return ``True`` iff the event id and signature are valid for ``event.pubkey``."""
    try:
        if event.compute_id() != event.id:
            logger.debug("event_id_mismatch id=%s", event.id[:16])
            return False
        public_key = PublicKeyXOnly(bytes.fromhex(event.pubkey))
        return bool(public_key.verify(bytes.fromhex(event.sig), bytes.fromhex(event.id)))
    except (ValueError, TypeError) as e:
        logger.debug("event_verification_error id=%s error=%s", event.id[:16], e)
        return False
