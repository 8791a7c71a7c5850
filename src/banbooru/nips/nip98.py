"""
NIP-98 HTTP authentication token codec.

Decodes the ``Authorization`` header into an
[AuthEvent][banbooru.models.event.AuthEvent] and binds it to the request it
arrived with. A token is accepted only when:

* it decodes to a well-formed kind 27235 event;
* its id and signature verify ([verify_event()][banbooru.nips.nip01.verify_event]);
* its ``created_at`` lies within ``window`` seconds of now;
* its ``method`` tag equals the request method (case-insensitive);
* its ``u`` tag equals the full request URL exactly;
* its ``payload`` tag, when present, equals the hex SHA-256 of the body.

The ``payload`` tag is optional unless ``require_payload`` is set. Without
it a captured token can be replayed with a different body against the same
URL inside the freshness window; for content-addressed uploads the URL
already pins the body hash, which limits that exposure to non-upload verbs.

Header format: ``Nostr <base64(event JSON)>``. A bare base64 value without
the scheme prefix is accepted as well.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import time

from nostr_sdk import EventBuilder, Keys, Kind, Tag, Timestamp

from banbooru.core.exceptions import (
    ExpiredTokenError,
    InvalidSignatureError,
    MalformedTokenError,
    MethodBindingMismatchError,
    PayloadBindingMismatchError,
    UrlBindingMismatchError,
)
from banbooru.models.constants import EventKind
from banbooru.models.event import AuthEvent

from .nip01 import verify_event


AUTH_SCHEME = "Nostr"
DEFAULT_WINDOW = 60


def decode_auth_header(header: str | None) -> AuthEvent:
    """Decode an ``Authorization`` header value into an unverified auth event.

    Raises:
        MalformedTokenError: If the header is absent, not base64, not JSON,
            or not a well-formed kind 27235 event.
    """
    if not header or not header.strip():
        raise MalformedTokenError("missing Authorization header")

    token = header.strip()
    scheme, _, rest = token.partition(" ")
    if rest and scheme.lower() == AUTH_SCHEME.lower():
        token = rest.strip()

    try:
        raw = base64.b64decode(token + "=" * (-len(token) % 4), validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedTokenError("token is not valid base64") from e

    try:
        return AuthEvent.from_json(raw)
    except ValueError as e:
        raise MalformedTokenError(f"invalid nostr event: {e}") from e


def validate_auth_event(
    event: AuthEvent,
    *,
    method: str,
    url: str,
    body: bytes | None = None,
    now: int | None = None,
    window: int = DEFAULT_WINDOW,
    require_payload: bool = False,
) -> AuthEvent:
    """Check the signature and request binding of a decoded auth event.

    Args:
        event: Event returned by
            [decode_auth_header()][banbooru.nips.nip98.decode_auth_header].
        method: HTTP method of the current request.
        url: Full URL of the current request (scheme, host, path, query).
        body: Request body, checked against the ``payload`` tag.
        now: Current unix time; defaults to ``time.time()``.
        window: Maximum allowed distance between ``created_at`` and ``now``.
        require_payload: Reject tokens without a ``payload`` tag.

    Returns:
        The same event, now known to be bound to the request.

    Raises:
        InvalidSignatureError: Bad id or signature.
        ExpiredTokenError: ``created_at`` outside the window.
        MethodBindingMismatchError: ``method`` tag mismatch.
        UrlBindingMismatchError: ``u`` tag mismatch.
        PayloadBindingMismatchError: ``payload`` tag mismatch or missing
            when required.
    """
    if not verify_event(event):
        raise InvalidSignatureError("invalid nostr event signature")

    now = int(time.time()) if now is None else now
    if abs(now - event.created_at) > window:
        raise ExpiredTokenError(f"auth event created_at is outside the {window}s window")

    if event.method.upper() != method.upper():
        raise MethodBindingMismatchError(
            f"auth event method {event.method!r} does not match {method.upper()!r}"
        )

    if event.url != url:
        raise UrlBindingMismatchError("auth event url does not match the request url")

    payload = event.payload
    if payload is None:
        if require_payload:
            raise PayloadBindingMismatchError("auth event is missing the payload tag")
    elif payload.lower() != hashlib.sha256(body or b"").hexdigest():
        raise PayloadBindingMismatchError("auth event payload does not match the request body")

    return event


def authenticate(
    header: str | None,
    *,
    method: str,
    url: str,
    body: bytes | None = None,
    now: int | None = None,
    window: int = DEFAULT_WINDOW,
    require_payload: bool = False,
) -> AuthEvent:
    """Decode, verify and bind an ``Authorization`` header in one step.

    Raises:
        AuthenticationError: Any subclass raised by the two stages.
    """
    event = decode_auth_header(header)
    return validate_auth_event(
        event,
        method=method,
        url=url,
        body=body,
        now=now,
        window=window,
        require_payload=require_payload,
    )


def build_auth_header(
    keys: Keys,
    *,
    method: str,
    url: str,
    body: bytes | None = None,
    created_at: int | None = None,
) -> str:
    """Sign a kind 27235 event for a request and encode it as a header value.

    Args:
        keys: Signer keys.
        method: HTTP method to bind.
        url: Full request URL to bind.
        body: When given, its SHA-256 is bound through a ``payload`` tag.
        created_at: Override the event timestamp (defaults to now).
    """
    tags = [Tag.parse(["u", url]), Tag.parse(["method", method.upper()])]
    if body is not None:
        tags.append(Tag.parse(["payload", hashlib.sha256(body).hexdigest()]))

    builder = EventBuilder(Kind(EventKind.HTTP_AUTH), "").tags(tags)
    if created_at is not None:
        builder = builder.custom_created_at(Timestamp.from_secs(created_at))

    signed = builder.sign_with_keys(keys)
    token = base64.b64encode(signed.as_json().encode()).decode()
    return f"{AUTH_SCHEME} {token}"
