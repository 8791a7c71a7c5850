"""Banbooru exception hierarchy.

Every error that can end a request carries the HTTP status it maps to, so
the file server can translate failures with a single exception handler
instead of status codes scattered across route handlers.

Exception hierarchy:

```text
BanbooruError (base -- never raised directly)
├── ConfigurationError             -- config validation, missing keys, bad YAML
├── StorageError                   -- blob/role store failures (500)
│   └── ConnectionPoolError        -- transient: pool exhausted, network blip
└── RequestError                   -- client-visible request failures
    ├── ValidationError            -- 400: malformed hash, missing body
    │   └── ChecksumMismatchError  -- 400: body does not hash to its key
    ├── AuthenticationError        -- 401: missing/unbound/expired token
    │   ├── MalformedTokenError
    │   ├── InvalidSignatureError
    │   ├── MethodBindingMismatchError
    │   ├── UrlBindingMismatchError
    │   ├── PayloadBindingMismatchError
    │   └── ExpiredTokenError
    ├── AuthorizationError         -- 403: role or ownership denied
    ├── NotFoundError              -- 404: no such object
    └── ConflictError              -- 409: object already exists
```

See Also:
    [FileServer][banbooru.services.server.service.FileServer]: Installs the
        handler that maps
        [RequestError][banbooru.core.exceptions.RequestError] to responses.
    [decode_auth_header()][banbooru.nips.nip98.decode_auth_header]: Raises
        the [AuthenticationError][banbooru.core.exceptions.AuthenticationError]
        family.
"""

from __future__ import annotations

from typing import ClassVar


class BanbooruError(Exception):
    """Base exception for all Banbooru errors.

    Never raised directly -- always use a specific subclass.
    """


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(BanbooruError):
    """Invalid or missing configuration (YAML, env vars, CLI flags)."""


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class StorageError(BanbooruError):
    """A blob store or role store operation failed.

    Surfaces to clients as a generic 500; the message is logged but never
    echoed back.
    """


class ConnectionPoolError(StorageError):
    """Transient database error: pool exhausted, connection refused, network blip.

    Callers may retry after a backoff.
    """


# ---------------------------------------------------------------------------
# Request failures
# ---------------------------------------------------------------------------


class RequestError(BanbooruError):
    """Base for errors that end a request with a specific HTTP status.

    Attributes:
        status_code: HTTP status returned to the client.
        label: Short prefix for the plain-text response body.
    """

    status_code: ClassVar[int] = 400
    label: ClassVar[str] = "Bad Request"

    def response_text(self) -> str:
        """Return the plain-text body sent to the client."""
        detail = str(self)
        return f"{self.label}: {detail}" if detail else self.label


class ValidationError(RequestError):
    """Malformed request: invalid hash, missing body, bad header value."""


class ChecksumMismatchError(ValidationError):
    """The uploaded bytes do not hash to the key they were stored under."""


class AuthenticationError(RequestError):
    """The request carries no valid NIP-98 authorization."""

    status_code: ClassVar[int] = 401
    label: ClassVar[str] = "Unauthorized"


class MalformedTokenError(AuthenticationError):
    """Authorization header absent, undecodable, or not an HTTP-auth event."""


class InvalidSignatureError(AuthenticationError):
    """The auth event id or signature does not verify."""


class MethodBindingMismatchError(AuthenticationError):
    """The ``method`` tag does not match the request method."""


class UrlBindingMismatchError(AuthenticationError):
    """The ``u`` tag does not match the full request URL."""


class PayloadBindingMismatchError(AuthenticationError):
    """The ``payload`` tag does not match the SHA-256 of the request body."""


class ExpiredTokenError(AuthenticationError):
    """The auth event ``created_at`` is outside the freshness window."""


class AuthorizationError(RequestError):
    """The authenticated caller may not perform the operation."""

    status_code: ClassVar[int] = 403
    label: ClassVar[str] = "Forbidden"


class NotFoundError(RequestError):
    """The requested object does not exist."""

    status_code: ClassVar[int] = 404
    label: ClassVar[str] = "Not Found"


class ConflictError(RequestError):
    """An object is already stored under the requested key."""

    status_code: ClassVar[int] = 409
    label: ClassVar[str] = "Conflict"
