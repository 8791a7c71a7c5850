"""
Immutable Nostr signed events, validated once at the boundary.

[SignedEvent][banbooru.models.event.SignedEvent] is the generic envelope;
[AuthEvent][banbooru.models.event.AuthEvent] (NIP-98, kind 27235) and
[FileMetadataEvent][banbooru.models.event.FileMetadataEvent] (NIP-94, kind
1063) narrow it to the two kinds Banbooru handles. Construction checks the
full shape (hex lengths, integer ranges, tag structure, required tags), so
code holding one of these types never re-checks it.

Construction does **not** check the signature. That is the job of
[verify_event()][banbooru.nips.nip01.verify_event], which stays a pure
function over an already well-formed event.

See Also:
    [banbooru.nips.nip98][]: Decodes ``Authorization`` headers into
        [AuthEvent][banbooru.models.event.AuthEvent] instances.
    [banbooru.nips.nip94][]: Builds and signs
        [FileMetadataEvent][banbooru.models.event.FileMetadataEvent] sidecars.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from ._validation import validate_hex, validate_int, validate_str_no_null
from .constants import EVENT_KIND_MAX, EventKind


Tag = tuple[str, ...]

_EVENT_FIELDS = ("id", "pubkey", "created_at", "kind", "tags", "content", "sig")

# NIP-01 escapes exactly these characters; everything else is written verbatim
_NIP01_ESCAPES = str.maketrans(
    {
        "\n": "\\n",
        '"': '\\"',
        "\\": "\\\\",
        "\r": "\\r",
        "\t": "\\t",
        "\b": "\\b",
        "\f": "\\f",
    }
)


def _quote(value: str) -> str:
    return '"' + value.translate(_NIP01_ESCAPES) + '"'


def canonical_serialization(
    pubkey: str, created_at: int, kind: int, tags: Sequence[Sequence[str]], content: str
) -> bytes:
    """Return the NIP-01 serialization whose SHA-256 is the event id.

    Compact JSON array ``[0,pubkey,created_at,kind,tags,content]``, UTF-8.

    Raises:
        UnicodeEncodeError: If a string holds a lone surrogate.
    """
    tags_json = ",".join("[" + ",".join(_quote(v) for v in tag) + "]" for tag in tags)
    payload = f"[0,{_quote(pubkey)},{int(created_at)},{int(kind)},[{tags_json}],{_quote(content)}]"
    return payload.encode("utf-8")


def compute_event_id(
    pubkey: str, created_at: int, kind: int, tags: Sequence[Sequence[str]], content: str
) -> str:
    """Return the lowercase hex event id for the given fields."""
    return hashlib.sha256(canonical_serialization(pubkey, created_at, kind, tags, content)).hexdigest()


def _coerce_tags(raw: Any) -> tuple[Tag, ...]:
    if not isinstance(raw, Sequence) or isinstance(raw, str | bytes):
        raise TypeError("tags must be a list of lists")
    tags: list[Tag] = []
    for item in raw:
        if not isinstance(item, Sequence) or isinstance(item, str | bytes) or not item:
            raise TypeError("each tag must be a non-empty list of strings")
        tags.append(tuple(item))
    return tuple(tags)


@dataclass(frozen=True, slots=True)
class SignedEvent:
    """Immutable Nostr event.

    Attributes:
        id: Lowercase hex SHA-256 of the canonical serialization.
        pubkey: Lowercase hex x-only public key of the signer. The identity
            is the verification key.
        created_at: Unix timestamp in seconds.
        kind: Event kind (0-65535).
        tags: Ordered tags, each a non-empty tuple of strings.
        content: Event content.
        sig: Lowercase hex 64-byte Schnorr signature over ``id``.

    Raises:
        TypeError: If a field has the wrong type.
        ValueError: If a field has the wrong length, range or content.
    """

    id: str
    pubkey: str
    created_at: int
    kind: int
    tags: tuple[Tag, ...]
    content: str
    sig: str

    def __post_init__(self) -> None:
        validate_hex(self.id, "id", 64)
        validate_hex(self.pubkey, "pubkey", 64)
        validate_hex(self.sig, "sig", 128)
        validate_int(self.created_at, "created_at")
        validate_int(self.kind, "kind", maximum=EVENT_KIND_MAX)
        validate_str_no_null(self.content, "content")
        if not isinstance(self.tags, tuple):
            raise TypeError(f"tags must be a tuple, got {type(self.tags).__name__}")
        for tag in self.tags:
            if not isinstance(tag, tuple) or not tag:
                raise TypeError("each tag must be a non-empty tuple")
            for value in tag:
                validate_str_no_null(value, "tag value")

    # -------------------------------------------------------------------------
    # Tag access
    # -------------------------------------------------------------------------

    def find_tag(self, name: str) -> Tag | None:
        """Return the first tag whose name is *name*, or ``None``."""
        for tag in self.tags:
            if tag[0] == name:
                return tag
        return None

    def tag_value(self, name: str) -> str | None:
        """Return the first value of the first *name* tag, or ``None``."""
        tag = self.find_tag(name)
        if tag is None or len(tag) < 2:  # noqa: PLR2004
            return None
        return tag[1]

    def compute_id(self) -> str:
        """Recompute the id from the event fields (ignores the stored ``id``)."""
        return compute_event_id(self.pubkey, self.created_at, self.kind, self.tags, self.content)

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Return the NIP-01 JSON object form."""
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(t) for t in self.tags],
            "content": self.content,
            "sig": self.sig,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Any:
        """Build an event from its NIP-01 JSON object form.

        Works on subclasses, so ``AuthEvent.from_dict(...)`` also enforces
        the kind and tag requirements of an HTTP-auth event.

        Raises:
            ValueError: If *data* is not a complete, well-formed event.
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"event must be a JSON object, got {type(data).__name__}")
        missing = [f for f in _EVENT_FIELDS if f not in data]
        if missing:
            raise ValueError(f"event is missing fields: {', '.join(missing)}")
        try:
            return cls(
                id=data["id"],
                pubkey=data["pubkey"],
                created_at=data["created_at"],
                kind=data["kind"],
                tags=_coerce_tags(data["tags"]),
                content=data["content"],
                sig=data["sig"],
            )
        except TypeError as e:
            raise ValueError(f"malformed event: {e}") from e

    @classmethod
    def from_json(cls, raw: str | bytes) -> Any:
        """Parse a JSON document into an event.

        Raises:
            ValueError: If *raw* is not valid JSON or not a well-formed event.
        """
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValueError(f"event is not valid JSON: {e}") from e
        except RecursionError as e:
            raise ValueError("event JSON is nested too deeply") from e
        return cls.from_dict(data)


class AuthEvent(SignedEvent):
    """NIP-98 HTTP authentication event (kind 27235).

    Requires ``u`` and ``method`` tags; the ``payload`` tag is optional.
    """

    __slots__ = ()

    def __post_init__(self) -> None:
        SignedEvent.__post_init__(self)
        if self.kind != EventKind.HTTP_AUTH:
            raise ValueError(f"auth event must be kind {int(EventKind.HTTP_AUTH)}, got {self.kind}")
        if not self.tag_value("u"):
            raise ValueError("auth event is missing the 'u' tag")
        if not self.tag_value("method"):
            raise ValueError("auth event is missing the 'method' tag")

    @property
    def url(self) -> str:
        return self.tag_value("u") or ""

    @property
    def method(self) -> str:
        return self.tag_value("method") or ""

    @property
    def payload(self) -> str | None:
        """Hex SHA-256 of the request body, when the signer bound it."""
        return self.tag_value("payload")


@dataclass(frozen=True, slots=True)
class DelegationTag:
    """NIP-26 ``delegation`` tag: ``["delegation", from, conditions, sig]``.

    Attributes:
        delegator: Hex public key of the identity granting authority.
        conditions: Query-string style restrictions, e.g.
            ``kind=1063&created_at<1700000000``.
        sig: Hex Schnorr signature by ``delegator`` over the delegation token.
    """

    delegator: str
    conditions: str
    sig: str

    def __post_init__(self) -> None:
        validate_hex(self.delegator, "delegator", 64)
        validate_str_no_null(self.conditions, "conditions")
        validate_hex(self.sig, "sig", 128)

    @classmethod
    def from_tag(cls, tag: Sequence[str]) -> DelegationTag:
        """Parse a raw tag. Raises ``ValueError`` on any shape problem."""
        if len(tag) != 4 or tag[0] != "delegation":  # noqa: PLR2004
            raise ValueError("delegation tag must be ['delegation', from, conditions, sig]")
        try:
            return cls(delegator=tag[1], conditions=tag[2], sig=tag[3])
        except TypeError as e:
            raise ValueError(f"malformed delegation tag: {e}") from e

    def to_tag(self) -> Tag:
        return ("delegation", self.delegator, self.conditions, self.sig)


class FileMetadataEvent(SignedEvent):
    """NIP-94 file metadata event (kind 1063).

    Requires ``url``, ``m``, ``x`` and ``size`` tags. ``x`` must be a
    lowercase hex SHA-256 and ``size`` a non-negative integer.
    """

    __slots__ = ()

    def __post_init__(self) -> None:
        SignedEvent.__post_init__(self)
        if self.kind != EventKind.FILE_METADATA:
            raise ValueError(
                f"file metadata event must be kind {int(EventKind.FILE_METADATA)}, got {self.kind}"
            )
        for name in ("url", "m", "x", "size"):
            if self.tag_value(name) is None:
                raise ValueError(f"file metadata event is missing the '{name}' tag")
        validate_hex(self.tag_value("x"), "x tag", 64)
        size = self.tag_value("size") or ""
        if not size.isdigit():
            raise ValueError(f"size tag must be a non-negative integer, got {size!r}")

    @property
    def url(self) -> str:
        return self.tag_value("url") or ""

    @property
    def mime_type(self) -> str:
        return self.tag_value("m") or ""

    @property
    def sha256(self) -> str:
        return self.tag_value("x") or ""

    @property
    def size(self) -> int:
        return int(self.tag_value("size") or 0)

    @property
    def delegation(self) -> DelegationTag | None:
        """The parsed delegation tag.

        Raises:
            ValueError: If a ``delegation`` tag exists but is malformed.
        """
        tag = self.find_tag("delegation")
        return DelegationTag.from_tag(tag) if tag is not None else None
