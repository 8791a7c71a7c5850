"""Shared helpers for the nips test package."""

from __future__ import annotations

from collections.abc import Callable

import pytest
from nostr_sdk import EventBuilder, Keys, Kind, Tag

from banbooru.models.event import SignedEvent


SignEvent = Callable[..., SignedEvent]


@pytest.fixture
def sign_event() -> SignEvent:
    """Sign an event with nostr_sdk and parse it into a SignedEvent."""

    def _sign(keys: Keys, kind: int = 1, content: str = "", tags: list[list[str]] | None = None) -> SignedEvent:
        builder = EventBuilder(Kind(kind), content).tags([Tag.parse(t) for t in tags or []])
        return SignedEvent.from_json(builder.sign_with_keys(keys).as_json())

    return _sign
