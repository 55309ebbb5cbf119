"""Generic reject-event hooks installed ahead of the admission gate."""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from typing import Any

from ppe_relay.event import Event

RejectEventHook = Callable[[dict[str, Any], Event], Awaitable[tuple[bool, str]]]

_BASE64_MEDIA = re.compile(r"data:(?:image|video)/[\w.+-]+;base64,", re.IGNORECASE)


def restrict_to_kinds(*kinds: int) -> RejectEventHook:
    """Reject every event whose kind is not in ``kinds``."""
    allowed = frozenset(int(k) for k in kinds)

    async def hook(ctx: dict[str, Any], event: Event) -> tuple[bool, str]:
        if event.kind in allowed:
            return False, ""
        return True, f"received event kind {event.kind} not allowed"

    return hook


async def reject_base64_media(ctx: dict[str, Any], event: Event) -> tuple[bool, str]:
    if _BASE64_MEDIA.search(event.content):
        return True, "event with base64 media"
    return False, ""
