"""Nostr event and filter models (NIP-01).

Pure data model — no I/O. Field names match the wire format exactly so
that zap requests embedded in a receipt's ``description`` tag decode
with the same code as events received from a relay.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any


# ---------------------------------------------------------------------------
# Event
# ---------------------------------------------------------------------------


@dataclass
class Event:
    """A signed, timestamped Nostr record."""

    pubkey: str = ""
    content: str = ""
    id: str = ""
    created_at: int = 0
    sig: str = ""
    kind: int = 0
    tags: list[list[str]] = field(default_factory=list)

    def tag_value(self, name: str) -> str | None:
        """Return the value of the first ``name`` tag, or None if absent."""
        for tag in self.tags:
            if len(tag) > 1 and tag[0] == name:
                return tag[1]
        return None

    def tag_values(self, name: str) -> list[str]:
        """Return the values of every ``name`` tag, in order."""
        return [tag[1] for tag in self.tags if len(tag) > 1 and tag[0] == name]

    def serialize(self) -> str:
        """Canonical NIP-01 serialization used to derive the event id."""
        return json.dumps(
            [0, self.pubkey, self.created_at, self.kind, self.tags, self.content],
            separators=(",", ":"),
            ensure_ascii=False,
        )

    def compute_id(self) -> str:
        return hashlib.sha256(self.serialize().encode("utf-8")).hexdigest()

    # -- serialization --------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "pubkey": self.pubkey,
            "content": self.content,
            "id": self.id,
            "created_at": self.created_at,
            "sig": self.sig,
            "kind": self.kind,
            "tags": [list(tag) for tag in self.tags],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Event:
        """Build an event from decoded JSON.

        Raises ValueError when ``data`` is not an object or a field has the
        wrong shape.
        """
        if not isinstance(data, dict):
            raise ValueError(f"event must be a JSON object, got {type(data).__name__}")

        raw_tags = data.get("tags") or []
        if not isinstance(raw_tags, list):
            raise ValueError("event tags must be a list")
        tags: list[list[str]] = []
        for tag in raw_tags:
            if not isinstance(tag, list):
                raise ValueError("each event tag must be a list")
            tags.append([str(item) for item in tag])

        try:
            created_at = int(data.get("created_at", 0))
            kind = int(data.get("kind", 0))
        except (TypeError, ValueError) as e:
            raise ValueError(f"invalid numeric field: {e}") from e

        return cls(
            pubkey=str(data.get("pubkey", "")),
            content=str(data.get("content", "")),
            id=str(data.get("id", "")),
            created_at=created_at,
            sig=str(data.get("sig", "")),
            kind=kind,
            tags=tags,
        )

    @classmethod
    def from_json(cls, raw: str) -> Event:
        """Decode an event from a JSON string. Raises ValueError on bad input."""
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            raise ValueError(f"event is not valid JSON: {e}") from e
        return cls.from_dict(data)


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------


@dataclass
class Filter:
    """Subscription filter: every populated field must match."""

    ids: list[str] | None = None
    kinds: list[int] | None = None
    authors: list[str] | None = None
    tags: dict[str, list[str]] = field(default_factory=dict)
    since: int | None = None
    until: int | None = None
    limit: int | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.ids is not None:
            out["ids"] = list(self.ids)
        if self.kinds is not None:
            out["kinds"] = [int(k) for k in self.kinds]
        if self.authors is not None:
            out["authors"] = list(self.authors)
        for name, values in self.tags.items():
            out[f"#{name}"] = list(values)
        if self.since is not None:
            out["since"] = self.since
        if self.until is not None:
            out["until"] = self.until
        if self.limit is not None:
            out["limit"] = self.limit
        return out

    def matches(self, event: Event) -> bool:
        """Evaluate the filter against ``event`` locally (``limit`` ignored)."""
        if self.ids is not None and event.id not in self.ids:
            return False
        if self.kinds is not None and event.kind not in self.kinds:
            return False
        if self.authors is not None and event.pubkey not in self.authors:
            return False
        if self.since is not None and event.created_at < self.since:
            return False
        if self.until is not None and event.created_at > self.until:
            return False
        for name, values in self.tags.items():
            if not set(event.tag_values(name)) & set(values):
                return False
        return True
