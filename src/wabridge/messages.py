from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

MessageType = Literal["text", "location", "image", "file", "voice", "poll"]


@dataclass(frozen=True, slots=True)
class NormalizedMessage:
    """
    Canonical shape of an inbound message as seen by the application.

    For non-text types `body` is an opaque reference token; the real content is
    only available through `raw`. `voters` is set for polls only and holds the
    original poll-creation message.
    """

    from_jid: str
    type: MessageType
    body: str
    raw: Any
    voters: Any | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"from": self.from_jid, "type": self.type, "body": self.body, "raw": self.raw}
        if self.voters is not None:
            d["voters"] = self.voters
        return d
