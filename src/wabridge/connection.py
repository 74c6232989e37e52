"""
Interface of the underlying protocol connection.

The connection (transport, encryption, wire format, its own session keys) is an
external collaborator. This module only describes what the adapter needs from it.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, Protocol

if TYPE_CHECKING:
    from .auth.state import SessionState
    from .config import ProviderConfig

Presence = Literal["unavailable", "available", "composing", "recording", "paused"]

GetMessage = Callable[[Mapping[str, Any]], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class RawEvent:
    name: str
    payload: Any


class Connection(Protocol):
    def events(self) -> AsyncIterator[RawEvent]: ...

    async def send_message(
        self, jid: str, content: Mapping[str, Any], *, quoted: Any | None = None
    ) -> Any: ...

    async def send_presence_update(self, presence: Presence, jid: str | None = None) -> None: ...

    async def close(self) -> None: ...


class ConnectionFactory(Protocol):
    async def __call__(
        self, session: SessionState, *, config: ProviderConfig, get_message: GetMessage
    ) -> Connection: ...


def dig(obj: Any, *path: str) -> Any:
    """
    Walk `path` through nested mappings or attributes, returning None on a miss.

    Collaborator payloads arrive either as plain dicts (camelCase keys) or as
    objects exposing the same names as attributes.
    """

    cur = obj
    for name in path:
        if cur is None:
            return None
        if isinstance(cur, Mapping):
            cur = cur.get(name)
        else:
            cur = getattr(cur, name, None)
    return cur
