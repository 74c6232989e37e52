from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol


class KeyStore(Protocol):
    async def get(self, key_type: str, ids: list[str]) -> dict[str, Any]: ...

    async def set(self, data: Mapping[str, Mapping[str, Any | None]]) -> None: ...

    async def clear(self) -> None: ...


@dataclass(slots=True)
class SessionState:
    """
    Serialized session material handed to the connection factory.

    `creds` is opaque to this package: the underlying connection owns its layout
    and mutates it, announcing changes with `creds.update`.
    """

    creds: dict[str, Any]
    keys: KeyStore
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def is_registered(self) -> bool:
        return bool(self.creds.get("me"))


class SessionStore(Protocol):
    async def load(self) -> SessionState: ...

    async def save_creds(self) -> None: ...

    async def clear(self) -> None: ...
