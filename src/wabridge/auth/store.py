from __future__ import annotations

import asyncio
import shutil
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from ..exceptions import AuthFailure
from ..util import json as bufferjson
from .state import SessionState

_FILE_LOCKS: dict[Path, asyncio.Lock] = {}


def _fix_filename(name: str) -> str:
    return name.replace("/", "__").replace(":", "-")


def _lock_for(path: Path) -> asyncio.Lock:
    lock = _FILE_LOCKS.get(path)
    if lock is None:
        lock = asyncio.Lock()
        _FILE_LOCKS[path] = lock
    return lock


async def _read_text(path: Path) -> str:
    return await asyncio.to_thread(path.read_text, "utf-8")


async def _write_text(path: Path, data: str) -> None:
    await asyncio.to_thread(path.write_text, data, "utf-8")


async def _unlink(path: Path) -> None:
    await asyncio.to_thread(path.unlink, missing_ok=True)


class MultiFileKeyStore:
    def __init__(self, folder: Path) -> None:
        self._folder = folder

    async def get(self, key_type: str, ids: list[str]) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for key_id in ids:
            fn = self._folder / _fix_filename(f"{key_type}-{key_id}.json")
            try:
                async with _lock_for(fn):
                    raw = await _read_text(fn)
                out[key_id] = bufferjson.loads(raw)
            except FileNotFoundError:
                out[key_id] = None
        return out

    async def set(self, data: Mapping[str, Mapping[str, Any | None]]) -> None:
        tasks: list[asyncio.Task[None]] = []
        for category, items in data.items():
            for key_id, value in items.items():
                fn = self._folder / _fix_filename(f"{category}-{key_id}.json")
                if value is None:
                    tasks.append(asyncio.create_task(self._remove(fn)))
                else:
                    tasks.append(asyncio.create_task(self._write(fn, value)))
        if tasks:
            await asyncio.gather(*tasks)

    async def clear(self) -> None:
        for p in self._folder.glob("*.json"):
            if p.name == "creds.json":
                continue
            await self._remove(p)

    async def _write(self, path: Path, obj: Any) -> None:
        async with _lock_for(path):
            await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
            await _write_text(path, bufferjson.dumps(obj))

    async def _remove(self, path: Path) -> None:
        async with _lock_for(path):
            await _unlink(path)


class MultiFileSessionStore:
    """
    Baileys-style multi-file session directory.

    - `creds.json` stores the credential bundle.
    - key material is stored as `{type}-{id}.json` files.
    - `clear()` removes the whole directory (used after a logout).
    """

    def __init__(self, folder: str | Path) -> None:
        self.folder = Path(folder).expanduser()
        self._state: SessionState | None = None

    @property
    def creds_path(self) -> Path:
        return self.folder / "creds.json"

    async def load(self) -> SessionState:
        try:
            await asyncio.to_thread(self.folder.mkdir, parents=True, exist_ok=True)
            creds: dict[str, Any] = {}
            if self.creds_path.exists():
                async with _lock_for(self.creds_path):
                    raw = await _read_text(self.creds_path)
                d = bufferjson.loads(raw)
                if not isinstance(d, dict):
                    raise TypeError("creds.json did not contain an object")
                creds = d
        except (OSError, ValueError, TypeError) as e:
            raise AuthFailure(f"failed to load session from {self.folder}: {e}") from e

        self._state = SessionState(creds=creds, keys=MultiFileKeyStore(self.folder))
        return self._state

    async def save_creds(self) -> None:
        if self._state is None:
            return
        async with _lock_for(self.creds_path):
            await asyncio.to_thread(self.folder.mkdir, parents=True, exist_ok=True)
            await _write_text(self.creds_path, bufferjson.dumps(self._state.creds, indent=2))

    async def clear(self) -> None:
        self._state = None
        await asyncio.to_thread(shutil.rmtree, self.folder, ignore_errors=True)
