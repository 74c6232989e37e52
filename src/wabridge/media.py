"""
Media acquisition: resolve a local path or http(s) URL to a local file plus its
content type.

A reference that exists on the local filesystem is always treated as local, even
when it also parses as a URL. Remote bodies are streamed to a fresh temporary
file which is then renamed to carry the resolved extension.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import mimetypes
import secrets
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import IO
from urllib.parse import urlsplit

import httpx

from .exceptions import DownloadError, MediaSourceError, RenameError, UnresolvableContentTypeError

logger = logging.getLogger(__name__)

# Only the built-in table; host mime.types files vary between machines.
_MIME = mimetypes.MimeTypes(filenames=())

_PREFERRED_EXT: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/webp": "webp",
    "audio/mpeg": "mp3",
    "audio/ogg": "ogg",
    "audio/opus": "opus",
    "audio/mp4": "m4a",
    "audio/aac": "aac",
    "video/mp4": "mp4",
    "text/plain": "txt",
    "application/octet-stream": "bin",
}

# Checked before the built-in table, which lacks .ogg/.m4a on 3.11 and varies by version.
_TYPE_BY_EXT: dict[str, str] = {ext: ctype for ctype, ext in _PREFERRED_EXT.items()}
_TYPE_BY_EXT["oga"] = "audio/ogg"


class SourceKind(enum.Enum):
    LOCAL = "local"
    REMOTE = "remote"


@dataclass(frozen=True, slots=True)
class MediaDescriptor:
    """
    An acquired media file.

    Remote downloads leave a temporary file behind; deleting it (see `cleanup`) is
    the caller's responsibility.
    """

    source_kind: SourceKind
    local_path: Path
    content_type: str
    extension: str

    @property
    def family(self) -> str:
        return self.content_type.split("/", 1)[0]

    def cleanup(self) -> None:
        """Remove the file if it is a downloaded temporary; local sources are left alone."""

        if self.source_kind is SourceKind.REMOTE:
            self.local_path.unlink(missing_ok=True)


def _base_type(content_type: str | None) -> str | None:
    if not content_type:
        return None
    base = content_type.split(";", 1)[0].strip().lower()
    return base or None


def extension_for(content_type: str | None) -> str | None:
    base = _base_type(content_type)
    if not base:
        return None
    if base in _PREFERRED_EXT:
        return _PREFERRED_EXT[base]
    ext = _MIME.guess_extension(base, strict=False)
    return ext.lstrip(".") if ext else None


def content_type_for(path: str | Path) -> str | None:
    name = Path(path).name
    _stem, dot, ext = name.rpartition(".")
    if dot and ext.lower() in _TYPE_BY_EXT:
        return _TYPE_BY_EXT[ext.lower()]
    ctype, _enc = _MIME.guess_type(name, strict=False)
    return ctype


def _is_http_url(reference: str) -> bool:
    scheme = urlsplit(reference).scheme
    return scheme in ("http", "https")


def _temp_path() -> Path:
    name = f"tmp-{time.time_ns()}-{secrets.token_hex(4)}-dat"
    return Path(tempfile.gettempdir()) / name


class MediaAcquirer:
    """
    Stateless: concurrent `acquire()` calls share nothing.

    `transport` replaces the network layer of the per-call `httpx.AsyncClient`
    (e.g. `httpx.MockTransport` in tests).
    """

    def __init__(
        self, *, timeout_s: float = 30.0, transport: httpx.AsyncBaseTransport | None = None
    ) -> None:
        self.timeout_s = timeout_s
        self._transport = transport

    async def acquire(self, reference: str | Path) -> MediaDescriptor:
        ref = str(reference)
        local = Path(ref).expanduser()
        if await asyncio.to_thread(local.is_file):
            return self._describe_local(local)
        if not _is_http_url(ref):
            raise MediaSourceError(f"{ref!r} is neither an existing file nor an http(s) URL")
        return await self._download(ref)

    def _describe_local(self, path: Path) -> MediaDescriptor:
        ctype = content_type_for(path)
        ext = path.suffix.lstrip(".").lower() or extension_for(ctype)
        if not ctype or not ext:
            raise UnresolvableContentTypeError(str(path), ctype)
        return MediaDescriptor(
            source_kind=SourceKind.LOCAL, local_path=path, content_type=ctype, extension=ext
        )

    async def _download(self, url: str) -> MediaDescriptor:
        tmp = _temp_path()
        try:
            ctype = await self._stream_to(url, tmp)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise

        ext = extension_for(ctype)
        if not ext:
            tmp.unlink(missing_ok=True)
            raise UnresolvableContentTypeError(url, ctype)

        final = tmp.with_name(f"{tmp.name}.{ext}")
        try:
            await asyncio.to_thread(tmp.rename, final)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise RenameError(f"cannot rename {tmp} to {final}: {e}") from e

        logger.debug("downloaded %s to %s (%s)", url, final, ctype)
        return MediaDescriptor(
            source_kind=SourceKind.REMOTE,
            local_path=final,
            content_type=_base_type(ctype) or "",
            extension=ext,
        )

    async def _stream_to(self, url: str, dest: Path) -> str | None:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_s, follow_redirects=True, transport=self._transport
            ) as client:
                async with client.stream("GET", url) as resp:
                    if resp.status_code >= 400:
                        raise DownloadError(
                            url, f"HTTP {resp.status_code}", status_code=resp.status_code
                        )
                    fh: IO[bytes] = await asyncio.to_thread(dest.open, "wb")
                    try:
                        async for chunk in resp.aiter_bytes():
                            await asyncio.to_thread(fh.write, chunk)
                    finally:
                        await asyncio.to_thread(fh.close)
                    return resp.headers.get("content-type")
        except httpx.HTTPError as e:
            raise DownloadError(url, str(e) or type(e).__name__) from e
        except OSError as e:
            raise DownloadError(url, f"cannot write {dest}: {e}") from e
