from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from .exceptions import TranscodeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AudioFormat:
    codec: str
    ext: str


AUDIO_FORMATS: dict[str, AudioFormat] = {
    "mp3": AudioFormat(codec="libmp3lame", ext="mp3"),
    "opus": AudioFormat(codec="libopus", ext="opus"),
}


def output_path_for(path: Path, fmt: AudioFormat) -> Path:
    """`<dir>/<stem>.<ext>`; if that is the input itself, `<stem>-converted.<ext>`."""

    out = path.with_name(f"{path.stem}.{fmt.ext}")
    if out == path:
        out = path.with_name(f"{path.stem}-converted.{fmt.ext}")
    return out


class AudioTranscoder:
    """Runs ffmpeg to convert a file. Knows nothing about messages."""

    def __init__(self, *, ffmpeg_path: str = "ffmpeg", bitrate: str = "64k") -> None:
        self.ffmpeg_path = ffmpeg_path
        self.bitrate = bitrate

    def build_command(self, src: Path, dst: Path, fmt: AudioFormat) -> list[str]:
        return [
            self.ffmpeg_path,
            "-y",
            "-hide_banner",
            "-loglevel",
            "error",
            "-i",
            str(src),
            "-vn",
            "-c:a",
            fmt.codec,
            "-b:a",
            self.bitrate,
            "-f",
            fmt.ext,
            str(dst),
        ]

    async def transcode(self, path: str | Path, target_format: str = "opus") -> Path:
        fmt = AUDIO_FORMATS.get(target_format)
        if fmt is None:
            raise ValueError(f"unsupported audio format: {target_format!r}")

        src = Path(path)
        dst = output_path_for(src, fmt)
        cmd = self.build_command(src, dst, fmt)
        logger.debug("transcoding %s -> %s", src, dst)

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise TranscodeError(f"cannot run {self.ffmpeg_path}: {e}") from e

        _, stderr = await proc.communicate()
        if proc.returncode != 0:
            err = stderr.decode(errors="replace").strip() if stderr else ""
            raise TranscodeError(
                f"ffmpeg exited with {proc.returncode} converting {src}",
                returncode=proc.returncode,
                stderr=err,
            )
        return dst
