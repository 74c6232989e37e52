from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

from .constants import SESSION_DIRECTORY_NAME, STORE_FILENAME, STORE_FLUSH_INTERVAL_S


def _default_ffmpeg() -> str:
    return os.environ.get("FFMPEG_PATH") or "ffmpeg"


@dataclass(slots=True)
class ProviderConfig:
    name: str = "bot"
    session_dir: str = SESSION_DIRECTORY_NAME
    store_filename: str = STORE_FILENAME
    store_flush_interval_s: float = STORE_FLUSH_INTERVAL_S
    store_max_messages_per_chat: int = 100

    # 0 retries immediately after a transient close.
    reconnect_delay_s: float = 0.0

    browser: tuple[str, str] = ("Mac OS", "Desktop")
    gif_playback: bool = False

    audio_format: str = "opus"
    audio_bitrate: str = "64k"
    ffmpeg_path: str = field(default_factory=_default_ffmpeg)
    download_timeout_s: float = 30.0

    sticker_quality: int = 50
    sticker_type: str = "crop"

    # Forwarded untouched to the connection factory.
    connection_options: dict[str, Any] = field(default_factory=dict)
