"""Runtime settings and logging setup.

Values come from explicit arguments first, then the environment (a ``.env``
file is loaded with python-dotenv), then the defaults below.
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .errors import ConfigError

APP_TITLE = "Recordathon"
CUTS_FILENAME = "cuts.json"
AUDIO_SUFFIX = ".wav"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
CANVAS_WIDTH = 600
CANVAS_HEIGHT = 70
AUTOCUT_THRESHOLD = 0.03

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


@dataclass
class Settings:
    root: Path
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    cuts_filename: str = CUTS_FILENAME
    canvas_width: int = CANVAS_WIDTH
    canvas_height: int = CANVAS_HEIGHT
    autocut_threshold: float = AUTOCUT_THRESHOLD
    ffmpeg: str = "ffmpeg"

    @property
    def cuts_path(self) -> Path:
        return self.root / self.cuts_filename


def parse_port(value: str | int) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid port number: {value}") from exc
    if not 0 < port < 65536:
        raise ConfigError(f"Invalid port number: {value}")
    return port


def load_settings(
    root: str | os.PathLike[str] | None = None,
    port: str | int | None = None,
    host: str | None = None,
) -> Settings:
    load_dotenv()

    root = root or os.getenv("RECORDATHON_ROOT")
    if not root:
        raise ConfigError("No storage root given (pass one or set RECORDATHON_ROOT)")

    if port is None:
        port = os.getenv("RECORDATHON_PORT", str(DEFAULT_PORT))

    return Settings(
        root=Path(root).expanduser().resolve(),
        host=host or os.getenv("RECORDATHON_HOST", DEFAULT_HOST),
        port=parse_port(port),
        ffmpeg=os.getenv("RECORDATHON_FFMPEG", "ffmpeg"),
    )


def ffmpeg_bin(settings: Settings) -> str:
    local = settings.root / "ffmpeg"
    if local.exists() and os.access(local, os.X_OK):
        return str(local)
    return shutil.which(settings.ffmpeg) or settings.ffmpeg


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%H:%M:%S")
