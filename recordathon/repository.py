"""One WAV file per recording under the storage root."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from .config import AUDIO_SUFFIX
from .errors import NotFoundError, StorageIOError

logger = logging.getLogger(__name__)


def sanitize_name(name: str) -> str:
    """Strip every ``/`` and ``.`` from a user-supplied recording name.

    This keeps names inside the storage root and away from the ``.wav``
    suffix. Names that differ only in those characters map to the same
    recording, and the later upload wins.
    """
    return name.replace("/", "").replace(".", "")


class RecordingRepository:
    def __init__(self, root: str | os.PathLike[str], suffix: str = AUDIO_SUFFIX):
        self.root = Path(root)
        self.suffix = suffix

    def path_for(self, name: str) -> Path:
        return self.root / f"{sanitize_name(name)}{self.suffix}"

    def list(self) -> list[str]:
        try:
            entries = os.listdir(self.root)
        except OSError as exc:
            raise StorageIOError(f"Failed to read listing of {self.root}: {exc}") from exc
        return [
            entry[: -len(self.suffix)]
            for entry in entries
            if entry.endswith(self.suffix) and len(entry) > len(self.suffix)
        ]

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()

    def save(self, name: str, data: bytes) -> None:
        path = self.path_for(name)
        try:
            path.write_bytes(data)
        except OSError as exc:
            raise StorageIOError(f"Failed to save uploaded file {path}: {exc}") from exc
        logger.debug("Wrote %d bytes to %s", len(data), path)

    def load(self, name: str) -> bytes:
        path = self.path_for(name)
        try:
            return path.read_bytes()
        except (FileNotFoundError, IsADirectoryError) as exc:
            raise NotFoundError(f"No recording named {name!r}") from exc
        except OSError as exc:
            raise StorageIOError(f"Failed to read {path}: {exc}") from exc

    def delete(self, name: str) -> None:
        path = self.path_for(name)
        try:
            path.unlink()
        except FileNotFoundError as exc:
            raise NotFoundError(f"No recording named {name!r}") from exc
        except OSError as exc:
            raise StorageIOError(f"Failed to delete {path}: {exc}") from exc
