"""Recordings and their cut windows, kept consistent behind one lock.

Every operation that reads or changes storage takes the same lock, so an add
or delete touches the blob and the metadata entry as one step from the point
of view of any other request. Different recordings are serialized too.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ValidationError

from .config import Settings
from .cuts import CutStore, CutWindow
from .errors import ClientInputError, NotFoundError, StorageIOError
from .repository import RecordingRepository, sanitize_name
from .sound import Sound

logger = logging.getLogger(__name__)


class UploadRequest(BaseModel):
    name: str
    data: str
    cut: CutWindow | None = None


@dataclass
class Upload:
    name: str
    data: bytes
    cut: CutWindow | None


def parse_upload(raw: bytes | str) -> Upload:
    """Validate an upload body and decode its audio.

    Nothing is touched on disk here, so a bad request can never leave
    partial state behind.
    """
    try:
        request = UploadRequest.model_validate_json(raw)
    except ValidationError as exc:
        raise ClientInputError(f"Got invalid upload JSON: {exc}") from exc

    try:
        contents = base64.b64decode(request.data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ClientInputError(f"Got invalid base64 upload: {exc}") from exc
    Sound.from_bytes(contents)

    name = sanitize_name(request.name)
    if not name:
        raise ClientInputError(f"Unusable recording name: {request.name!r}")
    return Upload(name=name, data=contents, cut=request.cut)


class Library:
    def __init__(self, root: str | os.PathLike[str], cuts_filename: str = "cuts.json"):
        self.root = Path(root)
        self.cuts = CutStore(self.root / cuts_filename)
        self.recordings = RecordingRepository(self.root)
        self.lock = threading.Lock()

    @classmethod
    def open(cls, settings: Settings) -> "Library":
        try:
            settings.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageIOError(f"Failed to create {settings.root}: {exc}") from exc
        library = cls(settings.root, settings.cuts_filename)
        library.cuts.load_from_disk()
        return library

    def list_recordings(self) -> list[str]:
        with self.lock:
            return self.recordings.list()

    def get_cut(self, name: str) -> CutWindow | None:
        with self.lock:
            return self.cuts.get(sanitize_name(name))

    def add(self, upload: Upload) -> None:
        name = sanitize_name(upload.name)
        with self.lock:
            self.recordings.save(name, upload.data)
            if upload.cut is None:
                self.cuts.remove(name)
            else:
                self.cuts.set(name, upload.cut)
        logger.info("Saved recording %s (%d bytes)", name, len(upload.data))

    def load(self, name: str) -> tuple[CutWindow | None, bytes]:
        """The cut window (``None`` if never set) and the audio of a recording."""
        name = sanitize_name(name)
        with self.lock:
            data = self.recordings.load(name)
            return self.cuts.get(name), data

    def edit_info(self, name: str) -> tuple[CutWindow, bytes]:
        name = sanitize_name(name)
        with self.lock:
            window = self.cuts.get(name)
            if window is None:
                raise NotFoundError(f"No cut stored for {name!r}")
            return window, self.recordings.load(name)

    def set_cut(self, name: str, window: CutWindow) -> None:
        name = sanitize_name(name)
        with self.lock:
            if not self.recordings.exists(name):
                raise NotFoundError(f"No recording named {name!r}")
            self.cuts.set(name, window)

    def delete(self, name: str) -> None:
        name = sanitize_name(name)
        with self.lock:
            self.cuts.remove(name)
            self.recordings.delete(name)
        logger.info("Deleted recording %s", name)
