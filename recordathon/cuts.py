"""Cut windows and the JSON-backed store that maps names to them.

The store does no locking of its own. :class:`recordathon.library.Library`
wraps every call in the process-wide lock so that a cut update and the
matching blob write are seen together.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .errors import StartupCorruptionError, StorageIOError

logger = logging.getLogger(__name__)


class CutWindow(BaseModel):
    """A ``start``/``end`` range in seconds.

    ``start <= end`` is not enforced here; the editor restores the order
    after any drag that inverts it.
    """

    start: float = Field(allow_inf_nan=False)
    end: float = Field(allow_inf_nan=False)


_CUTS_ADAPTER = TypeAdapter(dict[str, CutWindow])


class CutStore:
    def __init__(self, path: str | os.PathLike[str]):
        self.path = Path(path)
        self._cuts: dict[str, CutWindow] = {}

    def __len__(self) -> int:
        return len(self._cuts)

    def __contains__(self, name: str) -> bool:
        return name in self._cuts

    def get(self, name: str) -> CutWindow | None:
        return self._cuts.get(name)

    def items(self) -> dict[str, CutWindow]:
        return dict(self._cuts)

    def set(self, name: str, window: CutWindow) -> None:
        cuts = dict(self._cuts)
        cuts[name] = window
        self._write(cuts)
        self._cuts = cuts

    def remove(self, name: str) -> None:
        cuts = dict(self._cuts)
        cuts.pop(name, None)
        self._write(cuts)
        self._cuts = cuts

    def load_from_disk(self) -> None:
        """Replace the in-memory mapping with the file's content.

        A missing file means an empty store. Anything that is not a JSON
        object of ``{"start": number, "end": number}`` entries raises
        :class:`StartupCorruptionError`.
        """
        try:
            content = self.path.read_bytes()
        except FileNotFoundError:
            logger.info("No cut metadata at %s, starting empty", self.path)
            self._cuts = {}
            return
        except OSError as exc:
            raise StorageIOError(f"Failed to read {self.path}: {exc}") from exc

        try:
            self._cuts = _CUTS_ADAPTER.validate_json(content)
        except ValidationError as exc:
            raise StartupCorruptionError(f"Corrupt cut metadata in {self.path}: {exc}") from exc
        logger.info("Loaded %d cut(s) from %s", len(self._cuts), self.path)

    def persist(self) -> None:
        """Rewrite the whole mapping.

        The JSON goes to a sibling temp file which then replaces the real one,
        so readers never see a half-written document.
        """
        self._write(self._cuts)

    def _write(self, cuts: dict[str, CutWindow]) -> None:
        payload = _CUTS_ADAPTER.dump_json(cuts)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            tmp_path.write_bytes(payload)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise StorageIOError(f"Failed to save {self.path}: {exc}") from exc
