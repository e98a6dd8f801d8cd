"""Play/pause for the cut window of an :class:`~recordathon.editor.EditSession`."""

from __future__ import annotations

import enum
import io
import logging
import threading
from typing import Callable

from scipy.io import wavfile

logger = logging.getLogger(__name__)


class PlaybackState(enum.Enum):
    IDLE = "idle"
    PLAYING = "playing"


class SoundDevicePlayer:
    """Plays WAV bytes on the default output device with sounddevice."""

    def __init__(self, device=None):
        import sounddevice as sd

        self._sd = sd
        self.device = device

    def play(self, wav_bytes: bytes, on_finished: Callable[[], None]) -> None:
        rate, samples = wavfile.read(io.BytesIO(wav_bytes))
        self._sd.play(samples, samplerate=rate, device=self.device)

        def wait_task():
            self._sd.wait()
            on_finished()

        threading.Thread(target=wait_task, daemon=True).start()

    def stop(self) -> None:
        self._sd.stop()


class PlaybackController:
    """Two-state toggle between idle and playing the current cut.

    Each playback gets a ticket; a completion report carrying an old ticket
    (from a playback the user already stopped) is ignored.
    """

    def __init__(self, session, player=None):
        self.session = session
        self.player = player if player is not None else SoundDevicePlayer()
        self.state = PlaybackState.IDLE
        self._ticket = 0
        self._lock = threading.RLock()
        self._finished = threading.Event()
        self._finished.set()

    @property
    def playing(self) -> bool:
        return self.state is PlaybackState.PLAYING

    def toggle(self) -> PlaybackState:
        with self._lock:
            if self.state is PlaybackState.PLAYING:
                self._ticket += 1
                self.state = PlaybackState.IDLE
                self.player.stop()
                self._finished.set()
                logger.debug("Playback stopped")
                return self.state

            cropped = self.session.sound.crop(self.session.start, self.session.end)
            self._ticket += 1
            ticket = self._ticket
            self.state = PlaybackState.PLAYING
            self._finished.clear()
            try:
                self.player.play(cropped.to_bytes(), lambda: self._on_finished(ticket))
            except Exception:
                self.state = PlaybackState.IDLE
                self._finished.set()
                raise
            logger.debug("Playing %.2fs to %.2fs", self.session.start, self.session.end)
            return self.state

    def _on_finished(self, ticket: int) -> None:
        with self._lock:
            if ticket != self._ticket or self.state is not PlaybackState.PLAYING:
                return
            self.state = PlaybackState.IDLE
            self._finished.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the current playback ends; True if it did."""
        return self._finished.wait(timeout)
