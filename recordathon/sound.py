"""Decoded WAV audio: duration, histogram, crop and re-encode."""

from __future__ import annotations

import base64
import io
import struct

import numpy as np
from scipy.io import wavfile

from .errors import ClientInputError


class Sound:
    """PCM samples plus their sample rate.

    ``samples`` is either 1-D (mono) or ``(frames, channels)``, in whatever
    dtype the WAV file carried, so that re-encoding keeps the original format.
    """

    def __init__(self, samples: np.ndarray, rate: int):
        self.samples = samples
        self.rate = int(rate)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Sound":
        try:
            rate, samples = wavfile.read(io.BytesIO(data))
        except (ValueError, EOFError, struct.error) as exc:
            raise ClientInputError(f"Not a readable WAV file: {exc}") from exc
        if rate <= 0:
            raise ClientInputError(f"Invalid sample rate: {rate}")
        return cls(samples, rate)

    @property
    def frame_count(self) -> int:
        return int(self.samples.shape[0])

    @property
    def channels(self) -> int:
        return 1 if self.samples.ndim == 1 else int(self.samples.shape[1])

    @property
    def duration(self) -> float:
        return self.frame_count / self.rate

    def normalized(self) -> np.ndarray:
        """Samples as float64 in [-1, 1] regardless of the stored format."""
        data = self.samples
        if data.dtype == np.uint8:
            return (data.astype(np.float64) - 128.0) / 128.0
        if np.issubdtype(data.dtype, np.integer):
            return data.astype(np.float64) / float(-np.iinfo(data.dtype).min)
        return data.astype(np.float64)

    def histogram(self, buckets: int) -> list[float]:
        """Peak amplitude of each of ``buckets`` equal slices, in [0, 1]."""
        if buckets <= 0:
            return []
        peaks = np.abs(self.normalized())
        if peaks.ndim > 1:
            peaks = peaks.max(axis=1)
        values = []
        for chunk in np.array_split(peaks, buckets):
            values.append(float(min(chunk.max(), 1.0)) if chunk.size else 0.0)
        return values

    def crop(self, start: float, end: float) -> "Sound":
        duration = self.duration
        start = min(max(start, 0.0), duration)
        end = min(max(end, 0.0), duration)
        if end < start:
            start, end = end, start
        first = int(round(start * self.rate))
        last = int(round(end * self.rate))
        return Sound(self.samples[first:last].copy(), self.rate)

    def to_bytes(self) -> bytes:
        buf = io.BytesIO()
        wavfile.write(buf, self.rate, self.samples)
        return buf.getvalue()

    def base64(self) -> str:
        return base64.b64encode(self.to_bytes()).decode("ascii")
