import io

import numpy as np
from scipy.io import wavfile


def wav_bytes(samples, rate=8000):
    buf = io.BytesIO()
    wavfile.write(buf, rate, np.asarray(samples))
    return buf.getvalue()


def tone(seconds, rate=8000, amplitude=0.5, silence_before=0.0, silence_after=0.0):
    """Mono int16 sine burst with optional silence around it."""
    t = np.arange(int(seconds * rate)) / rate
    burst = amplitude * np.sin(2 * np.pi * 440 * t)
    before = np.zeros(int(silence_before * rate))
    after = np.zeros(int(silence_after * rate))
    signal = np.concatenate([before, burst, after])
    return np.int16(signal * 32767)


class StubSound:
    """Just enough of Sound for an EditSession."""

    def __init__(self, duration, histogram):
        self.duration = duration
        self._histogram = list(histogram)

    def histogram(self, buckets):
        return list(self._histogram)
