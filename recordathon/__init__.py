"""Recordathon: upload short recordings, cut them, play the cut back.

The server keeps one WAV file per recording under a storage root and a single
``cuts.json`` sidecar mapping each recording name to its ``{start, end}`` cut
window. The editor (in the browser, or :mod:`recordathon.cli` locally) draws a
waveform histogram with two draggable markers and plays the cropped audio.
"""

__version__ = "0.1.0"
