"""Waveform view with two draggable cut markers.

:class:`EditSession` is the model behind the editor: it owns one recording's
histogram and cut window, turns pointer positions into times, and draws
the current frame with Pillow. The browser editor served by
:mod:`recordathon.web` runs the same rules in JavaScript.
"""

from __future__ import annotations

import enum

from PIL import Image, ImageDraw

from .config import AUTOCUT_THRESHOLD, CANVAS_HEIGHT, CANVAS_WIDTH
from .cuts import CutWindow

BACKGROUND = "#ddd"
BAR_COLOR = "#FF6900"
MARKER_COLOR = "#000"


class DragState(enum.Enum):
    IDLE = "idle"
    DRAGGING_START = "start"
    DRAGGING_END = "end"

    def flipped(self) -> "DragState":
        if self is DragState.DRAGGING_START:
            return DragState.DRAGGING_END
        if self is DragState.DRAGGING_END:
            return DragState.DRAGGING_START
        return self


class EditSession:
    """One recording open in the editor.

    ``sound`` needs a ``duration`` attribute and a ``histogram(buckets)``
    method; :class:`recordathon.sound.Sound` provides both. The histogram
    is computed once with one bucket per two pixels.
    """

    def __init__(
        self,
        sound,
        start: float = 0.0,
        end: float | None = None,
        width: int = CANVAS_WIDTH,
        height: int = CANVAS_HEIGHT,
    ):
        self.sound = sound
        self.duration = float(sound.duration)
        self.start = float(start)
        self.end = self.duration if end is None else float(end)
        self.width = width
        self.height = height
        self.histogram = list(sound.histogram(width // 2))
        self.drag = DragState.IDLE
        self.frame = self.render()

    @property
    def cut(self) -> CutWindow:
        return CutWindow(start=self.start, end=self.end)

    def time_to_x(self, time: float) -> float:
        if self.duration <= 0:
            return 0.0
        return time * self.width / self.duration

    def x_to_time(self, x: float) -> float:
        x = min(max(x, 0), self.width)
        return x * self.duration / self.width

    def marker_positions(self) -> tuple[float, float]:
        return self.time_to_x(self.start), self.time_to_x(self.end)

    def render(self) -> Image.Image:
        """Draw a fresh frame from the current state."""
        image = Image.new("RGB", (self.width, self.height), BACKGROUND)
        draw = ImageDraw.Draw(image)
        middle = self.height / 2

        for i, value in enumerate(self.histogram):
            bar = middle * value
            top = int(round(middle - bar))
            bottom = int(round(middle + bar))
            if bottom <= top:
                continue
            draw.rectangle([i * 2, top, i * 2, bottom - 1], fill=BAR_COLOR)

        left, right = self.marker_positions()
        left_x = min(max(int(left), 0), self.width - 1)
        # the end marker sits just inside its position so it shows at full duration
        right_x = min(max(int(right) - 1, 0), self.width - 1)
        draw.rectangle([left_x, 0, left_x, self.height - 1], fill=MARKER_COLOR)
        draw.rectangle([right_x, 0, right_x, self.height - 1], fill=MARKER_COLOR)
        return image

    def redraw(self) -> Image.Image:
        self.frame = self.render()
        return self.frame

    def autocut(self, threshold: float = AUTOCUT_THRESHOLD) -> CutWindow:
        """Trim leading and trailing buckets at or below ``threshold``.

        If no bucket is louder than the threshold, the cut is left as it was.
        """
        if self.histogram:
            index_to_time = self.duration / len(self.histogram)
            for i, value in enumerate(self.histogram):
                if value > threshold:
                    self.start = i * index_to_time
                    break
            for i in range(len(self.histogram) - 1, -1, -1):
                if self.histogram[i] > threshold:
                    self.end = i * index_to_time
                    break
        self.redraw()
        return self.cut

    def begin_drag(self, x: float) -> DragState:
        left, right = self.marker_positions()
        if abs(x - left) < abs(x - right):
            self.drag = DragState.DRAGGING_START
        else:
            self.drag = DragState.DRAGGING_END
        return self.drag

    def update_drag(self, x: float) -> None:
        if self.drag is DragState.IDLE:
            return
        time = self.x_to_time(x)
        if self.drag is DragState.DRAGGING_START:
            self.start = time
        else:
            self.end = time
        # keep dragging the same bar after the markers cross
        if self.end < self.start:
            self.start, self.end = self.end, self.start
            self.drag = self.drag.flipped()
        self.redraw()

    def end_drag(self) -> None:
        self.drag = DragState.IDLE
