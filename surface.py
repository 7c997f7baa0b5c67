"""
Drawing surfaces — the minimal 2D canvas the renderer draws into.

Surface         : abstract contract (filled rect, filled/stroked circle, line)
ImageSurface    : PIL-backed raster, used by the desktop host and tests
CommandSurface  : records canvas operations for the browser client
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

import numpy as np
from PIL import Image, ImageDraw


class Surface(ABC):
    """2D drawing context of a fixed width × height."""

    def __init__(self, width: int, height: int):
        self.width = int(width)
        self.height = int(height)

    @abstractmethod
    def clear(self) -> None:
        ...

    @abstractmethod
    def fill_rect(self, x: float, y: float, w: float, h: float, color: str) -> None:
        ...

    @abstractmethod
    def fill_circle(self, x: float, y: float, r: float, color: str) -> None:
        ...

    @abstractmethod
    def stroke_circle(self, x: float, y: float, r: float, color: str,
                      width: float = 1) -> None:
        ...

    @abstractmethod
    def line(self, x0: float, y0: float, x1: float, y1: float, color: str,
             width: float = 1, dash: Optional[Sequence[float]] = None) -> None:
        """Straight segment; `dash` is an on/off length pattern like (5, 5)."""
        ...


def dash_segments(x0, y0, x1, y1, dash):
    """Split a segment into the 'on' pieces of a dash pattern."""
    start = np.array([x0, y0], dtype=float)
    delta = np.array([x1, y1], dtype=float) - start
    length = float(np.linalg.norm(delta))
    pattern = [float(d) for d in dash if d > 0]
    if length == 0 or not pattern:
        return [(x0, y0, x1, y1)]
    if len(pattern) % 2:
        pattern = pattern * 2
    unit = delta / length

    segments = []
    t, i = 0.0, 0
    while t < length:
        step = pattern[i % len(pattern)]
        end = min(t + step, length)
        if i % 2 == 0:
            a = start + unit * t
            b = start + unit * end
            segments.append((a[0], a[1], b[0], b[1]))
        t = end
        i += 1
    return segments


class ImageSurface(Surface):
    """Raster surface drawn with PIL ImageDraw."""

    def __init__(self, width: int, height: int):
        super().__init__(width, height)
        self.image = Image.new("RGBA", (self.width, self.height), (0, 0, 0, 0))
        self._draw = ImageDraw.Draw(self.image)

    def clear(self) -> None:
        self._draw.rectangle([0, 0, self.width, self.height], fill=(0, 0, 0, 0))

    def fill_rect(self, x, y, w, h, color):
        self._draw.rectangle([x, y, x + w - 1, y + h - 1], fill=color)

    def fill_circle(self, x, y, r, color):
        self._draw.ellipse([x - r, y - r, x + r, y + r], fill=color)

    def stroke_circle(self, x, y, r, color, width=1):
        self._draw.ellipse([x - r, y - r, x + r, y + r], outline=color,
                           width=max(1, int(round(width))))

    def line(self, x0, y0, x1, y1, color, width=1, dash=None):
        w = max(1, int(round(width)))
        pieces = dash_segments(x0, y0, x1, y1, dash) if dash else [(x0, y0, x1, y1)]
        for ax, ay, bx, by in pieces:
            self._draw.line([(ax, ay), (bx, by)], fill=color, width=w)

    def pixel(self, x: int, y: int):
        return self.image.getpixel((int(x), int(y)))


def _r(v: float) -> float:
    return round(float(v), 2)


class CommandSurface(Surface):
    """
    Records drawing operations as compact JSON-ready lists.

    Ops:
        ["clear"]
        ["rect", x, y, w, h, color]
        ["circle", x, y, r, color]
        ["ring", x, y, r, color, width]
        ["line", x0, y0, x1, y1, color, width, dash]   (dash is a list or null)
    """

    def __init__(self, width: int, height: int):
        super().__init__(width, height)
        self.commands: list = []

    def clear(self) -> None:
        self.commands.append(["clear"])

    def fill_rect(self, x, y, w, h, color):
        self.commands.append(["rect", _r(x), _r(y), _r(w), _r(h), color])

    def fill_circle(self, x, y, r, color):
        self.commands.append(["circle", _r(x), _r(y), _r(r), color])

    def stroke_circle(self, x, y, r, color, width=1):
        self.commands.append(["ring", _r(x), _r(y), _r(r), color, _r(width)])

    def line(self, x0, y0, x1, y1, color, width=1, dash=None):
        self.commands.append([
            "line", _r(x0), _r(y0), _r(x1), _r(y1), color, _r(width),
            list(dash) if dash else None,
        ])

    def flush(self) -> list:
        """Return the recorded frame and start a new one."""
        out = self.commands
        self.commands = []
        return out
