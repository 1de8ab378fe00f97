"""Domain ↔ pixel axis mappings.

The renderer only relies on the ``AxisMapping`` protocol: a bounds snapshot
for stale-render detection and a monotonic, invertible point mapping.
``ViewWindow`` is the reference implementation: a rectangular domain window
drawn onto a ``width × height`` canvas with a top-left pixel origin (so the
vertical axis is flipped).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

Bounds = tuple[float, float, float, float]
"""Domain rectangle as (xmin, xmax, ymin, ymax)."""


@runtime_checkable
class AxisMapping(Protocol):
    """Bidirectional mapping between domain and device pixel coordinates."""

    @property
    def bounds(self) -> Bounds:
        """Current domain window (xmin, xmax, ymin, ymax)."""
        ...

    def domain_to_pixel(self, x: float, y: float) -> tuple[float, float]: ...

    def pixel_to_domain(self, px: float, py: float) -> tuple[float, float]: ...


@dataclass
class ViewWindow:
    """Viewing area over the domain, mapped onto a pixel canvas.

    Args:
        width: Canvas width in pixels.
        height: Canvas height in pixels.
        xmin, xmax, ymin, ymax: Domain window (default [-5, 5] × [-5, 5]).

    Example:
        >>> view = ViewWindow(100, 100)
        >>> view.domain_to_pixel(0.0, 0.0)
        (50.0, 50.0)
        >>> view.domain_to_pixel(-5.0, 5.0)
        (0.0, 0.0)
    """

    width: int
    height: int
    xmin: float = -5.0
    xmax: float = 5.0
    ymin: float = -5.0
    ymax: float = 5.0

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            msg = f"Canvas size must be positive, got {self.width}×{self.height}"
            raise ValueError(msg)
        self._validate()

    def _validate(self) -> None:
        values = (self.xmin, self.xmax, self.ymin, self.ymax)
        if not all(math.isfinite(v) for v in values):
            raise ValueError(f"View window must be finite, got {values}")
        if self.xmin >= self.xmax or self.ymin >= self.ymax:
            raise ValueError(f"View window must be non-empty, got {values}")

    @property
    def bounds(self) -> Bounds:
        return (self.xmin, self.xmax, self.ymin, self.ymax)

    @property
    def xdelta(self) -> float:
        return self.xmax - self.xmin

    @property
    def ydelta(self) -> float:
        return self.ymax - self.ymin

    def area(self) -> float:
        return self.xdelta * self.ydelta

    def perimeter(self) -> float:
        return 2 * (self.xdelta + self.ydelta)

    @property
    def pixel_width(self) -> float:
        """Domain width of one pixel column."""
        return self.xdelta / self.width

    @property
    def pixel_height(self) -> float:
        """Domain height of one pixel row."""
        return self.ydelta / self.height

    # Transform operations

    def domain_to_pixel(self, x: float, y: float) -> tuple[float, float]:
        px = self.width * (x - self.xmin) / self.xdelta
        py = self.height * (1 - (y - self.ymin) / self.ydelta)
        return px, py

    def pixel_to_domain(self, px: float, py: float) -> tuple[float, float]:
        x = px * self.xdelta / self.width + self.xmin
        y = (1 - py / self.height) * self.ydelta + self.ymin
        return x, y

    def scale_pixels_to_domain(self, dx: float, dy: float) -> tuple[float, float]:
        """Convert a pixel displacement into the domain pan that follows it."""
        return -dx * self.xdelta / self.width, dy * self.ydelta / self.height

    # Window operations

    def translate(self, dx: float, dy: float, *, pixels: bool = False) -> None:
        """Move the window by (dx, dy), optionally given as a pixel drag."""
        if pixels:
            dx, dy = self.scale_pixels_to_domain(dx, dy)
        self.xmin += dx
        self.xmax += dx
        self.ymin += dy
        self.ymax += dy
        self._validate()

    def zoom(self, x: float, y: float, factor: float, *, pixels: bool = False) -> None:
        """Scale the window about (x, y); factor < 1 zooms in."""
        if factor <= 0 or not math.isfinite(factor):
            raise ValueError(f"Zoom factor must be positive, got {factor}")
        if pixels:
            x, y = self.pixel_to_domain(x, y)
        self.xmin = factor * (self.xmin - x) + x
        self.xmax = factor * (self.xmax - x) + x
        self.ymin = factor * (self.ymin - y) + y
        self.ymax = factor * (self.ymax - y) + y
        self._validate()

    def copy_from(self, other: ViewWindow) -> None:
        """Adopt another window's domain bounds (canvas size unchanged)."""
        self.xmin, self.xmax, self.ymin, self.ymax = other.bounds
        self._validate()

    def resize(self, width: int, height: int) -> None:
        """Change the canvas size, keeping the domain window."""
        if width <= 0 or height <= 0:
            raise ValueError(f"Canvas size must be positive, got {width}×{height}")
        self.width = width
        self.height = height


__all__ = ["AxisMapping", "Bounds", "ViewWindow"]
