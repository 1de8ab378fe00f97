"""Raster fill surface and multi-relation plot context.

``RasterCanvas`` is a numpy ``uint8`` grid (row = pixel y, column = pixel x,
top-left origin) that accepts the renderer's fill callbacks. Each relation
drawn through a ``RelationPlot`` paints its own label value, so overlapping
graphs stay distinguishable in the saved array.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable, Mapping
from pathlib import Path

import numpy as np
from numpy.typing import NDArray

from implicit_grapher.algorithms.compiler import compile_relation
from implicit_grapher.algorithms.expression import (
    CompiledRelation,
    Expression,
    RelationKind,
)
from implicit_grapher.algorithms.renderer import (
    AdaptiveRenderer,
    FillCallback,
    RenderConfig,
    RenderStats,
    RenderStatus,
    RenderTask,
)
from implicit_grapher.algorithms.view import ViewWindow

logger = logging.getLogger(__name__)

MAX_LABEL = int(np.iinfo(np.uint8).max)


class RasterCanvas:
    """Pixel grid receiving fill rectangles.

    Example:
        >>> canvas = RasterCanvas(4, 3)
        >>> canvas.fill(0.5, 0.5, 1.0, 1.0)
        >>> canvas.filled_count
        4
        >>> print(canvas.to_text())
        ##..
        ##..
        ....
    """

    def __init__(self, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"Canvas size must be positive, got {width}×{height}")
        self.pixels: NDArray[np.uint8] = np.zeros((height, width), dtype=np.uint8)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def mask(self) -> NDArray[np.bool_]:
        """Boolean image of painted pixels."""
        return self.pixels != 0

    @property
    def filled_count(self) -> int:
        return int(np.count_nonzero(self.pixels))

    def clear(self) -> None:
        self.pixels.fill(0)

    def paint(self, px: float, py: float, w: float, h: float, value: int = 1) -> None:
        """Paint a rectangle, rounding outward and clipping to the canvas.

        Raises:
            ValueError: If a coordinate is NaN or the label is out of range.
        """
        if any(math.isnan(v) for v in (px, py, w, h)):
            raise ValueError(f"Fill rectangle has NaN coordinates: {(px, py, w, h)}")
        if not 0 < value <= MAX_LABEL:
            raise ValueError(f"Label must be in 1..{MAX_LABEL}, got {value}")

        x0 = math.floor(max(px, 0.0))
        y0 = math.floor(max(py, 0.0))
        x1 = math.ceil(min(px + w, float(self.width)))
        y1 = math.ceil(min(py + h, float(self.height)))
        if x0 >= x1 or y0 >= y1:
            return  # Entirely off-canvas
        self.pixels[y0:y1, x0:x1] = value

    def fill(self, px: float, py: float, w: float, h: float) -> None:
        """Fill callback painting label 1."""
        self.paint(px, py, w, h)

    def painter(self, value: int) -> FillCallback:
        """Fill callback painting the given label."""
        if not 0 < value <= MAX_LABEL:
            raise ValueError(f"Label must be in 1..{MAX_LABEL}, got {value}")

        def fill(px: float, py: float, w: float, h: float) -> None:
            self.paint(px, py, w, h, value)

        return fill

    def downsample(self, factor: int) -> NDArray[np.uint8]:
        """Block-maximum reduction, so thin curves survive shrinking."""
        if factor < 1:
            raise ValueError(f"Downsample factor must be at least 1, got {factor}")
        if factor == 1:
            return self.pixels.copy()

        pad_h = -self.height % factor
        pad_w = -self.width % factor
        padded = np.pad(self.pixels, ((0, pad_h), (0, pad_w)))
        rows = padded.shape[0] // factor
        cols = padded.shape[1] // factor
        return padded.reshape(rows, factor, cols, factor).max(axis=(1, 3))

    def to_text(self, factor: int = 1, on: str = "#", off: str = ".") -> str:
        """Render painted pixels as text rows (for terminal previews)."""
        grid = self.downsample(factor)
        return "\n".join(
            "".join(on if cell else off for cell in row) for row in grid
        )

    def save(self, path: Path | str) -> Path:
        """Save the pixel array as ``.npy``; returns the written path."""
        path = Path(path)
        if path.suffix != ".npy":
            path = path.with_suffix(".npy")
        path.parent.mkdir(parents=True, exist_ok=True)
        np.save(path, self.pixels)
        return path

    @classmethod
    def load(cls, path: Path | str) -> RasterCanvas:
        pixels = np.load(Path(path))
        if pixels.ndim != 2:
            raise ValueError(f"Expected a 2-D raster, got shape {pixels.shape}")
        canvas = cls(int(pixels.shape[1]), int(pixels.shape[0]))
        canvas.pixels[...] = pixels.astype(np.uint8)
        return canvas


class RelationPlot:
    """Graphing context: several relations drawn over one view and canvas.

    Args:
        view: Axis mapping shared by every relation.
        canvas: Fill surface; defaults to a canvas of the view's size.
        config: Render configuration for every relation.
        clock: Time source passed on to the renderers.

    Example:
        >>> plot = RelationPlot(ViewWindow(100, 100))
        >>> plot.add_relation("SUB(y&,x&)")
        >>> plot.add_relation("ADD(SQ(x&),SQ(y&),-4&)", RelationKind.INEQUALITY)
        >>> [s.status for s in plot.graph_all()]
        [<RenderStatus.COMPLETED: 'completed'>, <RenderStatus.COMPLETED: 'completed'>]
    """

    def __init__(
        self,
        view: ViewWindow,
        canvas: RasterCanvas | None = None,
        config: RenderConfig | None = None,
        *,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        if canvas is None:
            canvas = RasterCanvas(view.width, view.height)
        elif (canvas.width, canvas.height) != (view.width, view.height):
            raise ValueError(
                f"Canvas {canvas.width}×{canvas.height} does not match "
                f"view {view.width}×{view.height}"
            )
        self.view = view
        self.canvas = canvas
        self.config = config if config is not None else RenderConfig()
        self.relations: list[CompiledRelation] = []
        self._clock = clock
        self._task: RenderTask | None = None

    def add_relation(
        self,
        source: str | Expression,
        kind: RelationKind | str = RelationKind.EQUATION,
        *,
        variables: Mapping[str, float] | None = None,
        strict: bool = False,
    ) -> CompiledRelation:
        """Compile a relation and append it to the plot.

        Raises:
            ParseError: If a text source is malformed.
            ValueError: If the plot already holds the maximum number of labels.
        """
        if len(self.relations) >= MAX_LABEL:
            raise ValueError(f"A plot holds at most {MAX_LABEL} relations")
        relation = compile_relation(source, kind, variables=variables, strict=strict)
        self.relations.append(relation)
        return relation

    def clear_relations(self) -> None:
        self.relations.clear()

    @property
    def active_task(self) -> RenderTask | None:
        """Most recently started render task, if any."""
        return self._task

    def is_busy(self) -> bool:
        return self._task is not None and not self._task.done

    def cancel(self) -> None:
        """Request cancellation of the in-flight render, if any."""
        if self._task is not None:
            self._task.cancel()

    def graph_all(
        self,
        quality: float | None = None,
        *,
        on_yield: Callable[[RenderTask], None] | None = None,
    ) -> list[RenderStats]:
        """Clear the canvas and render every relation to completion.

        Relation ``i`` (0-based) paints label ``i + 1``. A graphing pass still
        in flight (for instance one restarted from ``on_yield``) is cancelled
        before the canvas is cleared, so only one traversal ever paints it.
        Graphing stops early if a render is cancelled or goes stale.

        Returns:
            Stats of each render performed, in relation order.
        """
        self.cancel()
        self.canvas.clear()
        results: list[RenderStats] = []

        for label, relation in enumerate(self.relations, start=1):
            renderer = AdaptiveRenderer(
                relation,
                self.view,
                self.canvas.painter(label),
                self.config,
                clock=self._clock,
            )
            task = renderer.render(quality=quality)
            self._task = task
            stats = task.run(on_yield)
            results.append(stats)

            if stats.status is not RenderStatus.COMPLETED:
                logger.info(
                    "Graphing stopped at relation %d (%s): %s",
                    label,
                    relation.expression,
                    stats.status.value,
                )
                break

        return results


__all__ = ["MAX_LABEL", "RasterCanvas", "RelationPlot"]
