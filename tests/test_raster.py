"""Tests for the raster fill surface and the plot context."""

import numpy as np
import pytest

from implicit_grapher.algorithms.expression import RelationKind
from implicit_grapher.algorithms.parser import ParseError
from implicit_grapher.algorithms.renderer import RenderConfig, RenderStatus
from implicit_grapher.algorithms.view import ViewWindow
from implicit_grapher.visualizations.raster import MAX_LABEL, RasterCanvas, RelationPlot


class TestRasterCanvas:
    """Tests for RasterCanvas."""

    def test_initially_blank(self) -> None:
        canvas = RasterCanvas(8, 4)
        assert canvas.pixels.shape == (4, 8)
        assert canvas.pixels.dtype == np.uint8
        assert canvas.filled_count == 0

    def test_rejects_empty(self) -> None:
        with pytest.raises(ValueError, match="Canvas size must be positive"):
            RasterCanvas(0, 4)

    def test_fill_rounds_outward(self) -> None:
        canvas = RasterCanvas(4, 3)
        canvas.fill(0.5, 0.5, 1.0, 1.0)
        assert canvas.filled_count == 4
        assert canvas.to_text() == "##..\n##..\n...."

    def test_fill_integer_aligned(self) -> None:
        canvas = RasterCanvas(4, 4)
        canvas.fill(1.0, 2.0, 2.0, 1.0)
        expected = np.zeros((4, 4), dtype=bool)
        expected[2, 1:3] = True
        np.testing.assert_array_equal(canvas.mask, expected)

    def test_fill_clips(self) -> None:
        canvas = RasterCanvas(4, 4)
        canvas.fill(-10.0, 3.5, 100.0, 100.0)
        assert canvas.filled_count == 4
        assert canvas.mask[3].all()

    def test_fill_off_canvas_ignored(self) -> None:
        canvas = RasterCanvas(4, 4)
        canvas.fill(10.0, 10.0, 2.0, 2.0)
        canvas.fill(-5.0, 0.0, 2.0, 2.0)
        assert canvas.filled_count == 0

    def test_fill_rejects_nan(self) -> None:
        with pytest.raises(ValueError, match="NaN"):
            RasterCanvas(4, 4).fill(float("nan"), 0.0, 1.0, 1.0)

    def test_painter_labels(self) -> None:
        canvas = RasterCanvas(4, 4)
        canvas.painter(3)(0.0, 0.0, 1.0, 1.0)
        assert canvas.pixels[0, 0] == 3

    @pytest.mark.parametrize("value", [0, MAX_LABEL + 1])
    def test_painter_rejects_bad_label(self, value: int) -> None:
        with pytest.raises(ValueError, match="Label"):
            RasterCanvas(4, 4).painter(value)

    def test_clear(self) -> None:
        canvas = RasterCanvas(4, 4)
        canvas.fill(0.0, 0.0, 4.0, 4.0)
        canvas.clear()
        assert canvas.filled_count == 0

    def test_downsample_keeps_thin_lines(self) -> None:
        canvas = RasterCanvas(6, 5)
        canvas.fill(0.0, 2.0, 6.0, 1.0)
        reduced = canvas.downsample(2)
        assert reduced.shape == (3, 3)
        assert reduced[1].all()
        assert not reduced[0].any()

    def test_downsample_rejects_zero(self) -> None:
        with pytest.raises(ValueError):
            RasterCanvas(4, 4).downsample(0)

    def test_save_and_load(self, tmp_path) -> None:
        canvas = RasterCanvas(5, 3)
        canvas.painter(7)(1.0, 1.0, 2.0, 1.0)
        path = canvas.save(tmp_path / "out" / "raster")
        assert path.suffix == ".npy"
        loaded = RasterCanvas.load(path)
        np.testing.assert_array_equal(loaded.pixels, canvas.pixels)


class TestRelationPlot:
    """Tests for the multi-relation plot context."""

    @pytest.fixture
    def plot(self) -> RelationPlot:
        return RelationPlot(ViewWindow(64, 64), config=RenderConfig(quality=2.0))

    def test_default_canvas_matches_view(self, plot: RelationPlot) -> None:
        assert (plot.canvas.width, plot.canvas.height) == (64, 64)

    def test_rejects_mismatched_canvas(self) -> None:
        with pytest.raises(ValueError, match="does not match"):
            RelationPlot(ViewWindow(64, 64), RasterCanvas(32, 32))

    def test_add_relation(self, plot: RelationPlot) -> None:
        relation = plot.add_relation("SUB(y&,x&)")
        assert plot.relations == [relation]
        assert relation.kind is RelationKind.EQUATION

    def test_add_relation_rejects_malformed(self, plot: RelationPlot) -> None:
        with pytest.raises(ParseError):
            plot.add_relation("SUB(y&,x&")
        assert plot.relations == []

    def test_graph_all_labels_each_relation(self, plot: RelationPlot) -> None:
        plot.add_relation("SUB(y&,2&)")
        plot.add_relation("ADD(x&,2&)")
        results = plot.graph_all()
        assert [s.status for s in results] == [RenderStatus.COMPLETED] * 2
        labels = set(np.unique(plot.canvas.pixels).tolist())
        assert labels == {0, 1, 2}

    def test_graph_all_clears_first(self, plot: RelationPlot) -> None:
        plot.canvas.fill(0.0, 0.0, 64.0, 64.0)
        plot.add_relation("SUB(y&,100&)")
        plot.graph_all()
        assert plot.canvas.filled_count == 0

    def test_inequality_fills_region(self, plot: RelationPlot) -> None:
        """x² + y² <= 4 fills roughly the disk of radius 2."""
        plot.add_relation("ADD(SQ(x&),SQ(y&),-4&)", RelationKind.INEQUALITY)
        plot.graph_all()
        # Disk area in pixels: π·(2 · 6.4)² ≈ 515
        assert 450 < plot.canvas.filled_count < 800
        assert plot.canvas.pixels[32, 32] == 1

    def test_graph_all_stops_when_stale(self, plot: RelationPlot) -> None:
        plot.add_relation("SUB(y&,x&)")
        plot.add_relation("ADD(x&,y&)")
        plot.config = RenderConfig(frame_budget_ms=1e-9)
        results = plot.graph_all(on_yield=lambda task: plot.view.translate(0.5, 0.0))
        assert len(results) == 1
        assert results[0].status is RenderStatus.STALE

    def test_busy_only_while_graphing(self, plot: RelationPlot) -> None:
        plot.add_relation("SUB(y&,x&)")
        plot.config = RenderConfig(frame_budget_ms=1e-9)
        seen: list[bool] = []
        plot.graph_all(on_yield=lambda task: seen.append(plot.is_busy()))
        assert seen and all(seen)
        assert not plot.is_busy()
        assert plot.active_task.status is RenderStatus.COMPLETED

    def test_cancel_from_host_hook(self, plot: RelationPlot) -> None:
        plot.add_relation("SUB(y&,x&)")
        plot.add_relation("ADD(x&,y&)")
        plot.config = RenderConfig(frame_budget_ms=1e-9)
        results = plot.graph_all(on_yield=lambda task: plot.cancel())
        assert [s.status for s in results] == [RenderStatus.CANCELLED]
        assert not plot.is_busy()

    def test_restart_cancels_previous_pass(self) -> None:
        """A pass restarted from on_yield owns the canvas from then on."""
        view = ViewWindow(64, 64)
        plot = RelationPlot(view, config=RenderConfig(frame_budget_ms=1e-9))
        plot.add_relation("ADD(SQ(x&),SQ(y&),-9&)")
        restarts: list[list] = []

        def restart(task) -> None:
            if not restarts:
                restarts.append(plot.graph_all(quality=1.0))

        outer = plot.graph_all(quality=4.0, on_yield=restart)
        assert [s.status for s in outer] == [RenderStatus.CANCELLED]
        assert [s.status for s in restarts[0]] == [RenderStatus.COMPLETED]

        reference = RelationPlot(ViewWindow(64, 64))
        reference.add_relation("ADD(SQ(x&),SQ(y&),-9&)")
        reference.graph_all(quality=1.0)
        np.testing.assert_array_equal(plot.canvas.pixels, reference.canvas.pixels)

    def test_clear_relations(self, plot: RelationPlot) -> None:
        plot.add_relation("SUB(y&,x&)")
        plot.clear_relations()
        assert plot.graph_all() == []
