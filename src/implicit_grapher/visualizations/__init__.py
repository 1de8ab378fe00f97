"""Visualization utilities for implicit relations.

This module contains:
- Raster fill surface for renderer output
- Multi-relation plot context
"""

from implicit_grapher.visualizations.raster import MAX_LABEL, RasterCanvas, RelationPlot

__all__ = ["MAX_LABEL", "RasterCanvas", "RelationPlot"]
