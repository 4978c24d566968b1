"""Grid sampling of footprints and point queries against elevation rasters."""

import math
from typing import Iterable, List, Tuple

import numpy as np
import shapely
from shapely.geometry.base import BaseGeometry

from footprint3d.config import BUFFER_SIZE, GRID_DIVISIONS, MIN_GRID_STEP
from footprint3d.rasters import Coverage


def grid_step(extent: float) -> float:
    """
    Spacing that puts roughly GRID_DIVISIONS steps across ``extent``.

    Rounds half up, and never goes below MIN_GRID_STEP.
    """
    return max(MIN_GRID_STEP, float(math.floor(extent / GRID_DIVISIONS + 0.5)))


def grid_over(shape: BaseGeometry, buffer_size: float = BUFFER_SIZE) -> np.ndarray:
    """
    Regular grid of points covering ``shape`` grown by ``buffer_size``.

    The buffer catches the ground just outside the walls. Points run
    x-major: every y for the first x, then the next x. This is a plain
    grid rather than area-weighted random sampling.

    Args:
        shape: Footprint polygon, in the raster's CRS
        buffer_size: Outward buffer distance

    Returns:
        (N, 2) array of x, y; empty when the shape degenerates
    """
    shape = shape.buffer(buffer_size)
    if shape.is_empty:
        return np.empty((0, 2))

    x_min, y_min, x_max, y_max = shape.bounds
    extent = max(abs(x_max - x_min), abs(y_max - y_min))
    step = grid_step(extent)

    xs = np.arange(x_min, x_max, step)
    ys = np.arange(y_min, y_max, step)
    if len(xs) == 0 or len(ys) == 0:
        return np.empty((0, 2))

    gx, gy = np.meshgrid(xs, ys, indexing="ij")
    coords = np.column_stack([gx.ravel(), gy.ravel()])
    inside = shapely.covers(shape, shapely.points(coords))
    return coords[inside]


def sample_coords(coverage: Coverage, coords: Iterable) -> List[Tuple[float, float, float]]:
    """
    Sample ``coverage`` at each (x, y).

    Presumes coords are in the raster's CRS. Points off the raster and
    no-data cells are dropped.
    """
    no_data = coverage.no_data_values(0)
    samples = []
    for x, y in coords:
        z = coverage.sample_at(x, y)
        if z is None or z in no_data or math.isnan(z):
            continue
        samples.append((float(x), float(y), z))
    return samples
