"""Building height and ground level from elevation samples."""

import logging
from typing import Dict, Sequence, Tuple

from shapely.geometry.base import BaseGeometry

from footprint3d.config import BUFFER_SIZE, GROUND_LEVEL_THRESHOLD, MIN_HEIGHT_ABOVE_GROUND
from footprint3d.features import Field
from footprint3d.rasters import RasterCatalog, find_rasters
from footprint3d.sampling import grid_over, sample_coords
from footprint3d.spatial import RectIndex, geom_to_rect

logger = logging.getLogger(__name__)


def summarise(
    shape: BaseGeometry,
    coords: Sequence[Tuple[float, float, float]],
    ground_level_threshold: float = GROUND_LEVEL_THRESHOLD,
) -> Dict[Field, float]:
    """
    Approximately summarise a building from its x/y/z samples.

    Samples at or below ``ground_level_threshold`` are treated as
    spurious. The lowest remaining sample is the ground; heights above
    it of MIN_HEIGHT_ABOVE_GROUND or less are ground noise, and the rest
    are averaged into the building height.

    Args:
        shape: Footprint geometry the samples were taken over
        coords: (x, y, z) samples
        ground_level_threshold: Lowest plausible elevation

    Returns:
        ``{NUM_SAMPLES: 0}`` alone if there were no samples, otherwise
        perimeter, footprint, ground height, mean height and the number
        of samples that contributed to it
    """
    if not coords:
        return {Field.NUM_SAMPLES: 0}

    heights = [z for _, _, z in coords if z > ground_level_threshold]
    ground = min(heights) if heights else 0.0

    heights = [z - ground for z in heights]
    heights = [h for h in heights if h > MIN_HEIGHT_ABOVE_GROUND]
    mean_height = sum(heights) / len(heights) if heights else 0.0

    return {
        Field.PERIMETER: shape.length,
        Field.FOOTPRINT: shape.area,
        Field.GROUND_HEIGHT: ground,
        Field.HEIGHT: mean_height,
        Field.NUM_SAMPLES: len(heights),
    }


def shape_to_dimensions(
    tree: RectIndex,
    catalog: RasterCatalog,
    shape: BaseGeometry,
    buffer_size: float = BUFFER_SIZE,
    ground_level_threshold: float = GROUND_LEVEL_THRESHOLD,
) -> Dict[Field, float]:
    """
    Sample every raster under ``shape`` and summarise the result.

    Presumes ``shape`` is already in the CRS of the rasters in ``tree``.
    """
    rasters = find_rasters(tree, geom_to_rect(shape))
    grid = grid_over(shape, buffer_size)

    coords = []
    for raster in rasters:
        coords.extend(sample_coords(catalog.load(raster), grid))
    return summarise(shape, coords, ground_level_threshold)
