"""Storeys, floor area, wall/surface areas and volume from the measured fields."""

import logging
import math

from footprint3d.config import STOREY_HEIGHT
from footprint3d.features import Feature, Field

logger = logging.getLogger(__name__)


def derive_2d_fields(feature: Feature) -> Feature:
    """Shared perimeter in metres and perimeter per unit footprint."""
    stage = "derive_2d_fields"
    shared_perimeter = feature.require(Field.SHARED_PERIMETER, stage)
    perimeter = feature.require(Field.PERIMETER, stage)
    footprint = feature.require(Field.FOOTPRINT, stage)

    if perimeter == 0:
        perimeter_per_footprint = 0.0
    elif footprint == 0:
        # lines have length but no area
        perimeter_per_footprint = math.inf
    else:
        perimeter_per_footprint = perimeter / footprint

    return feature.assoc({
        Field.SHARED_PERIMETER_M: shared_perimeter * perimeter,
        Field.PERIMETER_PER_FOOTPRINT: perimeter_per_footprint,
    })


def derive_3d_fields(feature: Feature) -> Feature:
    """
    Wall, surface and volume figures for a building with a known height.

    Callers must only pass features with a positive height and footprint.
    A zero in either is not recovered from here: the ZeroDivisionError is
    logged and re-raised.
    """
    stage = "derive_3d_fields"
    shared_perimeter = feature.require(Field.SHARED_PERIMETER, stage)
    perimeter = feature.require(Field.PERIMETER, stage)
    height = feature.require(Field.HEIGHT, stage)
    footprint = feature.require(Field.FOOTPRINT, stage)

    try:
        wall_area = perimeter * height
        party_wall_area = shared_perimeter * wall_area
        external_wall_area = wall_area - party_wall_area
        external_surface_area = external_wall_area + 2 * footprint
        total_surface_area = wall_area + 2 * footprint

        volume = footprint * height

        ext_surface_proportion = external_surface_area / total_surface_area
        ext_surface_per_volume = external_surface_area / volume
        tot_surface_per_volume = total_surface_area / volume
    except ZeroDivisionError:
        logger.exception(f"deriving-3d-fields {feature.describe()}")
        raise

    return feature.assoc({
        Field.WALL_AREA: wall_area,
        Field.PARTY_WALL_AREA: party_wall_area,
        Field.EXTERNAL_WALL_AREA: external_wall_area,
        Field.EXTERNAL_SURFACE_AREA: external_surface_area,
        Field.TOTAL_SURFACE_AREA: total_surface_area,
        Field.VOLUME: volume,
        Field.EXT_SURFACE_PROPORTION: ext_surface_proportion,
        Field.EXT_SURFACE_PER_VOLUME: ext_surface_per_volume,
        Field.TOT_SURFACE_PER_VOLUME: tot_surface_per_volume,
    })


def derive_more_fields(feature: Feature, storey_height: float = STOREY_HEIGHT) -> Feature:
    """
    Fill in storeys, height and floor area from whichever are known, then
    the 2D and 3D figures where their inputs allow.

    - storeys: as given, else floor(height / storey_height), else 1;
      never less than 1
    - height: as given, else storeys * storey_height
    - floor area: as given, else footprint * storeys

    Values already on the feature are never replaced, so running this
    twice gives the same result as running it once.

    Args:
        feature: Feature to derive fields for
        storey_height: Height of one storey

    Returns:
        Updated copy of ``feature``
    """
    height = feature.get(Field.HEIGHT)

    storeys = feature.get(Field.STOREYS)
    if storeys is None:
        storeys = math.floor(height / storey_height) if height is not None else 1
    storeys = max(1, storeys)

    if height is None:
        height = storeys * storey_height

    floor_area = feature.get(Field.FLOOR_AREA)
    if floor_area is None:
        floor_area = feature.get(Field.FOOTPRINT, 0) * storeys

    feature = feature.assoc({
        Field.STOREYS: storeys,
        Field.HEIGHT: height,
        Field.FLOOR_AREA: floor_area,
    })

    if Field.SHARED_PERIMETER not in feature:
        return feature

    if Field.PERIMETER in feature and Field.FOOTPRINT in feature:
        feature = derive_2d_fields(feature)
    if height > 0 and feature.get(Field.FOOTPRINT, 0) > 0:
        feature = derive_3d_fields(feature)
    return feature
