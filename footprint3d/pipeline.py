"""
Enrich building footprints with dimensions estimated from elevation rasters.

Stages run in a fixed order, each producing a new FeatureSet:

1. estimate_party_walls     shared fraction of each outline
2. footprint_and_perimeter  area, perimeter and corners in a metric CRS
3. prune                    drop polygons with no area
4. intersect_with_lidar     ground level and height from each relevant raster group
5. derive_fields            storeys, floor area, surfaces and volume
"""

import logging
from typing import Callable, Dict, Optional

import geopandas as gpd
import shapely
from pyproj import Transformer
from pyproj.exceptions import ProjError
from shapely.errors import GEOSException, ShapelyError
from shapely.geometry.base import BaseGeometry
from shapely.ops import transform
from tqdm import tqdm

from footprint3d.config import (
    BUFFER_SIZE, CORNER_SIMPLIFY_TOLERANCE, GROUND_LEVEL_THRESHOLD, STOREY_HEIGHT
)
from footprint3d.derive import derive_more_fields
from footprint3d.dimensions import shape_to_dimensions
from footprint3d.errors import Footprint3DError
from footprint3d.features import POLYGON, Feature, FeatureSet, Field
from footprint3d.party_walls import estimate_party_walls, index_features
from footprint3d.rasters import CATALOG, RasterCatalog, relevant_indices
from footprint3d.spatial import RectIndex

logger = logging.getLogger(__name__)


def update_features(shapes: FeatureSet, stage: str, fn: Callable[..., Feature], *args) -> FeatureSet:
    """Apply ``fn(feature, *args)`` to every feature, keeping order."""
    logger.info(f"{stage}: {len(shapes)} features")
    updated = [fn(f, *args) for f in tqdm(shapes.features, desc=f"  {stage}", leave=False)]
    return shapes.with_features(updated)


def count_corners(geom: BaseGeometry) -> int:
    """
    Number of corners left once small wiggles in the outline are
    simplified away. Non-polygons and collapsed polygons have none.
    """
    if geom.geom_type not in ("Polygon", "MultiPolygon") or geom.area == 0:
        return 0
    simplified = geom.simplify(CORNER_SIMPLIFY_TOLERANCE, preserve_topology=True)
    # closing vertex is counted once too many
    return int(shapely.get_num_coordinates(simplified)) - 1


def reprojector(src_crs: str, dst_crs: str) -> Callable[[BaseGeometry], BaseGeometry]:
    """Function taking geometries from ``src_crs`` to ``dst_crs``."""
    if src_crs == dst_crs:
        return lambda geom: geom
    project = Transformer.from_crs(src_crs, dst_crs, always_xy=True).transform
    return lambda geom: transform(project, geom)


def measurement_crs(shapes: FeatureSet) -> str:
    """
    A UTM zone suitable for measuring lengths and areas of ``shapes``.

    With no non-empty geometry there is nothing to locate a zone from, so
    the set's own CRS is used.
    """
    if shapes.total_bounds is None:
        return shapes.crs
    geoms = gpd.GeoSeries([f.geometry for f in shapes.features], crs=shapes.crs)
    utm = geoms.estimate_utm_crs()
    logger.info(f"Measuring footprints in {utm.to_string()}")
    return utm.to_string()


def add_footprint_and_perimeter(feature: Feature, to_metric) -> Feature:
    shape = to_metric(feature.geometry)
    return feature.assoc({
        Field.FOOTPRINT: shape.area,
        Field.PERIMETER: shape.length,
        Field.CORNERS: count_corners(shape),
        Field.NUM_SAMPLES: 0,
    })


def has_footprint(feature: Feature) -> bool:
    """Points and lines are always kept; polygons need some area."""
    return feature.type != POLYGON or feature.get(Field.FOOTPRINT, 0) > 0


def merge_dimensions(feature: Feature, dims: Dict[Field, float]) -> Feature:
    """
    Add lidar results without replacing anything already known.

    The sample count is the exception: it keeps the larger count, so a
    raster group with samples is not hidden by an earlier one without.
    """
    merged = feature.merge_missing(dims)
    if Field.NUM_SAMPLES in dims and Field.NUM_SAMPLES in feature:
        merged = merged.assoc({
            Field.NUM_SAMPLES: max(dims[Field.NUM_SAMPLES], feature.get(Field.NUM_SAMPLES))
        })
    return merged


def intersect_with_lidar(feature: Feature, tree: RectIndex, catalog: RasterCatalog,
                         to_raster, buffer_size: float, ground_level_threshold: float) -> Feature:
    """
    Sample one polygon feature against one CRS group of rasters.

    Points and lines pass through. A failure for this feature is logged
    and the feature is returned as it was.
    """
    if feature.type != POLYGON:
        return feature
    try:
        dims = shape_to_dimensions(
            tree,
            catalog,
            to_raster(feature.geometry),
            buffer_size,
            ground_level_threshold,
        )
    except (Footprint3DError, GEOSException, ShapelyError, ProjError, ValueError):
        logger.exception(f"Error adding lidar data to {feature.describe()}")
        return feature
    return merge_dimensions(feature, dims)


def add_lidar_to_shapes(
    shapes: FeatureSet,
    index: Optional[Dict[Optional[str], RectIndex]],
    buffer_size: float = BUFFER_SIZE,
    ground_level_threshold: float = GROUND_LEVEL_THRESHOLD,
    storey_height: float = STOREY_HEIGHT,
    measure_crs: Optional[str] = None,
    catalog: Optional[RasterCatalog] = None,
) -> FeatureSet:
    """
    Run the full estimation over a set of footprints.

    Args:
        shapes: Footprints (and any points) to enrich
        index: Raster index from ``rasters_to_index``; None or empty skips
            the lidar stage
        buffer_size: Distance grown around each footprint before sampling
        ground_level_threshold: Samples at or below this are ignored
        storey_height: Height of one storey, for storeys <-> height
        measure_crs: CRS to measure area and perimeter in (default: the
            UTM zone of the footprints)
        catalog: Raster catalog (default: the shared ``CATALOG``)

    Returns:
        New FeatureSet with the derived fields attached and zero-area
        polygons removed

    Raises:
        ZeroDivisionError: if the 3D derivation meets a zero area or volume
    """
    catalog = catalog or CATALOG
    logger.info(f"{len(shapes)} shapes to lidarize")

    if len(shapes) == 0:
        return shapes

    feature_index = index_features(shapes.features)
    to_metric = reprojector(shapes.crs, measure_crs or measurement_crs(shapes))

    shapes = update_features(shapes, "estimate_party_walls", estimate_party_walls, feature_index)
    shapes = update_features(shapes, "footprint_and_perimeter", add_footprint_and_perimeter, to_metric)

    kept = [f for f in shapes.features if has_footprint(f)]
    if len(kept) < len(shapes):
        logger.info(f"Removed {len(shapes) - len(kept)} polygons with zero footprint")
    shapes = shapes.with_features(kept)

    bounds = shapes.total_bounds
    if index and bounds is not None:
        index = relevant_indices(index, shapes.crs, bounds)
        logger.info(f"{sum(len(tree) for tree in index.values())} tiles to match against")

        for raster_crs, tree in index.items():
            shapes = update_features(
                shapes,
                f"intersect_with_lidar[{raster_crs}]",
                intersect_with_lidar,
                tree,
                catalog,
                reprojector(shapes.crs, raster_crs),
                buffer_size,
                ground_level_threshold,
            )

    return update_features(shapes, "derive_fields", derive_more_fields, storey_height)
