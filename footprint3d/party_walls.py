"""Shared-wall (party wall) estimation between neighbouring footprints."""

import logging
from typing import Iterable, List

import shapely
from shapely.errors import GEOSException, ShapelyError
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union

from footprint3d.features import Feature, Field
from footprint3d.spatial import RectIndex, geom_to_rect

logger = logging.getLogger(__name__)

LINEAR_TYPES = ("LineString", "LinearRing")


def index_features(features: Iterable[Feature]) -> RectIndex:
    """RectIndex of features by bounding rectangle; empty geometries are left out."""
    index = RectIndex()
    for feature in features:
        rect = geom_to_rect(feature.geometry)
        if rect is not None:
            index.insert(feature, rect)
    return index


def linear_parts(geom: BaseGeometry) -> List[BaseGeometry]:
    """The line components of ``geom``; points are discarded."""
    return [g for g in shapely.get_parts(geom) if g.geom_type in LINEAR_TYPES]


def estimate_party_walls(feature: Feature, index: RectIndex) -> Feature:
    """
    Work out what fraction of a feature's outline it shares with others.

    Neighbours are the features in ``index`` whose rectangles overlap this
    one's; the feature itself is skipped by identity, so a distinct
    feature with identical geometry still counts. The shared outline is
    the union of the linear parts of each boundary intersection.

    Any geometry failure is logged and gives a fraction of 0.

    Returns:
        Copy of ``feature`` with SHARED_PERIMETER set
    """
    try:
        geom = feature.geometry
        neighbours = [n for n in index.search(geom_to_rect(geom)) if n is not feature]
        if not neighbours:
            return feature.assoc({Field.SHARED_PERIMETER: 0.0})

        boundary = geom.boundary
        perimeter = boundary.length
        # points and lines have no outline to share
        if perimeter == 0:
            return feature.assoc({Field.SHARED_PERIMETER: 0.0})

        inter_bounds = []
        for n in neighbours:
            inter_bounds.extend(linear_parts(boundary.intersection(n.geometry.boundary)))

        party_perimeter = unary_union(inter_bounds).length
        return feature.assoc({Field.SHARED_PERIMETER: party_perimeter / perimeter})
    except (GEOSException, ShapelyError, ValueError):
        logger.exception(f"Error computing party walls for {feature.describe()}")
        return feature.assoc({Field.SHARED_PERIMETER: 0.0})
