"""Feature records and the fixed set of numeric fields attached to them."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Mapping, Optional

from shapely.geometry.base import BaseGeometry

from footprint3d.errors import MissingFieldError

POLYGON = "polygon"
POINT = "point"
LINE = "line"


class Field(str, Enum):
    """Numeric attributes the pipeline can attach to a feature.

    The value doubles as the output column name.
    """

    PERIMETER = "perimeter"
    FOOTPRINT = "footprint"
    CORNERS = "corners"
    NUM_SAMPLES = "num_samples"
    GROUND_HEIGHT = "ground_height"
    HEIGHT = "height"
    SHARED_PERIMETER = "shared_perimeter"
    SHARED_PERIMETER_M = "shared_perimeter_m"
    PERIMETER_PER_FOOTPRINT = "perimeter_per_footprint"
    STOREYS = "storeys"
    FLOOR_AREA = "floor_area"
    WALL_AREA = "wall_area"
    PARTY_WALL_AREA = "party_wall_area"
    EXTERNAL_WALL_AREA = "external_wall_area"
    EXTERNAL_SURFACE_AREA = "external_surface_area"
    TOTAL_SURFACE_AREA = "total_surface_area"
    VOLUME = "volume"
    EXT_SURFACE_PROPORTION = "ext_surface_proportion"
    EXT_SURFACE_PER_VOLUME = "ext_surface_per_volume"
    TOT_SURFACE_PER_VOLUME = "tot_surface_per_volume"


def type_of_geometry(geometry: BaseGeometry) -> str:
    """Map a shapely geometry type onto a feature type tag."""
    geom_type = geometry.geom_type
    if geom_type in ("Polygon", "MultiPolygon"):
        return POLYGON
    if geom_type in ("Point", "MultiPoint"):
        return POINT
    return LINE


# eq=False: features compare and hash by identity, which the party-wall
# stage relies on to skip the target itself.
@dataclass(frozen=True, eq=False)
class Feature:
    """
    One building (or point) record.

    Attributes:
        geometry: Shapely geometry in the feature set's CRS
        type: One of ``polygon``, ``point`` or ``line``
        values: Numeric fields computed or supplied so far
        properties: Other input attributes, passed through untouched
    """

    geometry: BaseGeometry
    type: str = POLYGON
    values: Mapping[Field, float] = field(default_factory=dict)
    properties: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_geometry(cls, geometry: BaseGeometry, values=None, properties=None) -> "Feature":
        return cls(
            geometry=geometry,
            type=type_of_geometry(geometry),
            values=dict(values or {}),
            properties=dict(properties or {}),
        )

    def __contains__(self, key: Field) -> bool:
        return key in self.values

    def get(self, key: Field, default: Optional[float] = None) -> Optional[float]:
        return self.values.get(key, default)

    def require(self, key: Field, stage: str) -> float:
        """Return a field's value, raising MissingFieldError if it is absent."""
        try:
            return self.values[key]
        except KeyError:
            raise MissingFieldError(key, stage) from None

    def assoc(self, values: Mapping[Field, float]) -> "Feature":
        """Copy of this feature with ``values`` set, overriding existing ones."""
        merged = dict(self.values)
        merged.update(values)
        return replace(self, values=merged)

    def merge_missing(self, values: Mapping[Field, float]) -> "Feature":
        """Copy of this feature with only the still-absent ``values`` set."""
        merged = dict(values)
        merged.update(self.values)
        return replace(self, values=merged)

    def describe(self) -> dict:
        """Everything except the geometry, for log messages."""
        return {
            "type": self.type,
            **{k.value: v for k, v in self.values.items()},
            **dict(self.properties),
        }


@dataclass(frozen=True)
class FeatureSet:
    """Ordered features together with the CRS their geometries are in."""

    crs: str
    features: tuple = ()

    def __len__(self) -> int:
        return len(self.features)

    def __iter__(self):
        return iter(self.features)

    def with_features(self, features) -> "FeatureSet":
        return replace(self, features=tuple(features))

    @property
    def total_bounds(self):
        """(minx, miny, maxx, maxy) over all non-empty geometries, or None."""
        bounds = [f.geometry.bounds for f in self.features if not f.geometry.is_empty]
        if not bounds:
            return None
        return (
            min(b[0] for b in bounds),
            min(b[1] for b in bounds),
            max(b[2] for b in bounds),
            max(b[3] for b in bounds),
        )
