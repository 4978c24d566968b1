"""Reading footprints into FeatureSets and writing enriched results."""

import glob
import logging
from pathlib import Path
from typing import Iterable, Optional

import geopandas as gpd
import numpy as np
import pandas as pd

from footprint3d.config import RASTER_PATTERNS, VECTOR_DRIVERS
from footprint3d.features import Feature, FeatureSet, Field

logger = logging.getLogger(__name__)

FIELD_NAMES = {f.value: f for f in Field}

# Output column holding each feature's type tag; recomputed from the
# geometry on input
TYPE_COLUMN = "feature_type"

# Metric columns reported by summary_stats, in order
SUMMARY_FIELDS = [
    Field.HEIGHT, Field.GROUND_HEIGHT, Field.FOOTPRINT, Field.PERIMETER,
    Field.STOREYS, Field.FLOOR_AREA, Field.VOLUME, Field.SHARED_PERIMETER,
    Field.EXTERNAL_SURFACE_AREA, Field.TOTAL_SURFACE_AREA, Field.NUM_SAMPLES,
]


def geodataframe_to_features(gdf: gpd.GeoDataFrame) -> FeatureSet:
    """
    Convert a GeoDataFrame into a FeatureSet.

    Columns named after a Field (e.g. ``height``, ``storeys``,
    ``floor_area``) become numeric fields where they hold a value; all
    other columns are carried along as properties.
    """
    if gdf.crs is None:
        raise ValueError("Footprints have no CRS defined")

    columns = [c for c in gdf.columns if c not in (gdf.geometry.name, TYPE_COLUMN)]
    features = []
    for row, geom in zip(gdf[columns].itertuples(index=False, name=None), gdf.geometry):
        if geom is None:
            logger.warning("Skipping row with no geometry")
            continue
        values, properties = {}, {}
        for name, value in zip(columns, row):
            if name in FIELD_NAMES:
                if not pd.isna(value):
                    values[FIELD_NAMES[name]] = float(value)
            else:
                properties[name] = value
        features.append(Feature.from_geometry(geom, values=values, properties=properties))

    return FeatureSet(crs=gdf.crs.to_string(), features=tuple(features))


def load_features(path: Path, layer: Optional[str] = None) -> FeatureSet:
    """Read a vector file (GPKG, GeoJSON, Shapefile...) into a FeatureSet."""
    logger.info(f"Loading footprints from {path}")
    kwargs = {"layer": layer} if layer else {}
    gdf = gpd.read_file(path, **kwargs)
    shapes = geodataframe_to_features(gdf)
    logger.info(f"Loaded {len(shapes)} features")
    return shapes


def features_to_geodataframe(shapes: FeatureSet) -> gpd.GeoDataFrame:
    """
    Flatten a FeatureSet into a GeoDataFrame.

    Properties come first, then a TYPE_COLUMN column and one column per
    Field that any feature has, in Field order. Absent fields are NaN.
    """
    clashes = sum(1 for feature in shapes if TYPE_COLUMN in feature.properties)
    if clashes:
        logger.warning(
            f"Property '{TYPE_COLUMN}' on {clashes} features is replaced by the geometry type"
        )

    present = [f for f in Field if any(f in feature for feature in shapes)]
    records = []
    for feature in shapes:
        record = dict(feature.properties)
        record[TYPE_COLUMN] = feature.type
        for f in present:
            record[f.value] = feature.get(f, np.nan)
        records.append(record)

    return gpd.GeoDataFrame(
        pd.DataFrame.from_records(records),
        geometry=[f.geometry for f in shapes],
        crs=shapes.crs,
    )


def save_features(shapes: FeatureSet, path: Path) -> Path:
    """Write a FeatureSet; the format is chosen from the file suffix."""
    path = Path(path)
    driver = VECTOR_DRIVERS.get(path.suffix.lower())
    if driver is None:
        raise ValueError(
            f"Unsupported output format '{path.suffix}'. Supported: {sorted(VECTOR_DRIVERS)}"
        )
    path.parent.mkdir(parents=True, exist_ok=True)
    features_to_geodataframe(shapes).to_file(path, driver=driver)
    logger.info(f"Saved {len(shapes)} features to {path}")
    return path


def save_table(shapes: FeatureSet, path: Path) -> Path:
    """Write the attribute table (no geometry) as CSV."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = pd.DataFrame(features_to_geodataframe(shapes).drop(columns="geometry"))
    df.to_csv(path, index=False)
    logger.info(f"Saved table to {path}")
    return path


def summary_stats(shapes: FeatureSet) -> pd.DataFrame:
    """
    Generate summary statistics for the derived metrics.

    Args:
        shapes: Enriched FeatureSet

    Returns:
        DataFrame with summary statistics
    """
    gdf = features_to_geodataframe(shapes)
    available_cols = [f.value for f in SUMMARY_FIELDS if f.value in gdf.columns]
    if not available_cols:
        return pd.DataFrame()
    return gdf[available_cols].describe()


def find_rasters(paths: Iterable) -> list:
    """
    Expand raster arguments into files.

    Directories are searched recursively for RASTER_PATTERNS, glob
    patterns are expanded, and files are taken as given. Missing paths
    raise FileNotFoundError.
    """
    found = []
    for p in paths:
        if any(c in str(p) for c in "*?["):
            found.extend(sorted(Path(m) for m in glob.glob(str(p), recursive=True)))
            continue
        p = Path(p)
        if p.is_dir():
            matches = set()
            for pattern in RASTER_PATTERNS:
                matches.update(p.rglob(pattern))
            found.extend(sorted(matches))
        elif p.exists():
            found.append(p)
        else:
            raise FileNotFoundError(f"Raster path not found: {p}")
    return found
