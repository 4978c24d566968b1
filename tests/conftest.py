"""Shared pytest fixtures: footprints, in-memory coverages and GeoTIFFs."""

import numpy as np
import pytest
import rasterio
from rasterio.transform import from_origin
from shapely.geometry import box

from footprint3d.features import Feature
from footprint3d.rasters import Coverage, RasterCatalog

CRS = "EPSG:27700"


def make_coverage(values, origin=(0.0, 40.0), cell=1.0, crs=CRS, nodata=None):
    """Coverage with its top-left corner at ``origin``."""
    values = np.asarray(values, dtype="float64")
    return Coverage(values, from_origin(origin[0], origin[1], cell, cell), crs, nodata=(nodata,))


def write_geotiff(path, values, origin=(0.0, 40.0), cell=1.0, crs=CRS, nodata=-9999.0):
    values = np.asarray(values, dtype="float32")
    with rasterio.open(
        path,
        "w",
        driver="GTiff",
        height=values.shape[0],
        width=values.shape[1],
        count=1,
        dtype="float32",
        crs=crs,
        transform=from_origin(origin[0], origin[1], cell, cell),
        nodata=nodata,
    ) as dst:
        dst.write(values, 1)
    return path


def catalog_of(coverages: dict, **kwargs) -> RasterCatalog:
    """Catalog whose decoder looks rasters up in ``coverages``."""
    return RasterCatalog(decoder=lambda raster: coverages[raster], **kwargs)


@pytest.fixture
def unit_squares():
    """Two unit squares sharing the edge x=1."""
    return (
        Feature.from_geometry(box(0, 0, 1, 1)),
        Feature.from_geometry(box(1, 0, 2, 1)),
    )


@pytest.fixture
def terrace_dsm():
    """
    40 x 40 surface model at 1 m, origin (0, 40): ground at 10 m with a
    6 m high block over x in [10, 30), y in [10, 20).
    """
    values = np.full((40, 40), 10.0)
    values[20:30, 10:30] = 16.0
    return make_coverage(values)
