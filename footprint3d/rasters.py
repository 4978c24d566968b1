"""
Elevation rasters: decoding, caching, and a per-CRS spatial index.

Rasters are identified by path. Their small summary facts (bounds, CRS)
are resolved once and kept for the life of a catalog; the decoded pixel
payloads are held in a bounded least-recently-used cache and re-read on
demand after eviction.
"""

from __future__ import annotations

import logging
import math
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional

import numpy as np
import rasterio
from pyproj import Transformer
from rasterio.errors import RasterioError

from footprint3d.config import RASTER_CACHE_SIZE
from footprint3d.errors import RasterDecodeError
from footprint3d.spatial import Rect, RectIndex, rects_intersect

logger = logging.getLogger(__name__)


class Coverage:
    """
    A decoded single-band elevation grid.

    Args:
        values: 2D array of cell values (rows, cols)
        transform: Affine transform from (col, row) to (x, y)
        crs: CRS identifier string such as ``"EPSG:27700"``, or None
        nodata: No-data sentinels for each band
    """

    def __init__(self, values: np.ndarray, transform, crs: Optional[str], nodata=()):
        self.values = np.asarray(values)
        self.transform = transform
        self.crs = crs
        self._nodata = [set() if v is None else {float(v)} for v in nodata] or [set()]
        self._inverse = ~transform

    @property
    def height(self) -> int:
        return self.values.shape[0]

    @property
    def width(self) -> int:
        return self.values.shape[1]

    def bounds(self) -> tuple:
        """((minx, miny, maxx, maxy), crs)"""
        t = self.transform
        xs = (t.c, t.c + t.a * self.width)
        ys = (t.f, t.f + t.e * self.height)
        return (min(xs), min(ys), max(xs), max(ys)), self.crs

    def no_data_values(self, band: int = 0) -> set:
        if band >= len(self._nodata):
            return set()
        return self._nodata[band]

    def sample_at(self, x: float, y: float) -> Optional[float]:
        """Cell value under (x, y), or None when the point is off the grid."""
        col, row = self._inverse * (x, y)
        col, row = math.floor(col), math.floor(row)
        if row < 0 or col < 0 or row >= self.height or col >= self.width:
            return None
        return float(self.values[row, col])


def open_coverage(raster) -> Coverage:
    """Read band 1 of a raster file with rasterio."""
    with rasterio.open(raster) as src:
        values = src.read(1)
        crs = src.crs.to_string() if src.crs else None
        return Coverage(values, src.transform, crs, nodata=src.nodatavals[:1])


@dataclass(frozen=True)
class RasterFacts:
    """What the index needs to know about a raster without its pixels."""

    raster: object
    bounds: Rect
    crs: Optional[str]


class RasterCatalog:
    """
    Caches for raster facts and decoded payloads.

    Decoding is pure, so two threads racing on the same raster may both
    decode it; the second result simply replaces the first.

    Args:
        decoder: Callable turning a raster id into a ``Coverage``
        max_payloads: Decoded payloads kept before the least recently used
            one is evicted
    """

    def __init__(self, decoder: Callable[[object], Coverage] = open_coverage,
                 max_payloads: int = RASTER_CACHE_SIZE):
        self.decoder = decoder
        self.max_payloads = max_payloads
        self._payloads = OrderedDict()
        self._facts: Dict[object, RasterFacts] = {}
        self._lock = threading.Lock()

    def load(self, raster) -> Coverage:
        """Decoded payload for ``raster``, via the cache."""
        with self._lock:
            if raster in self._payloads:
                self._payloads.move_to_end(raster)
                return self._payloads[raster]

        try:
            coverage = self.decoder(raster)
        except (RasterioError, OSError, ValueError) as e:
            raise RasterDecodeError(raster, str(e)) from e

        with self._lock:
            self._payloads[raster] = coverage
            self._payloads.move_to_end(raster)
            while len(self._payloads) > self.max_payloads:
                evicted, _ = self._payloads.popitem(last=False)
                logger.debug(f"Evicted raster payload {evicted}")
        return coverage

    def facts(self, raster) -> RasterFacts:
        """Bounds and CRS of ``raster``, resolved once."""
        cached = self._facts.get(raster)
        if cached is not None:
            return cached

        logger.info(f"Load summary information for {raster}")
        bounds, crs = self.load(raster).bounds()
        if not bounds[2] > bounds[0] or not bounds[3] > bounds[1]:
            raise RasterDecodeError(raster, f"empty bounds {bounds}")

        facts = RasterFacts(raster=raster, bounds=tuple(float(v) for v in bounds), crs=crs)
        self._facts[raster] = facts
        return facts

    @property
    def cached_payloads(self) -> list:
        return list(self._payloads)

    def clear(self) -> None:
        """Forget every cached fact and payload."""
        with self._lock:
            self._payloads.clear()
            self._facts.clear()


# Process-wide catalog used when callers don't bring their own.
CATALOG = RasterCatalog()


def rasters_to_index(rasters: Iterable, catalog: RasterCatalog = None) -> Dict[Optional[str], RectIndex]:
    """
    Make an index saying which of these rasters is where.

    Args:
        rasters: Raster ids (paths)
        catalog: Catalog to resolve facts through (default: ``CATALOG``)

    Returns:
        Mapping from CRS identifier to a RectIndex of the raster ids in
        that CRS. Rasters are never reprojected here.

    Raises:
        RasterDecodeError: if any raster cannot be read
    """
    catalog = catalog or CATALOG
    logger.info("Indexing rasters...")

    by_crs: Dict[Optional[str], list] = {}
    for raster in rasters:
        facts = catalog.facts(raster)
        by_crs.setdefault(facts.crs, []).append(facts)

    index = {
        crs: RectIndex.build((f.raster, f.bounds) for f in group)
        for crs, group in by_crs.items()
    }
    for crs, tree in index.items():
        logger.info(f"  {crs}: {len(tree)} rasters")
    return index


def envelope_covers_index(raster_crs: Optional[str], index: RectIndex,
                          shapes_crs: str, shapes_bounds: Rect) -> bool:
    """
    Check whether any raster in ``index`` could touch the footprints.

    Args:
        raster_crs: CRS of the rasters in ``index``
        index: RectIndex of rasters
        shapes_crs: CRS of the footprints
        shapes_bounds: (minx, miny, maxx, maxy) of all footprints

    Returns:
        True if the footprint envelope, reprojected into ``raster_crs``,
        intersects the overall bounds of the index
    """
    raster_mbr = index.overall_bounds()
    if raster_mbr is None:
        return False
    if raster_crs is None:
        logger.warning(f"Skipping {len(index)} rasters with no CRS")
        return False

    if raster_crs != shapes_crs:
        transformer = Transformer.from_crs(shapes_crs, raster_crs, always_xy=True)
        shapes_bounds = transformer.transform_bounds(*shapes_bounds)
    return rects_intersect(raster_mbr, tuple(shapes_bounds))


def relevant_indices(index: Dict[Optional[str], RectIndex], shapes_crs: str,
                     shapes_bounds: Rect) -> Dict[Optional[str], RectIndex]:
    """The CRS groups of ``index`` worth sampling for these footprints."""
    return {
        crs: tree
        for crs, tree in index.items()
        if envelope_covers_index(crs, tree, shapes_crs, shapes_bounds)
    }


def find_rasters(tree: RectIndex, rect: Optional[Rect]) -> list:
    """Locate all the rasters whose bounds overlap ``rect``."""
    return tree.search(rect)

