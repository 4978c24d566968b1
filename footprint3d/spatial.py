"""Rectangle index over arbitrary keys, backed by a shapely STRtree."""

from __future__ import annotations

from typing import Iterable, Optional, Tuple

from shapely.geometry import LineString, Point, box
from shapely.geometry.base import BaseGeometry
from shapely.strtree import STRtree

Rect = Tuple[float, float, float, float]


def geom_to_rect(geom: BaseGeometry) -> Optional[Rect]:
    """Bounding rectangle of a geometry, or None when it is empty."""
    if geom is None or geom.is_empty:
        return None
    return tuple(float(v) for v in geom.bounds)


def rect_to_geom(rect: Rect) -> BaseGeometry:
    """
    Geometry whose envelope is ``rect``.

    Degenerate rectangles become points or lines so they still land in
    the tree.
    """
    minx, miny, maxx, maxy = rect
    if minx == maxx and miny == maxy:
        return Point(minx, miny)
    if minx == maxx or miny == maxy:
        return LineString([(minx, miny), (maxx, maxy)])
    return box(minx, miny, maxx, maxy)


def rects_intersect(a: Rect, b: Rect) -> bool:
    """Inclusive rectangle overlap; touching edges count."""
    return a[0] <= b[2] and b[0] <= a[2] and a[1] <= b[3] and b[1] <= a[3]


class RectIndex:
    """
    Maps bounding rectangles to keys and answers "what overlaps this
    rectangle" queries.

    The STRtree is built lazily on the first search after a change, so
    ``insert`` is cheap but a bulk ``build`` is the expected usage.
    """

    def __init__(self):
        self._keys = []
        self._rects = []
        self._tree = None

    @classmethod
    def build(cls, pairs: Iterable[Tuple[object, Rect]]) -> "RectIndex":
        """Bulk-build from ``(key, rect)`` pairs, preserving their order."""
        index = cls()
        for key, rect in pairs:
            index.insert(key, rect)
        return index

    def insert(self, key, rect: Rect) -> None:
        self._keys.append(key)
        self._rects.append(tuple(float(v) for v in rect))
        self._tree = None

    def __len__(self) -> int:
        return len(self._keys)

    def search(self, rect: Optional[Rect]) -> list:
        """Keys whose rectangles overlap ``rect``, in insertion order."""
        if rect is None or not self._keys:
            return []
        if self._tree is None:
            self._tree = STRtree([rect_to_geom(r) for r in self._rects])
        hits = self._tree.query(rect_to_geom(rect))
        # The tree compares envelopes; re-check so the answer is exactly
        # rectangle overlap.
        return [
            self._keys[i]
            for i in sorted(int(i) for i in hits)
            if rects_intersect(self._rects[i], rect)
        ]

    def overall_bounds(self) -> Optional[Rect]:
        """Minimum bounding rectangle of every entry; None for an empty index."""
        if not self._rects:
            return None
        return (
            min(r[0] for r in self._rects),
            min(r[1] for r in self._rects),
            max(r[2] for r in self._rects),
            max(r[3] for r in self._rects),
        )
