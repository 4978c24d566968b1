"""Error types raised by the estimation pipeline.

Only conditions that should stop a run are raised. Sparse data (points
outside a raster, no-data cells, awkward party-wall topology) is handled
where it occurs and never reaches the caller.

Example:
    try:
        index = rasters_to_index(paths)
    except RasterDecodeError as e:
        print(f"Cannot read {e.raster}: {e}")
"""

from __future__ import annotations


class Footprint3DError(Exception):
    """Base class for all footprint3d errors."""

    pass


class RasterDecodeError(Footprint3DError):
    """Raised when a raster cannot be opened or read.

    Attributes:
        raster: Identifier (usually the path) of the offending raster.
    """

    def __init__(self, raster, reason: str | None = None):
        self.raster = raster
        self.reason = reason
        msg = f"Unable to decode raster {raster}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class MissingFieldError(Footprint3DError):
    """Raised when a stage is entered without one of its required fields.

    Attributes:
        field: The missing field.
        stage: Name of the stage that needed it.
    """

    def __init__(self, field, stage: str):
        self.field = field
        self.stage = stage
        name = getattr(field, "value", field)
        super().__init__(f"'{name}' is required by {stage} but is not set")
