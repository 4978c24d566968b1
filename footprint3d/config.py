"""Configuration settings for the project."""

from pathlib import Path

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent

# Output path
OUTPUTS_DIR = PROJECT_ROOT / "outputs"

# Raster file patterns picked up when a directory is given
RASTER_PATTERNS = ["*.tif", "*.tiff", "*.asc"]

# Vector formats by suffix (see io.save_features)
VECTOR_DRIVERS = {
    ".gpkg": "GPKG",
    ".geojson": "GeoJSON",
    ".json": "GeoJSON",
    ".shp": "ESRI Shapefile",
}


def get_output_dir(name: str = None) -> Path:
    """
    Get the output directory for a named run.

    Args:
        name: Run name (e.g., the footprint file stem). ``None`` gives the
            top-level outputs directory.

    Returns:
        Path to the run output directory

    Examples:
        >>> get_output_dir('bristol')
        Path('outputs/bristol')
    """
    if name is None:
        return OUTPUTS_DIR
    return OUTPUTS_DIR / name


# Estimation parameters
STOREY_HEIGHT = 3.0  # m per storey
BUFFER_SIZE = 1.5  # m grown around a footprint before sampling
GROUND_LEVEL_THRESHOLD = -5.0  # m, samples at or below are spurious
MIN_HEIGHT_ABOVE_GROUND = 0.5  # m, heights at or below are ground noise

# Grid sampling: ~GRID_DIVISIONS steps across the larger side, never finer
# than MIN_GRID_STEP
GRID_DIVISIONS = 50
MIN_GRID_STEP = 1.0

# Corner counting simplifies outlines at this tolerance first
CORNER_SIMPLIFY_TOLERANCE = 7.5

# Decoded raster payloads held at once (least recently used evicted first)
RASTER_CACHE_SIZE = 8

# Visualization settings
DPI = 300
FIGURE_SIZE = (12, 8)
COLORMAP_HEIGHT = "viridis"
COLORMAP_VOLUME = "plasma"
COLORMAP_PARTY_WALL = "magma"
