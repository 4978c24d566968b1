#!/usr/bin/env python3
"""
Estimate building heights, volumes and surface areas from LIDAR rasters.

Usage:
    python scripts/estimate_dimensions.py --footprints FOOTPRINTS \
        [--rasters RASTER_OR_DIR ...] [--output OUTPUT_DIR]
"""

import logging
import sys
import argparse
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from footprint3d.config import (
    BUFFER_SIZE, GROUND_LEVEL_THRESHOLD, STOREY_HEIGHT, get_output_dir
)
from footprint3d.features import POLYGON
from footprint3d.io import (
    TYPE_COLUMN, features_to_geodataframe, find_rasters, load_features,
    save_features, save_table, summary_stats
)
from footprint3d.pipeline import add_lidar_to_shapes
from footprint3d.rasters import rasters_to_index
from footprint3d.visualize import (
    create_party_wall_map,
    create_statistical_distributions,
    create_thematic_maps,
)

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Estimate building dimensions from LIDAR')
    parser.add_argument('--footprints', type=str, required=True,
                        help='Footprints file (GPKG, GeoJSON, Shapefile)')
    parser.add_argument('--layer', type=str, default=None, help='Layer name within the footprints file')
    parser.add_argument('--rasters', type=str, nargs='*', default=[],
                        help='Raster files or directories of rasters')
    parser.add_argument('--output', type=str, default=None, help='Output directory')
    parser.add_argument('--storey-height', type=float, default=STOREY_HEIGHT,
                        help=f'Height of one storey (default: {STOREY_HEIGHT})')
    parser.add_argument('--buffer-size', type=float, default=BUFFER_SIZE,
                        help=f'Buffer around footprints when sampling (default: {BUFFER_SIZE})')
    parser.add_argument('--ground-level-threshold', type=float, default=GROUND_LEVEL_THRESHOLD,
                        help=f'Ignore samples at or below this (default: {GROUND_LEVEL_THRESHOLD})')
    parser.add_argument('--measure-crs', type=str, default=None,
                        help='CRS to measure areas in (default: UTM zone of the footprints)')
    parser.add_argument('--no-maps', action='store_true', help='Skip map and chart output')
    return parser.parse_args(argv)


def main(argv=None):
    """Run the estimation pipeline."""
    args = parse_args(argv)

    logger.info("Starting dimension estimation")

    # 1. Load data
    footprints_path = Path(args.footprints)
    if not footprints_path.exists():
        raise FileNotFoundError(f"Footprints not found: {footprints_path}")
    shapes = load_features(footprints_path, layer=args.layer)

    rasters = find_rasters(args.rasters)
    logger.info(f"Found {len(rasters)} rasters")

    # 2. Index rasters
    index = rasters_to_index(rasters) if rasters else None

    # 3. Estimate
    shapes = add_lidar_to_shapes(
        shapes,
        index,
        buffer_size=args.buffer_size,
        ground_level_threshold=args.ground_level_threshold,
        storey_height=args.storey_height,
        measure_crs=args.measure_crs,
    )
    logger.info(f"✓ Estimated dimensions for {len(shapes)} features")

    # 4. Save outputs
    output_base = Path(args.output) if args.output else get_output_dir(footprints_path.stem)
    output_base.mkdir(parents=True, exist_ok=True)

    output_path = save_features(shapes, output_base / "buildings_with_dimensions.gpkg")
    table_path = save_table(shapes, output_base / "buildings_with_dimensions.csv")

    stats_path = output_base / "summary_stats.csv"
    summary_stats(shapes).to_csv(stats_path)
    logger.info(f"✓ Saved statistics to {stats_path}")

    # 5. Create visualizations
    maps_dir = output_base / "maps"
    if not args.no_maps and len(shapes) > 0:
        logger.info("Creating visualizations...")
        gdf = features_to_geodataframe(shapes)
        gdf = gdf[gdf[TYPE_COLUMN] == POLYGON]
        if len(gdf) == 0:
            logger.warning("No polygons to map")
        else:
            if 'volume' in gdf.columns:
                create_thematic_maps(gdf, maps_dir / "height_volume_maps.png")
            create_party_wall_map(gdf, maps_dir / "party_walls.png")
            create_statistical_distributions(gdf, maps_dir / "statistical_distributions.png")

    logger.info("=" * 60)
    logger.info("PIPELINE COMPLETE")
    logger.info(f"  Features: {output_path}")
    logger.info(f"  Table:    {table_path}")
    logger.info(f"  Stats:    {stats_path}")
    if not args.no_maps:
        logger.info(f"  Maps:     {maps_dir}")
    logger.info("=" * 60)


if __name__ == "__main__":
    main()
