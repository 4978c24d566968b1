"""Maps and charts of the estimated building dimensions."""

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import geopandas as gpd
from pathlib import Path
import logging

from footprint3d.config import (
    DPI, FIGURE_SIZE, COLORMAP_HEIGHT, COLORMAP_VOLUME, COLORMAP_PARTY_WALL
)

logger = logging.getLogger(__name__)

LABELS = {
    'height': 'Height (m)',
    'footprint': 'Footprint (m²)',
    'volume': 'Volume (m³)',
    'storeys': 'Storeys',
    'shared_perimeter': 'Shared perimeter fraction',
}


def _require_columns(gdf: gpd.GeoDataFrame, *columns: str) -> None:
    missing = [c for c in columns if c not in gdf.columns]
    if missing:
        raise ValueError(f"GeoDataFrame is missing columns: {missing}")


def _map_column(gdf: gpd.GeoDataFrame, column: str, ax, cmap: str, **kwargs) -> None:
    """Choropleth of one column; buildings without a value are grey."""
    gdf.plot(column=column, ax=ax, cmap=cmap, legend=True,
             legend_kwds={'label': LABELS.get(column, column), 'shrink': 0.7},
             missing_kwds={'color': 'lightgrey'}, **kwargs)
    ax.set_axis_off()


def _save(fig, output_path: Path, what: str) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=DPI, bbox_inches='tight')
    plt.close(fig)
    logger.info(f"Saved {what} to {output_path}")


def create_thematic_maps(gdf: gpd.GeoDataFrame, output_path: Path) -> None:
    """
    Side by side maps of estimated height and volume.

    Args:
        gdf: Polygons with height and volume columns
        output_path: Path to save the figure
    """
    _require_columns(gdf, 'height', 'volume')

    fig, (ax_height, ax_volume) = plt.subplots(1, 2, figsize=FIGURE_SIZE)
    _map_column(gdf, 'height', ax_height, COLORMAP_HEIGHT)
    ax_height.set_title('Estimated height')
    _map_column(gdf, 'volume', ax_volume, COLORMAP_VOLUME)
    ax_volume.set_title('Estimated volume')

    fig.tight_layout()
    _save(fig, output_path, "height/volume maps")


def create_party_wall_map(gdf: gpd.GeoDataFrame, output_path: Path) -> None:
    """
    Map of the shared-perimeter fraction, 0 (detached) to 1 (enclosed).

    Args:
        gdf: Polygons with a shared_perimeter column
        output_path: Path to save the figure
    """
    _require_columns(gdf, 'shared_perimeter')

    fig, ax = plt.subplots(figsize=FIGURE_SIZE)
    _map_column(gdf, 'shared_perimeter', ax, COLORMAP_PARTY_WALL,
                vmin=0.0, vmax=1.0, edgecolor='black', linewidth=0.1)
    ax.set_title('Party walls', fontsize=12, fontweight='bold')
    _save(fig, output_path, "party wall map")


def create_statistical_distributions(gdf: gpd.GeoDataFrame, output_path: Path) -> None:
    """
    One histogram per estimated metric, with the median marked.

    Storeys are whole numbers and get one bar per storey count.

    Args:
        gdf: Polygons with metric columns
        output_path: Path to save the figure
    """
    columns = [c for c in LABELS if c in gdf.columns and gdf[c].notna().any()]
    if not columns:
        raise ValueError("No metric columns found in GeoDataFrame")

    fig, axes = plt.subplots(1, len(columns), figsize=(3.5 * len(columns), 4), squeeze=False)

    for ax, col in zip(axes[0], columns):
        data = gdf[col].dropna()
        if col == 'storeys':
            counts = data.astype(int).value_counts().sort_index()
            ax.bar(counts.index, counts.values, color='steelblue', edgecolor='black')
            ax.set_xticks(counts.index)
        else:
            ax.hist(data, bins=30, color='steelblue', edgecolor='black', alpha=0.8)
            ax.axvline(data.median(), color='red', linestyle='--',
                       label=f'Median: {data.median():.2f}')
            ax.legend(fontsize=8)
        ax.set_xlabel(LABELS[col])
        ax.set_ylabel('Buildings')
        ax.grid(True, alpha=0.3, axis='y')

    fig.suptitle(f'Estimated dimensions ({len(gdf)} buildings)', fontweight='bold')
    fig.tight_layout()
    _save(fig, output_path, "statistical distributions")
