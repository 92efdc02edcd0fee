"""
Staged Pipeline Example

This example runs the pipeline one stage at a time and builds a custom layer
stack: a satellite basemap, a continuous fill, white outlines and one marker
per borough coloured by population. It also shows how to re-run only the
basemap stage after an unsupported zoom level.

Output: Three PNG files in ./output comparing layer orders and themes.

Usage:
    python examples/staged_pipeline.py https://example.org/london_sport.zip
"""

import logging
import sys
from pathlib import Path

from layered_maps import MapPipeline, Theme, UnsupportedZoomError
from layered_maps.data import feature_centroids
from layered_maps.rendering import FillLayer, OutlineLayer, PointLayer, RasterLayer, list_providers

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

# ============================================================================
# Available Basemaps
# ============================================================================

print("Basemap providers")
print("=" * 60)
for source, styles in list_providers().items():
    print(f"  {source:12s} {', '.join(styles)}")
print()


def main() -> int:
    if len(sys.argv) < 2:
        print("Usage: python examples/staged_pipeline.py <archive-url>")
        return 2

    output_dir = Path("output")
    output_dir.mkdir(exist_ok=True)

    pipeline = MapPipeline(sys.argv[1], "data/london", id_column="ons_label")
    pipeline.fetch()
    pipeline.load()
    pipeline.project()
    pipeline.flatten()

    # ========================================================================
    # Basemap: a static single-image provider refuses multi-tile zooms
    # ========================================================================

    try:
        pipeline.basemap(source="esri-static", style="satellite", zoom=12)
    except UnsupportedZoomError as e:
        print(f"✗ {e}")
        print("  Retrying the basemap stage with the tiled provider...")
        pipeline.basemap(source="esri", style="satellite", zoom=12)

    points = feature_centroids(pipeline.projected, pipeline.attributes)

    # ========================================================================
    # Map 1: basemap, fill, outlines, markers
    # ========================================================================

    layers = [
        RasterLayer(pipeline.raster),
        FillLayer(pipeline.table, column="Partic_Per", alpha=0.5, label="Participation (%)"),
        OutlineLayer(pipeline.table, color="white", linewidth=0.8),
        PointLayer(points, column="Pop_2001", size=40, alpha=0.8, label="Population (2001)"),
    ]
    pipeline.compose(layers, theme=Theme(title="Sports participation"))
    print(f"✓ Saved {pipeline.save(output_dir / 'london_layers.png')}")

    # ========================================================================
    # Map 2: same layers with the basemap drawn last (it hides everything)
    # ========================================================================

    pipeline.compose(layers[1:] + layers[:1], theme=Theme.nothing())
    print(f"✓ Saved {pipeline.save(output_dir / 'london_basemap_on_top.png')}")

    # ========================================================================
    # Map 3: no basemap, custom gradient, fixed colour limits
    # ========================================================================

    theme = Theme(low_color="white", high_color="darkblue", color_limits=(10, 30), show_axes=False)
    pipeline.compose([FillLayer(pipeline.table, column="Partic_Per"), OutlineLayer(pipeline.table)], theme=theme)
    print(f"✓ Saved {pipeline.save(output_dir / 'london_fill_only.png')}")

    pipeline.compositor.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
