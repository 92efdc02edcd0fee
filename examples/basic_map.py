"""
Basic Map Example

This example demonstrates the simplest LayeredMaps workflow: download a zipped
shapefile of London boroughs, colour each borough by its sports participation
rate and draw it over a street basemap.

Output: A PNG file with the basemap, a semi-transparent green-to-red fill and
borough outlines.

Usage:
    python examples/basic_map.py https://example.org/london_sport.zip
"""

import logging
import sys
from pathlib import Path

from layered_maps import (
    Config,
    LayeredMapsError,
    NetworkError,
    Theme,
    create_map,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


def main() -> int:
    if len(sys.argv) < 2:
        print("Usage: python examples/basic_map.py <archive-url>")
        return 2
    url = sys.argv[1]

    config = Config(figure_width=8.0, figure_height=8.0)
    output_dir = Path("output")
    output_dir.mkdir(exist_ok=True)

    print("Creating London sports participation map...")
    print(f"  Archive: {url}")
    print("  Basemap: OpenStreetMap")
    print()

    try:
        output_path = create_map(
            url,
            workdir="data/london",
            output_path=output_dir / "london_sport.png",
            id_column="ons_label",
            fill_column="Partic_Per",
            basemap_source="osm",
            basemap_style="street",
            theme=Theme(title="Sports participation, London boroughs"),
            config=config,
        )
    except NetworkError as e:
        print(f"✗ Download failed: {e}")
        print("  Check the URL and your connection, then run again.")
        return 1
    except LayeredMapsError as e:
        print(f"✗ Map creation failed: {e}")
        return 1

    print(f"✓ Map saved to: {output_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
