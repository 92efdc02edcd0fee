"""
Constants and fixed parameters for LayeredMaps package.

This module defines the basemap provider registry, coordinate system codes,
web-mercator tiling constants, dataset conventions and styling defaults used
throughout the package.
"""

# ============================================================================
# Coordinate Reference Systems
# ============================================================================

GEODETIC_CRS = "EPSG:4326"
WEB_MERCATOR_CRS = "EPSG:3857"
# World equal-area CRS used for centroids of geographic features
EQUAL_AREA_CRS = "EPSG:6933"

# Web-mercator tiles stop at this latitude (the square-world limit)
MAX_MERCATOR_LATITUDE = 85.0511287798066
# Half the circumference of the web-mercator sphere, in metres
MERCATOR_ORIGIN_SHIFT = 20037508.342789244

# ============================================================================
# Dataset Conventions
# ============================================================================

SHAPEFILE_REQUIRED_EXTENSIONS = (".shp", ".shx", ".dbf")
SHAPEFILE_PROJECTION_EXTENSION = ".prj"

# Column names every flattened vertex row carries, in this order
VERTEX_COLUMNS = ["x", "y", "order", "piece", "hole", "group"]

# ============================================================================
# Basemap Providers
# ============================================================================

TILE_SIZE = 256

PROVIDERS = {
    "esri": {
        "name": "Esri ArcGIS Online",
        "tiled": True,
        "styles": {
            "satellite": "https://server.arcgisonline.com/ArcGIS/rest/services/World_Imagery/MapServer/tile/{z}/{y}/{x}",
            "street": "https://server.arcgisonline.com/ArcGIS/rest/services/World_Street_Map/MapServer/tile/{z}/{y}/{x}",
        },
        "min_zoom": 0,
        "max_zoom": 19,
        "bounds": None,
        "requires_api_key": False,
        "attribution": "Tiles: Esri, Maxar, Earthstar Geographics, and the GIS User Community",
    },
    "osm": {
        "name": "OpenStreetMap",
        "tiled": True,
        "styles": {
            "street": "https://tile.openstreetmap.org/{z}/{x}/{y}.png",
        },
        "min_zoom": 0,
        "max_zoom": 19,
        "bounds": None,
        "requires_api_key": False,
        "attribution": "© OpenStreetMap contributors",
    },
    "stamen": {
        "name": "Stamen (hosted by Stadia Maps)",
        "tiled": True,
        "styles": {
            "toner": "https://tiles.stadiamaps.com/tiles/stamen_toner/{z}/{x}/{y}.png?api_key={api_key}",
            "toner-lite": "https://tiles.stadiamaps.com/tiles/stamen_toner_lite/{z}/{x}/{y}.png?api_key={api_key}",
            "terrain": "https://tiles.stadiamaps.com/tiles/stamen_terrain/{z}/{x}/{y}.png?api_key={api_key}",
        },
        "min_zoom": 0,
        "max_zoom": 18,
        "bounds": None,
        "requires_api_key": True,
        "attribution": "© Stadia Maps © Stamen Design © OpenMapTiles © OpenStreetMap contributors",
    },
    "esri-static": {
        "name": "Esri ArcGIS Online (single image export)",
        "tiled": False,
        "styles": {
            "satellite": (
                "https://server.arcgisonline.com/ArcGIS/rest/services/World_Imagery/MapServer/export"
                "?bbox={minx},{miny},{maxx},{maxy}&bboxSR=3857&imageSR=3857"
                "&size={width},{height}&format=png32&f=image"
            ),
            "street": (
                "https://server.arcgisonline.com/ArcGIS/rest/services/World_Street_Map/MapServer/export"
                "?bbox={minx},{miny},{maxx},{maxy}&bboxSR=3857&imageSR=3857"
                "&size={width},{height}&format=png32&f=image"
            ),
        },
        "min_zoom": 0,
        "max_zoom": 19,
        "bounds": None,
        "requires_api_key": False,
        "attribution": "Imagery: Esri, Maxar, Earthstar Geographics",
    },
}

# ============================================================================
# Styling Constants
# ============================================================================

DEFAULT_FILL_COLOR = "#9ecae1"
DEFAULT_OUTLINE_COLOR = "black"
DEFAULT_OUTLINE_WIDTH = 0.6
DEFAULT_POINT_COLOR = "black"
DEFAULT_POINT_SIZE = 12.0

# Two-endpoint colour gradient for continuous fills
DEFAULT_LOW_COLOR = "green"
DEFAULT_HIGH_COLOR = "red"

# Font Sizes
TITLE_FONT_SIZE = 12
ATTRIBUTION_FONT_SIZE = 6
COLORBAR_LABEL_SIZE = 8

# Figure coordinates (0..1)
TITLE_POSITION = (0.5, 0.985)
ATTRIBUTION_POSITION = (0.995, 0.005)
