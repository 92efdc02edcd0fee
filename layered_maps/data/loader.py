"""
Shapefile loading into a GeometryCollection and AttributeTable.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import geopandas as gpd
import pandas as pd

from ..constants import SHAPEFILE_PROJECTION_EXTENSION, SHAPEFILE_REQUIRED_EXTENSIONS
from ..exceptions import FormatError
from .model import AttributeTable, GeometryCollection

logger = logging.getLogger("layered_maps.data")


def _companions(shp_path: Path) -> Dict[str, Path]:
    """Map lower-case extension -> file for every file sharing the .shp stem."""
    found = {}
    for candidate in shp_path.parent.iterdir():
        if candidate.is_file() and candidate.stem == shp_path.stem:
            found[candidate.suffix.lower()] = candidate
    return found


def find_shapefile(path: Union[str, Path], layer: Optional[str] = None) -> Path:
    """
    Locate the .shp file to load.

    Args:
        path: A .shp file or a directory searched recursively
        layer: Shapefile stem to pick when the directory holds several

    Returns:
        Path of the .shp file

    Raises:
        FormatError: If no unique shapefile can be found
    """
    path = Path(path)
    if path.is_file():
        if path.suffix.lower() != ".shp":
            raise FormatError(f"Not a shapefile: {path}")
        return path
    if not path.is_dir():
        raise FormatError(f"Dataset path does not exist: {path}")

    candidates = sorted(p for p in path.rglob("*") if p.is_file() and p.suffix.lower() == ".shp")
    if layer is not None:
        candidates = [p for p in candidates if p.stem == layer]

    if not candidates:
        wanted = f"layer '{layer}'" if layer else "any shapefile"
        raise FormatError(f"No .shp file for {wanted} under {path}")
    if len(candidates) > 1:
        names = ", ".join(p.stem for p in candidates)
        raise FormatError(f"Several shapefiles under {path} ({names}); pass layer= to choose one")
    return candidates[0]


def load_dataset(
    path: Union[str, Path],
    layer: Optional[str] = None,
    id_column: Optional[str] = None
) -> Tuple[GeometryCollection, AttributeTable]:
    """
    Parse a shapefile into geometries and attributes.

    Feature identifiers come from ``id_column`` when given, otherwise from the
    positional row index (0, 1, 2, ...). Rows with null or empty geometry are
    dropped from both outputs.

    Args:
        path: Directory containing the extracted dataset, or a .shp file
        layer: Shapefile stem when the directory holds more than one
        id_column: Attribute column holding unique feature identifiers

    Returns:
        Tuple of (GeometryCollection, AttributeTable)

    Raises:
        FormatError: If companion files are missing, the dataset cannot be
            parsed, or identifiers are missing or duplicated

    Example:
        >>> geoms, attrs = load_dataset("data/london", id_column="ons_label")
        >>> len(geoms) == len(attrs)
        True
    """
    shp_path = find_shapefile(path, layer)
    companions = _companions(shp_path)

    missing = [ext for ext in SHAPEFILE_REQUIRED_EXTENSIONS if ext not in companions]
    if missing:
        raise FormatError(f"Shapefile {shp_path.name} is missing companion files: {', '.join(missing)}")
    if SHAPEFILE_PROJECTION_EXTENSION not in companions:
        logger.warning(f"{shp_path.name} has no .prj file; coordinate system is unknown")

    logger.info(f"Loading {shp_path}")
    try:
        frame = gpd.read_file(shp_path)
    except Exception as e:
        raise FormatError(f"Cannot read {shp_path}: {e}") from e

    if id_column is not None:
        if id_column not in frame.columns:
            raise FormatError(
                f"Identifier column '{id_column}' not in {shp_path.name}; "
                f"available: {[c for c in frame.columns if c != frame.geometry.name]}"
            )
        ids = pd.Index(frame[id_column], name="id")
    else:
        ids = pd.RangeIndex(len(frame), name="id")
    frame.index = ids

    empty = frame.geometry.isna() | frame.geometry.is_empty
    if empty.any():
        logger.warning(f"Dropping {int(empty.sum())} features with null or empty geometry")
        frame = frame.loc[~empty.values]

    geometries = GeometryCollection(frame.geometry.rename("geometry"))
    attributes = AttributeTable(pd.DataFrame(frame.drop(columns=frame.geometry.name)))

    crs = geometries.crs.to_string() if geometries.crs is not None else "unknown"
    logger.info(
        f"Loaded {len(geometries)} features with {len(attributes.columns)} attribute columns (crs={crs})"
    )
    return geometries, attributes
