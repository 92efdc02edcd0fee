"""
Stage-by-stage map pipeline.

MapPipeline keeps the artifact of every stage (extracted files, geometries,
projected geometries, vertex table, basemap, figure) so that a failed or
changed stage can be re-run on its own from the artifacts upstream of it.
Re-running a stage replaces only that stage's artifact; downstream
artifacts stay as they were until their own stage is invoked again.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Optional, Sequence, Tuple, Union

import matplotlib.pyplot as plt
import requests

from .config import Config
from .constants import GEODETIC_CRS
from .data import ArchiveFetcher, load_dataset, project, flatten
from .data.fetcher import archive_name_from_url
from .data.model import AttributeTable, BoundingBox, FlatVertexTable, GeometryCollection, RasterTile
from .data.projection import parse_crs
from .exceptions import InvalidParameterError, LayeredMapsError
from .logging_config import get_logger
from .rendering import BasemapProvider, FillLayer, Layer, MapCompositor, OutlineLayer, RasterLayer, Theme

logger = get_logger(__name__)


class MapPipeline:
    """
    Fetch → load → project → flatten → (basemap) → compose.

    Attributes:
        url: Location of the zipped shapefile
        workdir: Directory the archive is extracted into
        target_crs: CRS the geometries are projected to before flattening
        layer: Shapefile stem, when the archive holds several
        id_column: Attribute column with feature identifiers (None = row index)
        config: Configuration object

    Example:
        >>> pipeline = MapPipeline(
        ...     "https://example.org/london_sport.zip", "data/london",
        ...     id_column="ons_label",
        ... )
        >>> pipeline.fetch()
        >>> pipeline.load()
        >>> pipeline.project()
        >>> pipeline.flatten()
        >>> pipeline.basemap(source="stamen", style="toner")
        >>> fig, ax = pipeline.compose(fill_column="Partic_Per")
        >>>
        >>> # Basemap request failed? Re-run just that stage with another zoom.
        >>> pipeline.basemap(source="stamen", style="toner", zoom=10)
    """

    def __init__(
        self,
        url: str,
        workdir: Union[str, Path],
        target_crs: Any = GEODETIC_CRS,
        layer: Optional[str] = None,
        id_column: Optional[str] = None,
        config: Optional[Config] = None,
        session: Optional[requests.Session] = None
    ):
        self.url = url
        self.workdir = Path(workdir)
        self.target_crs = target_crs
        self.layer = layer
        self.id_column = id_column
        self.config = config if config is not None else Config()

        self.fetcher = ArchiveFetcher(self.config, session=session)
        self.basemap_provider = BasemapProvider(self.config, session=session)
        self.compositor: Optional[MapCompositor] = None

        self.data_dir: Optional[Path] = None
        self.geometries: Optional[GeometryCollection] = None
        self.attributes: Optional[AttributeTable] = None
        self.projected: Optional[GeometryCollection] = None
        self.table: Optional[FlatVertexTable] = None
        self.raster: Optional[RasterTile] = None

    @contextmanager
    def _stage(self, name: str):
        logger.info(f"Stage '{name}' started")
        try:
            yield
        except LayeredMapsError as e:
            logger.error(f"Stage '{name}' failed: {type(e).__name__}: {e}")
            raise
        logger.info(f"Stage '{name}' finished")

    @staticmethod
    def _require(artifact, upstream: str):
        if artifact is None:
            raise InvalidParameterError(f"Run the '{upstream}' stage first")
        return artifact

    def fetch(self) -> Path:
        """Download and extract the archive."""
        with self._stage("fetch"):
            self.data_dir = self.fetcher.fetch(self.url, self.workdir)
        return self.data_dir

    def load(self) -> Tuple[GeometryCollection, AttributeTable]:
        """Parse the extracted shapefile."""
        data_dir = self._require(self.data_dir, "fetch")
        with self._stage("load"):
            self.geometries, self.attributes = load_dataset(
                data_dir, layer=self.layer, id_column=self.id_column
            )
        return self.geometries, self.attributes

    def project(self) -> GeometryCollection:
        """Reproject the loaded geometries into ``target_crs``."""
        geometries = self._require(self.geometries, "load")
        with self._stage("project"):
            self.projected = project(geometries, self.target_crs)
        return self.projected

    def flatten(self) -> FlatVertexTable:
        """Flatten the projected geometries and join the attributes."""
        projected = self._require(self.projected, "project")
        with self._stage("flatten"):
            self.table = flatten(projected, self.attributes)
        return self.table

    def basemap_bbox(self, padding: float = 1.05) -> BoundingBox:
        """Geodetic box around the projected data, grown by ``padding``."""
        projected = self._require(self.projected, "project")
        bbox = projected.bounds
        if not parse_crs(projected.crs).is_geographic:
            bbox = bbox.to_crs(projected.crs, GEODETIC_CRS)
        return bbox.scale(padding)

    def basemap(
        self,
        source: str = "stamen",
        style: str = "toner",
        zoom: Optional[int] = None,
        crop: bool = True,
        padding: float = 1.05
    ) -> RasterTile:
        """Fetch a basemap covering the data (plus ``padding``)."""
        bbox = self.basemap_bbox(padding)
        with self._stage("basemap"):
            self.raster = self.basemap_provider.get_basemap(
                bbox, source=source, style=style, zoom=zoom, crop=crop
            )
        return self.raster

    def default_layers(self, fill_column: Optional[str] = None) -> Sequence[Layer]:
        """Basemap (if fetched), fill and outline layers for the flattened data."""
        table = self._require(self.table, "flatten")
        layers = []
        if self.raster is not None:
            layers.append(RasterLayer(self.raster))
        alpha = 0.6 if self.raster is not None else 1.0
        layers.append(FillLayer(table, column=fill_column, alpha=alpha))
        layers.append(OutlineLayer(table))
        return layers

    def compose(
        self,
        layers: Optional[Sequence[Layer]] = None,
        theme: Optional[Theme] = None,
        fill_column: Optional[str] = None
    ) -> Tuple[plt.Figure, plt.Axes]:
        """Render ``layers`` (default: ``default_layers``) into a figure."""
        if layers is None:
            layers = self.default_layers(fill_column)
        with self._stage("compose"):
            if self.compositor is not None:
                self.compositor.close()
            self.compositor = MapCompositor(theme=theme, config=self.config, crs=self.target_crs)
            fig, ax = self.compositor.render(layers)
        return fig, ax

    def save(self, output_path: Optional[Union[str, Path]] = None) -> Path:
        """
        Save the composed figure.

        Without ``output_path`` the map is written to ``config.output_dir`` as
        a PNG named after the archive (``london_sport.zip`` -> ``london_sport.png``).
        """
        compositor = self._require(self.compositor, "compose")
        if output_path is None:
            output_path = self.config.output_dir / f"{Path(archive_name_from_url(self.url)).stem}.png"
        return compositor.save(output_path)

    def run(
        self,
        fill_column: Optional[str] = None,
        basemap_source: Optional[str] = "stamen",
        basemap_style: str = "toner",
        zoom: Optional[int] = None,
        theme: Optional[Theme] = None
    ) -> Tuple[plt.Figure, plt.Axes]:
        """Run every stage in order; ``basemap_source=None`` skips the basemap."""
        self.fetch()
        self.load()
        self.project()
        self.flatten()
        if basemap_source is not None:
            self.basemap(source=basemap_source, style=basemap_style, zoom=zoom)
        else:
            self.raster = None
        return self.compose(theme=theme, fill_column=fill_column)
