"""
Configuration management for LayeredMaps package.

This module provides configuration options for map generation including
figure sizing, DPI, cache directories, HTTP behaviour and basemap tile limits.
Settings can be persisted as YAML or JSON.
"""

import json
import yaml
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

YAML_SUFFIXES = (".yaml", ".yml")
JSON_SUFFIXES = (".json",)

# Fields stored as plain strings/lists on disk
_PATH_FIELDS = ("cache_dir", "output_dir")


def _check_suffix(path: Path) -> None:
    if path.suffix not in YAML_SUFFIXES + JSON_SUFFIXES:
        raise ValueError(
            f"Unsupported file format: {path.suffix}. Use .yaml, .yml, or .json"
        )


def _read_mapping(path: Path) -> Dict[str, Any]:
    _check_suffix(path)
    with open(path, "r") as f:
        if path.suffix in YAML_SUFFIXES:
            return yaml.safe_load(f) or {}
        return json.load(f)


def _write_mapping(path: Path, data: Dict[str, Any]) -> None:
    _check_suffix(path)
    with open(path, "w") as f:
        if path.suffix in YAML_SUFFIXES:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        else:
            json.dump(data, f, indent=2)


@dataclass
class Config:
    """Settings shared by the fetcher, basemap provider and compositor.

    Attributes:
        default_dpi: Resolution of figures and saved maps (dots per inch).
        figure_width: Figure width in inches.
        figure_height: Figure height in inches.
        cache_dir: Directory where downloaded archives are written.
        output_dir: Directory for saving generated maps.
        http_timeout: Seconds before an HTTP request is abandoned. None blocks
            until the server answers or the connection drops.
        chunk_size: Bytes per chunk when streaming archive downloads.
        user_agent: User-Agent header sent to data and tile servers.
        max_tiles: Upper bound on tiles fetched for a single basemap.
        auto_zoom_tiles: Tile budget used when picking a zoom automatically.
        static_image_size: (width, height) in pixels requested from
            single-image basemap providers.
        tile_api_key: API key for tile providers that require one (Stadia).
    """

    default_dpi: int = 150
    figure_width: float = 10.0
    figure_height: float = 10.0
    cache_dir: Path = field(default_factory=lambda: Path.home() / ".layered_maps" / "cache")
    output_dir: Path = field(default_factory=lambda: Path("./output"))
    http_timeout: Optional[float] = None
    chunk_size: int = 64 * 1024
    user_agent: str = "layered-maps/0.1"
    max_tiles: int = 64
    auto_zoom_tiles: int = 16
    static_image_size: Tuple[int, int] = (640, 640)
    tile_api_key: Optional[str] = None

    def __post_init__(self):
        for name in _PATH_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, Path):
                setattr(self, name, Path(value))
        self.static_image_size = tuple(self.static_image_size)

    @classmethod
    def load_from_file(cls, path: Union[str, Path]) -> "Config":
        """Read settings from a YAML or JSON file.

        Keys that are absent keep their defaults.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the extension is not .yaml, .yml or .json.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")
        return cls(**_read_mapping(path))

    def save_to_file(self, path: Union[str, Path]) -> None:
        """Write settings to a YAML or JSON file, chosen by extension.

        Raises:
            ValueError: If the extension is not .yaml, .yml or .json.
        """
        path = Path(path)
        _check_suffix(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = asdict(self)
        for name in _PATH_FIELDS:
            data[name] = str(data[name])
        data["static_image_size"] = list(data["static_image_size"])
        _write_mapping(path, data)

    def validate(self) -> bool:
        """Check value ranges.

        Raises:
            ValueError: Naming the first invalid setting.
        """
        if self.default_dpi <= 0:
            raise ValueError("default_dpi must be positive")
        if self.figure_width <= 0 or self.figure_height <= 0:
            raise ValueError("Figure dimensions must be positive")
        if self.http_timeout is not None and self.http_timeout <= 0:
            raise ValueError("http_timeout must be positive or None")
        if not isinstance(self.chunk_size, int) or self.chunk_size <= 0:
            raise ValueError("chunk_size must be a positive integer")
        if not isinstance(self.max_tiles, int) or self.max_tiles < 1:
            raise ValueError("max_tiles must be an integer >= 1")
        if not isinstance(self.auto_zoom_tiles, int) or not (1 <= self.auto_zoom_tiles <= self.max_tiles):
            raise ValueError("auto_zoom_tiles must be an integer between 1 and max_tiles")
        if len(self.static_image_size) != 2 or min(self.static_image_size) <= 0:
            raise ValueError("static_image_size must be a (width, height) pair of positive integers")
        if not isinstance(self.user_agent, str) or not self.user_agent:
            raise ValueError("user_agent must be a non-empty string")
        return True

    def ensure_directories(self) -> None:
        """Create the cache and output directories."""
        for directory in (self.cache_dir, self.output_dir):
            directory.mkdir(parents=True, exist_ok=True)


def get_default_config() -> Config:
    """Config with every setting at its default."""
    return Config()
