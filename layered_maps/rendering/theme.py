"""
Visual theme applied by the map compositor.
"""

from dataclasses import dataclass, replace
from typing import Optional, Tuple

import matplotlib.colors as mcolors

from ..constants import DEFAULT_HIGH_COLOR, DEFAULT_LOW_COLOR


@dataclass(frozen=True)
class Theme:
    """Recognized visual options for a composed map.

    Attributes:
        background_color: Figure and axes background (any Matplotlib color).
        show_axes: Draw the axes frame and lat/lon gridlines with labels.
        aspect_lock: Render one data unit as the same screen distance on both
            axes. Needed for geographic correctness; turn off only for
            diagnostic plots.
        low_color: Gradient colour for the lowest value of a continuous fill.
        high_color: Gradient colour for the highest value of a continuous fill.
        color_limits: Fixed (vmin, vmax) for the gradient; None uses the data range.
        title: Optional figure title.
        show_legend: Add a colorbar for continuous fills.
        show_attribution: Print basemap provider attribution in the corner.
    """

    background_color: str = "white"
    show_axes: bool = True
    aspect_lock: bool = True
    low_color: str = DEFAULT_LOW_COLOR
    high_color: str = DEFAULT_HIGH_COLOR
    color_limits: Optional[Tuple[float, float]] = None
    title: Optional[str] = None
    show_legend: bool = True
    show_attribution: bool = True

    @classmethod
    def nothing(cls, **overrides) -> "Theme":
        """Bare map without axes frame, gridlines or legend."""
        return replace(cls(show_axes=False, show_legend=False), **overrides)

    def validate(self) -> bool:
        """Validate theme options.

        Raises:
            ValueError: If any option is invalid.
        """
        for name in ("background_color", "low_color", "high_color"):
            value = getattr(self, name)
            if not mcolors.is_color_like(value):
                raise ValueError(f"{name} is not a valid color: {value!r}")

        if self.color_limits is not None:
            if len(self.color_limits) != 2:
                raise ValueError("color_limits must be a (vmin, vmax) pair")
            vmin, vmax = self.color_limits
            if not vmin < vmax:
                raise ValueError(f"color_limits must be increasing, got {self.color_limits}")

        for name in ("show_axes", "aspect_lock", "show_legend", "show_attribution"):
            if not isinstance(getattr(self, name), bool):
                raise ValueError(f"{name} must be a boolean")

        return True
