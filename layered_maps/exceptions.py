"""
Custom exceptions for LayeredMaps package.

This module defines one exception class per pipeline stage so that a failure
identifies where it happened: fetch, extract, parse, project, join, basemap
or render. Every error is raised at the stage that detects it; no stage
attempts local recovery.
"""


class LayeredMapsError(Exception):
    """Base exception class for all LayeredMaps errors."""
    pass


class NetworkError(LayeredMapsError):
    """
    Raised when a remote resource cannot be retrieved.

    This covers unreachable hosts, non-success HTTP status codes and
    responses whose body cannot be decoded (e.g. a broken tile image).
    """
    pass


class ExtractionError(LayeredMapsError):
    """
    Raised when a downloaded archive cannot be unpacked.

    This occurs for corrupt or missing archives, members that would escape
    the target directory, or an unwritable destination.
    """
    pass


class FormatError(LayeredMapsError):
    """
    Raised when a vector dataset is malformed or incomplete.

    Typical causes are missing shapefile companion files (.shx, .dbf),
    an unreadable geometry file, or non-unique feature identifiers.
    """
    pass


class ProjectionError(LayeredMapsError):
    """
    Raised for unknown, unspecified or unsupported coordinate systems.
    """
    pass


class JoinError(LayeredMapsError):
    """
    Raised when geometry identifiers have no matching attribute row.

    Unmatched features are surfaced rather than silently dropped.
    """
    pass


class BasemapError(LayeredMapsError):
    """Base class for basemap provider limitations."""
    pass


class UnsupportedZoomError(BasemapError):
    """
    Raised when a provider cannot serve the requested zoom level.

    Single-image providers raise it whenever the zoom would require more
    than one tile; tiled providers raise it outside their zoom range or
    when the request would need more tiles than configured.
    """
    pass


class NoCoverageError(BasemapError):
    """Raised when a provider has no imagery for the requested region."""
    pass


class DomainError(LayeredMapsError):
    """
    Raised when a requested visual attribute is absent from the data.

    For example a fill layer mapped to a column that the flattened table
    does not carry, or one that is not numeric.
    """
    pass


class RenderError(LayeredMapsError):
    """
    Raised when figure composition fails for reasons not covered above.
    """
    pass


class InvalidParameterError(LayeredMapsError):
    """
    Raised for invalid user inputs.

    This exception is used for parameter validation failures such as
    unknown basemap providers, inverted bounding boxes or calling a
    pipeline stage before its inputs exist.
    """
    pass
