"""
Error types raised by the geoar core.

Pure math functions raise on invalid input instead of returning sentinel
values. The stateful components (alignment engine, sync peer) raise typed
errors the caller is expected to recover from.
"""


class GeoARError(Exception):
    """Base class for all geoar errors."""
    pass


class InvalidInputError(GeoARError, ValueError):
    """Malformed coordinates, non-finite numbers or degenerate quaternions."""
    pass


class NotAlignedError(GeoARError, RuntimeError):
    """A geodetic/local conversion was requested before any localization."""
    pass


class SyncTimeoutError(GeoARError, TimeoutError):
    """The local document did not become ready within the allowed time."""
    pass
