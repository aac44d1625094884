"""Error types for WMTS access and tile pruning."""


class WmtsError(Exception):
    """Base exception for fatal WMTS / pruning failures.

    Args:
        code: Stable error code, e.g. ``"capabilities_fetch_failed"``.
        details: Optional technical details for logs.
    """

    def __init__(self, code: str, details: str = "") -> None:
        super().__init__(f"{code}: {details}" if details else code)
        self.code = code
        self.details = details


class CapabilitiesError(WmtsError):
    """Raised when the capabilities document cannot be fetched or parsed."""
    pass


class TileFetchError(WmtsError):
    """Raised when a GetTile request fails (non-200, no response, transport error)."""

    def __init__(self, code: str, details: str = "", url: str = "", status_code=None) -> None:
        super().__init__(code, details)
        self.url = url
        self.status_code = status_code


class TileDecodeError(WmtsError):
    """Raised when tile bytes cannot be decoded as an image."""
    pass


class ConfigError(WmtsError):
    """Raised when the pruner configuration is invalid."""
    pass
