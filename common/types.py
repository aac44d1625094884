from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator


@dataclass(frozen=True, slots=True)
class TileCoordinate:
    """
    One tile of the pyramid.

    Attributes:
        zoom: tile matrix level (2^zoom x 2^zoom tiles).
        column: x index, 0 at the west edge.
        row: y index, 0 at the north edge.
    """
    zoom: int
    column: int
    row: int

    def __post_init__(self) -> None:
        if self.zoom < 0:
            raise ValueError("zoom must be >= 0")

    def children(self) -> Iterator["TileCoordinate"]:
        """The four tiles covering this one at zoom+1 (NW, NE, SW, SE)."""
        z = self.zoom + 1
        x = self.column * 2
        y = self.row * 2
        yield TileCoordinate(z, x, y)
        yield TileCoordinate(z, x + 1, y)
        yield TileCoordinate(z, x, y + 1)
        yield TileCoordinate(z, x + 1, y + 1)

    def __str__(self) -> str:
        return f"{self.zoom}/{self.column}/{self.row}"


@dataclass(slots=True)
class FetchResult:
    """Raw bytes of one tile. Empty when the tile lies outside the declared extent."""
    coordinate: TileCoordinate
    data: bytes = b""

    def to_meta(self) -> Dict[str, Any]:
        """Metadata without image bytes (safe to log/serialize)."""
        return {
            "z": self.coordinate.zoom,
            "x": self.coordinate.column,
            "y": self.coordinate.row,
            "bytes": len(self.data),
        }
