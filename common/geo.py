from __future__ import annotations

from typing import Tuple
import math


# -------------------------
# Tile index -> degrees
# -------------------------
def tile_column_to_longitude(column: float, zoom: int) -> float:
    """West edge longitude (deg) of tile `column` at `zoom` (2^zoom columns)."""
    return column / float(2 ** int(zoom)) * 360.0 - 180.0


def tile_row_to_latitude(row: float, zoom: int) -> float:
    """
    North edge latitude (deg) of tile `row` at `zoom` (Web Mercator).

    Row 0 is the top of the pyramid, so latitude decreases as row grows.
    Row 2^zoom maps to the southern Mercator limit (-85.0511...).
    """
    n = math.pi * (1.0 - 2.0 * row / float(2 ** int(zoom)))
    return math.degrees(math.atan(math.sinh(n)))


def tile_bounds(
    min_col: int, max_col: int, min_row: int, max_row: int, zoom: int
) -> Tuple[float, float, float, float]:
    """
    Geographic extent of an inclusive row/column rectangle.

    Returns (west, south, east, north) in degrees. The far edges use
    max+1 because a tile index names the tile's top-left corner.
    """
    return (
        tile_column_to_longitude(min_col, zoom),
        tile_row_to_latitude(max_row + 1, zoom),
        tile_column_to_longitude(max_col + 1, zoom),
        tile_row_to_latitude(min_row, zoom),
    )


def tile_count(min_col: int, max_col: int, min_row: int, max_row: int) -> int:
    return (max_row - min_row + 1) * (max_col - min_col + 1)
