from __future__ import annotations

"""
Tile emptiness classification.

A tile is "empty" when no pixel carries content: every pixel is either
fully transparent or pure white (RGB 255,255,255, any alpha). The service
renders its background that way, so such tiles and all their descendants
are treated as having no data.
"""

import io
from dataclasses import dataclass
from typing import FrozenSet, Iterable

import numpy as np
from PIL import Image, UnidentifiedImageError

from wmts.errors import TileDecodeError


def _decode_rgba(data: bytes) -> np.ndarray:
    """Decode image bytes into an (H, W, 4) uint8 array."""
    try:
        with Image.open(io.BytesIO(data)) as im:
            return np.asarray(im.convert("RGBA"), dtype=np.uint8)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise TileDecodeError("tile_decode_failed", str(e)) from e


def has_content(rgba: np.ndarray) -> bool:
    """
    True if any pixel is neither transparent nor white.
    Scans row by row and stops at the first row with content.
    """
    for row in rgba:
        transparent = row[:, 3] == 0
        white = np.all(row[:, :3] == 255, axis=1)
        if not np.all(transparent | white):
            return True
    return False


def is_empty_tile(data: bytes, blank_lengths: Iterable[int] = ()) -> bool:
    return TileClassifier(frozenset(blank_lengths)).is_empty(data)


@dataclass
class TileClassifier:
    """
    `is_empty_tile` bound to the service's known blank-tile byte lengths,
    with counters for the crawl summary.
    """
    blank_lengths: FrozenSet[int] = frozenset()
    placeholders: int = 0
    fast_path_hits: int = 0
    decoded: int = 0

    def __post_init__(self) -> None:
        self.blank_lengths = frozenset(int(n) for n in self.blank_lengths)

    def is_empty(self, data: bytes) -> bool:
        if not data:
            self.placeholders += 1
            return True
        if len(data) in self.blank_lengths:
            self.fast_path_hits += 1
            return True
        self.decoded += 1
        return not has_content(_decode_rgba(data))

    def stats(self) -> dict:
        return {
            "placeholders": self.placeholders,
            "fast_path_hits": self.fast_path_hits,
            "decoded": self.decoded,
        }
