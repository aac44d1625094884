"""
In-memory PNG tiles and capabilities documents shared by the unit tests.
"""

import io
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlsplit

import numpy as np
from PIL import Image

from wmts.errors import TileFetchError


def png_bytes(rgba: np.ndarray) -> bytes:
    buf = io.BytesIO()
    Image.fromarray(rgba.astype(np.uint8)).save(buf, format="PNG")
    return buf.getvalue()


def transparent_tile(size: int = 16) -> bytes:
    return png_bytes(np.zeros((size, size, 4), dtype=np.uint8))


def white_tile(size: int = 16, alpha: int = 255) -> bytes:
    a = np.full((size, size, 4), 255, dtype=np.uint8)
    a[..., 3] = alpha
    return png_bytes(a)


def content_tile(size: int = 16, pixel: Tuple[int, int] = (3, 5), color=(10, 20, 30, 255)) -> bytes:
    """Transparent tile with one coloured pixel at (row, col)."""
    a = np.zeros((size, size, 4), dtype=np.uint8)
    a[pixel[0], pixel[1]] = color
    return png_bytes(a)


CAPABILITIES_XML = """<?xml version="1.0" encoding="UTF-8"?>
<Capabilities xmlns="http://www.opengis.net/wmts/1.0" xmlns:ows="http://www.opengis.net/ows/1.1" version="1.0.0">
  <ows:ServiceIdentification>
    <ows:Title>Test WMTS</ows:Title>
  </ows:ServiceIdentification>
  <Contents>
    <Layer>
      <ows:Title xml:lang="fi">Sea charts</ows:Title>
      <ows:Identifier>test:charts public</ows:Identifier>
      <Format>image/png</Format>
      <Format>image/jpeg</Format>
      <TileMatrixSetLink>
        <TileMatrixSet>WGS84_Pseudo-Mercator</TileMatrixSet>
      </TileMatrixSetLink>
      <TileMatrixSetLink>
        <TileMatrixSet>EPSG:3395_FTA</TileMatrixSet>
        <TileMatrixSetLimits>
          <TileMatrixLimits>
            <TileMatrix>EPSG:3395_FTA:6</TileMatrix>
            <MinTileRow>10</MinTileRow>
            <MaxTileRow>11</MaxTileRow>
            <MinTileCol>20</MinTileCol>
            <MaxTileCol>21</MaxTileCol>
          </TileMatrixLimits>
          <TileMatrixLimits>
            <TileMatrix>EPSG:3395_FTA:5</TileMatrix>
            <MinTileRow>5</MinTileRow>
            <MaxTileRow>5</MaxTileRow>
            <MinTileCol>10</MinTileCol>
            <MaxTileCol>10</MaxTileCol>
          </TileMatrixLimits>
          <TileMatrixLimits>
            <TileMatrix>EPSG:3395_FTA:x</TileMatrix>
            <MinTileRow>0</MinTileRow>
            <MaxTileRow>0</MaxTileRow>
            <MinTileCol>0</MinTileCol>
            <MaxTileCol>0</MaxTileCol>
          </TileMatrixLimits>
          <TileMatrixLimits>
            <MinTileRow>0</MinTileRow>
            <MaxTileRow>0</MaxTileRow>
            <MinTileCol>0</MinTileCol>
            <MaxTileCol>0</MaxTileCol>
          </TileMatrixLimits>
          <TileMatrixLimits>
            <TileMatrix>EPSG:3395_FTA:7</TileMatrix>
            <MinTileRow>abc</MinTileRow>
            <MaxTileRow>23</MaxTileRow>
            <MinTileCol>40</MinTileCol>
            <MaxTileCol>43</MaxTileCol>
          </TileMatrixLimits>
          <TileMatrixLimits>
            <TileMatrix>EPSG:3395_FTA:8</TileMatrix>
            <MinTileRow>50</MinTileRow>
            <MaxTileRow>40</MaxTileRow>
            <MinTileCol>80</MinTileCol>
            <MaxTileCol>87</MaxTileCol>
          </TileMatrixLimits>
        </TileMatrixSetLimits>
      </TileMatrixSetLink>
    </Layer>
    <Layer>
      <ows:Identifier>test:other</ows:Identifier>
      <Format>image/png</Format>
      <TileMatrixSetLink>
        <TileMatrixSet>EPSG:3067_FTA</TileMatrixSet>
      </TileMatrixSetLink>
    </Layer>
  </Contents>
</Capabilities>
"""


class FakeTileFetcher:
    """
    Stands in for HttpFetcher. Answers GetTile URLs from a {(z, x, y): bytes}
    table; unknown tiles get `default`. Records every requested coordinate.
    """

    def __init__(self, tiles: Optional[Dict[Tuple[int, int, int], bytes]] = None, default: Optional[bytes] = None,
                 fail_on: Optional[Tuple[int, int, int]] = None):
        self.tiles = tiles or {}
        self.default = transparent_tile() if default is None else default
        self.fail_on = fail_on
        self.requested: List[Tuple[int, int, int]] = []
        self.urls: List[str] = []
        self.closed = False

    def get_bytes(self, url: str) -> bytes:
        q = parse_qs(urlsplit(url).query)
        z = int(q["TileMatrix"][0].split(":")[-1])
        x = int(q["TileCol"][0])
        y = int(q["TileRow"][0])
        self.urls.append(url)
        self.requested.append((z, x, y))
        if self.fail_on == (z, x, y):
            raise TileFetchError("bad_status", "Response 500", url=url, status_code=500)
        return self.tiles.get((z, x, y), self.default)

    def close(self) -> None:
        self.closed = True
