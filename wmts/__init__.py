"""
WMTS access: GetCapabilities parsing and GetTile requests.

- capabilities.py: Layer / TileMatrixSetDef / TileMatrixLimit model and parser
- urls.py: GetCapabilities and KVP GetTile URL construction
- transport.py: pooled requests session with a retry/fail-fast policy
- errors.py: error taxonomy shared with the pruner
"""
from .capabilities import (
    Capabilities,
    Layer,
    TileMatrixLimit,
    TileMatrixSetDef,
    get_capabilities,
    parse_layers,
    xml_to_tree,
)
from .urls import build_tile_url

__all__ = [
    "Capabilities",
    "Layer",
    "TileMatrixLimit",
    "TileMatrixSetDef",
    "build_tile_url",
    "get_capabilities",
    "parse_layers",
    "xml_to_tree",
]
