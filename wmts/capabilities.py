from __future__ import annotations

"""
WMTS GetCapabilities model and parser.

The XML document is first turned into a generic nested tree
(`xml_to_tree`), then `parse_layers` reads layers, tile matrix set links
and per-zoom TileMatrixLimits out of that tree.

Tree shape (same as the common xml2js convention):
    {"Capabilities": {"$": {...attrs}, "Contents": [{"Layer": [...]}]}}
- child elements are grouped by tag into lists
- namespaced tags keep the document prefix ("ows:Title")
- text-only elements are plain strings, mixed text lives under "_"

Usage:
    caps = get_capabilities("https://example.org/wmts", fetcher)
    layer = caps.find_layer("my:layer")
    matrix_set = layer.matrix_set("epsg3395") if layer else None
"""

import io
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from common.geo import tile_bounds, tile_count
from wmts.errors import CapabilitiesError, TileFetchError
from wmts.transport import HttpFetcher
from wmts.urls import build_capabilities_url


log = logging.getLogger(__name__)

XML_NAMESPACE = "http://www.w3.org/XML/1998/namespace"

# projection key -> TileMatrixSet identifier prefix
DEFAULT_PROJECTIONS: Mapping[str, str] = MappingProxyType({
    "wgs84": "WGS84",
    "epsg3395": "EPSG:3395_FTA",
})


# ----------------------------
# Model
# ----------------------------
@dataclass(frozen=True)
class TileMatrixLimit:
    """Declared row/column range of one zoom level. Indices are inclusive."""
    id: str
    zoom: int
    min_tile_row: int
    max_tile_row: int
    min_tile_column: int
    max_tile_column: int

    @property
    def tile_count(self) -> int:
        return tile_count(self.min_tile_column, self.max_tile_column, self.min_tile_row, self.max_tile_row)

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        # (west, south, east, north) in degrees
        return tile_bounds(
            self.min_tile_column, self.max_tile_column, self.min_tile_row, self.max_tile_row, self.zoom
        )

    def contains(self, column: int, row: int) -> bool:
        return (
            self.min_tile_row <= row <= self.max_tile_row
            and self.min_tile_column <= column <= self.max_tile_column
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "zoom": self.zoom,
            "tileCount": self.tile_count,
            "minTileRow": self.min_tile_row,
            "maxTileRow": self.max_tile_row,
            "minTileColumn": self.min_tile_column,
            "maxTileColumn": self.max_tile_column,
            "bounds": list(self.bounds),
        }


@dataclass(frozen=True)
class TileMatrixSetDef:
    id: str
    tile_sets: Tuple[TileMatrixLimit, ...] = ()

    def limit_for_zoom(self, zoom: int) -> Optional[TileMatrixLimit]:
        for limit in self.tile_sets:
            if limit.zoom == zoom:
                return limit
        return None

    @property
    def start_limit(self) -> Optional[TileMatrixLimit]:
        return self.tile_sets[0] if self.tile_sets else None

    @property
    def zooms(self) -> List[int]:
        return [t.zoom for t in self.tile_sets]


@dataclass(frozen=True)
class Layer:
    title: Optional[str]
    id: Optional[str]
    format: Optional[str]
    tile_matrix_sets: Mapping[str, Optional[TileMatrixSetDef]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tile_matrix_sets", MappingProxyType(dict(self.tile_matrix_sets)))

    def matrix_set(self, projection_key: str) -> Optional[TileMatrixSetDef]:
        """Matrix set for `projection_key`, or None when the layer has no matching link."""
        return self.tile_matrix_sets.get(projection_key)


@dataclass(frozen=True)
class Capabilities:
    layers: Tuple[Layer, ...] = ()

    def find_layer(self, layer_id: str) -> Optional[Layer]:
        for layer in self.layers:
            if layer.id == layer_id:
                return layer
        return None


# ----------------------------
# XML -> generic tree
# ----------------------------
def xml_to_tree(content: Union[str, bytes]) -> Dict[str, Any]:
    """Deserialize an XML document into the nested dict/list tree described above."""
    if isinstance(content, str):
        content = content.encode("utf-8")

    # expat never reports the reserved xml binding
    prefixes: Dict[str, str] = {XML_NAMESPACE: "xml"}
    try:
        for _event, (prefix, uri) in ET.iterparse(io.BytesIO(content), events=("start-ns",)):
            # a URI bound both as default and to a prefix is written unprefixed
            if prefix == "" or uri not in prefixes:
                prefixes[uri] = prefix
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise CapabilitiesError("capabilities_parse_failed", str(e)) from e

    def name(tag: str) -> str:
        if tag.startswith("{"):
            uri, local = tag[1:].split("}", 1)
            prefix = prefixes.get(uri)
            return f"{prefix}:{local}" if prefix else local
        return tag

    def convert(elem: ET.Element) -> Any:
        children = list(elem)
        attrs = {name(k): v for k, v in elem.attrib.items()}
        text = (elem.text or "").strip()
        if not children and not attrs:
            return text
        node: Dict[str, Any] = {}
        if attrs:
            node["$"] = attrs
        if text:
            node["_"] = text
        for child in children:
            node.setdefault(name(child.tag), []).append(convert(child))
        return node

    return {name(root.tag): convert(root)}


# ----------------------------
# Tree -> model
# ----------------------------
def _first(node: Any, key: str) -> Optional[str]:
    """First value of `key` under `node`, None if absent."""
    if not isinstance(node, dict):
        return None
    values = node.get(key)
    if not values:
        return None
    value = values[0]
    if isinstance(value, dict):
        value = value.get("_")
    return value if value != "" else None


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _parse_limit(node: Any) -> Optional[TileMatrixLimit]:
    """One TileMatrixLimits record, or None (with a warning) when it is malformed."""
    ident = _first(node, "TileMatrix")
    zoom = _parse_int(ident.split(":")[-1]) if ident else None
    if not ident or zoom is None or zoom < 0:
        log.warning("Skipping tile matrix limit without usable zoom", extra={"extra": {"record": node}})
        return None

    fields = {
        "min_tile_row": _parse_int(_first(node, "MinTileRow")),
        "max_tile_row": _parse_int(_first(node, "MaxTileRow")),
        "min_tile_column": _parse_int(_first(node, "MinTileCol")),
        "max_tile_column": _parse_int(_first(node, "MaxTileCol")),
    }
    missing = [k for k, v in fields.items() if v is None]
    if missing:
        log.warning(
            "Skipping tile matrix limit with non-numeric extent",
            extra={"extra": {"tile_matrix": ident, "fields": missing}},
        )
        return None
    if fields["min_tile_row"] > fields["max_tile_row"] or fields["min_tile_column"] > fields["max_tile_column"]:
        log.warning("Skipping tile matrix limit with inverted extent", extra={"extra": {"tile_matrix": ident, **fields}})
        return None

    return TileMatrixLimit(id=ident, zoom=zoom, **fields)


def _matrix_set_def(layer_node: Dict[str, Any], prefix: str) -> Optional[TileMatrixSetDef]:
    link = None
    for candidate in layer_node.get("TileMatrixSetLink", []):
        if (_first(candidate, "TileMatrixSet") or "").startswith(prefix):
            link = candidate
            break
    if link is None:
        log.info("No %s tile matrix set", prefix, extra={"extra": {"layer": _first(layer_node, "ows:Identifier")}})
        return None

    limits_nodes: List[Any] = []
    limits_parent = link.get("TileMatrixSetLimits") or []
    if limits_parent and isinstance(limits_parent[0], dict):
        limits_nodes = limits_parent[0].get("TileMatrixLimits", [])

    by_zoom: Dict[int, TileMatrixLimit] = {}
    for node in limits_nodes:
        limit = _parse_limit(node)
        if limit is None:
            continue
        if limit.zoom in by_zoom:
            log.warning("Duplicate tile matrix limit ignored", extra={"extra": {"tile_matrix": limit.id}})
            continue
        by_zoom[limit.zoom] = limit

    tile_sets = tuple(by_zoom[z] for z in sorted(by_zoom))
    return TileMatrixSetDef(id=_first(link, "TileMatrixSet"), tile_sets=tile_sets)


def parse_layers(tree: Dict[str, Any], projections: Mapping[str, str] = DEFAULT_PROJECTIONS) -> List[Layer]:
    """
    Build Layer records from a capabilities tree.

    Params:
        tree: output of xml_to_tree()
        projections: projection key -> TileMatrixSet identifier prefix

    Raises CapabilitiesError when the document has no Capabilities/Contents.
    """
    try:
        contents = tree["Capabilities"]["Contents"][0]
    except (KeyError, IndexError, TypeError) as e:
        raise CapabilitiesError("capabilities_malformed", "missing Capabilities/Contents") from e

    layer_nodes = contents.get("Layer", []) if isinstance(contents, dict) else []
    layers: List[Layer] = []
    for node in layer_nodes:
        if not isinstance(node, dict):
            continue
        layers.append(
            Layer(
                title=_first(node, "ows:Title"),
                id=_first(node, "ows:Identifier"),
                format=_first(node, "Format"),
                tile_matrix_sets={key: _matrix_set_def(node, prefix) for key, prefix in projections.items()},
            )
        )
    return layers


def get_capabilities(
    base_url: str,
    fetcher: Optional[HttpFetcher] = None,
    projections: Mapping[str, str] = DEFAULT_PROJECTIONS,
) -> Capabilities:
    """
    Fetch and parse `<base_url>?request=getcapabilities`.

    Any transport or parse failure raises CapabilitiesError; there is no
    partial result.
    """
    fetcher = fetcher or HttpFetcher()
    url = build_capabilities_url(base_url)
    try:
        body = fetcher.get_bytes(url)
    except TileFetchError as e:
        raise CapabilitiesError("capabilities_fetch_failed", str(e)) from e

    layers = parse_layers(xml_to_tree(body), projections)
    log.info("Capabilities parsed", extra={"extra": {"url": url, "layers": len(layers)}})
    return Capabilities(layers=tuple(layers))
