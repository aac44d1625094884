from __future__ import annotations

from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

TILE_FORMAT = "image/png"


def _with_query(base_url: str, params: list) -> str:
    parts = urlsplit(base_url)
    query = parse_qsl(parts.query, keep_blank_values=True) + params
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query, quote_via=quote), parts.fragment))


def build_capabilities_url(base_url: str) -> str:
    return _with_query(base_url, [("request", "getcapabilities")])


def build_tile_url(
    base_url: str,
    *,
    layer_id: str,
    matrix_set_id: str,
    tile_set_id: str,
    row: int,
    column: int,
) -> str:
    """
    Construct a KVP GetTile URL (no request performed).

    The format is always PNG regardless of what the layer advertises;
    classification decodes PNG only. Spaces encode as %20.
    """
    params = [
        ("layer", layer_id),
        ("style", ""),
        ("tilematrixset", matrix_set_id),
        ("Service", "WMTS"),
        ("Request", "GetTile"),
        ("Version", "1.0.0"),
        ("Format", TILE_FORMAT),
        ("TileMatrix", tile_set_id),
        ("TileCol", int(column)),
        ("TileRow", int(row)),
    ]
    return _with_query(base_url, params)
