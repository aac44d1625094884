from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from wmts.capabilities import DEFAULT_PROJECTIONS
from wmts.errors import ConfigError


DEFAULT_BASE_URL = "https://julkinen.liikennevirasto.fi/rasteripalvelu/service/wmts"
DEFAULT_LAYER = "liikennevirasto:Merikarttasarjojen erikoiskartat public"


@dataclass
class PrunerConfig:
    """
    Everything a pruning run needs; passed explicitly to the parser and crawler.

    Attributes:
        base_url: WMTS KVP endpoint (no query string needed).
        layer_id: ows:Identifier of the layer to crawl.
        projections: projection key -> TileMatrixSet identifier prefix.
        target_projection: key in `projections` the crawl walks.
        stop_after_zoom: deepest zoom that is fetched.
        blank_tile_lengths: byte sizes of the service's canonical blank tile.
        timeout_s, max_retries, retry_backoff_s, pool_maxsize: transport knobs.
    """
    base_url: str = DEFAULT_BASE_URL
    layer_id: str = DEFAULT_LAYER
    projections: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_PROJECTIONS))
    target_projection: str = "epsg3395"
    stop_after_zoom: int = 9
    blank_tile_lengths: List[int] = field(default_factory=lambda: [662, 658])
    timeout_s: float = 30.0
    max_retries: int = 0
    retry_backoff_s: float = 1.0
    pool_maxsize: int = 50
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ConfigError("config_invalid", "base_url is required")
        if not self.layer_id:
            raise ConfigError("config_invalid", "layer_id is required")
        if self.target_projection not in self.projections:
            known = ", ".join(self.projections)
            raise ConfigError(
                "config_invalid", f"target_projection '{self.target_projection}' not in projections ({known})"
            )
        if self.stop_after_zoom < 0:
            raise ConfigError("config_invalid", "stop_after_zoom must be >= 0")
        if self.max_retries < 0:
            raise ConfigError("config_invalid", "max_retries must be >= 0")
        if self.timeout_s <= 0:
            raise ConfigError("config_invalid", "timeout_s must be > 0")

    @classmethod
    def from_dict(cls, P: Dict[str, Any]) -> "PrunerConfig":
        """
        Build from the params.yaml layout:
            wmts:    {base_url, layer, projections: {key: prefix}, target_projection}
            crawl:   {stop_after_zoom, blank_tile_lengths}
            http:    {timeout_s, max_retries, retry_backoff_s, pool_maxsize}
            logging: {level}
        Missing sections fall back to defaults.
        """
        w = P.get("wmts") or {}
        c = P.get("crawl") or {}
        h = P.get("http") or {}
        lg = P.get("logging") or {}
        d = cls()
        try:
            return cls(
                base_url=str(w.get("base_url", d.base_url)),
                layer_id=str(w.get("layer", d.layer_id)),
                projections={str(k): str(v) for k, v in (w.get("projections") or d.projections).items()},
                target_projection=str(w.get("target_projection", d.target_projection)),
                stop_after_zoom=int(c.get("stop_after_zoom", d.stop_after_zoom)),
                blank_tile_lengths=[int(n) for n in c.get("blank_tile_lengths", d.blank_tile_lengths)],
                timeout_s=float(h.get("timeout_s", d.timeout_s)),
                max_retries=int(h.get("max_retries", d.max_retries)),
                retry_backoff_s=float(h.get("retry_backoff_s", d.retry_backoff_s)),
                pool_maxsize=int(h.get("pool_maxsize", d.pool_maxsize)),
                log_level=str(lg.get("level", d.log_level)),
            )
        except (TypeError, ValueError, AttributeError) as e:
            raise ConfigError("config_invalid", str(e)) from e

    @classmethod
    def from_yaml(cls, path: str) -> "PrunerConfig":
        """Load config/params.yaml; a missing file yields the built-in defaults."""
        p = Path(path)
        if not p.exists():
            return cls()
        try:
            with p.open("r") as f:
                P = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError("config_invalid", f"{path}: {e}") from e
        if not isinstance(P, dict):
            raise ConfigError("config_invalid", f"{path}: expected a mapping at top level")
        return cls.from_dict(P)

    def with_overrides(self, **kwargs: Optional[Any]) -> "PrunerConfig":
        """Copy with every non-None keyword applied (CLI flags)."""
        return replace(self, **{k: v for k, v in kwargs.items() if v is not None})
