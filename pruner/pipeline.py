from __future__ import annotations

import argparse
import json
import sys
from typing import List, Optional

from common.logging_setup import get_logger, setup_logging
from pruner.config import PrunerConfig
from pruner.crawler import QuadtreeCrawler
from wmts.capabilities import Capabilities, get_capabilities
from wmts.errors import WmtsError
from wmts.transport import FailurePolicy, HttpFetcher


log = get_logger("pruner")


def _build_fetcher(cfg: PrunerConfig) -> HttpFetcher:
    return HttpFetcher(
        timeout_s=cfg.timeout_s,
        policy=FailurePolicy(max_retries=cfg.max_retries, backoff_s=cfg.retry_backoff_s),
        pool_maxsize=cfg.pool_maxsize,
    )


def _print_layers(caps: Capabilities, cfg: PrunerConfig) -> None:
    for layer in caps.layers:
        sets = {}
        for key in cfg.projections:
            ms = layer.matrix_set(key)
            sets[key] = None if ms is None else {
                "id": ms.id,
                "zooms": ms.zooms,
                "tile_sets": [t.to_dict() for t in ms.tile_sets],
            }
        print(json.dumps({"id": layer.id, "title": layer.title, "format": layer.format, "matrix_sets": sets}, ensure_ascii=False))


def run(cfg: PrunerConfig, *, list_layers: bool = False) -> int:
    """One pruning run. Returns a process exit code; fatal errors propagate."""
    fetcher = _build_fetcher(cfg)
    try:
        caps = get_capabilities(cfg.base_url, fetcher, cfg.projections)
        if list_layers:
            _print_layers(caps, cfg)
            return 0

        layer = caps.find_layer(cfg.layer_id)
        if layer is None:
            log.error("Layer not found in capabilities", extra={"extra": {"layer": cfg.layer_id}})
            return 2
        matrix_set = layer.matrix_set(cfg.target_projection)
        if matrix_set is None:
            log.error(
                "Layer has no tile matrix set for projection",
                extra={"extra": {"layer": cfg.layer_id, "projection": cfg.target_projection}},
            )
            return 2

        crawler = QuadtreeCrawler.from_config(layer, cfg, fetcher)
        report = crawler.run()
        print(json.dumps(report.to_dict(), ensure_ascii=False))
        return 0
    finally:
        fetcher.close()


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="WMTS quadtree tile pruner")
    ap.add_argument("--config", default="config/params.yaml")
    ap.add_argument("--layer", default=None, help="Override layer identifier")
    ap.add_argument("--projection", default=None, help="Override target projection key (e.g. epsg3395, wgs84)")
    ap.add_argument("--stop-after-zoom", type=int, default=None, help="Deepest zoom to fetch")
    ap.add_argument("--retries", type=int, default=None, help="Retries per tile before the run fails (0 = fail fast)")
    ap.add_argument("--log-level", default=None, help="DEBUG/INFO/WARNING/ERROR")
    ap.add_argument("--list-layers", action="store_true", help="Print layers and matrix sets, then exit")
    args = ap.parse_args(argv)

    try:
        cfg = PrunerConfig.from_yaml(args.config).with_overrides(
            layer_id=args.layer,
            target_projection=args.projection,
            stop_after_zoom=args.stop_after_zoom,
            max_retries=args.retries,
            log_level=args.log_level,
        )
    except WmtsError as e:
        log.error("Invalid configuration", extra={"extra": {"code": e.code, "details": e.details}})
        return 2
    setup_logging(cfg.log_level, force=True)

    try:
        return run(cfg, list_layers=args.list_layers)
    except WmtsError:
        log.exception("Pruning run failed")
        return 1


if __name__ == "__main__":
    sys.exit(main())
