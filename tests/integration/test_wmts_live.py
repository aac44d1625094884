#!/usr/bin/env python3
"""
Integration test against the live WMTS endpoint from config/params.yaml.

Opt-in: set WMTS_LIVE=1 (network access required).
"""

import os
import sys

import pytest

# Add the project root to Python path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from pruner.config import PrunerConfig
from pruner.crawler import CrawlState, QuadtreeCrawler
from wmts.capabilities import get_capabilities
from wmts.transport import HttpFetcher

pytestmark = pytest.mark.skipif(os.environ.get("WMTS_LIVE") != "1", reason="set WMTS_LIVE=1 to hit the live service")


def test_live_capabilities_and_shallow_crawl():
    """Parse the real capabilities and crawl the first declared zoom only"""
    cfg = PrunerConfig.from_yaml(os.path.join(project_root, "config", "params.yaml"))
    fetcher = HttpFetcher(timeout_s=cfg.timeout_s)
    try:
        caps = get_capabilities(cfg.base_url, fetcher, cfg.projections)
        print(f"Layers: {len(caps.layers)}")
        layer = caps.find_layer(cfg.layer_id)
        assert layer is not None, f"layer {cfg.layer_id} not advertised"
        matrix_set = layer.matrix_set(cfg.target_projection)
        assert matrix_set is not None
        print(f"Matrix set {matrix_set.id} zooms: {matrix_set.zooms}")

        start_zoom = matrix_set.start_limit.zoom
        crawler = QuadtreeCrawler.from_config(layer, cfg.with_overrides(stop_after_zoom=start_zoom), fetcher)
        report = crawler.run()
        print(f"Report: {report.to_dict()}")
        assert report.fetched == matrix_set.start_limit.tile_count
        assert report.state in (CrawlState.HALTED_CUTOFF, CrawlState.HALTED_EMPTY)
    finally:
        fetcher.close()
