"""
Tile Pruner — quadtree discovery of non-empty WMTS tiles

This package provides:
- Emptiness classification of PNG tiles (transparent / pure white = no data)
- A breadth-first quadtree crawler that fetches a layer's first zoom level,
  expands tiles with content into their four children and prunes empty ones
- YAML-backed configuration (config/params.yaml)

Entry point:
    python -m pruner.pipeline --config config/params.yaml
"""
from .crawler import CrawlReport, CrawlState, QuadtreeCrawler
from .emptiness import TileClassifier, is_empty_tile

__all__ = ["CrawlReport", "CrawlState", "QuadtreeCrawler", "TileClassifier", "is_empty_tile"]
