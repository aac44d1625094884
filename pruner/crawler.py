from __future__ import annotations

"""
Quadtree pruning crawler.

Walks one layer's tile pyramid breadth-first from its first declared zoom:
every tile is fetched and classified; a tile with content queues its four
children at zoom+1, an empty tile is pruned (its descendants are never
requested). The walk halts when the queue is empty or when the next tile
lies deeper than `stop_after_zoom`.

Strictly sequential: one in-flight request, one consumer of the queue.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, List, Optional

from common.types import FetchResult, TileCoordinate
from common.utils import RateTimer, iso_now_ms
from pruner.config import PrunerConfig
from pruner.emptiness import TileClassifier
from wmts.capabilities import Layer, TileMatrixSetDef
from wmts.errors import CapabilitiesError
from wmts.transport import HttpFetcher
from wmts.urls import build_tile_url


log = logging.getLogger(__name__)


class CrawlState(str, Enum):
    SEEDING = "seeding"
    DRAINING = "draining"
    HALTED_CUTOFF = "halted_cutoff"
    HALTED_EMPTY = "halted_empty"

    @property
    def halted(self) -> bool:
        return self in (CrawlState.HALTED_CUTOFF, CrawlState.HALTED_EMPTY)


@dataclass
class CrawlReport:
    """
    Outcome of one crawl.

    Attributes:
        state: HALTED_CUTOFF or HALTED_EMPTY.
        fetched: GetTile requests issued.
        skipped_out_of_range: tiles outside the declared extent (no request).
        pruned: tiles classified empty.
        expanded: tiles classified non-empty (children queued).
        non_empty: coordinates of every tile with content, in visit order.
        remaining: queued tiles left unexplored at the cutoff.
        next_zoom: first zoom that was not fetched (cutoff only).
        naive_next_zoom_count: tiles a full fetch of `next_zoom` would need,
            None when the matrix set does not declare that zoom.
    """
    state: CrawlState
    started_at: str
    finished_at: str = ""
    fetched: int = 0
    skipped_out_of_range: int = 0
    pruned: int = 0
    expanded: int = 0
    non_empty: List[TileCoordinate] = field(default_factory=list)
    remaining: List[TileCoordinate] = field(default_factory=list)
    next_zoom: Optional[int] = None
    naive_next_zoom_count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "fetched": self.fetched,
            "skipped_out_of_range": self.skipped_out_of_range,
            "pruned": self.pruned,
            "expanded": self.expanded,
            "non_empty": [str(t) for t in self.non_empty],
            "remaining": [str(t) for t in self.remaining],
            "next_zoom": self.next_zoom,
            "naive_next_zoom_count": self.naive_next_zoom_count,
        }


class QuadtreeCrawler:
    def __init__(
        self,
        layer: Layer,
        matrix_set: TileMatrixSetDef,
        fetcher: HttpFetcher,
        *,
        base_url: str,
        stop_after_zoom: int,
        classifier: Optional[TileClassifier] = None,
    ):
        if matrix_set is None:
            raise ValueError("matrix_set is required (layer has no matching projection?)")
        self.layer = layer
        self.matrix_set = matrix_set
        self.fetcher = fetcher
        self.base_url = base_url
        self.stop_after_zoom = int(stop_after_zoom)
        self.classifier = classifier or TileClassifier()

        self.queue: Deque[TileCoordinate] = deque()
        self.state = CrawlState.SEEDING
        self.report = CrawlReport(state=self.state, started_at=iso_now_ms())
        self._rate = RateTimer(window=50)

    @classmethod
    def from_config(cls, layer: Layer, config: PrunerConfig, fetcher: HttpFetcher) -> "QuadtreeCrawler":
        return cls(
            layer,
            layer.matrix_set(config.target_projection),
            fetcher,
            base_url=config.base_url,
            stop_after_zoom=config.stop_after_zoom,
            classifier=TileClassifier(frozenset(config.blank_tile_lengths)),
        )

    # ----------------------------
    # Public API
    # ----------------------------
    def seed(self) -> int:
        """Queue every tile of the first declared zoom, row by row. Returns the count."""
        start = self.matrix_set.start_limit
        if start is None:
            raise CapabilitiesError("no_tile_matrix_limits", f"matrix set {self.matrix_set.id} declares no zoom levels")
        for row in range(start.min_tile_row, start.max_tile_row + 1):
            for column in range(start.min_tile_column, start.max_tile_column + 1):
                tile = TileCoordinate(start.zoom, column, row)
                self.queue.append(tile)
                log.debug("Seeded tile", extra={"extra": {"tile": str(tile)}})
        log.info(
            "Seeded crawl",
            extra={"extra": {"layer": self.layer.id, "zoom": start.zoom, "tiles": start.tile_count}},
        )
        self._set_state(CrawlState.DRAINING)
        return start.tile_count

    def step(self) -> CrawlState:
        """Process the front tile of the queue and return the resulting state."""
        if self.state.halted:
            return self.state
        if not self.queue:
            return self._halt_empty()

        tile = self.queue.popleft()
        if tile.zoom > self.stop_after_zoom:
            # leave it queued so it is reported as unexplored
            self.queue.appendleft(tile)
            return self._halt_cutoff(tile.zoom)

        result = self.fetch(tile)
        if self.classifier.is_empty(result.data):
            self.report.pruned += 1
            log.info("Pruning tile", extra={"extra": result.to_meta()})
        else:
            self.report.expanded += 1
            self.report.non_empty.append(tile)
            self.queue.extend(tile.children())

        if not self.queue:
            return self._halt_empty()
        return self.state

    def run(self) -> CrawlReport:
        """Seed (once) and drain until halted. Fetch failures propagate."""
        if self.state is CrawlState.SEEDING:
            self.seed()
        while not self.state.halted:
            self.step()
        return self.report

    def fetch(self, tile: TileCoordinate) -> FetchResult:
        """
        Bytes of `tile`. Tiles outside the declared extent of their zoom (or at a
        zoom the matrix set does not declare) come back empty without a request.
        """
        limit = self.matrix_set.limit_for_zoom(tile.zoom)
        if limit is None or not limit.contains(tile.column, tile.row):
            self.report.skipped_out_of_range += 1
            return FetchResult(tile)

        url = build_tile_url(
            self.base_url,
            layer_id=self.layer.id,
            matrix_set_id=self.matrix_set.id,
            tile_set_id=limit.id,
            row=tile.row,
            column=tile.column,
        )
        data = self.fetcher.get_bytes(url)
        self.report.fetched += 1
        per_s = self._rate.tick()
        if self._rate.count % 100 == 0:
            log.info("Fetch progress", extra={"extra": {"fetched": self.report.fetched, "tiles_per_s": round(per_s, 2)}})
        return FetchResult(tile, data)

    # ----------------------------
    # internals
    # ----------------------------
    def _set_state(self, state: CrawlState) -> None:
        self.state = state
        self.report.state = state

    def _halt_empty(self) -> CrawlState:
        self._set_state(CrawlState.HALTED_EMPTY)
        self.report.finished_at = iso_now_ms()
        log.info(
            "Queue exhausted; pyramid fully explored up to cutoff",
            extra={"extra": {**self._summary(), "classifier": self.classifier.stats()}},
        )
        return self.state

    def _halt_cutoff(self, zoom: int) -> CrawlState:
        self._set_state(CrawlState.HALTED_CUTOFF)
        self.report.finished_at = iso_now_ms()
        self.report.remaining = list(self.queue)
        self.report.next_zoom = zoom
        naive = self.matrix_set.limit_for_zoom(zoom)
        self.report.naive_next_zoom_count = naive.tile_count if naive is not None else None
        log.info(
            "Stopping search at zoom cutoff",
            extra={
                "extra": {
                    **self._summary(),
                    "next_zoom": zoom,
                    "naive_tiles": self.report.naive_next_zoom_count,
                    "queued_tiles": len(self.report.remaining),
                    "classifier": self.classifier.stats(),
                }
            },
        )
        return self.state

    def _summary(self) -> Dict[str, Any]:
        return {
            "layer": self.layer.id,
            "fetched": self.report.fetched,
            "skipped": self.report.skipped_out_of_range,
            "pruned": self.report.pruned,
            "expanded": self.report.expanded,
        }
