"""
Unit tests for the pruner command line entry point
"""

import pytest
import json
import logging
import os
import sys
from unittest.mock import patch

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from pruner import pipeline
from tests.fixtures.tiles import CAPABILITIES_XML, FakeTileFetcher, content_tile
from wmts.capabilities import Capabilities, parse_layers, xml_to_tree
from wmts.errors import CapabilitiesError


def _caps():
    return Capabilities(layers=tuple(parse_layers(xml_to_tree(CAPABILITIES_XML))))


def _json_lines(out, key):
    return [json.loads(l) for l in out.splitlines() if l.startswith("{") and key in json.loads(l)]


class TestPipeline:
    """Test cases for pipeline.main"""

    @pytest.fixture(autouse=True)
    def _restore_root_logger(self):
        # main() points the root handler at the captured stdout
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        yield
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)

    def _run(self, argv, fetcher, caps=None, caps_error=None):
        with patch.object(pipeline, "HttpFetcher", return_value=fetcher), \
             patch.object(pipeline, "get_capabilities") as get_caps:
            if caps_error:
                get_caps.side_effect = caps_error
            else:
                get_caps.return_value = caps or _caps()
            return pipeline.main(["--config", "does-not-exist.yaml"] + argv)

    def test_full_run(self, capsys):
        """Crawls the configured layer and prints the report"""
        fetcher = FakeTileFetcher({(5, 10, 5): content_tile()})
        code = self._run(["--layer", "test:charts public", "--stop-after-zoom", "6"], fetcher)
        assert code == 0
        report = _json_lines(capsys.readouterr().out, "state")[-1]
        assert report["state"] == "halted_empty"
        assert report["non_empty"] == ["5/10/5"]
        assert report["fetched"] == 5
        assert fetcher.closed

    def test_cutoff_run(self, capsys):
        fetcher = FakeTileFetcher({(5, 10, 5): content_tile()})
        code = self._run(["--layer", "test:charts public", "--stop-after-zoom", "5"], fetcher)
        assert code == 0
        report = _json_lines(capsys.readouterr().out, "state")[-1]
        assert report["state"] == "halted_cutoff"
        assert report["naive_next_zoom_count"] == 4
        assert len(report["remaining"]) == 4

    def test_list_layers(self, capsys):
        code = self._run(["--list-layers"], FakeTileFetcher())
        assert code == 0
        layers = _json_lines(capsys.readouterr().out, "matrix_sets")
        assert [l["id"] for l in layers] == ["test:charts public", "test:other"]
        assert layers[0]["matrix_sets"]["epsg3395"]["zooms"] == [5, 6]
        assert layers[1]["matrix_sets"]["epsg3395"] is None

    def test_unknown_layer(self):
        assert self._run(["--layer", "nope"], FakeTileFetcher()) == 2

    def test_layer_without_projection(self):
        assert self._run(["--layer", "test:other"], FakeTileFetcher()) == 2

    def test_capabilities_failure(self):
        err = CapabilitiesError("capabilities_fetch_failed", "Response 503")
        assert self._run([], FakeTileFetcher(), caps_error=err) == 1

    def test_tile_failure(self):
        fetcher = FakeTileFetcher(fail_on=(5, 10, 5))
        assert self._run(["--layer", "test:charts public"], fetcher) == 1
        assert fetcher.closed

    def test_invalid_projection_flag(self):
        assert self._run(["--projection", "utm"], FakeTileFetcher()) == 2
