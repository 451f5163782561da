"""
Search, Configuration and Observability Tests
"""

import argparse
import asyncio
import json

import numpy as np
import pytest

import headless_demo
from engine.config import EngineConfig, PlacementConfig, SizerConfig
from engine.observability import EngineCounters, NoticeBoard, TransitionLog
from engine.search import HOT_PER_CATEGORY, HOT_TOTAL, RecordSearch

from .fixtures import make_record, scenario_c_scene


def _catalog():
    return (
        [make_record(f"p{i}", name=f"Poet {i}", category="person") for i in range(6)]
        + [make_record(f"a{i}", name=f"Bronze {i}", category="artifact", era="商") for i in range(6)]
        + [make_record("s0", name="Great Wall", category="site", era="明", description="Border WALL")]
        + [make_record("e0", name="Battle", category="event", graph_id="kg-e0")]
    )


# =============================================================================
# SEARCH
# =============================================================================

class TestRecordSearch:

    def test_case_insensitive_over_fields(self):
        search = RecordSearch(_catalog())
        assert [r.record_id for r in search.search("great WALL")] == ["s0"]
        assert [r.record_id for r in search.search("wall")] == ["s0"]
        assert len(search.search("商")) == 6
        assert len(search.search("ARTIFACT")) == 6

    def test_limit_and_blank_query(self):
        search = RecordSearch(_catalog())
        assert len(search.search("poet", limit=2)) == 2
        assert search.search("   ") == []

    def test_find_by_record_or_graph_id(self):
        search = RecordSearch(_catalog())
        assert search.find("s0").name == "Great Wall"
        assert search.find("kg-e0").record_id == "e0"
        assert search.find("missing") is None
        assert search.find(None) is None

    def test_hot_items_caps(self):
        search = RecordSearch(_catalog(), rng=np.random.default_rng(3))
        items = search.hot_items()

        assert len(items) == HOT_TOTAL
        assert sum(1 for r in items if r.category == "person") <= HOT_PER_CATEGORY
        assert sum(1 for r in items if r.category == "artifact") <= HOT_PER_CATEGORY
        assert len({r.record_id for r in items}) == len(items)

    def test_hot_items_padded_from_other_categories(self):
        records = [make_record("p0", category="person")] + [
            make_record(f"s{i}", category="site") for i in range(6)
        ]
        items = RecordSearch(records).hot_items()
        assert len(items) == HOT_TOTAL
        assert items[0].record_id == "p0"

    def test_scene_search_tracks_loaded_records(self):
        scene = scenario_c_scene()
        assert scene.search.find("k4").record_id == "C"


# =============================================================================
# CONFIGURATION
# =============================================================================

class TestConfig:

    def test_defaults(self):
        config = EngineConfig()
        assert config.placement.clearance == 279.0
        assert config.service.base_url == "http://localhost:3000"
        assert config.viewstate_path is None

    def test_from_env_overrides(self):
        config = EngineConfig.from_env({
            "NEBULA_API_URL": "http://api.test/",
            "NEBULA_RECORDS_TIMEOUT": "3.5",
            "NEBULA_CLEARANCE": "300",
            "NEBULA_SEED": "11",
            "NEBULA_VIEWSTATE_PATH": "/tmp/view.json",
        })
        assert config.service.base_url == "http://api.test"
        assert config.service.records_timeout == 3.5
        assert config.service.relations_timeout == 15.0
        assert config.placement.clearance == 300.0
        assert config.placer.seed == 11
        assert config.viewstate_path == "/tmp/view.json"

    def test_from_env_empty(self):
        assert EngineConfig.from_env({}).service == EngineConfig().service

    @pytest.mark.parametrize("build", [
        lambda: SizerConfig(min_radius=0.0),
        lambda: SizerConfig(min_radius=500.0),
        lambda: SizerConfig(floor=1.5),
        lambda: PlacementConfig(clearance=-1.0),
        lambda: PlacementConfig(max_attempts=0),
    ])
    def test_invalid_values_rejected(self, build):
        with pytest.raises(ValueError):
            build()


# =============================================================================
# OBSERVABILITY
# =============================================================================

class TestObservability:

    def test_notice_expiry(self):
        board = NoticeBoard(default_ttl=2.0)
        board.post("first", now=0.0)
        board.post("long", now=0.0, ttl=5.0)

        assert [n.text for n in board.visible(1.9)] == ["first", "long"]
        assert [n.text for n in board.visible(2.0)] == ["long"]
        assert board.expire(3.0) == 1
        assert board.expire(3.0) == 0

    def test_counters(self):
        counters = EngineCounters()
        counters.increment("builds")
        counters.increment("builds", 2)
        assert counters.get("builds") == 3
        assert counters.get("never") == 0
        assert counters.snapshot() == {"builds": 3}

    def test_transition_log_queries(self):
        log = TransitionLog()
        log.record("select-node", "global", "node:a", accepted=True, generation=1)
        log.record("select-node", "node:a", "node:a", accepted=False, error_code="INVALID_TRANSITION")
        log.record("reset", "node:a", "global", accepted=True)

        assert len(log) == 3
        assert [r.error_code for r in log.rejected()] == ["INVALID_TRANSITION"]
        assert len(log.for_trigger("select-node")) == 2


# =============================================================================
# HEADLESS DEMO
# =============================================================================

class TestHeadlessDemo:

    def _args(self, records, relations=None, session=False):
        return argparse.Namespace(
            records=records, url=None, relations=relations,
            mode="by-era", seed=5, session=session, log_level="WARNING",
        )

    def test_session_replay(self, tmp_path, capsys, monkeypatch):
        for name in ("NEBULA_API_URL", "NEBULA_SEED", "NEBULA_VIEWSTATE_PATH", "NEBULA_CLEARANCE"):
            monkeypatch.delenv(name, raising=False)
        records = tmp_path / "records.json"
        records.write_text(json.dumps({"success": True, "data": [
            {"id": 1, "name": "Li Bai", "type": "person", "dynasty_name": "唐", "kg_node_id": "k1"},
            {"id": 2, "name": "Du Fu", "type": "person", "dynasty_name": "唐", "kg_node_id": "k2"},
            {"id": 3, "name": "Bell", "type": "artifact", "dynasty_name": "宋"},
        ]}, ensure_ascii=False), encoding="utf-8")
        triples = tmp_path / "triples.json"
        triples.write_text(json.dumps([["k1", "friend", "k2"]]), encoding="utf-8")

        code = asyncio.run(headless_demo.run(self._args(str(records), str(triples), True)))

        out = capsys.readouterr().out
        assert code == 0
        assert "clusters=2" in out
        assert "Restored: True" in out

    def test_missing_records_file(self, tmp_path, capsys):
        code = asyncio.run(headless_demo.run(self._args(str(tmp_path / "none.json"))))
        assert code == 1
        assert "Error:" in capsys.readouterr().out
