"""
Highlight Overlay Tests

INVARIANTS UNDER TEST:
======================
1. Highlight-then-clear restores the exact creation-time appearance
2. Neighbors missing from the index produce no segment
3. Relation failures degrade to self-only highlighting
4. A fetch finishing after clear() is discarded
"""

import asyncio

import numpy as np
from hypothesis import given, strategies as st
from hypothesis.strategies import composite

from engine.config import HighlightConfig
from engine.contracts.base import Error, ErrorCode
from engine.contracts.layout import NodeAppearance, VisualNode
from engine.highlight import HighlightOverlay
from engine.index import SpatialIndex
from engine.observability import EngineCounters
from ingestion.relations import GraphRelationService, NeighborResult, RelationService

from .fixtures import make_record, node, run, scenario_c_relations, scenario_c_scene


# =============================================================================
# HELPERS
# =============================================================================

class FailingRelations(RelationService):
    async def neighbors(self, graph_id):
        return NeighborResult.empty(
            graph_id, Error.create(ErrorCode.RELATION_FETCH_FAILURE, "down")
        )


class GatedRelations(RelationService):
    """Blocks until released so a clear() can overtake the fetch."""

    def __init__(self, inner):
        self._inner = inner
        self.release = None

    async def neighbors(self, graph_id):
        await self.release.wait()
        return await self._inner.neighbors(graph_id)


def _node(record_id, graph_id, appearance: NodeAppearance, position=(0.0, 0.0, 0.0)) -> VisualNode:
    return VisualNode(
        record=make_record(record_id, graph_id=graph_id),
        cluster_key="tang",
        position=np.array(position, dtype=float),
        target_position=np.array(position, dtype=float),
        base=appearance,
        appearance=appearance,
        uninformative=False,
        generation=1,
    )


def _index(*nodes) -> SpatialIndex:
    index = SpatialIndex(generation=1)
    for item in nodes:
        index.add(item)
    index.seal()
    return index


# =============================================================================
# STRATEGIES (Generators)
# =============================================================================

unit = st.floats(min_value=0.0, max_value=1.0, allow_nan=False)


@composite
def appearances(draw):
    return NodeAppearance(
        scale=draw(st.floats(min_value=0.5, max_value=40.0, allow_nan=False)),
        color=(draw(unit), draw(unit), draw(unit)),
        opacity=draw(unit),
    )


# =============================================================================
# SCENARIO C
# =============================================================================

class TestScenarioC:

    def test_unresolved_neighbor_is_ignored(self):
        """Scenario C: neighbors [k2, k3], only k2 in the index."""
        scene = scenario_c_scene()
        a, b = node(scene, "A"), node(scene, "B")

        outcome = run(scene.highlight.apply(a, scene.layout.index))

        assert set(scene.highlight.highlighted_ids) == {"A", "B"}
        assert scene.highlight.highlighted_ids[0] == "A"
        assert outcome.unresolved == ("k3",)
        assert len(scene.highlight.segments) == 1
        segment = scene.highlight.segments[0]
        assert (segment.source_id, segment.target_id) == ("A", "B")
        assert np.allclose(segment.start, a.position)
        assert np.allclose(segment.end, b.position)

    def test_tiers(self):
        scene = scenario_c_scene()
        cfg = HighlightConfig()
        a, b, c = node(scene, "A"), node(scene, "B"), node(scene, "C")

        run(scene.highlight.apply(a, scene.layout.index))

        assert a.appearance.scale == a.base.scale * cfg.primary_scale
        assert a.appearance.color == cfg.primary_tint
        assert b.appearance.scale == b.base.scale * cfg.secondary_scale
        assert b.appearance.color == cfg.secondary_tint
        assert c.appearance is c.base


class TestDegradation:

    def test_relation_failure_is_self_only(self):
        target = _node("a", "g1", NodeAppearance(10.0, (0.5, 0.5, 0.5), 1.0))
        counters = EngineCounters()
        overlay = HighlightOverlay(FailingRelations(), counters=counters)

        outcome = run(overlay.apply(target, _index(target)))

        assert outcome.degraded
        assert outcome.error.code is ErrorCode.RELATION_FETCH_FAILURE
        assert overlay.highlighted_ids == ("a",)
        assert overlay.segments == ()
        assert counters.get("relation_fetch_failures") == 1

    def test_node_without_graph_id_is_self_only(self):
        target = _node("a", None, NodeAppearance(10.0, (0.5, 0.5, 0.5), 1.0))
        overlay = HighlightOverlay(scenario_c_relations())
        outcome = run(overlay.apply(target, _index(target)))
        assert outcome.degraded
        assert outcome.error is None
        assert overlay.highlighted_ids == ("a",)

    def test_stale_fetch_is_discarded(self):
        look = NodeAppearance(10.0, (0.2, 0.4, 0.6), 1.0)
        a = _node("a", "k1", look)
        b = _node("b", "k2", look, position=(10.0, 0.0, 0.0))
        index = _index(a, b)
        relations = GatedRelations(scenario_c_relations())
        overlay = HighlightOverlay(relations)

        async def scenario():
            relations.release = asyncio.Event()
            pending = asyncio.ensure_future(overlay.apply(a, index))
            await asyncio.sleep(0)
            overlay.clear()
            relations.release.set()
            return await pending

        outcome = run(scenario())

        assert outcome.stale
        assert overlay.highlighted_ids == ()
        assert overlay.segments == ()
        assert b.appearance is b.base


class TestApplyIds:

    def test_segments_only_between_listed_nodes(self):
        look = NodeAppearance(10.0, (0.2, 0.4, 0.6), 1.0)
        x = _node("x", "gx", look)
        y = _node("y", "gy", look, position=(5.0, 0.0, 0.0))
        z = _node("z", "gz", look, position=(0.0, 5.0, 0.0))
        relations = GraphRelationService.from_triples([("gx", "r", "gy"), ("gx", "r", "gz")])
        overlay = HighlightOverlay(relations)

        run(overlay.apply_ids(["x", "y"], _index(x, y, z), x, "gx"))

        assert overlay.highlighted_ids == ("x", "y")
        assert [s.target_id for s in overlay.segments] == ["y"]
        assert z.appearance is z.base

    def test_missing_ids_are_reported(self):
        look = NodeAppearance(10.0, (0.2, 0.4, 0.6), 1.0)
        x = _node("x", "gx", look)
        overlay = HighlightOverlay(GraphRelationService())
        outcome = run(overlay.apply_ids(["x", "gone"], _index(x), x, "gx"))
        assert outcome.unresolved == ("gone",)
        assert overlay.highlighted_ids == ("x",)


# =============================================================================
# PROPERTY TESTS
# =============================================================================

@given(appearances(), appearances(), st.integers(min_value=1, max_value=5))
def test_highlight_clear_round_trip_is_exact(primary_look, neighbor_look, cycles):
    a = _node("a", "k1", primary_look)
    b = _node("b", "k2", neighbor_look, position=(3.0, 0.0, 0.0))
    index = _index(a, b)
    overlay = HighlightOverlay(scenario_c_relations())

    for _ in range(cycles):
        run(overlay.apply(a, index))
        assert set(overlay.highlighted_ids) == {"a", "b"}
        overlay.clear()

    assert a.appearance == primary_look
    assert b.appearance == neighbor_look
