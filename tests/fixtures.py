"""
Test Fixtures

Deterministic record sets and scene builders shared by the test modules.

RULES:
======
1. All fixtures are EXPLICIT: fixed ids, names, eras and categories
2. Scenes are seeded so that layouts are reproducible within a test
3. Relation data comes from an in-process graph, never the network
"""

from __future__ import annotations
import asyncio
from typing import List, Optional, Sequence, Tuple

from engine.config import EngineConfig, PlacerConfig, RestoreConfig
from engine.contracts.base import GroupingMode
from engine.contracts.layout import VisualNode
from engine.contracts.records import PersonDetail, Record
from engine.scene import Scene
from engine.viewstate import InMemoryViewStateStore, ViewStateStore
from frontend.visualization.picking import project_to_screen
from ingestion.relations import GraphRelationService, RelationService


SEED = 7


def run(coro):
    return asyncio.run(coro)


def seeded_config(seed: int = SEED) -> EngineConfig:
    return EngineConfig(
        placer=PlacerConfig(seed=seed),
        restore=RestoreConfig(max_attempts=5, initial_delay=0.01, backoff=2.0, max_delay=0.05),
    )


def make_record(
    record_id,
    name: Optional[str] = None,
    category: Optional[str] = "person",
    era: Optional[str] = "唐朝",
    graph_id=None,
    **kwargs
) -> Record:
    if name is None:
        name = f"Record {record_id}"
    return Record(
        record_id=record_id,
        name=name,
        category=category,
        era=era,
        external_graph_id=graph_id,
        **kwargs,
    )


def unnamed_record(record_id, category: Optional[str] = None, era: Optional[str] = None) -> Record:
    return Record(record_id=record_id, name=None, category=category, era=era)


# =============================================================================
# RECORD SETS
# =============================================================================

def scenario_b_records() -> List[Record]:
    """site:40, person:5, event:1 named records plus 10 unnamed records."""
    records = []
    records += [make_record(f"site-{i}", category="site") for i in range(40)]
    records += [make_record(f"person-{i}", category="person") for i in range(5)]
    records += [make_record("event-0", category="event")]
    records += [unnamed_record(f"unnamed-{i}") for i in range(10)]
    return records


def era_records() -> List[Record]:
    """A mixed set spread over all five eras plus unclassified records."""
    eras = ("唐朝", "Song", "元代", "Ming dynasty", "清", "Warring States")
    categories = ("person", "site", "artifact", "event", "literature")
    records = []
    for i in range(60):
        records.append(make_record(
            f"r{i}",
            category=categories[i % len(categories)],
            era=eras[i % len(eras)],
            graph_id=f"g{i}",
        ))
    records += [unnamed_record(f"u{i}", era=eras[i % len(eras)]) for i in range(6)]
    return records


def scenario_c_records() -> List[Record]:
    """Node A (graph k1) and node B (graph k2) plus filler. k3 is not loaded."""
    records = [
        make_record(
            "A", name="Li Bai", category="person", era="唐朝", graph_id="k1",
            detail=PersonDetail(birth_year=701, death_year=762, biography="Poet."),
        ),
        make_record("B", name="Du Fu", category="person", era="唐朝", graph_id="k2"),
        make_record("C", name="Wang Wei", category="person", era="唐朝", graph_id="k4"),
    ]
    records += [make_record(f"f{i}", category="site", era="宋") for i in range(12)]
    return records


def scenario_c_relations() -> GraphRelationService:
    return GraphRelationService.from_triples(
        [("k1", "friend", "k2"), ("k1", "admirer", "k3")],
        names={"k1": "Li Bai", "k2": "Du Fu", "k3": "Meng Haoran"},
    )


def xyz_records() -> List[Record]:
    records = [
        make_record("X", category="person", era="明", graph_id="gx"),
        make_record("Y", category="artifact", era="明", graph_id="gy"),
        make_record("Z", category="site", era="清", graph_id="gz"),
    ]
    records += [make_record(f"w{i}", category="event", era="元") for i in range(8)]
    return records


def xyz_relations() -> GraphRelationService:
    return GraphRelationService.from_triples([("gx", "made", "gy"), ("gz", "houses", "gx")])


# =============================================================================
# SCENES
# =============================================================================

def build_scene(
    records: Sequence[Record],
    relations: Optional[RelationService] = None,
    store: Optional[ViewStateStore] = None,
    mode: GroupingMode = GroupingMode.BY_ERA,
    seed: int = SEED
) -> Scene:
    scene = Scene(
        seeded_config(seed),
        relations=relations,
        store=store if store is not None else InMemoryViewStateStore(),
        mode=mode,
    )
    scene.load(records)
    return scene


def scenario_c_scene(store: Optional[ViewStateStore] = None) -> Scene:
    return build_scene(scenario_c_records(), relations=scenario_c_relations(), store=store)


def node(scene: Scene, record_id: str) -> VisualNode:
    found = scene.layout.index.by_id(record_id)
    assert found is not None, f"{record_id} not in layout"
    return found


def screen_point(scene: Scene, target: VisualNode) -> Optional[Tuple[float, float]]:
    """Pixel of a node's center, or None if it is off screen."""
    width, height = scene.backend.viewport
    point = project_to_screen(target.position, scene.camera.pose, (width, height))
    if point is None:
        return None
    x, y = point
    if not (0 <= x <= width and 0 <= y <= height):
        return None
    return point


def visible_point(scene: Scene) -> Tuple[float, float]:
    """Pixel of the first on-screen node."""
    for candidate in scene.layout.nodes:
        point = screen_point(scene, candidate)
        if point is not None:
            return point
    raise AssertionError("no node on screen")


def settle(scene: Scene, seconds: float = 4.0, dt: float = 0.1) -> None:
    steps = int(round(seconds / dt))
    for _ in range(steps):
        scene.tick(dt)
