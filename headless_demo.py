#!/usr/bin/env python3
"""
Headless Scene Demo
===================

Loads records, builds the clustered layout and prints a cluster summary.
Optionally replays a focus / capture / restore session against the
in-memory render backend.

RUN:
    python headless_demo.py --records data/records.json
    python headless_demo.py --url http://localhost:3000 --mode by-category
    python headless_demo.py --records data/records.json --relations data/triples.json --session
"""

from __future__ import annotations
import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from typing import Optional

import numpy as np

from engine.config import EngineConfig
from engine.contracts.base import GroupingMode
from engine.scene import Scene
from engine.viewstate import InMemoryViewStateStore
from frontend.presentation.viewmodels import detail_overlay
from ingestion.fetcher import RecordFetcher, load_records_file
from ingestion.relations import GraphRelationService, HttpRelationService, RelationService


def load_relations(path: Optional[str]) -> GraphRelationService:
    """Triples file: [[head_graph_id, relation, tail_graph_id], ...]."""
    if not path:
        return GraphRelationService()
    with open(path, 'r', encoding='utf-8') as f:
        triples = json.load(f)
    return GraphRelationService.from_triples(tuple(t) for t in triples)


def print_summary(scene: Scene) -> None:
    layout = scene.layout
    if layout is None:
        print("No data: nothing to render")
        return
    print(f"Generation {layout.generation} | mode={layout.mode.value} | "
          f"clusters={len(layout.clusters)} | nodes={len(layout.nodes)}")
    print("-" * 72)
    for cluster in layout.clusters:
        x, y, z = cluster.center
        print(f"  {cluster.key:<14} members={cluster.member_count:<5} radius={cluster.radius:7.1f} "
              f"extent={cluster.extent:7.1f} center=({x:8.1f}, {y:8.1f}, {z:8.1f})")
    for error in layout.errors:
        print(f"  ! {error.code.name}: {error.message}")


async def replay_session(scene: Scene, relations: RelationService) -> None:
    """Focus one node, capture, rebuild in a fresh scene and restore."""
    layout = scene.layout
    node = next((n for n in layout.nodes if n.external_graph_id), layout.nodes[0])

    outcome = await scene.select_node(node.node_id)
    print(f"\nFocus {node.node_id}: accepted={outcome.accepted} state={outcome.current.describe()}")
    print(f"  highlighted={list(scene.highlight.highlighted_ids)} segments={len(scene.highlight.segments)}")
    overlay = detail_overlay(node.record, node.cluster_key)
    print(f"  detail: {overlay.title} [{overlay.cluster_label}]")
    for field in overlay.fields:
        print(f"    {field.label}: {field.value}")

    for _ in range(120):
        scene.tick(1 / 60)
    snapshot = scene.navigate_to_detail()
    print(f"Captured view state: {json.dumps(snapshot.to_dict(), ensure_ascii=False)}")

    restored = Scene(scene.config, relations=relations, store=scene.serializer.store)
    restored.load(scene.records)
    report = await restored.restore_view_state()
    print(f"Restored: {report.restored} focus={report.focus} "
          f"highlighted={list(report.highlighted_ids)} segments={report.segment_count}")
    drift = restored.camera.pose.distance_to(snapshot.camera_pose)
    print(f"  camera drift={drift:.6f}")


async def run(args: argparse.Namespace) -> int:
    config = EngineConfig.from_env()
    if args.url:
        config.service = replace(config.service, base_url=args.url.rstrip("/"))

    rng = np.random.default_rng(args.seed) if args.seed is not None else None
    if args.url:
        relations: RelationService = HttpRelationService(
            config.service.base_url,
            timeout=config.service.relations_timeout,
            user_agent=config.service.user_agent,
        )
    else:
        relations = load_relations(args.relations)

    scene = Scene(
        config,
        relations=relations,
        store=InMemoryViewStateStore(),
        rng=rng,
        mode=GroupingMode.parse(args.mode),
    )

    if args.url:
        fetcher = RecordFetcher(
            config.service.base_url,
            timeout=config.service.records_timeout,
            user_agent=config.service.user_agent,
        )
        result = await scene.load_from(fetcher)
    else:
        fetched = load_records_file(args.records)
        if not fetched.success:
            print(f"Error: {fetched.error_message}")
            return 1
        result = scene.load(fetched.records)

    print_summary(scene)
    if result.is_failure:
        return 1

    if args.session:
        await replay_session(scene, relations)
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Headless Scene Demo - cluster layout and focus session",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument('--records', '-r', help='Path to a JSON record list')
    source.add_argument('--url', '-u', help='Data API base URL')

    parser.add_argument('--relations', default=None, help='JSON triples file for offline relations')
    parser.add_argument('--mode', '-m', default='by-era', help='Grouping mode: by-era or by-category')
    parser.add_argument('--seed', type=int, default=None, help='Seed for point placement')
    parser.add_argument('--session', action='store_true', help='Replay a focus/capture/restore session')
    parser.add_argument('--log-level', default='WARNING', help='Logging level')

    args = parser.parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
