"""
Layout Builder
==============

One synchronous build: records -> clusters, VisualNodes, dust and a
sealed SpatialIndex.

LAYER FLOW:
===========
1. Classifier: records -> groups (with redistributed uninformative records)
2. Sizer: member counts -> radius / extent / dust count / node scale
3. Placement solver: extents -> non-overlapping cluster centers
4. Point placer: members -> positions inside each cluster
5. Index: nodes registered as they are created, sealed at the end

A build never patches a previous one. Every call produces a fresh
generation that replaces the old layout wholesale.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple
import logging

import numpy as np

from ..config import EngineConfig
from ..contracts.base import Error, ErrorCode, GroupingMode, Result, UNCLASSIFIED
from ..contracts.layout import Cluster, Color, DustField, NodeAppearance, VisualNode
from ..contracts.records import Record
from ..index import SpatialIndex
from .classifier import Classification, EntityClassifier
from .placement import PlacementInput, PlacementSolver
from .points import PointPlacer
from .sizer import ClusterSizer


logger = logging.getLogger(__name__)

BASE_OPACITY = 1.0
BRIGHTEN_FACTOR = 1.5


def hex_color(value: int) -> Color:
    return (
        ((value >> 16) & 0xFF) / 255.0,
        ((value >> 8) & 0xFF) / 255.0,
        (value & 0xFF) / 255.0,
    )


def brighten(color: Color, factor: float = BRIGHTEN_FACTOR) -> Color:
    r, g, b = color
    return (min(r * factor, 1.0), min(g * factor, 1.0), min(b * factor, 1.0))


ERA_COLORS: Dict[str, Color] = {
    "tang": hex_color(0xFFD700),
    "song": hex_color(0x00E5FF),
    "yuan": hex_color(0x1E88E5),
    "ming": hex_color(0xFF6F00),
    "qing": hex_color(0x9C27B0),
    UNCLASSIFIED: hex_color(0xE91E63),
}

CATEGORY_COLORS: Dict[str, Color] = {
    "site": hex_color(0xFFD700),
    "person": hex_color(0x00FF88),
    "event": hex_color(0x00D4FF),
    "artifact": hex_color(0xFF6600),
    "literature": hex_color(0xFF00FF),
    UNCLASSIFIED: hex_color(0xFF69B4),
}

DEFAULT_COLOR = hex_color(0x7FFFD4)


def cluster_color(key: str, mode: GroupingMode) -> Color:
    palette = ERA_COLORS if mode is GroupingMode.BY_ERA else CATEGORY_COLORS
    return palette.get(key, DEFAULT_COLOR)


# =============================================================================
# LAYOUT
# =============================================================================

@dataclass(frozen=True)
class Layout:
    """Everything one build produced. Replaced wholesale by the next build."""
    generation: int
    mode: GroupingMode
    classification: Classification
    clusters: Tuple[Cluster, ...]
    nodes: Tuple[VisualNode, ...]
    dust: Tuple[DustField, ...]
    index: SpatialIndex
    errors: Tuple[Error, ...] = field(default_factory=tuple)

    def cluster(self, key: str) -> Optional[Cluster]:
        for cluster in self.clusters:
            if cluster.key == key:
                return cluster
        return None


# =============================================================================
# BUILDER
# =============================================================================

class LayoutBuilder:
    """Runs classifier, sizer, solver and placer for one generation."""

    def __init__(self, config: Optional[EngineConfig] = None, rng: Optional[np.random.Generator] = None):
        self._config = config or EngineConfig()
        self._classifier = EntityClassifier()
        self._sizer = ClusterSizer(self._config.sizer)
        self._solver = PlacementSolver(self._config.placement)
        self._placer = PointPlacer(self._config.placer, rng=rng)

    def build(
        self,
        records: Sequence[Record],
        mode: GroupingMode,
        generation: int,
        initial_opacity: Optional[float] = None
    ) -> Result:
        """
        Build a layout. Returns Result(Layout) or a DATA_UNAVAILABLE failure.

        initial_opacity lets a caller start nodes invisible for a fade-in;
        the captured base appearance is unaffected.
        """
        unique = self._dedupe(records)
        classification = self._classifier.classify(unique, mode)
        if classification.is_empty:
            return Result.failure(Error.create(
                ErrorCode.DATA_UNAVAILABLE,
                "no records available to build a layout",
                mode=mode.value,
            ))

        sizes = self._sizer.size(classification.counts())
        placement = self._solver.solve([
            PlacementInput(key=key, member_count=size.member_count, bounding_radius=size.extent)
            for key, size in sizes.items()
        ])

        index = SpatialIndex(generation=generation)
        clusters: List[Cluster] = []
        nodes: List[VisualNode] = []
        dust: List[DustField] = []
        variation = self._config.sizer.node_scale_variation

        for key in placement.order:
            size = sizes[key]
            group = classification.group(key)
            members = group.all_records()
            center = np.asarray(placement.positions[key], dtype=float)
            color = cluster_color(key, mode)
            node_color = brighten(color)

            positions = self._placer.place_members(len(members), center, size.extent)
            scales = size.node_scale + self._placer.scale_jitter(len(members), variation)

            for record, position, scale in zip(members, positions, scales):
                base = NodeAppearance(scale=float(scale), color=node_color, opacity=BASE_OPACITY)
                current = base if initial_opacity is None else base.with_opacity(initial_opacity)
                node = VisualNode(
                    record=record,
                    cluster_key=key,
                    position=np.array(position, dtype=float),
                    target_position=np.array(position, dtype=float),
                    base=base,
                    appearance=current,
                    uninformative=record.is_uninformative,
                    generation=generation,
                )
                index.add(node)
                nodes.append(node)

            dust.append(DustField(
                cluster_key=key,
                color=color,
                positions=self._placer.place_dust(size.dust_count, center, size.extent),
            ))
            clusters.append(Cluster(
                key=key,
                color=color,
                member_count=size.member_count,
                size_factor=size.size_factor,
                radius=size.radius,
                extent=size.extent,
                center=placement.positions[key],
                dust_count=size.dust_count,
                node_ids=tuple(r.record_id for r in members),
            ))

        index.seal()
        logger.info(
            "layout generation %d built: mode=%s clusters=%d nodes=%d",
            generation, mode.value, len(clusters), len(nodes)
        )
        return Result.success(Layout(
            generation=generation,
            mode=mode,
            classification=classification,
            clusters=tuple(clusters),
            nodes=tuple(nodes),
            dust=tuple(dust),
            index=index,
            errors=placement.errors,
        ))

    @staticmethod
    def _dedupe(records: Sequence[Record]) -> List[Record]:
        seen = set()
        unique = []
        for record in records:
            if record.record_id in seen:
                logger.warning("dropping duplicate record id %s", record.record_id)
                continue
            seen.add(record.record_id)
            unique.append(record)
        return unique
