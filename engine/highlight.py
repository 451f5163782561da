"""
Highlight Overlay
=================

Cross-reference highlighting for the focused node.

    primary tier:    the focused node, scale x1.4, white
    secondary tier:  neighbors resolved through the SpatialIndex, x1.2, yellow
    link segments:   one per resolved neighbor, focused node -> neighbor

GUARANTEES:
===========
1. clear() restores every boosted node to the exact base appearance
   captured at its creation; boosts are computed from that base, never
   from the current appearance, so repeated cycles cannot drift
2. Neighbors that do not resolve in the index are ignored (no segment)
3. A relation fetch that fails, or a node without an external-graph id,
   degrades to self-only highlighting
4. A fetch that completes after clear() or a newer apply() is discarded
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple
import logging

from .config import HighlightConfig
from .contracts.base import Error, optional_canonical_id
from .contracts.layout import Color, NodeAppearance, Vec3, VisualNode, as_vec3
from .index import SpatialIndex
from .observability import EngineCounters
from ingestion.relations import NeighborResult, RelationService


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinkSegment:
    source_id: str
    target_id: str
    start: Vec3
    end: Vec3
    color: Color
    opacity: float


@dataclass(frozen=True)
class HighlightOutcome:
    primary_id: Optional[str]
    highlighted_ids: Tuple[str, ...]
    segment_count: int
    degraded: bool = False
    stale: bool = False
    error: Optional[Error] = None
    unresolved: Tuple[str, ...] = field(default_factory=tuple)


class HighlightOverlay:
    """The current HighlightSet: ordered boosted nodes plus link segments."""

    def __init__(
        self,
        relations: RelationService,
        config: HighlightConfig = None,
        counters: Optional[EngineCounters] = None
    ):
        self._relations = relations
        self._config = config or HighlightConfig()
        self._counters = counters
        self._nodes: List[VisualNode] = []
        self._segments: List[LinkSegment] = []
        self._main_graph_id: Optional[str] = None
        self._epoch = 0

    @property
    def highlighted_ids(self) -> Tuple[str, ...]:
        return tuple(n.node_id for n in self._nodes)

    @property
    def nodes(self) -> Tuple[VisualNode, ...]:
        return tuple(self._nodes)

    @property
    def segments(self) -> Tuple[LinkSegment, ...]:
        return tuple(self._segments)

    @property
    def main_graph_id(self) -> Optional[str]:
        return self._main_graph_id

    @property
    def is_active(self) -> bool:
        return bool(self._nodes)

    # -------------------------------------------------------------------------
    # APPLY
    # -------------------------------------------------------------------------

    async def apply(self, node: VisualNode, index: SpatialIndex) -> HighlightOutcome:
        """Highlight `node` and its resolvable neighbors."""
        self.clear()
        token = self._epoch
        self._boost(node, primary=True)
        self._main_graph_id = node.external_graph_id

        if not node.external_graph_id:
            return self._outcome(node, degraded=True)

        result = await self._relations.neighbors(node.external_graph_id)
        if token != self._epoch:
            logger.debug("discarding stale neighbor result for %s", node.node_id)
            return self._outcome(node, stale=True)
        if result.error is not None:
            self._count("relation_fetch_failures")
            return self._outcome(node, degraded=True, error=result.error)

        unresolved = self._link_neighbors(node, result, index, boost=True)
        return self._outcome(node, unresolved=unresolved)

    async def apply_ids(
        self,
        node_ids: Iterable[str],
        index: SpatialIndex,
        main_node: Optional[VisualNode],
        main_graph_id: Optional[str]
    ) -> HighlightOutcome:
        """
        Re-apply a stored highlight list directly.

        Segments are rebuilt from one relation call keyed by main_graph_id,
        drawn only between main_node and nodes already in the list.
        """
        self.clear()
        token = self._epoch
        unresolved: List[str] = []

        for node_id in node_ids:
            node = index.by_id(node_id)
            if node is None:
                unresolved.append(str(node_id))
                continue
            self._boost(node, primary=node is main_node)
        if main_node is not None and main_node not in self._nodes:
            self._boost(main_node, primary=True)

        self._main_graph_id = optional_canonical_id(main_graph_id)
        if main_node is None or self._main_graph_id is None:
            return self._outcome(main_node, degraded=main_node is not None, unresolved=tuple(unresolved))

        result = await self._relations.neighbors(self._main_graph_id)
        if token != self._epoch:
            return self._outcome(main_node, stale=True)
        if result.error is not None:
            self._count("relation_fetch_failures")
            return self._outcome(main_node, degraded=True, error=result.error, unresolved=tuple(unresolved))

        self._link_neighbors(main_node, result, index, boost=False)
        return self._outcome(main_node, unresolved=tuple(unresolved))

    # -------------------------------------------------------------------------
    # CLEAR
    # -------------------------------------------------------------------------

    def clear(self) -> None:
        """Restore base appearance of every boosted node and drop segments."""
        self._epoch += 1
        for node in self._nodes:
            node.restore_base()
        self._nodes = []
        self._segments = []
        self._main_graph_id = None

    # -------------------------------------------------------------------------
    # INTERNALS
    # -------------------------------------------------------------------------

    def _link_neighbors(
        self,
        node: VisualNode,
        result: NeighborResult,
        index: SpatialIndex,
        boost: bool
    ) -> Tuple[str, ...]:
        unresolved = []
        for neighbor_id in result.neighbor_ids:
            neighbor = index.by_external_graph_id(neighbor_id)
            if neighbor is None:
                unresolved.append(neighbor_id)
                continue
            if neighbor is node:
                continue
            if boost:
                if neighbor in self._nodes:
                    continue
                self._boost(neighbor, primary=False)
            elif neighbor not in self._nodes:
                continue
            if any(s.target_id == neighbor.node_id for s in self._segments):
                continue
            self._segments.append(LinkSegment(
                source_id=node.node_id,
                target_id=neighbor.node_id,
                start=as_vec3(node.world_position()),
                end=as_vec3(neighbor.world_position()),
                color=self._config.link_color,
                opacity=self._config.link_opacity,
            ))
        if unresolved:
            logger.debug("%d neighbors of %s not in index", len(unresolved), node.node_id)
        return tuple(unresolved)

    def _boost(self, node: VisualNode, primary: bool) -> None:
        cfg = self._config
        if primary:
            factor, tint = cfg.primary_scale, cfg.primary_tint
        else:
            factor, tint = cfg.secondary_scale, cfg.secondary_tint
        node.appearance = NodeAppearance(
            scale=node.base.scale * factor,
            color=tint,
            opacity=node.base.opacity,
        )
        if node not in self._nodes:
            self._nodes.append(node)

    def _outcome(
        self,
        node: Optional[VisualNode],
        degraded: bool = False,
        stale: bool = False,
        error: Optional[Error] = None,
        unresolved: Tuple[str, ...] = ()
    ) -> HighlightOutcome:
        return HighlightOutcome(
            primary_id=node.node_id if node is not None else None,
            highlighted_ids=self.highlighted_ids,
            segment_count=len(self._segments),
            degraded=degraded,
            stale=stale,
            error=error,
            unresolved=unresolved,
        )

    def _count(self, name: str) -> None:
        if self._counters is not None:
            self._counters.increment(name)
