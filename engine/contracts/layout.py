"""
Layout Contracts

Clusters and VisualNodes produced by one layout build.

LIFECYCLE:
==========
- Clusters are recomputed fully on every grouping-mode switch
- VisualNodes are created during a build and replaced wholesale by the
  next one; they are never patched across builds
- A VisualNode's base appearance is captured once, at creation
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from .records import Record


Vec3 = Tuple[float, float, float]
Color = Tuple[float, float, float]


def as_vec3(value) -> Vec3:
    x, y, z = (float(v) for v in value)
    return (x, y, z)


@dataclass(frozen=True)
class NodeAppearance:
    """Scale, color and opacity of a rendered point."""
    scale: float
    color: Color
    opacity: float

    def scaled(self, factor: float, color: Color) -> NodeAppearance:
        return NodeAppearance(scale=self.scale * factor, color=color, opacity=self.opacity)

    def with_opacity(self, opacity: float) -> NodeAppearance:
        return NodeAppearance(scale=self.scale, color=self.color, opacity=opacity)


@dataclass(frozen=True)
class Cluster:
    """
    A named, radially-bounded grouping of records.

    radius is the sizing radius; extent is the point-distribution radius
    used for the no-overlap constraint.
    """
    key: str
    color: Color
    member_count: int
    size_factor: float
    radius: float
    extent: float
    center: Vec3
    dust_count: int
    node_ids: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def center_array(self) -> np.ndarray:
        return np.asarray(self.center, dtype=float)


@dataclass(eq=False)
class VisualNode:
    """
    Engine-owned wrapper around one Record.

    Identity-compared: two nodes are equal only if they are the same
    object, so they can live in sets and ordered highlight lists.
    """
    record: Record
    cluster_key: str
    position: np.ndarray
    target_position: np.ndarray
    base: NodeAppearance
    appearance: NodeAppearance
    uninformative: bool
    generation: int

    @property
    def node_id(self) -> str:
        return self.record.record_id

    @property
    def external_graph_id(self) -> Optional[str]:
        return self.record.external_graph_id

    def world_position(self) -> np.ndarray:
        return np.array(self.position, dtype=float)

    def restore_base(self) -> None:
        self.appearance = self.base

    def __repr__(self) -> str:
        return f"VisualNode(id={self.node_id!r}, cluster={self.cluster_key!r})"


@dataclass(frozen=True)
class DustField:
    """Decorative secondary particles of one cluster (not pickable)."""
    cluster_key: str
    color: Color
    positions: np.ndarray = field(compare=False)

    @property
    def count(self) -> int:
        return int(self.positions.shape[0])
