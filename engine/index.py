"""
Spatial Index
=============

Identifier-keyed lookup over the VisualNodes of one layout build.

ORDERING GUARANTEE:
===================
The index is populated while a build creates its nodes and sealed when
the build completes. Any lookup before seal() raises IndexNotReadyError:
a half-built index is never queried.

Keys are canonical identifier strings (see canonical_id), so native and
stringified ids resolve to the same node.
"""

from __future__ import annotations
from typing import Any, Dict, Iterator, Optional

from .contracts.base import IndexNotReadyError, canonical_id, optional_canonical_id
from .contracts.layout import VisualNode


class SpatialIndex:
    """Primary-id and external-graph-id mappings for one build generation."""

    def __init__(self, generation: int = 0):
        self._generation = generation
        self._by_id: Dict[str, VisualNode] = {}
        self._by_graph_id: Dict[str, VisualNode] = {}
        self._sealed = False

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_sealed(self) -> bool:
        return self._sealed

    def add(self, node: VisualNode) -> None:
        if self._sealed:
            raise RuntimeError("cannot add to a sealed SpatialIndex; rebuild instead")
        if node.node_id in self._by_id:
            raise ValueError(f"duplicate record id in layout: {node.node_id}")
        self._by_id[node.node_id] = node
        if node.external_graph_id:
            self._by_graph_id.setdefault(node.external_graph_id, node)

    def seal(self) -> None:
        """Mark the owning build as complete."""
        self._sealed = True

    # -------------------------------------------------------------------------
    # LOOKUPS (post-build only)
    # -------------------------------------------------------------------------

    def by_id(self, record_id: Any) -> Optional[VisualNode]:
        self._require_sealed()
        try:
            key = canonical_id(record_id)
        except ValueError:
            return None
        return self._by_id.get(key)

    def by_external_graph_id(self, graph_id: Any) -> Optional[VisualNode]:
        self._require_sealed()
        key = optional_canonical_id(graph_id)
        if key is None:
            return None
        return self._by_graph_id.get(key)

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self) -> Iterator[VisualNode]:
        self._require_sealed()
        return iter(self._by_id.values())

    def _require_sealed(self) -> None:
        if not self._sealed:
            raise IndexNotReadyError(
                f"SpatialIndex generation {self._generation} queried before build completion"
            )
