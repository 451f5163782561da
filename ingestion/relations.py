"""
Relation Service Clients

Cross-reference ("knowledge graph") neighbors for one external-graph id.

    neighbors(graph_id) -> NeighborResult(neighbors, triples, error)

PRINCIPLES:
===========
1. Fail soft: timeouts, transport errors, bad status and bad payloads
   all produce an empty NeighborResult carrying an explicit error
2. Never raise into the caller's transition
3. Ids are canonicalized on the way in
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
import logging

import httpx
import networkx as nx

from engine.contracts.base import Error, ErrorCode, optional_canonical_id


logger = logging.getLogger(__name__)


# =============================================================================
# CONTRACTS
# =============================================================================

@dataclass(frozen=True)
class Neighbor:
    graph_id: str
    name: Optional[str] = None
    record_uuid: Optional[str] = None
    labels: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Triple:
    head: str
    relation: str
    tail: str


@dataclass(frozen=True)
class NeighborResult:
    """Neighbors and relation triples of one graph node. Empty on absence."""
    graph_id: Optional[str]
    neighbors: Tuple[Neighbor, ...] = field(default_factory=tuple)
    triples: Tuple[Triple, ...] = field(default_factory=tuple)
    error: Optional[Error] = None

    @property
    def is_empty(self) -> bool:
        return not self.neighbors

    @property
    def neighbor_ids(self) -> Tuple[str, ...]:
        return tuple(n.graph_id for n in self.neighbors)

    @staticmethod
    def empty(graph_id: Optional[str], error: Optional[Error] = None) -> NeighborResult:
        return NeighborResult(graph_id=graph_id, error=error)

    @staticmethod
    def from_payload(graph_id: str, payload: Mapping[str, Any]) -> NeighborResult:
        """Parse the `data` object of a relation response."""
        neighbors: List[Neighbor] = []
        for item in payload.get("neighbors") or ():
            if not isinstance(item, Mapping):
                continue
            neighbor_id = optional_canonical_id(item.get("id"))
            if neighbor_id is None:
                continue
            neighbors.append(Neighbor(
                graph_id=neighbor_id,
                name=item.get("name"),
                record_uuid=optional_canonical_id(item.get("uuid")),
                labels=tuple(str(label) for label in item.get("labels") or ()),
            ))

        triples = tuple(
            Triple(head=str(t.get("head", "")), relation=str(t["relation"]), tail=str(t.get("tail", "")))
            for t in payload.get("triples") or ()
            if isinstance(t, Mapping) and t.get("relation")
        )
        return NeighborResult(graph_id=graph_id, neighbors=tuple(neighbors), triples=triples)


class RelationService:
    """
    Abstract relation service.

    Implementations must return a NeighborResult for every call and must
    not raise for missing nodes or transport failures.
    """

    async def neighbors(self, graph_id: str) -> NeighborResult:
        raise NotImplementedError


def _failure(graph_id: Optional[str], message: str, **context: Any) -> NeighborResult:
    error = Error.create(ErrorCode.RELATION_FETCH_FAILURE, message, graph_id=graph_id, **context)
    logger.warning("relation fetch for %s failed: %s", graph_id, message)
    return NeighborResult.empty(graph_id, error)


# =============================================================================
# HTTP CLIENT
# =============================================================================

class HttpRelationService(RelationService):
    """
    GET {base_url}/api/knowledge-graph/{graph_id}

    Response envelope: {"success": bool, "data": {"neighbors": [...], "triples": [...]}}
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 15.0,
        user_agent: str = "CulturalNebula/1.0",
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._user_agent = user_agent
        self._transport = transport

    async def neighbors(self, graph_id: str) -> NeighborResult:
        key = optional_canonical_id(graph_id)
        if key is None:
            return NeighborResult.empty(None)

        url = f"{self._base_url}/api/knowledge-graph/{key}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(url, headers={'User-Agent': self._user_agent})
        except httpx.TimeoutException:
            return _failure(key, "request timed out", timeout=self._timeout)
        except httpx.HTTPError as e:
            return _failure(key, f"transport error: {e}")

        if response.status_code != 200:
            return _failure(key, f"HTTP {response.status_code}", status=response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            return _failure(key, f"invalid JSON: {e}")

        if not isinstance(body, Mapping) or not body.get("success"):
            message = body.get("message") if isinstance(body, Mapping) else None
            return _failure(key, message or "service reported failure")

        data = body.get("data")
        if not isinstance(data, Mapping):
            return NeighborResult.empty(key)
        return NeighborResult.from_payload(key, data)


# =============================================================================
# IN-PROCESS GRAPH
# =============================================================================

class GraphRelationService(RelationService):
    """
    Relation service backed by a networkx MultiDiGraph.

    Nodes are external-graph ids with optional `name`, `uuid` and `labels`
    attributes; edges carry a `relation` attribute. Neighbors are taken in
    both directions, matching an undirected pattern match.
    """

    def __init__(self, graph: Optional[nx.MultiDiGraph] = None):
        self._graph = graph if graph is not None else nx.MultiDiGraph()

    @property
    def graph(self) -> nx.MultiDiGraph:
        return self._graph

    def add_entity(
        self,
        graph_id: Any,
        name: Optional[str] = None,
        record_uuid: Any = None,
        labels: Iterable[str] = ()
    ) -> str:
        key = optional_canonical_id(graph_id)
        if key is None:
            raise ValueError("graph id must not be empty")
        self._graph.add_node(
            key, name=name, uuid=optional_canonical_id(record_uuid), labels=tuple(labels)
        )
        return key

    def relate(self, head: Any, relation: str, tail: Any) -> None:
        head_key = optional_canonical_id(head)
        tail_key = optional_canonical_id(tail)
        if head_key is None or tail_key is None:
            raise ValueError("relation endpoints must not be empty")
        for key in (head_key, tail_key):
            if key not in self._graph:
                self._graph.add_node(key, name=None, uuid=None, labels=())
        self._graph.add_edge(head_key, tail_key, relation=relation)

    @staticmethod
    def from_triples(
        triples: Iterable[Tuple[Any, str, Any]],
        names: Optional[Dict[Any, str]] = None
    ) -> GraphRelationService:
        service = GraphRelationService()
        for graph_id, name in (names or {}).items():
            service.add_entity(graph_id, name=name)
        for head, relation, tail in triples:
            service.relate(head, relation, tail)
        return service

    async def neighbors(self, graph_id: str) -> NeighborResult:
        key = optional_canonical_id(graph_id)
        if key is None or key not in self._graph:
            return NeighborResult.empty(key)

        graph = self._graph
        source_name = graph.nodes[key].get("name") or key
        seen: Dict[str, Neighbor] = {}
        triples: List[Triple] = []

        edges = [(tail, data) for _, tail, data in graph.out_edges(key, data=True)]
        edges += [(head, data) for head, _, data in graph.in_edges(key, data=True)]
        for other, data in edges:
            if other == key:
                continue
            attrs = graph.nodes[other]
            if other not in seen:
                seen[other] = Neighbor(
                    graph_id=other,
                    name=attrs.get("name"),
                    record_uuid=attrs.get("uuid"),
                    labels=tuple(attrs.get("labels") or ()),
                )
            triples.append(Triple(
                head=source_name,
                relation=str(data.get("relation", "")),
                tail=attrs.get("name") or other,
            ))

        return NeighborResult(
            graph_id=key,
            neighbors=tuple(seen.values()),
            triples=tuple(t for t in triples if t.relation),
        )
