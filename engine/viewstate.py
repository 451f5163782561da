"""
View-State Serializer
=====================

Captures camera + focus + highlight state before navigating to an
external detail view, and restores it on return.

PERSISTED SCHEMA (single key, single use):
==========================================
    {
      "cameraPos": {"x": .., "y": .., "z": ..},
      "targetPos": {"x": .., "y": .., "z": ..},
      "fov": 60,
      "clusterMode": "by-era" | "by-category",
      "focusCluster": "<key>" | null,
      "lockedNodeId": "<id>" | null,
      "highlightedNodeIds": ["<id>", ...],
      "mainExternalGraphId": "<graph id>" | null
    }

RESTORE ORDER:
==============
1. restore grouping mode (it determines clustering)
2. trigger the build
3. wait for the build-completion event and a non-empty index
   (bounded retry/backoff)
4. restore camera pose
5. if the locked node resolves: re-apply the stored highlight list and
   rebuild link segments with one relation call
6. re-enter NodeFocus / ClusterFocus, else stay Global
7. the persisted record was deleted when it was consumed
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Tuple
import asyncio
import json
import logging
import os

from .camera import CameraPose
from .config import RestoreConfig
from .contracts.base import (
    Error, ErrorCode, GroupingMode, Result, optional_canonical_id,
)
from .contracts.layout import Vec3, as_vec3
from .focus import ClusterFocus, GlobalFocus, NodeFocus

if TYPE_CHECKING:
    from .scene import Scene


logger = logging.getLogger(__name__)


# =============================================================================
# SNAPSHOT
# =============================================================================

def _vec_to_dict(value: Vec3) -> Dict[str, float]:
    x, y, z = value
    return {"x": x, "y": y, "z": z}


def _vec_from_dict(value: Any) -> Vec3:
    if not isinstance(value, Mapping):
        raise ValueError(f"expected an {{x, y, z}} object, got {value!r}")
    return as_vec3((value["x"], value["y"], value["z"]))


@dataclass(frozen=True)
class ViewStateSnapshot:
    """One atomic capture of camera, grouping and focus/highlight state."""
    camera_position: Vec3
    camera_target: Vec3
    fov: float
    mode: GroupingMode
    focus_cluster: Optional[str] = None
    locked_node_id: Optional[str] = None
    highlighted_node_ids: Tuple[str, ...] = field(default_factory=tuple)
    main_external_graph_id: Optional[str] = None

    @property
    def camera_pose(self) -> CameraPose:
        return CameraPose(position=self.camera_position, target=self.camera_target, fov=self.fov)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cameraPos": _vec_to_dict(self.camera_position),
            "targetPos": _vec_to_dict(self.camera_target),
            "fov": self.fov,
            "clusterMode": self.mode.value,
            "focusCluster": self.focus_cluster,
            "lockedNodeId": self.locked_node_id,
            "highlightedNodeIds": list(self.highlighted_node_ids),
            "mainExternalGraphId": self.main_external_graph_id,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> ViewStateSnapshot:
        """Parse a persisted record. Raises ValueError if it is corrupt."""
        if not isinstance(data, Mapping):
            raise ValueError("view state must be a JSON object")
        try:
            highlighted = data.get("highlightedNodeIds") or []
            if not isinstance(highlighted, (list, tuple)):
                raise ValueError("highlightedNodeIds must be a list")
            graph_id = data.get("mainExternalGraphId", data.get("mainNodeKgId"))
            return ViewStateSnapshot(
                camera_position=_vec_from_dict(data["cameraPos"]),
                camera_target=_vec_from_dict(data["targetPos"]),
                fov=float(data.get("fov", 60.0)),
                mode=GroupingMode.parse(str(data.get("clusterMode", GroupingMode.BY_ERA.value))),
                focus_cluster=data.get("focusCluster") or None,
                locked_node_id=optional_canonical_id(data.get("lockedNodeId")),
                highlighted_node_ids=tuple(
                    i for i in (optional_canonical_id(v) for v in highlighted) if i is not None
                ),
                main_external_graph_id=optional_canonical_id(graph_id),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"corrupt view state: {e}") from e


# =============================================================================
# STORES
# =============================================================================

class ViewStateStore:
    """
    Abstract single-key, single-use store.

    consume() returns Result(snapshot or None) and always deletes the
    stored record, including a corrupt one (VIEWSTATE_CORRUPT failure).
    """

    def save(self, snapshot: ViewStateSnapshot) -> None:
        raise NotImplementedError

    def consume(self) -> Result:
        raise NotImplementedError

    def exists(self) -> bool:
        raise NotImplementedError


def _parse_stored(raw: str) -> Result:
    try:
        snapshot = ViewStateSnapshot.from_dict(json.loads(raw))
    except ValueError as e:
        logger.warning("discarding corrupt view state: %s", e)
        return Result.failure(Error.create(ErrorCode.VIEWSTATE_CORRUPT, str(e)))
    return Result.success(snapshot)


class InMemoryViewStateStore(ViewStateStore):
    """Holds the serialized JSON text, so round trips exercise the schema."""

    def __init__(self):
        self._raw: Optional[str] = None

    def save(self, snapshot: ViewStateSnapshot) -> None:
        self._raw = json.dumps(snapshot.to_dict())

    def save_raw(self, raw: str) -> None:
        self._raw = raw

    def consume(self) -> Result:
        raw, self._raw = self._raw, None
        if raw is None:
            return Result.success(None)
        return _parse_stored(raw)

    def exists(self) -> bool:
        return self._raw is not None


class FileViewStateStore(ViewStateStore):
    """Single JSON file; removed on consume."""

    def __init__(self, path: str):
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    def save(self, snapshot: ViewStateSnapshot) -> None:
        directory = os.path.dirname(self._path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = self._path + ".tmp"
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(snapshot.to_dict(), f, ensure_ascii=False)
        os.replace(tmp_path, self._path)

    def consume(self) -> Result:
        if not os.path.exists(self._path):
            return Result.success(None)
        try:
            with open(self._path, 'r', encoding='utf-8') as f:
                raw = f.read()
        finally:
            os.remove(self._path)
        return _parse_stored(raw)

    def exists(self) -> bool:
        return os.path.exists(self._path)


# =============================================================================
# SERIALIZER
# =============================================================================

@dataclass(frozen=True)
class RestoreReport:
    restored: bool
    focus: str
    highlighted_ids: Tuple[str, ...] = field(default_factory=tuple)
    segment_count: int = 0
    errors: Tuple[Error, ...] = field(default_factory=tuple)


class ViewStateSerializer:
    """Capture and restore against one Scene."""

    def __init__(self, store: ViewStateStore, config: RestoreConfig = None):
        self._store = store
        self._config = config or RestoreConfig()

    @property
    def store(self) -> ViewStateStore:
        return self._store

    def capture(self, scene: Scene) -> ViewStateSnapshot:
        pose = scene.camera.pose
        state = scene.focus.state
        focus_cluster = None
        if isinstance(state, ClusterFocus):
            focus_cluster = state.key
        elif isinstance(state, NodeFocus) and not state.entered_from_global:
            focus_cluster = state.cluster_key

        snapshot = ViewStateSnapshot(
            camera_position=pose.position,
            camera_target=pose.target,
            fov=pose.fov,
            mode=scene.mode,
            focus_cluster=focus_cluster,
            locked_node_id=scene.focus.locked_node_id,
            highlighted_node_ids=scene.highlight.highlighted_ids,
            main_external_graph_id=scene.highlight.main_graph_id,
        )
        self._store.save(snapshot)
        logger.info("captured view state: %s", state.describe())
        return snapshot

    async def wait_for_index(self, scene: Scene) -> Result:
        """
        Wait for the build-completion event, then for a non-empty index.

        Each attempt waits at most the current delay; delays grow by the
        backoff factor up to max_delay.
        """
        cfg = self._config
        delay = cfg.initial_delay
        for attempt in range(1, cfg.max_attempts + 1):
            try:
                await asyncio.wait_for(scene.build_completed.wait(), timeout=delay)
            except asyncio.TimeoutError:
                logger.debug("build not complete after attempt %d", attempt)
            else:
                if scene.build_error is not None:
                    return Result.failure(scene.build_error)
                layout = scene.layout
                if layout is not None and layout.index.is_sealed and len(layout.index) > 0:
                    return Result.success(layout.index)
                await asyncio.sleep(delay)
            delay = min(delay * cfg.backoff, cfg.max_delay)
        return Result.failure(Error.create(
            ErrorCode.BUILD_TIMEOUT,
            "layout build did not complete in time",
            attempts=cfg.max_attempts,
        ))

    async def restore(self, scene: Scene) -> RestoreReport:
        consumed = self._store.consume()
        if consumed.is_failure:
            return RestoreReport(restored=False, focus="global", errors=(consumed.error,))
        snapshot: Optional[ViewStateSnapshot] = consumed.value
        if snapshot is None:
            return RestoreReport(restored=False, focus=scene.focus.state.describe())

        scene.prepare_restore(snapshot.mode)
        scene.request_build()

        ready = await self.wait_for_index(scene)
        if ready.is_failure:
            logger.warning("restore abandoned: %s", ready.error.message)
            return RestoreReport(restored=False, focus="global", errors=(ready.error,))
        index = ready.value

        scene.camera.snap(snapshot.camera_pose)
        errors = []

        node = index.by_id(snapshot.locked_node_id) if snapshot.locked_node_id else None
        if node is not None:
            entered_from_global = snapshot.focus_cluster is None
            outcome = await scene.highlight.apply_ids(
                snapshot.highlighted_node_ids or (node.node_id,),
                index,
                node,
                snapshot.main_external_graph_id,
            )
            if outcome.error is not None:
                errors.append(outcome.error)
            scene.focus.restore(NodeFocus(
                node.node_id, node.cluster_key, locked=True, entered_from_global=entered_from_global
            ))
            scene.open_detail(node)
        elif snapshot.focus_cluster and scene.layout.cluster(snapshot.focus_cluster) is not None:
            if snapshot.locked_node_id:
                errors.append(self._lookup_miss(snapshot.locked_node_id))
            scene.focus.restore(ClusterFocus(snapshot.focus_cluster))
        else:
            if snapshot.locked_node_id or snapshot.focus_cluster:
                errors.append(self._lookup_miss(snapshot.locked_node_id or snapshot.focus_cluster))
            if not isinstance(scene.focus.state, GlobalFocus):
                scene.focus.restore(GlobalFocus())

        state = scene.focus.state
        logger.info("restored view state into %s", state.describe())
        return RestoreReport(
            restored=True,
            focus=state.describe(),
            highlighted_ids=scene.highlight.highlighted_ids,
            segment_count=len(scene.highlight.segments),
            errors=tuple(errors),
        )

    @staticmethod
    def _lookup_miss(key: str) -> Error:
        logger.warning("view state target %s no longer resolves", key)
        return Error.create(ErrorCode.LOOKUP_MISS, "stored focus target not found", target=key)
