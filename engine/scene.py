"""
Scene
=====

The single owned engine-state object of one running scene.

Holds the current layout, focus state, highlight set, camera, scheduler
and notices. There are no module-level globals: two Scenes never share
state.

CONCURRENCY MODEL:
==================
- Single-threaded, cooperative. tick(dt) advances the interpolation
  scheduler and pushes a frame to the render backend
- Layout builds are synchronous; build_completed is set when the index of
  the new generation is sealed (or the build failed)
- Relation fetches are awaited by the input handlers. The focus transition
  is applied before the fetch starts, so concurrent input sees the lock
- Switching grouping mode cancels every tween of the outgoing layout,
  fades it out, rebuilds, then fades the new layout in. Input arriving
  before the new index is sealed is dropped
"""

from __future__ import annotations
from typing import List, Optional, Sequence, Union
import asyncio
import logging

import numpy as np

from .camera import CameraRig
from .config import EngineConfig
from .contracts.base import Error, ErrorCode, GroupingMode, Result
from .contracts.layout import VisualNode, as_vec3
from .contracts.records import Record
from .focus import FocusStateMachine, TransitionOutcome
from .highlight import HighlightOverlay
from .layout.builder import Layout, LayoutBuilder
from .observability import EngineCounters, Notice, NoticeBoard, TransitionLog
from .scheduler import InterpolationScheduler, ease_in_cubic, ease_out_cubic
from .search import RecordSearch
from .viewstate import (
    FileViewStateStore, InMemoryViewStateStore, RestoreReport,
    ViewStateSerializer, ViewStateSnapshot, ViewStateStore,
)
from frontend.visualization.backend import InMemoryRenderBackend, PointPrimitive, RenderBackend
from ingestion.fetcher import RecordFetcher
from ingestion.relations import GraphRelationService, RelationService


logger = logging.getLogger(__name__)

NO_DATA_NOTICE = "No records available"
NOT_FOUND_NOTICE = "Record not found in the current view"
MODE_NOTICES = {
    GroupingMode.BY_ERA: "Grouping by era",
    GroupingMode.BY_CATEGORY: "Grouping by category",
}


def layout_tag(generation: int) -> str:
    return f"layout:{generation}"


class Scene:
    """Engine state for one running scene."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        relations: Optional[RelationService] = None,
        store: Optional[ViewStateStore] = None,
        backend: Optional[RenderBackend] = None,
        rng: Optional[np.random.Generator] = None,
        mode: GroupingMode = GroupingMode.BY_ERA
    ):
        self._config = config or EngineConfig()
        cfg = self._config
        self._rng = rng if rng is not None else np.random.default_rng(cfg.placer.seed)

        self._scheduler = InterpolationScheduler()
        self._camera = CameraRig(self._scheduler, cfg.camera)
        self._transitions = TransitionLog()
        self._focus = FocusStateMachine(self._transitions)
        self._notices = NoticeBoard(cfg.transition.notice_ttl)
        self._counters = EngineCounters()
        self._highlight = HighlightOverlay(
            relations if relations is not None else GraphRelationService(),
            cfg.highlight,
            self._counters,
        )
        self._builder = LayoutBuilder(cfg, rng=self._rng)
        self._search = RecordSearch(rng=self._rng)
        self._backend = backend if backend is not None else InMemoryRenderBackend()
        if store is None:
            store = FileViewStateStore(cfg.viewstate_path) if cfg.viewstate_path else InMemoryViewStateStore()
        self._serializer = ViewStateSerializer(store, cfg.restore)

        self._records: List[Record] = []
        self._mode = mode
        self._layout: Optional[Layout] = None
        self._generation = 0
        self._build_completed = asyncio.Event()
        self._build_error: Optional[Error] = None
        self._pending_build: Optional[asyncio.Task] = None
        self._time = 0.0
        self._hovered: Optional[str] = None
        self._detail: Optional[VisualNode] = None

    # -------------------------------------------------------------------------
    # STATE ACCESS
    # -------------------------------------------------------------------------

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def camera(self) -> CameraRig:
        return self._camera

    @property
    def focus(self) -> FocusStateMachine:
        return self._focus

    @property
    def highlight(self) -> HighlightOverlay:
        return self._highlight

    @property
    def scheduler(self) -> InterpolationScheduler:
        return self._scheduler

    @property
    def transitions(self) -> TransitionLog:
        return self._transitions

    @property
    def counters(self) -> EngineCounters:
        return self._counters

    @property
    def backend(self) -> RenderBackend:
        return self._backend

    @property
    def search(self) -> RecordSearch:
        return self._search

    @property
    def serializer(self) -> ViewStateSerializer:
        return self._serializer

    @property
    def layout(self) -> Optional[Layout]:
        return self._layout

    @property
    def mode(self) -> GroupingMode:
        return self._mode

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def records(self) -> Sequence[Record]:
        return tuple(self._records)

    @property
    def build_completed(self) -> asyncio.Event:
        return self._build_completed

    @property
    def build_error(self) -> Optional[Error]:
        return self._build_error

    @property
    def is_rebuilding(self) -> bool:
        return self._focus.is_rebuilding

    @property
    def time(self) -> float:
        return self._time

    @property
    def hovered_node_id(self) -> Optional[str]:
        return self._hovered

    @property
    def detail_node(self) -> Optional[VisualNode]:
        return self._detail

    @property
    def detail_record(self) -> Optional[Record]:
        return self._detail.record if self._detail is not None else None

    @property
    def notices(self) -> Sequence[Notice]:
        return self._notices.visible(self._time)

    # -------------------------------------------------------------------------
    # LOADING AND BUILDING
    # -------------------------------------------------------------------------

    def load(self, records: Sequence[Record]) -> Result:
        """Replace the record list and build synchronously. Returns Result(Layout)."""
        self._records = list(records)
        self._search.reset(self._records)
        outcome = self._focus.begin_rebuild(self._generation + 1, trigger="load")
        if not outcome.accepted:
            return Result.failure(outcome.error)
        self._discard_layout()
        try:
            return self._build()
        finally:
            self._focus.end_rebuild()

    async def load_from(self, fetcher: RecordFetcher) -> Result:
        """Fetch the record list and build. A failed fetch surfaces DATA_UNAVAILABLE."""
        fetched = await fetcher.fetch()
        if not fetched.success:
            outcome = self._focus.begin_rebuild(self._generation + 1, trigger="load")
            if not outcome.accepted:
                return Result.failure(outcome.error)
            try:
                self._records = []
                self._search.reset(())
                self._discard_layout()
                self._layout = None
                self._build_error = fetched.to_error()
                self._counters.increment("data_unavailable")
                self._notices.post(NO_DATA_NOTICE, self._time, kind="warning")
                self._build_completed.set()
                self._sync_backend()
            finally:
                self._focus.end_rebuild()
            return Result.failure(self._build_error)
        return self.load(fetched.records)

    def request_build(self) -> asyncio.Task:
        """
        Schedule a build of the current records and mode on the running loop.

        build_completed is replaced by a fresh, unset event bound to the
        running loop and set once the build ends.
        """
        self._build_completed = asyncio.Event()
        self._focus.begin_rebuild(self._generation + 1, trigger="rebuild")
        self._pending_build = asyncio.get_running_loop().create_task(self._deferred_build())
        return self._pending_build

    async def _deferred_build(self) -> Result:
        await asyncio.sleep(0)
        try:
            return self._build()
        finally:
            self._focus.end_rebuild()

    def _build(self, initial_opacity: Optional[float] = None) -> Result:
        self._generation += 1
        self._build_completed.clear()
        result = self._builder.build(self._records, self._mode, self._generation, initial_opacity)

        if result.is_failure:
            self._layout = None
            self._build_error = result.error
            self._counters.increment("data_unavailable")
            self._notices.post(NO_DATA_NOTICE, self._time, kind="warning")
            logger.warning("generation %d: %s", self._generation, result.error.message)
        else:
            self._layout = result.value
            self._build_error = None
            self._counters.increment("builds")
            if self._layout.errors:
                self._counters.increment("placement_fallbacks", len(self._layout.errors))

        self._build_completed.set()
        self._sync_backend()
        return result

    def _discard_layout(self) -> None:
        """Drop everything tied to the current layout generation."""
        if self._layout is not None:
            self._scheduler.cancel_tag(layout_tag(self._layout.generation))
        self._highlight.clear()
        self.close_detail()
        self._hovered = None

    # -------------------------------------------------------------------------
    # GROUPING MODE
    # -------------------------------------------------------------------------

    def switch_grouping_mode(self, mode: Union[GroupingMode, str]) -> TransitionOutcome:
        """Fade out, rebuild under `mode`, fade in. Same mode is a no-op."""
        if not isinstance(mode, GroupingMode):
            mode = GroupingMode.parse(mode)
        if self._focus.is_rebuilding:
            return self._focus.drop("switch-mode")
        if mode is self._mode:
            state = self._focus.state
            return TransitionOutcome(accepted=True, previous=state, current=state)

        outcome = self._focus.begin_rebuild(self._generation + 1, trigger="switch-mode")
        outgoing = self._layout
        self._discard_layout()
        self._mode = mode
        self._build_completed.clear()
        self._notices.post(MODE_NOTICES[mode], self._time)
        logger.info("switching grouping mode to %s", mode.value)

        if outgoing is None or not outgoing.nodes:
            self._complete_mode_switch()
        else:
            self._fade_out(outgoing)
        return outcome

    def _fade_out(self, layout: Layout) -> None:
        cfg = self._config.transition
        nodes = layout.nodes
        starts = np.array([n.position for n in nodes], dtype=float)
        opacities = np.array([n.appearance.opacity for n in nodes], dtype=float)
        norms = np.linalg.norm(starts, axis=1, keepdims=True)
        directions = np.divide(starts, norms, out=np.zeros_like(starts), where=norms > 0)
        spreads = self._rng.uniform(cfg.spread_min, cfg.spread_max, len(nodes))
        offsets = directions * spreads[:, None]

        def apply(t: float) -> None:
            for i, node in enumerate(nodes):
                node.position = starts[i] + offsets[i] * t
                node.appearance = node.appearance.with_opacity(float(opacities[i] * (1.0 - t)))

        self._scheduler.animate(
            0.0, 1.0, cfg.fade_out_duration, apply,
            easing=ease_out_cubic,
            on_complete=self._complete_mode_switch,
            tag=layout_tag(layout.generation),
        )

    def _complete_mode_switch(self) -> None:
        try:
            result = self._build(initial_opacity=0.0)
        finally:
            self._focus.end_rebuild()
        if result.is_success:
            self._fade_in(result.value)

    def _fade_in(self, layout: Layout) -> None:
        cfg = self._config.transition
        nodes = layout.nodes
        targets = np.array([n.target_position for n in nodes], dtype=float)
        starts = targets * cfg.fade_in_start_fraction
        for i, node in enumerate(nodes):
            node.position = starts[i].copy()

        def apply(t: float) -> None:
            for i, node in enumerate(nodes):
                if t >= 1.0:
                    node.position = targets[i].copy()
                else:
                    node.position = starts[i] + (targets[i] - starts[i]) * t
                node.appearance = node.appearance.with_opacity(node.base.opacity * t)

        self._scheduler.animate(
            0.0, 1.0, cfg.fade_in_duration, apply,
            easing=ease_in_cubic,
            tag=layout_tag(layout.generation),
        )

    # -------------------------------------------------------------------------
    # INPUT HANDLERS
    # -------------------------------------------------------------------------

    def pointer_move(self, x: float, y: float) -> Optional[str]:
        """Hover: ray-pick only, no transition."""
        self._hovered = None if self._layout is None else self._pick(x, y)
        return self._hovered

    async def click(self, x: float, y: float) -> Optional[TransitionOutcome]:
        """Select the node under (x, y). None if nothing was hit."""
        node_id = self._pick(x, y)
        if node_id is None:
            return None
        return await self.select_node(node_id)

    async def double_click(self, x: float, y: float) -> Optional[str]:
        """
        Focus the node under (x, y) and navigate to its detail view.

        Returns the record id to navigate to, or None when nothing was hit
        or the focus was rejected.
        """
        node_id = self._pick(x, y)
        if node_id is None:
            return None
        outcome = await self.select_node(node_id, trigger="double-click")
        if not outcome.accepted or self._focus.locked_node_id != node_id:
            return None
        self.navigate_to_detail()
        return node_id

    async def select_node(self, node_id: str, trigger: str = "select-node") -> TransitionOutcome:
        """Enter NodeFocus on `node_id`, applying camera, detail and highlight."""
        if self._focus.is_rebuilding:
            return self._focus.drop(trigger)
        node = self._lookup(node_id)
        if node is None:
            return self._lookup_miss(trigger, node_id)

        outcome = self._focus.select_node(node.node_id, node.cluster_key)
        if not outcome.accepted:
            self._counters.increment("rejected_transitions")
            if outcome.notice:
                self._notices.post(outcome.notice, self._time, kind="warning")
            return outcome
        if not outcome.changed:
            return outcome

        self._camera.frame_node(node.world_position())
        self.open_detail(node)
        await self._highlight.apply(node, self._layout.index)
        return outcome

    async def select_search_result(self, key: str) -> TransitionOutcome:
        """Focus a record chosen from search (by record id or external-graph id)."""
        if self._focus.is_rebuilding:
            return self._focus.drop("search-select")
        record = self._search.find(key)
        node = self._lookup(record.record_id) if record is not None else None
        if node is None:
            return self._lookup_miss("search-select", key)
        return await self.select_node(node.node_id, trigger="search-select")

    def focus_cluster(self, key: str) -> TransitionOutcome:
        if self._focus.is_rebuilding:
            return self._focus.drop("select-cluster")
        cluster = self._layout.cluster(key) if self._layout is not None else None
        if cluster is None:
            return self._lookup_miss("select-cluster", key)
        outcome = self._focus.select_cluster(cluster.key)
        if outcome.accepted:
            self._camera.frame_cluster(cluster.center_array)
        elif outcome.notice:
            self._notices.post(outcome.notice, self._time, kind="warning")
        return outcome

    def exit_focus(self) -> TransitionOutcome:
        """Release the lock; camera stays where it is."""
        outcome = self._focus.exit()
        if outcome.accepted:
            self._highlight.clear()
            self.close_detail()
        return outcome

    def reset(self) -> TransitionOutcome:
        outcome = self._focus.reset()
        if outcome.accepted:
            self._highlight.clear()
            self.close_detail()
            self._camera.frame_overview()
        return outcome

    # -------------------------------------------------------------------------
    # DETAIL OVERLAY
    # -------------------------------------------------------------------------

    def open_detail(self, node: VisualNode) -> None:
        self._detail = node

    def close_detail(self) -> None:
        self._detail = None

    # -------------------------------------------------------------------------
    # VIEW STATE
    # -------------------------------------------------------------------------

    def navigate_to_detail(self) -> ViewStateSnapshot:
        """Capture the view state before leaving for an external detail view."""
        return self._serializer.capture(self)

    def prepare_restore(self, mode: GroupingMode) -> None:
        """Drop the current layout and adopt the captured grouping mode."""
        self._discard_layout()
        self._mode = mode

    async def restore_view_state(self) -> RestoreReport:
        return await self._serializer.restore(self)

    # -------------------------------------------------------------------------
    # TICK
    # -------------------------------------------------------------------------

    def tick(self, dt: float) -> None:
        self._time += dt
        self._scheduler.tick(dt)
        self._notices.expire(self._time)
        self._sync_backend()

    # -------------------------------------------------------------------------
    # INTERNALS
    # -------------------------------------------------------------------------

    def _lookup(self, node_id: str) -> Optional[VisualNode]:
        if self._layout is None:
            return None
        return self._layout.index.by_id(node_id)

    def _lookup_miss(self, trigger: str, key: str) -> TransitionOutcome:
        self._counters.increment("lookup_misses")
        self._notices.post(NOT_FOUND_NOTICE, self._time, kind="warning")
        logger.warning("%s: %r does not resolve in generation %d", trigger, key, self._generation)
        return self._focus.reject(
            trigger,
            Error.create(ErrorCode.LOOKUP_MISS, "identifier not found", key=key),
            notice=NOT_FOUND_NOTICE,
        )

    def _pick(self, x: float, y: float) -> Optional[str]:
        self._sync_backend()
        return self._backend.pick(x, y, self._camera.pose)

    def _sync_backend(self) -> None:
        if self._layout is None:
            self._backend.draw_points(())
            self._backend.draw_dust(())
            self._backend.draw_lines(())
            return
        self._backend.draw_points([
            PointPrimitive(
                node_id=node.node_id,
                position=as_vec3(node.position),
                scale=node.appearance.scale,
                color=node.appearance.color,
                opacity=node.appearance.opacity,
            )
            for node in self._layout.nodes
        ])
        self._backend.draw_dust(self._layout.dust)
        self._backend.draw_lines(self._highlight.segments)
