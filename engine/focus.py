"""
Focus State Machine
===================

Exactly one focus value per scene, a tagged union:

    Global
    ClusterFocus(key)
    NodeFocus(node_id, cluster_key, locked, entered_from_global)

TRANSITIONS:
============
    Global        --select node-->            NodeFocus(locked, from_global=True)
    Global        --select cluster-->         ClusterFocus(key)
    ClusterFocus  --select node in key-->     NodeFocus(locked, from_global=False)
    ClusterFocus  --select node elsewhere-->  ClusterFocus(other) -> NodeFocus
    NodeFocus     --select other node-->      rejected, notice, no mutation
    NodeFocus     --exit-->                   Global or ClusterFocus(previous key)
    any           --reset / switch mode-->    Global

GUARANTEES:
===========
1. At most one locked node: the lock exists only inside NodeFocus and only
   this machine creates or clears NodeFocus
2. Rejected transitions never mutate state
3. While a rebuild is in progress every input transition is dropped with
   REBUILD_IN_PROGRESS

The machine holds no references to VisualNodes or the camera. Side effects
(camera moves, highlights, overlays) belong to the scene that drives it.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Tuple, Union
import logging

from .contracts.base import Error, ErrorCode
from .observability import TransitionLog


logger = logging.getLogger(__name__)

LOCKED_NOTICE = "Exit the current focus first"


# =============================================================================
# STATES
# =============================================================================

@dataclass(frozen=True)
class GlobalFocus:
    def describe(self) -> str:
        return "global"


@dataclass(frozen=True)
class ClusterFocus:
    key: str

    def describe(self) -> str:
        return f"cluster:{self.key}"


@dataclass(frozen=True)
class NodeFocus:
    node_id: str
    cluster_key: str
    locked: bool = True
    entered_from_global: bool = True

    def describe(self) -> str:
        lock = "locked" if self.locked else "free"
        return f"node:{self.node_id}@{self.cluster_key}({lock})"


FocusState = Union[GlobalFocus, ClusterFocus, NodeFocus]

GLOBAL = GlobalFocus()


@dataclass(frozen=True)
class TransitionOutcome:
    """
    Result of one attempted transition.

    path lists every state entered, in order; a cross-cluster node select
    enters ClusterFocus(other) before NodeFocus.
    """
    accepted: bool
    previous: FocusState
    current: FocusState
    error: Optional[Error] = None
    notice: Optional[str] = None
    path: Tuple[FocusState, ...] = field(default_factory=tuple)

    @property
    def changed(self) -> bool:
        return self.previous != self.current


# =============================================================================
# STATE MACHINE
# =============================================================================

class FocusStateMachine:
    """Sole owner of the focus value and therefore of the node lock."""

    def __init__(self, log: Optional[TransitionLog] = None):
        self._state: FocusState = GLOBAL
        self._rebuilding = False
        self._generation = 0
        self._log = log if log is not None else TransitionLog()

    @property
    def state(self) -> FocusState:
        return self._state

    @property
    def log(self) -> TransitionLog:
        return self._log

    @property
    def locked_node_id(self) -> Optional[str]:
        if isinstance(self._state, NodeFocus) and self._state.locked:
            return self._state.node_id
        return None

    @property
    def focused_cluster(self) -> Optional[str]:
        if isinstance(self._state, ClusterFocus):
            return self._state.key
        if isinstance(self._state, NodeFocus):
            return self._state.cluster_key
        return None

    @property
    def is_rebuilding(self) -> bool:
        return self._rebuilding

    # -------------------------------------------------------------------------
    # REBUILD GATE
    # -------------------------------------------------------------------------

    def begin_rebuild(self, generation: int, trigger: str = "switch-mode") -> TransitionOutcome:
        """Enter Global and drop input until end_rebuild(). One rebuild at a time."""
        if self._rebuilding:
            return self.drop(trigger)
        self._generation = generation
        outcome = self._force(trigger, GLOBAL)
        self._rebuilding = True
        return outcome

    def end_rebuild(self) -> None:
        self._rebuilding = False

    # -------------------------------------------------------------------------
    # INPUT TRANSITIONS
    # -------------------------------------------------------------------------

    def select_node(self, node_id: str, cluster_key: str) -> TransitionOutcome:
        trigger = "select-node"
        if self._rebuilding:
            return self.drop(trigger)

        state = self._state
        if isinstance(state, NodeFocus) and state.locked:
            if state.node_id == node_id:
                return self._accept(trigger, state, ())
            return self.reject(
                trigger,
                Error.create(
                    ErrorCode.INVALID_TRANSITION,
                    "another node is locked",
                    locked=state.node_id,
                    requested=node_id,
                ),
                notice=LOCKED_NOTICE,
            )

        if isinstance(state, GlobalFocus):
            target = NodeFocus(node_id, cluster_key, locked=True, entered_from_global=True)
            return self._accept(trigger, target, (target,))

        if isinstance(state, ClusterFocus) and state.key != cluster_key:
            hop = ClusterFocus(cluster_key)
            target = NodeFocus(node_id, cluster_key, locked=True, entered_from_global=False)
            return self._accept(trigger, target, (hop, target))

        # ClusterFocus on the node's own cluster, or an unlocked NodeFocus
        from_global = isinstance(state, NodeFocus) and state.entered_from_global
        target = NodeFocus(node_id, cluster_key, locked=True, entered_from_global=from_global)
        return self._accept(trigger, target, (target,))

    def select_cluster(self, key: str) -> TransitionOutcome:
        trigger = "select-cluster"
        if self._rebuilding:
            return self.drop(trigger)
        if self.locked_node_id is not None:
            return self.reject(
                trigger,
                Error.create(
                    ErrorCode.INVALID_TRANSITION,
                    "cannot focus a cluster while a node is locked",
                    locked=self.locked_node_id,
                    requested=key,
                ),
                notice=LOCKED_NOTICE,
            )
        target = ClusterFocus(key)
        return self._accept(trigger, target, (target,))

    def exit(self) -> TransitionOutcome:
        trigger = "exit"
        if self._rebuilding:
            return self.drop(trigger)
        state = self._state
        if isinstance(state, NodeFocus):
            target = GLOBAL if state.entered_from_global else ClusterFocus(state.cluster_key)
        else:
            target = GLOBAL
        return self._accept(trigger, target, (target,) if target != state else ())

    def reset(self) -> TransitionOutcome:
        trigger = "reset"
        if self._rebuilding:
            return self.drop(trigger)
        return self._accept(trigger, GLOBAL, (GLOBAL,))

    # -------------------------------------------------------------------------
    # RESTORE
    # -------------------------------------------------------------------------

    def restore(self, target: FocusState) -> TransitionOutcome:
        """Re-enter a captured focus directly (restore runs after its own build)."""
        return self._force("restore", target)

    # -------------------------------------------------------------------------
    # INTERNALS
    # -------------------------------------------------------------------------

    def _accept(self, trigger: str, target: FocusState, path: Tuple[FocusState, ...]) -> TransitionOutcome:
        previous = self._state
        self._state = target
        self._record(trigger, previous, target, True, None)
        return TransitionOutcome(accepted=True, previous=previous, current=target, path=path)

    def _force(self, trigger: str, target: FocusState) -> TransitionOutcome:
        return self._accept(trigger, target, (target,))

    # -------------------------------------------------------------------------
    # REJECTION (never mutates state)
    # -------------------------------------------------------------------------

    def reject(self, trigger: str, error: Error, notice: Optional[str] = None) -> TransitionOutcome:
        state = self._state
        self._record(trigger, state, state, False, error.code)
        logger.info("rejected %s in %s: %s", trigger, state.describe(), error.message)
        return TransitionOutcome(
            accepted=False, previous=state, current=state, error=error, notice=notice
        )

    def drop(self, trigger: str) -> TransitionOutcome:
        return self.reject(
            trigger,
            Error.create(ErrorCode.REBUILD_IN_PROGRESS, "input dropped during rebuild"),
        )

    def _record(
        self,
        trigger: str,
        previous: FocusState,
        target: FocusState,
        accepted: bool,
        code: Optional[ErrorCode]
    ) -> None:
        self._log.record(
            trigger=trigger,
            from_state=previous.describe(),
            to_state=target.describe(),
            accepted=accepted,
            error_code=code.name if code else None,
            generation=self._generation,
        )
