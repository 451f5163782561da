"""
Interaction Contracts

Responsibility:
Define the input events the scene consumes and route them to its handlers.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class ActionType(Enum):
    """Types of user interaction."""
    # Pointer
    POINTER_MOVE = "pointer_move"
    CLICK = "click"
    DOUBLE_CLICK = "double_click"

    # Selection
    SEARCH_SELECT = "search_select"
    CLUSTER_SELECT = "cluster_select"

    # View
    EXIT_FOCUS = "exit_focus"
    RESET_VIEW = "reset_view"
    SWITCH_MODE = "switch_mode"


@dataclass(frozen=True)
class InputEvent:
    """A specific user intent."""
    action: ActionType
    x: Optional[float] = None
    y: Optional[float] = None
    record_id: Optional[str] = None
    cluster_key: Optional[str] = None
    mode: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def pointer_move(x: float, y: float) -> InputEvent:
    return InputEvent(ActionType.POINTER_MOVE, x=x, y=y)


def click(x: float, y: float) -> InputEvent:
    return InputEvent(ActionType.CLICK, x=x, y=y)


def double_click(x: float, y: float) -> InputEvent:
    return InputEvent(ActionType.DOUBLE_CLICK, x=x, y=y)


def search_select(record_id: str) -> InputEvent:
    return InputEvent(ActionType.SEARCH_SELECT, record_id=record_id)


def cluster_select(key: str) -> InputEvent:
    return InputEvent(ActionType.CLUSTER_SELECT, cluster_key=key)


async def dispatch(scene, event: InputEvent) -> Any:
    """Route one event to the matching scene handler and return its result."""
    action = event.action
    if action is ActionType.POINTER_MOVE:
        return scene.pointer_move(event.x, event.y)
    if action is ActionType.CLICK:
        return await scene.click(event.x, event.y)
    if action is ActionType.DOUBLE_CLICK:
        return await scene.double_click(event.x, event.y)
    if action is ActionType.SEARCH_SELECT:
        return await scene.select_search_result(event.record_id)
    if action is ActionType.CLUSTER_SELECT:
        return scene.focus_cluster(event.cluster_key)
    if action is ActionType.EXIT_FOCUS:
        return scene.exit_focus()
    if action is ActionType.RESET_VIEW:
        return scene.reset()
    if action is ActionType.SWITCH_MODE:
        return scene.switch_grouping_mode(event.mode)
    raise ValueError(f"Unhandled action: {action}")
