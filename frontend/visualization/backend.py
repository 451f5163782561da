"""
Render Backend Contracts

Responsibility:
Accept point and line primitives, answer ray-picks.
The engine pushes a full frame; backends keep no engine references.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from engine.camera import CameraPose
from engine.contracts.layout import Color, DustField, Vec3
from engine.highlight import LinkSegment
from frontend.visualization.picking import pick_nearest, screen_ray

# Hit radius per unit of current node scale
PICK_RADIUS_FACTOR = 1.0


@dataclass(frozen=True)
class PointPrimitive:
    """Renderable point."""
    node_id: str
    position: Vec3
    scale: float
    color: Color
    opacity: float


class RenderBackend:
    """Abstract rendering backend."""

    def draw_points(self, points: Sequence[PointPrimitive]) -> None:
        raise NotImplementedError

    def draw_dust(self, fields: Sequence[DustField]) -> None:
        raise NotImplementedError

    def draw_lines(self, segments: Sequence[LinkSegment]) -> None:
        raise NotImplementedError

    def pick(self, x: float, y: float, pose: CameraPose) -> Optional[str]:
        """Id of the nearest point primitive under pixel (x, y), if any."""
        raise NotImplementedError


class InMemoryRenderBackend(RenderBackend):
    """Keeps the last submitted frame. Used headless and in tests."""

    def __init__(self, viewport: Tuple[int, int] = (1920, 1080)):
        self._viewport = viewport
        self._points: Tuple[PointPrimitive, ...] = ()
        self._dust: Tuple[DustField, ...] = ()
        self._lines: Tuple[LinkSegment, ...] = ()
        self._frames = 0

    @property
    def viewport(self) -> Tuple[int, int]:
        return self._viewport

    @property
    def points(self) -> Tuple[PointPrimitive, ...]:
        return self._points

    @property
    def dust(self) -> Tuple[DustField, ...]:
        return self._dust

    @property
    def lines(self) -> Tuple[LinkSegment, ...]:
        return self._lines

    @property
    def frame_count(self) -> int:
        return self._frames

    def draw_points(self, points: Sequence[PointPrimitive]) -> None:
        self._points = tuple(points)
        self._frames += 1

    def draw_dust(self, fields: Sequence[DustField]) -> None:
        self._dust = tuple(fields)

    def draw_lines(self, segments: Sequence[LinkSegment]) -> None:
        self._lines = tuple(segments)

    def pick(self, x: float, y: float, pose: CameraPose) -> Optional[str]:
        visible = [p for p in self._points if p.opacity > 0]
        if not visible:
            return None
        origin, direction = screen_ray(x, y, pose, self._viewport)
        positions = np.array([p.position for p in visible], dtype=float)
        radii = np.array([p.scale * PICK_RADIUS_FACTOR for p in visible], dtype=float)
        hit = pick_nearest(origin, direction, positions, radii)
        return None if hit is None else visible[hit].node_id
