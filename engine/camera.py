"""
Camera Rig

Camera pose (position, target, fov) plus the framing presets used by
focus transitions. Animated moves run on the interpolation scheduler.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .config import CameraConfig
from .contracts.layout import Vec3, as_vec3
from .scheduler import InterpolationScheduler, ease_in_out_cubic


CAMERA_TAG = "camera"


@dataclass(frozen=True)
class CameraPose:
    position: Vec3
    target: Vec3
    fov: float

    def distance_to(self, other: CameraPose) -> float:
        """Largest positional deviation between two poses (position or target)."""
        return max(
            float(np.linalg.norm(np.subtract(self.position, other.position))),
            float(np.linalg.norm(np.subtract(self.target, other.target))),
        )


class CameraRig:
    """Owns the live camera pose. Only one camera animation runs at a time."""

    def __init__(self, scheduler: InterpolationScheduler, config: CameraConfig = None):
        self._scheduler = scheduler
        self._config = config or CameraConfig()
        self._position = np.asarray(self._config.default_position, dtype=float)
        self._target = np.asarray(self._config.default_target, dtype=float)
        self._fov = self._config.fov

    @property
    def pose(self) -> CameraPose:
        return CameraPose(
            position=as_vec3(self._position),
            target=as_vec3(self._target),
            fov=self._fov,
        )

    @property
    def position(self) -> np.ndarray:
        return self._position.copy()

    @property
    def target(self) -> np.ndarray:
        return self._target.copy()

    @property
    def fov(self) -> float:
        return self._fov

    @property
    def is_animating(self) -> bool:
        return self._scheduler.has_tag(CAMERA_TAG)

    def snap(self, pose: CameraPose) -> None:
        """Apply a pose immediately, cancelling any camera animation."""
        self._scheduler.cancel_tag(CAMERA_TAG)
        self._position = np.asarray(pose.position, dtype=float)
        self._target = np.asarray(pose.target, dtype=float)
        self._fov = float(pose.fov)

    def animate_to(self, position, target, duration: float) -> None:
        self._scheduler.cancel_tag(CAMERA_TAG)
        self._scheduler.animate(
            self._position.copy(), np.asarray(position, dtype=float), duration,
            self._set_position, easing=ease_in_out_cubic, tag=CAMERA_TAG,
        )
        self._scheduler.animate(
            self._target.copy(), np.asarray(target, dtype=float), duration,
            self._set_target, easing=ease_in_out_cubic, tag=CAMERA_TAG,
        )

    # -------------------------------------------------------------------------
    # FRAMING PRESETS
    # -------------------------------------------------------------------------

    def frame_node(self, world_position: np.ndarray) -> None:
        cfg = self._config
        point = np.asarray(world_position, dtype=float)
        self.animate_to(point + np.asarray(cfg.node_offset), point, cfg.node_duration)

    def frame_cluster(self, center: np.ndarray) -> None:
        cfg = self._config
        point = np.asarray(center, dtype=float)
        self.animate_to(point + np.asarray(cfg.cluster_offset), point, cfg.cluster_duration)

    def frame_overview(self, duration: Optional[float] = None) -> None:
        cfg = self._config
        self.animate_to(
            cfg.overview_position,
            cfg.default_target,
            cfg.reset_duration if duration is None else duration,
        )

    def _set_position(self, value: np.ndarray) -> None:
        self._position = np.asarray(value, dtype=float)

    def _set_target(self, value: np.ndarray) -> None:
        self._target = np.asarray(value, dtype=float)
