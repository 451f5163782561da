"""
Cluster Placement Solver
========================

Positions cluster centers in 3D without overlap.

ALGORITHM:
==========
1. Sort clusters by member count, descending
2. The largest cluster sits at the origin
3. Every other cluster gets a bearing from an equal-area sphere sweep
   (golden-angle increment, y from 1 to -1) and an initial distance of at
   least centerRadius + ownRadius + clearance
4. While any placed cluster is closer than radiusA + radiusB + clearance,
   push the candidate outward along its bearing, bounded by max_attempts
5. On exhaustion accept a fallback distance that is safe by the triangle
   inequality: max(|p| + r_p) + r + clearance (+ margin)

The whole solve re-runs on every grouping-mode switch.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Tuple
import logging
import math

import numpy as np

from ..config import PlacementConfig
from ..contracts.base import Error, ErrorCode
from ..contracts.layout import Vec3, as_vec3


logger = logging.getLogger(__name__)

GOLDEN_ANGLE = math.pi * (3.0 - math.sqrt(5.0))


def fibonacci_direction(index: int, total: int) -> np.ndarray:
    """Unit bearing `index` of `total` on an equal-area sphere sweep."""
    if total <= 1:
        return np.array([1.0, 0.0, 0.0])
    y = 1.0 - (index / (total - 1)) * 2.0
    ring = math.sqrt(max(0.0, 1.0 - y * y))
    theta = GOLDEN_ANGLE * index
    return np.array([math.cos(theta) * ring, y, math.sin(theta) * ring])


@dataclass(frozen=True)
class PlacementInput:
    key: str
    member_count: int
    bounding_radius: float


@dataclass(frozen=True)
class PlacementResult:
    positions: Dict[str, Vec3]
    order: Tuple[str, ...]
    fallbacks: Tuple[str, ...] = field(default_factory=tuple)
    errors: Tuple[Error, ...] = field(default_factory=tuple)


class PlacementSolver:
    """
    Non-overlapping cluster center placement.

    GUARANTEES:
    ===========
    1. Every pair of centers is at least rA + rB + clearance apart
    2. Never fails: retry exhaustion degrades to the safe fallback
    """

    def __init__(self, config: PlacementConfig = None):
        self._config = config or PlacementConfig()

    def solve(self, inputs: List[PlacementInput]) -> PlacementResult:
        if not inputs:
            return PlacementResult(positions={}, order=())

        cfg = self._config
        ordered = sorted(inputs, key=lambda item: (-item.member_count, item.key))
        center = ordered[0]
        others = len(ordered) - 1

        placed: List[Tuple[np.ndarray, float]] = []
        positions: Dict[str, Vec3] = {}
        fallbacks: List[str] = []
        errors: List[Error] = []

        for index, item in enumerate(ordered):
            if index == 0:
                position = np.zeros(3)
            else:
                bearing = fibonacci_direction(index - 1, others)
                distance = max(
                    center.bounding_radius + item.bounding_radius + cfg.clearance,
                    cfg.ring_base + (others - 1) * cfg.ring_step,
                )
                position, converged = self._settle(bearing, distance, item.bounding_radius, placed)
                if not converged:
                    position = bearing * self._safe_distance(item.bounding_radius, placed)
                    fallbacks.append(item.key)
                    errors.append(Error.create(
                        ErrorCode.PLACEMENT_RETRY_EXHAUSTED,
                        "placement retries exhausted; using safe fallback distance",
                        cluster=item.key,
                        attempts=cfg.max_attempts,
                    ))
                    logger.warning("placement of %r exhausted %d attempts", item.key, cfg.max_attempts)

            placed.append((position, item.bounding_radius))
            positions[item.key] = as_vec3(position)
            logger.debug(
                "placed cluster %r: members=%d radius=%.0f distance=%.0f",
                item.key, item.member_count, item.bounding_radius, float(np.linalg.norm(position))
            )

        return PlacementResult(
            positions=positions,
            order=tuple(item.key for item in ordered),
            fallbacks=tuple(fallbacks),
            errors=tuple(errors),
        )

    def _settle(
        self,
        bearing: np.ndarray,
        distance: float,
        radius: float,
        placed: List[Tuple[np.ndarray, float]]
    ) -> Tuple[np.ndarray, bool]:
        """Push outward along the bearing until clear, or give up."""
        cfg = self._config
        for _ in range(cfg.max_attempts):
            candidate = bearing * distance
            exit_distance = 0.0
            for other, other_radius in placed:
                required = radius + other_radius + cfg.clearance
                if np.linalg.norm(candidate - other) < required:
                    exit_distance = max(exit_distance, self._exit_distance(bearing, other, required))
            if exit_distance == 0.0:
                return candidate, True
            distance = max(distance, exit_distance) + cfg.push_step
        return bearing * distance, False

    @staticmethod
    def _exit_distance(bearing: np.ndarray, other: np.ndarray, required: float) -> float:
        """Smallest distance along the bearing that clears `other` by `required`."""
        along = float(np.dot(bearing, other))
        lateral_sq = float(np.dot(other, other)) - along * along
        return along + math.sqrt(max(0.0, required * required - lateral_sq))

    def _safe_distance(self, radius: float, placed: List[Tuple[np.ndarray, float]]) -> float:
        cfg = self._config
        reach = max(float(np.linalg.norm(p)) + r for p, r in placed)
        return reach + radius + cfg.clearance + cfg.fallback_margin
