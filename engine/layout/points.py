"""
Intra-Cluster Point Placer
==========================

Samples member positions inside a cluster's volume.

    direction: uniform on the sphere (theta uniform, phi = acos(2u - 1))
    distance:  minR + u^densityExponent * (maxR - minR)
    jitter:    isotropic, +-jitterFraction/2 of the sampled distance per axis

A lower exponent biases points toward the center. Named and uninformative
records share one distribution, so they are indistinguishable by
placement. Positions are stochastic per build and stable within it.
"""

from __future__ import annotations
from typing import Optional

import numpy as np

from ..config import PlacerConfig


def random_distribution(
    count: int,
    min_radius: float,
    max_radius: float,
    density_exponent: float,
    jitter_fraction: float,
    rng: np.random.Generator
) -> np.ndarray:
    """Return a (count, 3) array of points centered on the origin."""
    if count <= 0:
        return np.zeros((0, 3))

    theta = rng.random(count) * 2.0 * np.pi
    phi = np.arccos(2.0 * rng.random(count) - 1.0)
    radius = min_radius + np.power(rng.random(count), density_exponent) * (max_radius - min_radius)

    points = np.column_stack((
        radius * np.sin(phi) * np.cos(theta),
        radius * np.sin(phi) * np.sin(theta),
        radius * np.cos(phi),
    ))
    noise = (radius * jitter_fraction)[:, None]
    return points + (rng.random((count, 3)) - 0.5) * noise


class PointPlacer:
    """Places member nodes and decorative dust for clusters of one build."""

    def __init__(self, config: PlacerConfig = None, rng: Optional[np.random.Generator] = None):
        self._config = config or PlacerConfig()
        self._rng = rng if rng is not None else np.random.default_rng(self._config.seed)

    @property
    def rng(self) -> np.random.Generator:
        return self._rng

    def place_members(self, count: int, center: np.ndarray, extent: float) -> np.ndarray:
        cfg = self._config
        local = random_distribution(
            count, 0.0, extent, cfg.density_exponent, cfg.jitter_fraction, self._rng
        )
        return local + np.asarray(center, dtype=float)

    def place_dust(self, count: int, center: np.ndarray, extent: float) -> np.ndarray:
        cfg = self._config
        local = random_distribution(
            count,
            0.0,
            extent * cfg.dust_extent_factor,
            cfg.dust_density_exponent,
            cfg.dust_jitter_fraction,
            self._rng,
        )
        return local + np.asarray(center, dtype=float)

    def scale_jitter(self, count: int, variation: float) -> np.ndarray:
        """Uniform per-node scale offsets in [-variation/2, variation/2)."""
        return (self._rng.random(count) - 0.5) * variation
