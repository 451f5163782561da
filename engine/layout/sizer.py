"""
Cluster Sizer
=============

Normalized size factor and radius per group from member counts.

    t = (ln(n+1) - ln(min+1)) / (ln(max+1) - ln(min+1)),  clamped to [floor, 1]
    t = 0.5 when every count is equal
    f = sqrt(t)
    radius = minRadius + f * (maxRadius - minRadius)
    extent = radius * extentFactor

Radius is monotonic non-decreasing in member count.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Mapping
import math

from ..config import SizerConfig


@dataclass(frozen=True)
class ClusterSize:
    key: str
    member_count: int
    normalized: float
    size_factor: float
    radius: float
    extent: float
    dust_count: int
    node_scale: float


class ClusterSizer:
    """Computes ClusterSize values for one set of member counts."""

    def __init__(self, config: SizerConfig = None):
        self._config = config or SizerConfig()

    @property
    def config(self) -> SizerConfig:
        return self._config

    def normalize(self, count: int, min_count: int, max_count: int) -> float:
        """Log-scaled min-max normalization with floor and cap."""
        if max_count <= min_count:
            return self._config.equal_counts_t

        log_min = math.log(min_count + 1)
        log_max = math.log(max_count + 1)
        t = (math.log(count + 1) - log_min) / (log_max - log_min)
        return min(max(t, self._config.floor), 1.0)

    def size(self, counts: Mapping[str, int]) -> Dict[str, ClusterSize]:
        """Size every group. Groups with a zero count are skipped."""
        populated = {k: n for k, n in counts.items() if n > 0}
        if not populated:
            return {}

        min_count = min(populated.values())
        max_count = max(populated.values())
        cfg = self._config

        sizes = {}
        for key, count in populated.items():
            t = self.normalize(count, min_count, max_count)
            f = math.sqrt(t)
            radius = cfg.min_radius + f * (cfg.max_radius - cfg.min_radius)
            sizes[key] = ClusterSize(
                key=key,
                member_count=count,
                normalized=t,
                size_factor=f,
                radius=radius,
                extent=radius * cfg.extent_factor,
                dust_count=int(math.floor(cfg.dust_min + f * (cfg.dust_max - cfg.dust_min))),
                node_scale=cfg.node_scale_min + f * (cfg.node_scale_max - cfg.node_scale_min),
            )
        return sizes
