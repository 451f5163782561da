"""
Engine Configuration

One frozen config per component, composed into EngineConfig.

WHY FROZEN:
Config must not change while a layout build or transition runs.
Changes require a new config instance and a rebuild.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Optional
import os

from .contracts.layout import Color, Vec3


@dataclass(frozen=True)
class SizerConfig:
    """Log-scaled cluster sizing."""
    min_radius: float = 50.0
    max_radius: float = 400.0
    floor: float = 0.15
    equal_counts_t: float = 0.5
    extent_factor: float = 1.3
    dust_min: int = 100
    dust_max: int = 800
    node_scale_min: float = 8.0
    node_scale_max: float = 20.0
    node_scale_variation: float = 3.0

    def __post_init__(self):
        if self.min_radius <= 0 or self.max_radius < self.min_radius:
            raise ValueError("require 0 < min_radius <= max_radius")
        if not 0.0 <= self.floor <= 1.0:
            raise ValueError("floor must be within [0, 1]")
        if self.dust_max < self.dust_min:
            raise ValueError("dust_max must be >= dust_min")


@dataclass(frozen=True)
class PlacementConfig:
    """Cluster center placement. Only no-overlap is load-bearing."""
    clearance: float = 279.0
    max_attempts: int = 50
    push_step: float = 50.0
    fallback_margin: float = 200.0
    ring_base: float = 400.0
    ring_step: float = 100.0

    def __post_init__(self):
        if self.clearance < 0:
            raise ValueError("clearance must be >= 0")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")


@dataclass(frozen=True)
class PlacerConfig:
    """Intra-cluster point placement."""
    density_exponent: float = 0.5
    dust_density_exponent: float = 0.4
    jitter_fraction: float = 0.10
    dust_jitter_fraction: float = 0.12
    dust_extent_factor: float = 1.1
    seed: Optional[int] = None


@dataclass(frozen=True)
class HighlightConfig:
    primary_scale: float = 1.4
    secondary_scale: float = 1.2
    primary_tint: Color = (1.0, 1.0, 1.0)
    secondary_tint: Color = (1.0, 1.0, 0.0)
    link_color: Color = (1.0, 0.843, 0.0)
    link_opacity: float = 0.7


@dataclass(frozen=True)
class CameraConfig:
    default_position: Vec3 = (0.0, 800.0, 1600.0)
    default_target: Vec3 = (0.0, 0.0, 0.0)
    overview_position: Vec3 = (0.0, 1000.0, 2400.0)
    fov: float = 60.0
    node_offset: Vec3 = (0.0, 50.0, 400.0)
    cluster_offset: Vec3 = (0.0, 200.0, 1200.0)
    node_duration: float = 1.5
    cluster_duration: float = 2.0
    reset_duration: float = 3.0


@dataclass(frozen=True)
class TransitionConfig:
    fade_out_duration: float = 1.2
    fade_in_duration: float = 1.5
    fade_in_start_fraction: float = 0.2
    spread_min: float = 200.0
    spread_max: float = 500.0
    notice_ttl: float = 2.0


@dataclass(frozen=True)
class RestoreConfig:
    """Bounded retry/backoff while waiting for a build to complete."""
    max_attempts: int = 10
    initial_delay: float = 0.05
    backoff: float = 2.0
    max_delay: float = 1.0


@dataclass(frozen=True)
class ServiceConfig:
    base_url: str = "http://localhost:3000"
    records_timeout: float = 10.0
    relations_timeout: float = 15.0
    user_agent: str = "CulturalNebula/1.0"


@dataclass
class EngineConfig:
    """Unified configuration for one running scene."""
    sizer: SizerConfig = None
    placement: PlacementConfig = None
    placer: PlacerConfig = None
    highlight: HighlightConfig = None
    camera: CameraConfig = None
    transition: TransitionConfig = None
    restore: RestoreConfig = None
    service: ServiceConfig = None
    viewstate_path: Optional[str] = None

    def __post_init__(self):
        self.sizer = self.sizer or SizerConfig()
        self.placement = self.placement or PlacementConfig()
        self.placer = self.placer or PlacerConfig()
        self.highlight = self.highlight or HighlightConfig()
        self.camera = self.camera or CameraConfig()
        self.transition = self.transition or TransitionConfig()
        self.restore = self.restore or RestoreConfig()
        self.service = self.service or ServiceConfig()

    @staticmethod
    def from_env(environ: Optional[dict] = None) -> EngineConfig:
        """Defaults overridden by NEBULA_* environment variables."""
        env = os.environ if environ is None else environ
        config = EngineConfig()

        service = config.service
        if env.get("NEBULA_API_URL"):
            service = replace(service, base_url=env["NEBULA_API_URL"].rstrip("/"))
        if env.get("NEBULA_RECORDS_TIMEOUT"):
            service = replace(service, records_timeout=float(env["NEBULA_RECORDS_TIMEOUT"]))
        if env.get("NEBULA_RELATIONS_TIMEOUT"):
            service = replace(service, relations_timeout=float(env["NEBULA_RELATIONS_TIMEOUT"]))
        config.service = service

        if env.get("NEBULA_CLEARANCE"):
            config.placement = replace(config.placement, clearance=float(env["NEBULA_CLEARANCE"]))
        if env.get("NEBULA_SEED"):
            config.placer = replace(config.placer, seed=int(env["NEBULA_SEED"]))

        config.viewstate_path = env.get("NEBULA_VIEWSTATE_PATH") or None
        return config
