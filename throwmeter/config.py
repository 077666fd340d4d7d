"""Tuning constants for flight analysis.

All lengths of time are in milliseconds, accelerations in m/s^2.
"""
from dataclasses import dataclass
from typing import Optional, Tuple

G_CONST = 9.80665

SMOOTH_N = 5
MIN_SAMPLES = 8
MIN_FREE_FALL_MS = 60.0          # allow very short throws

SPIN_TAIL_FRACTION = 0.35
THRESHOLD_TAIL_FRACTION = 0.40
MIN_TAIL_SAMPLES = 5
R_EFF_MAX_M = 0.08
R_EFF_CLAMP_M = (0.0, R_EFF_MAX_M)  # 0-8 cm
THRESHOLD_FLOOR_FRAC_G = 0.15
THRESHOLD_CEILING_FRAC_G = 0.5
CLOSE_GAP_SAMPLES = 2
OPEN_ISLAND_SAMPLES = 1
EDGE_SNAP_MS = 40.0

LAUNCH_IMPULSE_WINDOW_MS = 200.0
FALL_FUSION_TOLERANCE = 0.25

STATIONARY_CALM_THRESHOLD = 0.6  # m/s^2
STATIONARY_CALM_MS = 200.0       # ms of calm after catch to consider it finished
STATIONARY_WINDOW_MS = 250.0

LIVE_MIN_SAMPLES = 24
MAX_SESSION_SAMPLES = 5000

ZUPT_SPANS = ("full", "stationary")


@dataclass(frozen=True)
class ThrowConfig:
    g: float = G_CONST
    smooth_n: int = SMOOTH_N
    min_samples: int = MIN_SAMPLES
    min_free_fall_ms: float = MIN_FREE_FALL_MS

    spin_tail_fraction: float = SPIN_TAIL_FRACTION
    threshold_tail_fraction: float = THRESHOLD_TAIL_FRACTION
    min_tail_samples: int = MIN_TAIL_SAMPLES
    r_eff_clamp_m: Tuple[float, float] = R_EFF_CLAMP_M
    threshold_floor_frac_g: float = THRESHOLD_FLOOR_FRAC_G
    threshold_ceiling_frac_g: float = THRESHOLD_CEILING_FRAC_G
    close_gap_samples: int = CLOSE_GAP_SAMPLES
    open_island_samples: int = OPEN_ISLAND_SAMPLES
    edge_snap_ms: float = EDGE_SNAP_MS

    launch_impulse_window_ms: float = LAUNCH_IMPULSE_WINDOW_MS
    fall_fusion_tolerance: float = FALL_FUSION_TOLERANCE

    stationary_calm_threshold_mps2: float = STATIONARY_CALM_THRESHOLD
    stationary_calm_duration_ms: float = STATIONARY_CALM_MS
    zupt_span: str = "full"
    stationary_window_ms: float = STATIONARY_WINDOW_MS
    vertical_sign: Optional[float] = None

    live_min_samples: int = LIVE_MIN_SAMPLES
    max_session_samples: int = MAX_SESSION_SAMPLES

    def __post_init__(self):
        if self.g <= 0:
            raise ValueError(f"g must be positive, got {self.g}")
        if self.smooth_n < 1:
            raise ValueError(f"smooth_n must be >= 1, got {self.smooth_n}")
        if self.min_samples < 3:
            raise ValueError(f"min_samples must be >= 3, got {self.min_samples}")
        if self.min_free_fall_ms <= 0:
            raise ValueError("min_free_fall_ms must be positive")
        for name in ("spin_tail_fraction", "threshold_tail_fraction"):
            value = getattr(self, name)
            if not 0.0 < value <= 1.0:
                raise ValueError(f"{name} must be in (0, 1], got {value}")
        lo, hi = self.r_eff_clamp_m
        if lo < 0 or hi < lo or hi > R_EFF_MAX_M:
            raise ValueError(f"invalid r_eff_clamp_m {self.r_eff_clamp_m}")
        if not 0 < self.threshold_floor_frac_g <= self.threshold_ceiling_frac_g:
            raise ValueError("threshold floor must be positive and not above the ceiling")
        if self.close_gap_samples < 0 or self.open_island_samples < 0:
            raise ValueError("morphology sizes must be non-negative")
        if self.zupt_span not in ZUPT_SPANS:
            raise ValueError(f"zupt_span must be one of {ZUPT_SPANS}, got {self.zupt_span!r}")
        if self.vertical_sign not in (None, 1, -1, 1.0, -1.0):
            raise ValueError(f"vertical_sign must be +1, -1 or None, got {self.vertical_sign}")
        if self.max_session_samples < self.min_samples:
            raise ValueError("max_session_samples is smaller than min_samples")

    @property
    def min_free_fall_s(self) -> float:
        return self.min_free_fall_ms / 1000.0
