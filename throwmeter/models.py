"""Data models for a thrown-device flight."""
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, NamedTuple, Optional, Sequence, Tuple

import numpy as np


class Sample(NamedTuple):
    """Single 3-axis sample, acceleration (m/s^2) or angular velocity (deg/s)."""
    t: float       # seconds since session start
    x: float
    y: float
    z: float


class OrientationSample(NamedTuple):
    """Euler angles in degrees, combined as Rz(alpha)·Rx(beta)·Ry(gamma)."""
    t: float
    alpha: float
    beta: float
    gamma: float


def _frozen(a):
    a = np.array(a, dtype=float)
    a.setflags(write=False)
    return a


class Series:
    """Time-ordered, read-only 3-axis series."""

    __slots__ = ("t", "xyz")

    def __init__(self, t, xyz):
        t = _frozen(t).reshape(-1)
        xyz = _frozen(xyz).reshape(-1, 3) if len(t) else _frozen(np.empty((0, 3)))
        if xyz.shape[0] != t.shape[0]:
            raise ValueError(f"{t.shape[0]} timestamps but {xyz.shape[0]} vectors")
        if t.size > 1 and np.any(np.diff(t) < 0):
            raise ValueError("timestamps must be non-decreasing")
        self.t = t
        self.xyz = xyz

    @classmethod
    def from_samples(cls, samples: Sequence[Sample]) -> "Series":
        if not samples:
            return cls.empty()
        arr = np.array([tuple(s) for s in samples], dtype=float)
        return cls(arr[:, 0], arr[:, 1:4])

    @classmethod
    def empty(cls) -> "Series":
        return cls(np.empty(0), np.empty((0, 3)))

    def __len__(self):
        return int(self.t.shape[0])

    def __iter__(self):
        for ti, (x, y, z) in zip(self.t, self.xyz):
            yield Sample(float(ti), float(x), float(y), float(z))

    def __eq__(self, other):
        if not isinstance(other, Series):
            return NotImplemented
        return np.array_equal(self.t, other.t) and np.array_equal(self.xyz, other.xyz)

    def __repr__(self):
        return f"Series(n={len(self)})"

    @property
    def x(self):
        return self.xyz[:, 0]

    @property
    def y(self):
        return self.xyz[:, 1]

    @property
    def z(self):
        return self.xyz[:, 2]

    def magnitude(self):
        return np.linalg.norm(self.xyz, axis=1)


@dataclass(frozen=True)
class FreeFallWindow:
    """Detected release (i0) and catch (i1) in the acceleration timeline."""
    i0: int
    i1: int
    t0: float
    t1: float
    r_eff_m: float
    threshold_mps2: float
    residual: Tuple[float, ...]

    ok = True

    @property
    def duration_s(self) -> float:
        return self.t1 - self.t0


@dataclass(frozen=True)
class ZuptTrajectory:
    """Bias-corrected vertical trajectory over [span_start, span_end].

    Index k of the series corresponds to sample span_start + k.
    """
    span_start: int
    span_end: int
    bias_mps2: float
    accel: Tuple[float, ...]
    velocity: Tuple[float, ...]
    position: Tuple[float, ...]

    def local(self, index: int) -> Optional[int]:
        """Map a global sample index into the span, None if it falls outside."""
        if self.span_start <= index <= self.span_end:
            return index - self.span_start
        return None


class EstimationMethod(Enum):
    TOF_DELTA_H = "tof_delta_h"
    LAUNCH_IMPULSE = "launch_impulse"
    ZUPT_APEX = "zupt_apex"
    FALL_DURATION = "fall_duration"


@dataclass(frozen=True)
class HeightEstimate:
    method: EstimationMethod
    height_m: Optional[float]
    time_of_flight_s: Optional[float] = None
    release_velocity_mps: Optional[float] = None
    diagnostics: Mapping[str, Any] = field(default_factory=dict, hash=False)
    reason: Optional[str] = None

    def __post_init__(self):
        # read-only view
        object.__setattr__(self, "diagnostics", MappingProxyType(dict(self.diagnostics)))

    @property
    def available(self) -> bool:
        return self.height_m is not None

    @classmethod
    def unavailable(cls, method: EstimationMethod, reason: str) -> "HeightEstimate":
        return cls(method=method, height_m=None, reason=reason)


class FailureKind(Enum):
    TOO_FEW_SAMPLES = "too_few_samples"
    NO_FREE_FALL_WINDOW = "no_free_fall_window"


@dataclass(frozen=True)
class DetectionFailure:
    kind: FailureKind
    reason: str

    ok = False


@dataclass(frozen=True)
class FlightAnalysis:
    window: FreeFallWindow
    trajectory: ZuptTrajectory
    estimates: Tuple[HeightEstimate, ...]
    flips: int

    ok = True

    def estimate(self, method: EstimationMethod) -> HeightEstimate:
        for e in self.estimates:
            if e.method is method:
                return e
        raise KeyError(method)
