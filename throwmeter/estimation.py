"""
Height estimation from a detected free-fall window.

Four independent physical models, reported side by side:

    TOF + dh        : v0 = g*T/2 + dh/T,      h = v0^2 / 2g
    Launch impulse  : v0 = integral of a_lin over the pre-release push
    ZUPT apex       : peak of the bias-corrected trajectory above release
    Fall duration   : t_fall = T - v0/g,      h = g * t_fall^2 / 2

They encode different assumptions (symmetric parabola, direct impulse,
integrated trajectory, duration split) and disagree on noisy data;
no single "true" height is derived from them here.
"""
import logging

import numpy as np

from .conditioning import integrate_trapezoid
from .config import ThrowConfig
from .models import EstimationMethod, HeightEstimate

logger = logging.getLogger(__name__)

OUTSIDE_SPAN = "free-fall window lies outside the ZUPT span"


def tof_release_velocity(T, delta_h, g):
    return 0.5 * g * T + delta_h / T


def tof_height(T, delta_h, g):
    """Apex height above release; reduces to g*T^2/8 when delta_h == 0."""
    v0 = tof_release_velocity(T, delta_h, g)
    return max(0.0, v0 * v0 / (2.0 * g))


def _local_window(window, trajectory):
    return trajectory.local(window.i0), trajectory.local(window.i1)


def _span_times(t, trajectory):
    return np.asarray(t, dtype=float)[trajectory.span_start:trajectory.span_end + 1]


# Method 1
def tof_delta_h(window, trajectory, config: ThrowConfig):
    method = EstimationMethod.TOF_DELTA_H
    r0, r1 = _local_window(window, trajectory)
    if r0 is None or r1 is None or r1 <= r0:
        return HeightEstimate.unavailable(method, OUTSIDE_SPAN)
    T = window.t1 - window.t0
    if T <= 0:
        return HeightEstimate.unavailable(method, "free-fall window has no duration")

    z = trajectory.position
    delta_h = z[r1] - z[r0]
    v0 = tof_release_velocity(T, delta_h, config.g)
    return HeightEstimate(
        method=method,
        height_m=tof_height(T, delta_h, config.g),
        time_of_flight_s=T,
        release_velocity_mps=v0,
        diagnostics={"delta_h_m": delta_h},
    )


# Method 2
def launch_impulse(window, trajectory, t, config: ThrowConfig):
    """Release velocity from the vertical push just before release."""
    method = EstimationMethod.LAUNCH_IMPULSE
    rel = trajectory.local(window.i0)
    if rel is None or rel <= 1:
        return HeightEstimate.unavailable(method, "release too close to the start of the ZUPT span")

    t_local = _span_times(t, trajectory)
    pre = config.launch_impulse_window_ms / 1000.0
    start = rel
    while start > 0 and (t_local[rel] - t_local[start]) < pre:
        start -= 1

    # ZUPT-corrected accel: gravity and sensor bias already removed
    a_lin = np.asarray(trajectory.accel[start:rel + 1])
    v0 = float(integrate_trapezoid(a_lin, t_local[start:rel + 1])[-1])
    h = max(0.0, v0 * v0 / (2.0 * config.g))
    return HeightEstimate(
        method=method,
        height_m=h,
        time_of_flight_s=window.t1 - window.t0,
        release_velocity_mps=v0,
        diagnostics={"impulse_window_s": float(t_local[rel] - t_local[start])},
    )


# Method 3
def zupt_apex(window, trajectory, t, config: ThrowConfig):
    method = EstimationMethod.ZUPT_APEX
    r0, r1 = _local_window(window, trajectory)
    if r0 is None or r1 is None or r0 < 1 or r1 <= r0:
        return HeightEstimate.unavailable(method, OUTSIDE_SPAN)

    v = trajectory.velocity
    z = np.asarray(trajectory.position)
    apex = None
    for i in range(r0 + 1, r1 + 1):
        if v[i - 1] > 0 and v[i] <= 0:
            apex = i
            break
    crossing = apex is not None
    if not crossing:
        apex = r0 + int(np.argmax(z[r0:r1 + 1]))

    t_local = _span_times(t, trajectory)
    return HeightEstimate(
        method=method,
        height_m=max(0.0, float(z[apex] - z[r0])),
        time_of_flight_s=window.t1 - window.t0,
        release_velocity_mps=float(v[r0]),
        diagnostics={
            "apex_index": trajectory.span_start + apex,
            "apex_time_s": float(t_local[apex]),
            "velocity_crossing": crossing,
            "delta_h_m": float(z[r1] - z[r0]),
        },
    )


# Method 4
def _fitted_release_velocity(window, trajectory, t):
    """Least-squares line through v(t) over the window, evaluated at release."""
    r0, r1 = _local_window(window, trajectory)
    if r0 is None or r1 is None or r1 - r0 + 1 < 3:
        return None
    t_local = _span_times(t, trajectory)
    v = np.asarray(trajectory.velocity)
    slope, intercept = np.polyfit(t_local[r0:r1 + 1], v[r0:r1 + 1], 1)
    return float(intercept + slope * t_local[r0])


def fall_duration(window, trajectory, t, config: ThrowConfig, tof=None, impulse=None):
    """
    Height from the descending part of the flight.

    t_up = v0/g, t_fall = T - t_up. When a dh is known, the fall time is
    cross-checked against sqrt(2 * (h_max - dh) / g); far apart the smaller
    one wins, close together they are averaged.
    """
    method = EstimationMethod.FALL_DURATION
    g = config.g
    T = window.t1 - window.t0

    if impulse is not None and impulse.available:
        v0, source = impulse.release_velocity_mps, "launch_impulse"
    elif tof is not None and tof.available:
        v0, source = tof.release_velocity_mps, "tof_delta_h"
    else:
        v0, source = _fitted_release_velocity(window, trajectory, t), "velocity_fit"
    if v0 is None or not np.isfinite(v0):
        return HeightEstimate.unavailable(method, "no release velocity from another method")

    t_up = max(0.0, v0 / g)
    t_fall = max(0.0, T - t_up)

    t_fall_alt = None
    if tof is not None and tof.available:
        h_max = v0 * v0 / (2.0 * g)
        D = max(0.0, h_max - tof.diagnostics["delta_h_m"])
        t_fall_alt = float(np.sqrt(2.0 * D / g))
        rel = abs(t_fall_alt - t_fall) / max(1e-6, t_fall)
        if rel > config.fall_fusion_tolerance:
            t_fall = min(t_fall, t_fall_alt)
        else:
            t_fall = 0.5 * (t_fall + t_fall_alt)

    return HeightEstimate(
        method=method,
        height_m=max(0.0, 0.5 * g * t_fall * t_fall),
        time_of_flight_s=T,
        release_velocity_mps=v0,
        diagnostics={
            "velocity_source": source,
            "t_up_s": t_up,
            "t_fall_s": t_fall,
            "t_fall_alt_s": t_fall_alt,
        },
    )


def estimate_heights(window, trajectory, t, config=None):
    """All four estimates, in EstimationMethod order."""
    config = config or ThrowConfig()
    tof = tof_delta_h(window, trajectory, config)
    impulse = launch_impulse(window, trajectory, t, config)
    apex = zupt_apex(window, trajectory, t, config)
    fall = fall_duration(window, trajectory, t, config, tof=tof, impulse=impulse)

    for e in (tof, impulse, apex, fall):
        if e.available:
            logger.debug(f"{e.method.value}: h={e.height_m:.3f} m")
        else:
            logger.debug(f"{e.method.value}: unavailable ({e.reason})")
    return (tof, impulse, apex, fall)


# Flips
def count_flips(t, omega_deg, i0, i1):
    """Whole turns over [i0, i1]: floor(integral of |w| dt / 360)."""
    t = np.asarray(t, dtype=float)
    omega_deg = np.abs(np.asarray(omega_deg, dtype=float))
    if i1 <= i0:
        return 0
    total = float(integrate_trapezoid(omega_deg[i0:i1 + 1], t[i0:i1 + 1])[-1])
    # tolerate rounding in the time axis (0.49999... s at 720 deg/s is one flip)
    return int(np.floor(total / 360.0 + 1e-9))
