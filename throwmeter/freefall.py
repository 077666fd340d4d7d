"""
Spin-robust free-fall detection.

    world |a| (gravity included) ->
    aligned |w| (gyro, optional) ->
    effective spin radius fit (|a| ~ r_eff * w^2 on the low-force tail) ->
    residual specific force ->
    adaptive threshold (tail median + 3 * MAD, clamped) ->
    mask + morphology (close small gaps, drop single-sample islands) ->
    cleanest run (lowest mean residual) ->
    jerk-snapped release / catch.

During free fall an accelerometer reads ~0. Off-axis spin adds a
centripetal r_eff * w^2 on top of that, which is fitted and removed
per throw before thresholding.
"""
import logging

import numpy as np
from scipy.ndimage import find_objects, label

from .conditioning import (
    align_nearest,
    jerk,
    lowest_fraction,
    lowest_fraction_indices,
    mad,
    mean_dt,
    robust_median,
)
from .config import ThrowConfig
from .models import DetectionFailure, FailureKind, FreeFallWindow

logger = logging.getLogger(__name__)

REASON_TOO_FEW = "fewer than {n} acceleration samples"
REASON_NO_RUN = "no sample survives the free-fall threshold"
REASON_TOO_SHORT = "no free-fall run meets the minimum duration"


# Spin compensation
def aligned_omega_deg(t, omega_t=None, omega_xyz=None):
    """|w| in deg/s on the acceleration time grid; zeros without gyro data."""
    t = np.asarray(t, dtype=float)
    if omega_t is None or omega_xyz is None or len(omega_t) == 0:
        return np.zeros(t.shape[0])
    mags = np.linalg.norm(np.asarray(omega_xyz, dtype=float).reshape(-1, 3), axis=1)
    return align_nearest(omega_t, mags, t)


def estimate_spin_radius(a_mag, omega_rad, config: ThrowConfig):
    """Least-squares slope of |a| against w^2 through the origin, in meters."""
    a_mag = np.asarray(a_mag, dtype=float)
    w2 = np.square(np.asarray(omega_rad, dtype=float))
    idx = lowest_fraction_indices(a_mag, config.spin_tail_fraction, config.min_tail_samples)
    num = float(np.sum(w2[idx] * a_mag[idx]))
    den = float(np.sum(w2[idx] * w2[idx]))
    r_eff = num / den if den > 1e-9 else 0.0
    lo, hi = config.r_eff_clamp_m
    return float(np.clip(r_eff, lo, hi))


def adaptive_threshold(residual, config: ThrowConfig):
    tail = lowest_fraction(residual, config.threshold_tail_fraction, config.min_tail_samples)
    raw = robust_median(tail) + 3.0 * mad(tail)
    floor = config.threshold_floor_frac_g * config.g
    ceiling = config.threshold_ceiling_frac_g * config.g
    return float(np.clip(raw, floor, ceiling))


# Mask morphology
def runs(mask):
    """(start, end) inclusive index pairs of the True runs in mask."""
    labels, num = label(np.asarray(mask, dtype=bool))
    if num == 0:
        return []
    return [(sl[0].start, sl[0].stop - 1) for sl in find_objects(labels)]


def close_gaps(mask, max_gap):
    """Fill False gaps of length <= max_gap that have True on both sides."""
    mask = np.asarray(mask, dtype=bool)
    out = mask.copy()
    n = mask.size
    for s, e in runs(~mask):
        if s > 0 and e < n - 1 and (e - s + 1) <= max_gap:
            out[s:e + 1] = True
    return out


def remove_islands(mask, max_len):
    """Drop True runs of length <= max_len."""
    out = np.asarray(mask, dtype=bool).copy()
    for s, e in runs(out):
        if (e - s + 1) <= max_len:
            out[s:e + 1] = False
    return out


def candidate_runs(mask, residual, min_run):
    """Runs of at least min_run samples, cleanest (lowest mean residual) first."""
    residual = np.asarray(residual, dtype=float)
    scored = []
    for s, e in runs(mask):
        if e - s + 1 >= min_run:
            scored.append((float(residual[s:e + 1].mean()), s, e))
    scored.sort()
    return [(s, e) for _, s, e in scored]


# Edge refinement
def snap_to_jerk(index, direction, jerk_values, span):
    """Move a boundary to the largest jerk within +/- span samples.

    The scan runs from the inside of the window outward, so ties keep
    the boundary towards the interior.
    """
    n = len(jerk_values)
    best_i, best_j = index, -np.inf
    for k in range(-span, span + 1):
        j = int(np.clip(index + direction * k, 1, n - 1))
        if jerk_values[j] > best_j:
            best_j = jerk_values[j]
            best_i = j
    return best_i


def refine_edges(s, e, t, residual, config: ThrowConfig):
    t = np.asarray(t, dtype=float)
    dt = max(1e-3, mean_dt(t))
    span = max(2, int(round(config.edge_snap_ms / 1000.0 / dt)))
    j = jerk(residual, t)
    return snap_to_jerk(s, -1, j, span), snap_to_jerk(e, +1, j, span)


# Detection
def detect_free_fall(t, accel_xyz, omega_t=None, omega_xyz=None, config=None):
    """
    Detect the free-fall window of a throw.

    Parameters
    ----------
    t : array (n,)
        Acceleration timestamps (s), non-decreasing.
    accel_xyz : array (n, 3)
        World-frame total acceleration, gravity included (m/s^2).
    omega_t, omega_xyz : arrays, optional
        World-frame angular velocity samples (deg/s) on their own time grid.
    config : ThrowConfig

    Returns
    -------
    FreeFallWindow, or DetectionFailure
    """
    config = config or ThrowConfig()
    t = np.asarray(t, dtype=float)
    n = t.shape[0]
    if n < config.min_samples:
        return DetectionFailure(FailureKind.TOO_FEW_SAMPLES,
                                REASON_TOO_FEW.format(n=config.min_samples))

    accel_xyz = np.asarray(accel_xyz, dtype=float).reshape(-1, 3)
    a_mag = np.linalg.norm(accel_xyz, axis=1)

    omega_rad = np.deg2rad(aligned_omega_deg(t, omega_t, omega_xyz))
    r_eff = estimate_spin_radius(a_mag, omega_rad, config)
    residual = np.maximum(0.0, a_mag - r_eff * np.square(omega_rad))

    threshold = adaptive_threshold(residual, config)
    mask = residual < threshold
    mask = close_gaps(mask, config.close_gap_samples)
    mask = remove_islands(mask, config.open_island_samples)
    if not mask.any():
        logger.info(f"Free-fall detection failed: {REASON_NO_RUN} (thr={threshold:.2f} m/s^2)")
        return DetectionFailure(FailureKind.NO_FREE_FALL_WINDOW, REASON_NO_RUN)

    dt = max(1e-3, mean_dt(t))
    min_run = max(2, int(round(config.min_free_fall_s / dt)))
    for s, e in candidate_runs(mask, residual, min_run):
        i0, i1 = refine_edges(s, e, t, residual, config)
        if not (i0 < i1 and t[i1] - t[i0] >= config.min_free_fall_s):
            logger.debug(f"Jerk snap ({i0}, {i1}) rejected, keeping run ({s}, {e})")
            i0, i1 = s, e
        if t[i1] - t[i0] < config.min_free_fall_s:
            continue
        logger.info(
            f"Free fall {t[i0]:.3f}s -> {t[i1]:.3f}s ({t[i1] - t[i0]:.3f}s), "
            f"r_eff={r_eff * 100:.1f} cm, thr={threshold:.2f} m/s^2"
        )
        return FreeFallWindow(
            i0=int(i0),
            i1=int(i1),
            t0=float(t[i0]),
            t1=float(t[i1]),
            r_eff_m=r_eff,
            threshold_mps2=threshold,
            residual=tuple(float(v) for v in residual),
        )

    logger.info(f"Free-fall detection failed: {REASON_TOO_SHORT} (min {min_run} samples)")
    return DetectionFailure(FailureKind.NO_FREE_FALL_WINDOW, REASON_TOO_SHORT)


# Stationary windows (ZUPT span)
def find_stationary_span(t, stationary_mask, i0, i1, window_ms):
    """
    Bracket a free-fall window with stationary stretches.

    Walks backwards from release and forwards from catch until
    `window_ms` of uninterrupted stationary samples has been seen, or the
    series ends. Returns (s0, s1) with s0 < i0 and s1 > i1 where possible.
    """
    t = np.asarray(t, dtype=float)
    stationary_mask = np.asarray(stationary_mask, dtype=bool)
    n = t.shape[0]
    need = window_ms / 1000.0

    acc, j = 0.0, i0
    while j > 0 and acc < need:
        acc = acc + max(0.0, t[j] - t[j - 1]) if stationary_mask[j - 1] else 0.0
        j -= 1
    s0 = int(np.clip(j, 0, max(0, i0 - 1)))

    acc, j = 0.0, i1
    while j < n - 1 and acc < need:
        acc = acc + max(0.0, t[j + 1] - t[j]) if stationary_mask[j + 1] else 0.0
        j += 1
    s1 = int(np.clip(j, min(n - 1, i1 + 1), n - 1))
    return s0, s1
