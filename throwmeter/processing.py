import logging

import numpy as np
import pandas as pd

from .conditioning import delay_compensate, infer_vertical_sign, moving_average
from .config import ThrowConfig
from .estimation import count_flips, estimate_heights
from .freefall import aligned_omega_deg, detect_free_fall, find_stationary_span
from .models import DetectionFailure, FailureKind, FlightAnalysis
from .session import Snapshot
from .zupt import zupt_integrate

"""
Full pipeline:

    Snapshot (world-frame accel incl. gravity, world-frame gyro) ->
    Spin-robust free-fall detection (release / catch) ->
    Vertical accel: smoothing (trailing MA, lag-compensated), sign -> z up ->
    Zero velocity update (ZUPT) over the full span or stationary brackets ->
    Height estimation (4 methods, reported side by side) ->
    Flip count.

"""

logger = logging.getLogger(__name__)


def vertical_sign(a_z, config: ThrowConfig):
    if config.vertical_sign is not None:
        return float(config.vertical_sign)
    return infer_vertical_sign(a_z)


def vertical_acceleration(a_z, config: ThrowConfig):
    """Smoothed world z acceleration, gravity included, sign-normalised to z up."""
    smoothed = delay_compensate(moving_average(a_z, config.smooth_n), config.smooth_n)
    return vertical_sign(a_z, config) * smoothed


def zupt_span(t, a_z_up, window, config: ThrowConfig):
    n = len(t)
    if config.zupt_span == "full":
        return 0, n - 1
    a_lin = pd.Series(np.asarray(a_z_up) - config.g)
    calm = config.stationary_calm_threshold_mps2
    stationary = a_lin.between(-calm, calm).to_numpy()
    return find_stationary_span(t, stationary, window.i0, window.i1, config.stationary_window_ms)


def analyze(snapshot: Snapshot, config=None):
    """
    Analyse one recorded throw.

    Returns FlightAnalysis, or DetectionFailure when no usable free-fall
    window exists. The snapshot is only read.
    """
    config = config or ThrowConfig()
    accel, omega = snapshot.world_accel, snapshot.world_omega
    if len(accel) < config.min_samples:
        return DetectionFailure(FailureKind.TOO_FEW_SAMPLES,
                                f"fewer than {config.min_samples} acceleration samples")

    t = accel.t
    has_gyro = len(omega) > 0
    window = detect_free_fall(
        t, accel.xyz,
        omega.t if has_gyro else None,
        omega.xyz if has_gyro else None,
        config,
    )
    if not window.ok:
        return window

    a_z = vertical_acceleration(accel.z, config)
    s0, s1 = zupt_span(t, a_z, window, config)
    trajectory = zupt_integrate(t, a_z, s0, s1)
    estimates = estimate_heights(window, trajectory, t, config)

    omega_deg = aligned_omega_deg(t, omega.t, omega.xyz) if has_gyro else np.zeros(len(t))
    flips = count_flips(t, omega_deg, window.i0, window.i1)

    logger.info(
        f"Flight analysed: T={window.duration_s:.3f}s, flips={flips}, "
        f"ZUPT bias={trajectory.bias_mps2:.3f} m/s^2 over [{s0}, {s1}]"
    )
    return FlightAnalysis(window=window, trajectory=trajectory, estimates=estimates, flips=flips)


def process_sensor_data(df, config=None):
    """
    df must have:
    ['time','AccX','AccY','AccZ'] and optionally ['GyroX','GyroY','GyroZ'],
    already in the world frame.
    """
    return analyze(Snapshot.from_frame(df), config)
