"""Zero velocity update (ZUPT) on the vertical axis.

The device is held still before the throw and after the catch, so its
vertical velocity is ~0 at both ends of the span. Whatever velocity the
raw integral ends with is blamed on a constant accelerometer bias over
the (short) span and removed uniformly.
"""
import logging

import numpy as np

from .conditioning import integrate_trapezoid
from .models import ZuptTrajectory

logger = logging.getLogger(__name__)


def zupt_integrate(t, a_z, span_start=0, span_end=None):
    """
    Bias-corrected double integration of vertical acceleration.

    Parameters
    ----------
    t : array
        Timestamps (s).
    a_z : array
        Vertical world acceleration, gravity included (m/s^2). Gravity is a
        constant offset and is absorbed by the bias estimate.
    span_start, span_end : int
        Inclusive index span, default the whole series.

    Returns
    -------
    ZuptTrajectory whose velocity is 0 at both ends of the span.
    """
    t = np.asarray(t, dtype=float)
    a_z = np.asarray(a_z, dtype=float)
    if span_end is None:
        span_end = t.shape[0] - 1
    s0, s1 = int(span_start), int(span_end)
    t_span = t[s0:s1 + 1]
    a_span = a_z[s0:s1 + 1]

    v_raw = integrate_trapezoid(a_span, t_span)
    duration = max(1e-6, float(t_span[-1] - t_span[0])) if t_span.size else 1e-6
    bias = float(v_raw[-1] / duration) if v_raw.size else 0.0

    a_corr = a_span - bias
    v_corr = integrate_trapezoid(a_corr, t_span)
    if v_corr.size:
        # zero by construction, drop the rounding residue
        v_corr[-1] = 0.0
    z_corr = integrate_trapezoid(v_corr, t_span)

    logger.debug(f"ZUPT span [{s0}, {s1}] bias={bias:.4f} m/s^2")
    return ZuptTrajectory(
        span_start=s0,
        span_end=s1,
        bias_mps2=bias,
        accel=tuple(float(v) for v in a_corr),
        velocity=tuple(float(v) for v in v_corr),
        position=tuple(float(v) for v in z_corr),
    )
