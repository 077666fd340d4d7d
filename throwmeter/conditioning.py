import numpy as np
import pandas as pd
from scipy.integrate import cumulative_trapezoid

MAD_SCALE = 1.4826  # Gaussian consistency


# Smoothing
def moving_average(x, window_n):
    """Trailing mean; the first window_n-1 outputs average over i+1 samples."""
    x = np.asarray(x, dtype=float)
    if window_n <= 1 or x.size == 0:
        return x.copy()
    return pd.Series(x).rolling(int(window_n), min_periods=1).mean().to_numpy()


def delay_compensate(x, window_n):
    """Undo the (window_n-1)//2 sample lag of a trailing average, holding the last value."""
    x = np.asarray(x, dtype=float)
    lag = (int(window_n) - 1) // 2
    if lag <= 0 or x.size <= lag:
        return x.copy()
    return np.concatenate([x[lag:], np.full(lag, x[-1])])


def magnitude(x, y, z):
    return np.sqrt(np.square(x) + np.square(y) + np.square(z))


# Time alignment
def align_nearest(source_t, source_values, target_t):
    """Nearest-timestamp resampling of source_values onto target_t.

    Two-pointer scan: both time axes are non-decreasing, so the source
    cursor only moves forward. O(n + m).
    """
    source_t = np.asarray(source_t, dtype=float)
    source_values = np.asarray(source_values, dtype=float)
    target_t = np.asarray(target_t, dtype=float)
    out = np.zeros(target_t.shape[0])
    if source_t.size == 0:
        return out

    j = 0
    last = source_t.size - 1
    for i, ti in enumerate(target_t):
        while j < last and abs(source_t[j + 1] - ti) <= abs(source_t[j] - ti):
            j += 1
        out[i] = source_values[j]
    return out


# Robust statistics
def robust_median(x):
    x = np.asarray(x, dtype=float)
    return float(np.median(x)) if x.size else 0.0


def mad(x):
    """Median absolute deviation scaled to a standard deviation."""
    x = np.asarray(x, dtype=float)
    if x.size == 0:
        return 0.0
    med = np.median(x)
    return float(MAD_SCALE * np.median(np.abs(x - med)))


def lowest_fraction(x, fraction, minimum=0):
    """Sorted lower tail holding max(minimum, floor(fraction * n)) values."""
    x = np.sort(np.asarray(x, dtype=float))
    k = max(int(minimum), int(np.floor(fraction * x.size)))
    return x[:k]


def lowest_fraction_indices(x, fraction, minimum=0):
    x = np.asarray(x, dtype=float)
    k = max(int(minimum), int(np.floor(fraction * x.size)))
    return np.argsort(x, kind="stable")[:k]


# Calculus
def integrate_trapezoid(y, t, y0=0.0):
    """Cumulative trapezoid integral starting at y0; negative dt counts as 0."""
    y = np.asarray(y, dtype=float)
    t = np.asarray(t, dtype=float)
    if y.size == 0:
        return y.copy()
    # monotone time axis so repeated timestamps contribute nothing
    t_mono = np.maximum.accumulate(t)
    return y0 + cumulative_trapezoid(y, t_mono, initial=0)


def jerk(x, t, min_dt=1e-3):
    """|dx/dt| per sample; the first sample has no predecessor and is 0."""
    x = np.asarray(x, dtype=float)
    t = np.asarray(t, dtype=float)
    out = np.zeros(x.size)
    if x.size > 1:
        dt = np.maximum(min_dt, np.diff(t))
        out[1:] = np.abs(np.diff(x) / dt)
    return out


def mean_dt(t):
    t = np.asarray(t, dtype=float)
    if t.size < 2:
        return 0.0
    return float((t[-1] - t[0]) / (t.size - 1))


def infer_vertical_sign(a_z):
    """+1 when gravity reads positive on world z at rest, else -1.

    Most of a session is spent at rest, so the median carries the sign
    of gravity.
    """
    a_z = np.asarray(a_z, dtype=float)
    if a_z.size == 0:
        return 1.0
    return 1.0 if np.median(a_z) >= 0 else -1.0
