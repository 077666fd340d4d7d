"""Live acquisition helpers: decide when a throw has finished.

Only used while recording. Analysis proper runs on the closed snapshot.
"""
import asyncio
import logging
import time

import numpy as np

from .config import ThrowConfig
from .freefall import detect_free_fall
from .processing import vertical_sign

logger = logging.getLogger(__name__)


def post_catch_calm(t, a_z, catch_index, config: ThrowConfig, sign=1.0):
    """
    True once vertical linear acceleration has stayed calm long enough after the catch.

    a_lin,z = sign * a_z - g, i.e. a_tot,z + g when world z reads -g at rest.
    """
    t = np.asarray(t, dtype=float)
    a_lin = sign * np.asarray(a_z, dtype=float) - config.g
    n = t.shape[0]
    if n == 0 or catch_index >= n - 2:
        return False

    need = config.stationary_calm_duration_ms / 1000.0
    calm = 0.0
    for i in range(catch_index, n - 1):
        dt = max(0.0, t[i + 1] - t[i])
        if abs(a_lin[i]) < config.stationary_calm_threshold_mps2:
            calm += dt
        else:
            calm = 0.0
        if calm >= need:
            return True
    return False


class LiveMonitor:
    """Polls a recording session once per frame to decide when to stop."""

    def __init__(self, session, config=None):
        self.session = session
        self.config = config or session.config

    def poll(self) -> bool:
        snap = self.session.snapshot()
        accel, omega = snap.world_accel, snap.world_omega
        if len(accel) <= self.config.live_min_samples:
            return False

        has_gyro = len(omega) > 0
        window = detect_free_fall(
            accel.t, accel.xyz,
            omega.t if has_gyro else None,
            omega.xyz if has_gyro else None,
            self.config,
        )
        if not window.ok:
            return False
        sign = vertical_sign(accel.z, self.config)
        done = post_catch_calm(accel.t, accel.z, window.i1, self.config, sign)
        if done:
            logger.info(f"Flight complete: catch at {window.t1:.3f}s followed by calm")
        return done


async def watch(session, config=None, interval_s=1 / 60, max_duration_s=None):
    """
    Poll until the flight completes (or max_duration_s elapses), then close
    the session and return its snapshot.

    Session length limits are the caller's business; pass max_duration_s.
    """
    monitor = LiveMonitor(session, config)
    started = time.monotonic()
    while not session.closed:
        if monitor.poll():
            break
        if max_duration_s is not None and time.monotonic() - started >= max_duration_s:
            logger.info(f"Stopped watching after {max_duration_s:.1f}s without a completed flight")
            break
        await asyncio.sleep(interval_s)
    return session.close()
