"""Recording lifecycle: open -> ingest ... -> close -> immutable Snapshot.

Sensor callbacks (producer) append to bounded buffers; the live monitor
(consumer) only ever reads copies taken under the lock, and analysis runs
on the frozen snapshot returned by close().
"""
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Tuple

import numpy as np
import pandas as pd

from .conditioning import align_nearest, mean_dt
from .config import ThrowConfig
from .models import OrientationSample, Sample, Series
from .orientation import AhrsOrientation, rotate, rotation_matrix, world_total_acceleration

logger = logging.getLogger(__name__)

ACC_COLUMNS = ["AccX", "AccY", "AccZ"]
GYRO_COLUMNS = ["GyroX", "GyroY", "GyroZ"]


@dataclass(frozen=True)
class Snapshot:
    world_accel: Series                 # total accel in world frame (includes gravity)
    world_omega: Series                 # angular velocity in world frame (deg/s)
    orientations: Tuple[OrientationSample, ...] = ()
    device_linear: Series = field(default_factory=Series.empty)   # device-frame accel, gravity excluded
    device_including_gravity: Series = field(default_factory=Series.empty)
    device_gyro: Series = field(default_factory=Series.empty)     # device-frame angular velocity (deg/s)

    def __len__(self):
        return len(self.world_accel)

    def to_frame(self) -> pd.DataFrame:
        """World-frame accel with gyro aligned onto its timestamps."""
        acc = self.world_accel
        df = pd.DataFrame(acc.xyz, columns=ACC_COLUMNS)
        df.insert(0, "time", acc.t)
        if len(self.world_omega):
            for k, col in enumerate(GYRO_COLUMNS):
                df[col] = align_nearest(self.world_omega.t, self.world_omega.xyz[:, k], acc.t)
        return df

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "Snapshot":
        """
        df must have:
        ['time','AccX','AccY','AccZ'] and optionally ['GyroX','GyroY','GyroZ'],
        world frame, accel in m/s^2 (gravity included), gyro in deg/s.
        """
        missing = [c for c in ["time"] + ACC_COLUMNS if c not in df.columns]
        if missing:
            raise ValueError(f"DataFrame is missing columns {missing}")
        t = df["time"].to_numpy(dtype=float)
        omega = Series.empty()
        if all(c in df.columns for c in GYRO_COLUMNS):
            omega = Series(t, df[GYRO_COLUMNS].to_numpy(dtype=float))
        return cls(world_accel=Series(t, df[ACC_COLUMNS].to_numpy(dtype=float)), world_omega=omega)


def _vector(name, v):
    if v is None:
        return None
    arr = np.asarray(v, dtype=float).reshape(-1)
    if arr.shape[0] != 3:
        logger.warning(f"Rejected {name}: expected 3 components, got {arr.shape[0]}")
        raise ValueError(f"{name} must have 3 components, got {arr.shape[0]}")
    return arr


class FlightSession:
    """One throw: buffers every channel until close()."""

    def __init__(self, config=None):
        self.config = config or ThrowConfig()
        maxlen = self.config.max_session_samples
        self._lock = threading.Lock()
        self._world_accel = deque(maxlen=maxlen)
        self._world_omega = deque(maxlen=maxlen)
        self._orientations = deque(maxlen=maxlen)
        self._device_linear = deque(maxlen=maxlen)
        self._device_incl = deque(maxlen=maxlen)
        self._device_gyro = deque(maxlen=maxlen)
        self._pose = None
        self._last_t = None
        self._overflowed = False
        self._final = None

    @classmethod
    def open(cls, config=None) -> "FlightSession":
        session = cls(config)
        logger.debug(f"Opened flight session (capacity {session.config.max_session_samples} samples)")
        return session

    @property
    def closed(self) -> bool:
        return self._final is not None

    def ingest(self, t, accel_linear=None, accel_including_gravity=None,
               rotation_rate=None, orientation=None):
        """
        Append one multi-channel sample taken at `t` seconds.

        accel_linear / accel_including_gravity : device-frame m/s^2
        rotation_rate : device-frame [x, y, z] deg/s
        orientation : (alpha, beta, gamma) degrees

        Motion and orientation may come from separate callbacks; world-frame
        channels use the most recent orientation and are skipped until one
        has arrived.
        """
        a_lin = _vector("accel_linear", accel_linear)
        a_incl = _vector("accel_including_gravity", accel_including_gravity)
        gyro = _vector("rotation_rate", rotation_rate)
        pose = _vector("orientation", orientation)
        t = float(t)

        with self._lock:
            if self._final is not None:
                raise RuntimeError("cannot ingest into a closed session")
            if self._last_t is not None and t < self._last_t:
                logger.warning(f"Rejected sample at t={t:.4f}s, last was {self._last_t:.4f}s")
                raise ValueError(f"timestamps must be non-decreasing ({t} < {self._last_t})")
            self._last_t = t
            buffers = (self._world_accel, self._world_omega, self._orientations,
                       self._device_linear, self._device_incl, self._device_gyro)
            if not self._overflowed and any(len(b) == b.maxlen for b in buffers):
                self._overflowed = True
                logger.warning("Session buffer full, dropping oldest samples")

            if pose is not None:
                self._orientations.append(OrientationSample(t, *pose))
                self._pose = rotation_matrix(*pose)

            if a_lin is not None:
                self._device_linear.append(Sample(t, *a_lin))
            if a_incl is not None:
                self._device_incl.append(Sample(t, *a_incl))
            if gyro is not None:
                self._device_gyro.append(Sample(t, *gyro))

            if self._pose is not None:
                a_world = world_total_acceleration(self._pose, a_lin, a_incl, self.config.g)
                if a_world is not None:
                    self._world_accel.append(Sample(t, *a_world))
                if gyro is not None:
                    self._world_omega.append(Sample(t, *rotate(self._pose, gyro)))

    def _build(self) -> Snapshot:
        return Snapshot(
            world_accel=Series.from_samples(list(self._world_accel)),
            world_omega=Series.from_samples(list(self._world_omega)),
            orientations=tuple(self._orientations),
            device_linear=Series.from_samples(list(self._device_linear)),
            device_including_gravity=Series.from_samples(list(self._device_incl)),
            device_gyro=Series.from_samples(list(self._device_gyro)),
        )

    def snapshot(self) -> Snapshot:
        """Copy of everything recorded so far; safe to analyse while recording."""
        if self._final is not None:
            return self._final
        with self._lock:
            return self._build()

    def close(self) -> Snapshot:
        with self._lock:
            if self._final is not None:
                return self._final
            snap = self._build()
            if not len(snap.world_accel) and not snap.orientations:
                snap = _fuse_without_orientation(snap, self.config)
            self._final = snap
        logger.info(
            f"Closed flight session: {len(snap.world_accel)} world accel samples, "
            f"{len(snap.world_omega)} gyro samples"
        )
        return snap


def _fuse_without_orientation(snap: Snapshot, config: ThrowConfig) -> Snapshot:
    """World frame from AHRS fusion when the host never sent Euler angles."""
    acc, gyro = snap.device_including_gravity, snap.device_gyro
    if len(acc) < 2 or not len(gyro):
        return snap
    gyro_on_acc = np.column_stack(
        [align_nearest(gyro.t, gyro.xyz[:, k], acc.t) for k in range(3)]
    )
    dt = mean_dt(acc.t)
    ahrs = AhrsOrientation(sample_rate_hz=1.0 / dt if dt > 0 else 60.0)
    accel_world, omega_world = ahrs.fuse_world_frame(acc.t, gyro_on_acc, acc.xyz, config.g)
    logger.info("No orientation received, world frame fused from gyro + accel")
    return Snapshot(
        world_accel=Series(acc.t, accel_world),
        world_omega=Series(acc.t, omega_world),
        orientations=snap.orientations,
        device_linear=snap.device_linear,
        device_including_gravity=snap.device_including_gravity,
        device_gyro=snap.device_gyro,
    )
