"""Device frame -> world frame.

Euler angles follow the DeviceOrientation convention:
alpha about world Z, beta about device X, gamma about device Y,
R = Rz(alpha) * Rx(beta) * Ry(gamma).
"""
import logging

import numpy as np
import imufusion
from scipy.spatial.transform import Rotation

from .config import G_CONST

logger = logging.getLogger(__name__)


def rotation_matrix(alpha, beta, gamma):
    """3x3 body->world matrix from Euler angles in degrees."""
    # intrinsic Z-X'-Y'' composes as Rz @ Rx @ Ry
    return Rotation.from_euler("ZXY", [alpha, beta, gamma], degrees=True).as_matrix()


def rotate(R, v):
    return np.asarray(R, dtype=float) @ np.asarray(v, dtype=float)


def world_total_acceleration(R, linear=None, including_gravity=None, g=G_CONST):
    """Total world-frame acceleration, gravity included.

    Prefers the linear channel (gravity added back as [0, 0, -g]);
    falls back to rotating the gravity-inclusive channel as is.
    Returns None when neither channel is present.
    """
    if linear is not None:
        return rotate(R, linear) + np.array([0.0, 0.0, -g])
    if including_gravity is not None:
        return rotate(R, including_gravity)
    return None


class AhrsOrientation:
    """Madgwick-style fusion (imufusion) for sessions without Euler angles.

    No magnetometer: heading drifts, which does not matter for the
    vertical axis or for magnitudes.
    """

    def __init__(self, sample_rate_hz=60.0, gain=0.5, gyro_range_dps=2000.0,
                 acc_rejection=10.0, recovery_time_s=5.0):
        self.sample_rate_hz = float(sample_rate_hz)
        self.offset = imufusion.Offset(int(round(self.sample_rate_hz)))
        self.ahrs = imufusion.Ahrs()
        recovery_trigger = int(recovery_time_s * self.sample_rate_hz)
        try:
            # Newer API: includes convention and gyroscope range
            self.ahrs.settings = imufusion.Settings(
                imufusion.CONVENTION_NWU,
                float(gain),
                float(gyro_range_dps),
                float(acc_rejection),
                0.0,  # magnetic rejection off
                recovery_trigger,
            )
        except (TypeError, AttributeError):
            # Older API: (gain, acc_rejection, mag_rejection, recovery_trigger)
            self.ahrs.settings = imufusion.Settings(
                float(gain),
                float(acc_rejection),
                0.0,
                recovery_trigger,
            )

    def update(self, gyro_dps, accel_g, dt):
        """Feed one sample and return the current body->world matrix."""
        gyro = self.offset.update(np.asarray(gyro_dps, dtype=float))
        self.ahrs.update_no_magnetometer(gyro, np.asarray(accel_g, dtype=float), float(dt))
        w, x, y, z = self.ahrs.quaternion.wxyz
        return Rotation.from_quat([x, y, z, w]).as_matrix()

    def fuse_world_frame(self, t, gyro_dps, accel_including_gravity, g=G_CONST):
        """Rotate device-frame gravity-inclusive accel and gyro into the world frame.

        Both streams must share the timestamps `t`. Returns (accel_world, omega_world).
        """
        t = np.asarray(t, dtype=float)
        gyro_dps = np.asarray(gyro_dps, dtype=float)
        accel = np.asarray(accel_including_gravity, dtype=float)
        if t.size == 0:
            return np.empty((0, 3)), np.empty((0, 3))

        dt = np.diff(t, prepend=t[0])
        dt[0] = 1.0 / self.sample_rate_hz
        accel_world = np.empty_like(accel)
        omega_world = np.empty_like(gyro_dps)
        for i in range(len(t)):
            R = self.update(gyro_dps[i], accel[i] / g, max(dt[i], 1e-4))
            accel_world[i] = R @ accel[i]
            omega_world[i] = R @ gyro_dps[i]
        logger.debug(f"AHRS fused {len(t)} samples into the world frame")
        return accel_world, omega_world
