import threading
import unittest

import numpy as np
import pandas as pd

from throwmeter.config import ThrowConfig
from throwmeter.models import OrientationSample, Sample, Series
from throwmeter.session import FlightSession, Snapshot

from tests.synthetic import G


class TestSeries(unittest.TestCase):

    def test_from_samples(self):
        series = Series.from_samples([Sample(0.0, 1.0, 2.0, 3.0), Sample(0.1, 4.0, 5.0, 6.0)])
        self.assertEqual(len(series), 2)
        np.testing.assert_array_equal(series.z, [3.0, 6.0])
        self.assertEqual(list(series)[1], Sample(0.1, 4.0, 5.0, 6.0))

    def test_read_only(self):
        series = Series([0.0], [[1.0, 2.0, 3.0]])
        with self.assertRaises(ValueError):
            series.xyz[0, 0] = 9.0

    def test_rejects_decreasing_time(self):
        with self.assertRaises(ValueError):
            Series([0.1, 0.0], np.zeros((2, 3)))

    def test_rejects_length_mismatch(self):
        with self.assertRaises(ValueError):
            Series([0.0, 0.1], np.zeros((3, 3)))

    def test_empty(self):
        self.assertEqual(len(Series.empty()), 0)
        self.assertEqual(Series.from_samples([]), Series.empty())


class TestFlightSession(unittest.TestCase):

    def test_linear_channel_in_world_frame(self):
        session = FlightSession.open()
        session.ingest(0.0, accel_linear=[0.0, 0.0, 0.0], orientation=(0.0, 0.0, 0.0))
        snap = session.close()
        np.testing.assert_allclose(snap.world_accel.xyz[0], [0.0, 0.0, -G])
        self.assertEqual(snap.orientations, (OrientationSample(0.0, 0.0, 0.0, 0.0),))

    def test_gravity_inclusive_channel_is_rotated(self):
        session = FlightSession.open()
        session.ingest(0.0, accel_including_gravity=[0.0, G, 0.0], orientation=(0.0, 90.0, 0.0))
        snap = session.close()
        np.testing.assert_allclose(snap.world_accel.xyz[0], [0.0, 0.0, G], atol=1e-9)

    def test_rotation_rate_rotated_with_latest_pose(self):
        session = FlightSession.open()
        session.ingest(0.0, orientation=(90.0, 0.0, 0.0))
        session.ingest(0.01, accel_linear=[0.0, 0.0, 0.0], rotation_rate=[100.0, 0.0, 0.0])
        snap = session.close()
        np.testing.assert_allclose(snap.world_omega.xyz[0], [0.0, 100.0, 0.0], atol=1e-9)
        np.testing.assert_allclose(snap.device_gyro.xyz[0], [100.0, 0.0, 0.0])

    def test_motion_before_first_orientation_stays_device_only(self):
        session = FlightSession.open()
        session.ingest(0.0, accel_linear=[1.0, 0.0, 0.0])
        session.ingest(0.01, orientation=(0.0, 0.0, 0.0))
        session.ingest(0.02, accel_linear=[1.0, 0.0, 0.0])
        snap = session.close()
        self.assertEqual(len(snap.world_accel), 1)
        self.assertEqual(len(snap.device_linear), 2)
        self.assertEqual(snap.world_accel.t[0], 0.02)

    def test_closed_session_rejects_samples(self):
        session = FlightSession.open()
        session.ingest(0.0, accel_linear=[0.0, 0.0, 0.0], orientation=(0.0, 0.0, 0.0))
        first = session.close()
        self.assertTrue(session.closed)
        with self.assertRaises(RuntimeError):
            session.ingest(0.1, accel_linear=[0.0, 0.0, 0.0])
        self.assertIs(session.close(), first)
        self.assertIs(session.snapshot(), first)

    def test_decreasing_timestamp(self):
        session = FlightSession.open()
        session.ingest(1.0, orientation=(0.0, 0.0, 0.0))
        with self.assertRaises(ValueError):
            session.ingest(0.5, accel_linear=[0.0, 0.0, 0.0])

    def test_malformed_vector(self):
        session = FlightSession.open()
        with self.assertRaises(ValueError):
            session.ingest(0.0, accel_linear=[0.0, 0.0])
        with self.assertLogs("throwmeter.session", level="WARNING"):
            with self.assertRaises(ValueError):
                session.ingest(0.0, orientation=[0.0, 0.0, 0.0, 0.0])

    def test_capacity_drops_oldest(self):
        session = FlightSession.open(ThrowConfig(max_session_samples=10))
        for i in range(15):
            session.ingest(i * 0.01, accel_linear=[0.0, 0.0, 0.0], orientation=(0.0, 0.0, 0.0))
        snap = session.close()
        self.assertEqual(len(snap), 10)
        self.assertAlmostEqual(snap.world_accel.t[0], 0.05)

    def test_orientation_overflow_is_reported(self):
        session = FlightSession.open(ThrowConfig(max_session_samples=10))
        with self.assertLogs("throwmeter.session", level="WARNING") as logs:
            for i in range(12):
                session.ingest(i * 0.01, orientation=(0.0, 0.0, 0.0))
        self.assertEqual(len(logs.records), 1)
        self.assertEqual(len(session.close().orientations), 10)

    def test_gyro_overflow_is_reported(self):
        session = FlightSession.open(ThrowConfig(max_session_samples=10))
        session.ingest(0.0, orientation=(0.0, 0.0, 0.0))
        with self.assertLogs("throwmeter.session", level="WARNING"):
            for i in range(1, 12):
                session.ingest(i * 0.01, rotation_rate=[0.0, 0.0, 10.0])

    def test_snapshot_is_a_copy(self):
        session = FlightSession.open()
        session.ingest(0.0, accel_linear=[0.0, 0.0, 0.0], orientation=(0.0, 0.0, 0.0))
        early = session.snapshot()
        session.ingest(0.01, accel_linear=[0.0, 0.0, 0.0])
        self.assertEqual(len(early), 1)
        self.assertEqual(len(session.snapshot()), 2)
        with self.assertRaises(ValueError):
            early.world_accel.xyz[0, 2] = 0.0

    def test_concurrent_ingest_and_snapshot(self):
        session = FlightSession.open()
        session.ingest(0.0, orientation=(0.0, 0.0, 0.0))

        def produce():
            for i in range(1, 501):
                session.ingest(i * 0.001, accel_linear=[0.0, 0.0, 0.0])

        producer = threading.Thread(target=produce)
        producer.start()
        while producer.is_alive():
            snap = session.snapshot()
            self.assertTrue(np.all(np.diff(snap.world_accel.t) >= 0))
        producer.join()
        self.assertEqual(len(session.close()), 500)

    def test_fuses_world_frame_without_orientation(self):
        session = FlightSession.open()
        for i in range(120):
            session.ingest(i / 60.0, accel_including_gravity=[0.0, 0.0, G], rotation_rate=[0.0, 0.0, 0.0])
        self.assertEqual(len(session.snapshot().world_accel), 0)
        snap = session.close()
        self.assertEqual(len(snap.world_accel), 120)
        self.assertEqual(len(snap.world_omega), 120)
        np.testing.assert_allclose(snap.world_accel.magnitude(), G, rtol=1e-6)

    def test_close_without_orientation_after_one_second(self):
        session = FlightSession.open()
        for i in range(60):
            session.ingest(i / 60.0, accel_including_gravity=[0.0, 0.0, G], rotation_rate=[0.0, 0.0, 0.0])
        snap = session.close()
        self.assertIsInstance(snap, Snapshot)
        self.assertTrue(session.closed)
        self.assertEqual(len(snap.world_accel), 60)
        self.assertEqual(snap.orientations, ())


class TestSnapshotFrame(unittest.TestCase):

    def test_frame_round_trip(self):
        t = np.arange(5) * 0.01
        acc = np.tile([0.0, 0.0, G], (5, 1))
        omega = np.tile([0.0, 0.0, 90.0], (5, 1))
        snap = Snapshot(world_accel=Series(t, acc), world_omega=Series(t, omega))
        df = snap.to_frame()
        self.assertEqual(list(df.columns), ["time", "AccX", "AccY", "AccZ", "GyroX", "GyroY", "GyroZ"])
        back = Snapshot.from_frame(df)
        self.assertEqual(back.world_accel, snap.world_accel)
        self.assertEqual(back.world_omega, snap.world_omega)

    def test_frame_without_gyro(self):
        df = pd.DataFrame({"time": [0.0, 0.01], "AccX": [0.0, 0.0], "AccY": [0.0, 0.0], "AccZ": [G, G]})
        snap = Snapshot.from_frame(df)
        self.assertEqual(len(snap.world_omega), 0)
        self.assertNotIn("GyroX", snap.to_frame().columns)

    def test_missing_columns(self):
        with self.assertRaises(ValueError):
            Snapshot.from_frame(pd.DataFrame({"time": [0.0], "AccX": [0.0]}))


if __name__ == '__main__':
    unittest.main()
