import unittest

import numpy as np

from throwmeter.zupt import zupt_integrate

from tests.synthetic import G, parabolic_throw


class TestZuptIntegrate(unittest.TestCase):

    def test_velocity_zero_at_both_ends(self):
        t, acc, _ = parabolic_throw()
        rng = np.random.default_rng(1)
        a_z = acc[:, 2] + 0.3 + rng.normal(0.0, 0.2, len(t))
        traj = zupt_integrate(t, a_z)
        self.assertEqual(traj.velocity[0], 0.0)
        self.assertAlmostEqual(traj.velocity[-1], 0.0, delta=1e-9)
        self.assertEqual(traj.position[0], 0.0)

    def test_velocity_zero_at_end_for_varied_inputs(self):
        for seed in range(5):
            rng = np.random.default_rng(seed)
            n = int(rng.integers(20, 200))
            t = np.cumsum(rng.uniform(0.005, 0.03, n))
            # repeated timestamps
            t[n // 3] = t[n // 3 - 1]
            t[n // 2:n // 2 + 3] = t[n // 2 - 1]
            a_z = rng.normal(rng.uniform(-12.0, 12.0), rng.uniform(0.1, 5.0), n)
            spans = [(0, None), (n // 4, 3 * n // 4), (n // 3 - 1, n // 3), (n // 2 - 1, n // 2 + 2)]
            for s0, s1 in spans:
                with self.subTest(seed=seed, span=(s0, s1)):
                    traj = zupt_integrate(t, a_z, s0, s1)
                    self.assertEqual(traj.velocity[0], 0.0)
                    self.assertAlmostEqual(traj.velocity[-1], 0.0, delta=1e-9)
                    self.assertTrue(np.all(np.isfinite(traj.position)))

    def test_constant_input_is_all_bias(self):
        t = np.arange(50) * 0.02
        traj = zupt_integrate(t, np.full(50, G))
        self.assertAlmostEqual(traj.bias_mps2, G)
        np.testing.assert_allclose(traj.accel, 0.0, atol=1e-9)
        np.testing.assert_allclose(traj.velocity, 0.0, atol=1e-9)
        np.testing.assert_allclose(traj.position, 0.0, atol=1e-9)

    def test_gravity_absorbed_by_bias(self):
        t, acc, release = parabolic_throw()
        traj = zupt_integrate(t, acc[:, 2])
        self.assertAlmostEqual(traj.bias_mps2, G, delta=0.01)
        rise = max(traj.position) - traj.position[release]
        self.assertAlmostEqual(rise, 0.196, delta=0.015)

    def test_sub_span(self):
        t = np.arange(40) * 0.01
        traj = zupt_integrate(t, np.ones(40), 10, 20)
        self.assertEqual((traj.span_start, traj.span_end), (10, 20))
        self.assertEqual(len(traj.velocity), 11)
        self.assertEqual(traj.local(10), 0)
        self.assertEqual(traj.local(20), 10)
        self.assertIsNone(traj.local(9))
        self.assertIsNone(traj.local(21))

    def test_single_sample_span(self):
        traj = zupt_integrate([0.0, 0.01], [1.0, 1.0], 1, 1)
        self.assertEqual(traj.velocity, (0.0,))


if __name__ == '__main__':
    unittest.main()
