import unittest

import matplotlib
matplotlib.use("Agg")

from throwmeter.plotting import plot_flight
from throwmeter.processing import analyze

from tests.synthetic import parabolic_throw, snapshot_of


class TestPlotFlight(unittest.TestCase):

    def test_png_snapshot(self):
        t, acc, _ = parabolic_throw()
        snapshot = snapshot_of(t, acc)
        png = plot_flight(snapshot, analyze(snapshot), dpi=50)
        self.assertTrue(png.startswith(b"\x89PNG\r\n\x1a\n"))


if __name__ == '__main__':
    unittest.main()
