"""
Height, flight time and flip count of a tossed phone from its motion sensors.

This package contains modules for:
- Orientation: Euler angles / AHRS fusion to the world frame
- Conditioning: smoothing, alignment, robust statistics, integration
- Free fall: spin-robust release / catch detection
- ZUPT: bias-corrected vertical trajectory
- Estimation: four height methods and flip counting
- Session / live: recording lifecycle and auto-stop after the catch
"""

from .config import ThrowConfig
from .models import (
    DetectionFailure,
    EstimationMethod,
    FailureKind,
    FlightAnalysis,
    FreeFallWindow,
    HeightEstimate,
    OrientationSample,
    Sample,
    Series,
    ZuptTrajectory,
)
from .session import FlightSession, Snapshot
from .processing import analyze, process_sensor_data
from .live import LiveMonitor, watch

__all__ = [
    'ThrowConfig',
    'DetectionFailure',
    'EstimationMethod',
    'FailureKind',
    'FlightAnalysis',
    'FreeFallWindow',
    'HeightEstimate',
    'OrientationSample',
    'Sample',
    'Series',
    'ZuptTrajectory',
    'FlightSession',
    'Snapshot',
    'analyze',
    'process_sensor_data',
    'LiveMonitor',
    'watch',
]
