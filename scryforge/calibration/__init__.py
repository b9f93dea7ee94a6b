"""
Calibration module - viewport search driven by live marker visibility.
"""
from .base import CalibrationStepper, CalibrationSession, ViewportCalibrator
from .edges import Edge, EDGE_MARKERS, TokenPair, token_pairs, EdgeVisibility, EdgeObservation, EdgeTracker
from .controller import CalibrationStage, CalibrationController, AdvancedViewportCalibrator
from .simple import SimpleCalibrationController, SimpleViewportCalibrator

__all__ = [
    "CalibrationStepper",
    "CalibrationSession",
    "ViewportCalibrator",
    "Edge",
    "EDGE_MARKERS",
    "TokenPair",
    "token_pairs",
    "EdgeVisibility",
    "EdgeObservation",
    "EdgeTracker",
    "CalibrationStage",
    "CalibrationController",
    "AdvancedViewportCalibrator",
    "SimpleCalibrationController",
    "SimpleViewportCalibrator",
]
