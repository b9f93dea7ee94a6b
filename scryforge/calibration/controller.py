"""
Viewport calibration by staged expansion.

Corner markers are displayed at the corners of a candidate rectangle and
the camera reports which of them it can see. The rectangle grows along
one axis while both edges on that axis stay visible, is held until all
markers are seen for a run of consecutive steps, then the other axis
goes through the same two stages:

    INIT -> VERTICAL -> VERTICAL_FINE_TUNE -> HORIZONTAL
         -> HORIZONTAL_FINE_TUNE -> DONE

VERTICAL works on the rectangle width (left/right edges), HORIZONTAL on
its height (top/bottom edges). Any stage running longer than
MAX_STAGE_ITERATIONS steps fails the calibration.
"""
from enum import Enum
from typing import List, Optional
import logging

from scryforge.core import (
    CalibrationResult,
    CalibrationStatus,
    CartesianRegion,
    MarkerSet,
    Point,
)
from scryforge.capture.frame_source import FrameSource
from scryforge.server.base import ScryForgeServer
from .base import CalibrationStepper, ViewportCalibrator
from .edges import Edge, EdgeObservation, EdgeTracker

logger = logging.getLogger(__name__)


class CalibrationStage(Enum):
    INIT = "init"
    VERTICAL = "vertical"
    VERTICAL_FINE_TUNE = "vertical_fine_tune"
    HORIZONTAL = "horizontal"
    HORIZONTAL_FINE_TUNE = "horizontal_fine_tune"
    DONE = "done"
    FAILED = "failed"


class CalibrationController(CalibrationStepper):
    """
    Staged expansion calibrator working in 0-100 calibration units.

    Each advance() captures one frame, asks the vision service for the
    corner markers and adjusts the candidate region.
    """

    MIN_SIZE = 25  # Smallest width/height ever reported
    BUFFER = 5  # Pullback after an expansion or a fine-tune miss
    FINAL_BUFFER = 5  # Extra margin applied once at the end for camera drift
    EXPANSION_STEP = 5
    MAX_SIZE = 90
    PULLBACK_THRESHOLD = 85
    MAX_STAGE_ITERATIONS = 50
    REQUIRED_CONSECUTIVE_SUCCESSES = 10

    def __init__(self, server: ScryForgeServer, camera: FrameSource):
        """
        Args:
            server: Marker detection collaborator
            camera: Frame source shown the calibration guides
        """
        super().__init__()
        self.server = server
        self.camera = camera

        self.stage = CalibrationStage.INIT
        self.region = CartesianRegion(center=Point(50.0, 50.0), width=50.0, height=50.0)
        self.edge_tracker = EdgeTracker()

        self.stage_iterations = 0
        self.consecutive_successes = 0

        self._marker_points: Optional[List[Point]] = None

    async def _step(self) -> CalibrationResult:
        logger.debug(f"Calibrating: stage={self.stage.value} iteration={self.stage_iterations}")

        self.stage_iterations += 1
        if self.stage_iterations > self.MAX_STAGE_ITERATIONS:
            logger.error(
                f"Calibration stuck in stage {self.stage.value} after "
                f"{self.MAX_STAGE_ITERATIONS} iterations "
                f"(consecutive successes: {self.consecutive_successes}, region: {self.region})"
            )
            self.stage = CalibrationStage.FAILED
            return self._result(CalibrationStatus.FAILED)

        if self.stage == CalibrationStage.INIT:
            self._enter(CalibrationStage.VERTICAL)
            return self._result(CalibrationStatus.CALIBRATING)

        try:
            markers = await self._capture_and_detect()
        except Exception:
            logger.exception(f"Calibration error in stage {self.stage.value}")
            self.stage = CalibrationStage.FAILED
            return self._result(CalibrationStatus.FAILED)

        self._marker_points = markers.to_points() or None

        edges = self.edge_tracker.update(markers, self.region)

        if self.stage == CalibrationStage.VERTICAL:
            if self._expand("width", edges[Edge.LEFT], edges[Edge.RIGHT]):
                self._enter(CalibrationStage.VERTICAL_FINE_TUNE)

        elif self.stage == CalibrationStage.VERTICAL_FINE_TUNE:
            if self._fine_tune(markers, "width"):
                self._enter(CalibrationStage.HORIZONTAL)

        elif self.stage == CalibrationStage.HORIZONTAL:
            if self._expand("height", edges[Edge.TOP], edges[Edge.BOTTOM]):
                self._enter(CalibrationStage.HORIZONTAL_FINE_TUNE)

        elif self.stage == CalibrationStage.HORIZONTAL_FINE_TUNE:
            if self._fine_tune(markers, "height"):
                self._apply_final_buffer()
                self.stage = CalibrationStage.DONE
                logger.info(f"Calibration complete: {self.region}")
                return self._result(CalibrationStatus.CALIBRATED)

        logger.debug(f"Region after {self.stage.value} step: {self.region}")
        return self._result(CalibrationStatus.CALIBRATING)

    async def _capture_and_detect(self) -> MarkerSet:
        image = await self.camera.capture_frame()
        return await self.server.detect_markers(image)

    def _expand(self, dimension: str, low: EdgeObservation, high: EdgeObservation) -> bool:
        """
        Grow one dimension while both of its edges are visible.

        Args:
            dimension: "width" or "height"
            low: Left/top edge observation
            high: Right/bottom edge observation

        Returns:
            True when the dimension is settled and fine tuning should start
        """
        size = getattr(self.region, dimension)

        if low.lost or high.lost:
            if low.lost and high.lost:
                logger.warning(f"Both edges lost while expanding {dimension}, pulling back")
                self._set_size(dimension, size - self.BUFFER)
                return True

            # Move away from the lost side, toward the one still visible
            shift = self.EXPANSION_STEP if low.lost else -self.EXPANSION_STEP
            self._shift_center(dimension, shift)
            self._set_size(dimension, size - self.EXPANSION_STEP)
            return False

        if low.visible and high.visible:
            grown = min(self.MAX_SIZE, size + self.EXPANSION_STEP)

            if grown == size:
                logger.info(f"Expansion of {dimension} hit the maximum")
                self._set_size(dimension, size - self.BUFFER)
                return True

            self._set_size(dimension, grown)
            if grown >= self.PULLBACK_THRESHOLD:
                logger.info(f"Expansion of {dimension} reached {grown}, pulling back")
                self._set_size(dimension, grown - self.BUFFER)
                return True

        return False

    def _fine_tune(self, markers: MarkerSet, dimension: str) -> bool:
        """
        Require REQUIRED_CONSECUTIVE_SUCCESSES steps with every marker visible.

        Returns:
            True once the region is stable
        """
        if not markers.all_visible:
            logger.debug(
                f"Fine tuning {dimension}: {markers.visible_count}/4 markers visible, "
                f"contracting and resetting consecutive successes"
            )
            self.consecutive_successes = 0
            self._set_size(dimension, getattr(self.region, dimension) - self.BUFFER)
            return False

        self.consecutive_successes += 1
        logger.debug(f"Fine tuning {dimension}: consecutive successes {self.consecutive_successes}")

        return self.consecutive_successes >= self.REQUIRED_CONSECUTIVE_SUCCESSES

    def _apply_final_buffer(self) -> None:
        self._set_size("width", self.region.width - self.FINAL_BUFFER)
        self._set_size("height", self.region.height - self.FINAL_BUFFER)

    def _set_size(self, dimension: str, value: float) -> None:
        setattr(self.region, dimension, max(self.MIN_SIZE, value))

    def _shift_center(self, dimension: str, delta: float) -> None:
        center = self.region.center
        if dimension == "width":
            self.region.center = Point(center.x + delta, center.y)
        else:
            self.region.center = Point(center.x, center.y + delta)

    def _enter(self, stage: CalibrationStage) -> None:
        logger.info(f"Calibration stage: {self.stage.value} → {stage.value}")
        self.stage = stage
        self.stage_iterations = 0
        self.consecutive_successes = 0

    def _result(self, status: CalibrationStatus) -> CalibrationResult:
        return CalibrationResult(status=status, region=self.region.to_normalized(self._marker_points))


class AdvancedViewportCalibrator(ViewportCalibrator):
    """Staged expansion strategy."""

    def __init__(self, server: ScryForgeServer):
        self.server = server

    def create_stepper(self, camera: FrameSource) -> CalibrationController:
        return CalibrationController(self.server, camera)
