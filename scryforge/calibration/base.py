"""
Shared calibration contracts: the single-step controller interface, the
calibrator entry point and the async session that drives a controller.
"""
from abc import ABC, abstractmethod
from typing import Optional
import logging

from scryforge.core import CalibrationFinishedError, CalibrationResult
from scryforge.capture.frame_source import FrameSource

logger = logging.getLogger(__name__)


class CalibrationStepper(ABC):
    """
    A resumable calibration process advanced one step at a time.

    Not reentrant: a step must complete before the next is requested.
    """

    def __init__(self):
        self._last_result: Optional[CalibrationResult] = None
        self._advancing = False
        self.steps_taken = 0

    @property
    def finished(self) -> bool:
        return self._last_result is not None and self._last_result.is_terminal

    @property
    def last_result(self) -> Optional[CalibrationResult]:
        return self._last_result

    async def advance(self) -> CalibrationResult:
        """
        Run one calibration step.

        Returns:
            CALIBRATING result to continue, CALIBRATED or FAILED when done

        Raises:
            CalibrationFinishedError: After the terminal result was produced
            RuntimeError: If called while another step is still running
        """
        if self.finished:
            raise CalibrationFinishedError(
                f"Calibration already finished with status {self._last_result.status.value}"
            )
        if self._advancing:
            raise RuntimeError("advance() called while a calibration step is in progress")

        self._advancing = True
        try:
            result = await self._step()
        finally:
            self._advancing = False

        self.steps_taken += 1
        self._last_result = result
        if result.is_terminal:
            logger.info(f"Calibration finished after {self.steps_taken} steps: {result.status.value}")
        return result

    @abstractmethod
    async def _step(self) -> CalibrationResult:
        """Compute the next result."""


class CalibrationSession:
    """
    Async iterator over calibration results.

    Usage:
        async for result in calibrator.begin(camera):
            show_guides(result.region)
    """

    def __init__(self, stepper: CalibrationStepper):
        self.stepper = stepper

    def __aiter__(self) -> "CalibrationSession":
        return self

    async def __anext__(self) -> CalibrationResult:
        if self.stepper.finished:
            raise StopAsyncIteration
        return await self.stepper.advance()


class ViewportCalibrator(ABC):
    """Entry point for a calibration strategy."""

    @abstractmethod
    def create_stepper(self, camera: FrameSource) -> CalibrationStepper:
        """Build a fresh controller bound to camera."""

    def begin(self, camera: FrameSource) -> CalibrationSession:
        return CalibrationSession(self.create_stepper(camera))
