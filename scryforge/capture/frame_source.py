"""
Frame source contract consumed by calibration and scrying.
"""
from abc import ABC, abstractmethod


class FrameSource(ABC):
    """Anything that can hand out one encoded camera image per call."""

    @abstractmethod
    async def capture_frame(self) -> bytes:
        """
        Capture the current camera image.

        Returns:
            Encoded image bytes (JPEG)

        Raises:
            CaptureError: If no frame could be acquired
        """
