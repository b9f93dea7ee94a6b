"""
Scrying orb: one capture, both detections.
"""
import logging

from scryforge.core import ScryData
from scryforge.capture.frame_source import FrameSource
from scryforge.server.base import ScryForgeServer

logger = logging.getLogger(__name__)


class SimpleScryingOrb:
    """Runs marker and category detection on the same captured frame."""

    def __init__(self, server: ScryForgeServer):
        self.server = server

    async def scry(self, camera: FrameSource) -> ScryData:
        """
        Raises:
            CaptureError: Frame acquisition failed
            DetectionError: Either detection call failed
        """
        image = await camera.capture_frame()
        markers = await self.server.detect_markers(image)
        positions = await self.server.detect_categories(image)

        logger.debug(f"Scry: {markers.visible_count}/4 markers, {len(positions)} tokens")
        return ScryData(category_positions=positions, marker_points=markers.to_points())
