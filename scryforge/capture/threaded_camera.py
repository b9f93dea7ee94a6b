"""
Threaded camera capture feeding the calibration and scrying loops.
Supports both live cameras and video files (for replaying recorded tables).
"""
import asyncio
import cv2
import threading
import queue
import time
import logging
from typing import List, Optional, Union
from pathlib import Path
from dataclasses import dataclass

from scryforge.core import CaptureError, Frame
from .frame_source import FrameSource

logger = logging.getLogger(__name__)


@dataclass
class CameraConfig:
    """Configuration for camera/video capture."""
    source: Union[int, str, Path] = 0  # Camera index or video file path
    width: int = 1280
    height: int = 720
    fps: int = 30
    backend: str = "any"  # "any", "dshow", "msmf", "v4l2"
    loop_video: bool = True
    jpeg_quality: int = 95
    read_timeout_sec: float = 1.0

    def __post_init__(self):
        if isinstance(self.source, Path):
            self.source = str(self.source)
        if not 0 <= self.jpeg_quality <= 100:
            raise ValueError("jpeg_quality must be within 0-100")

    @classmethod
    def from_dict(cls, section: dict) -> "CameraConfig":
        """Build from the 'camera' config section, ignoring unknown keys."""
        known = {k: v for k, v in section.items() if k in cls.__dataclass_fields__}
        return cls(**known)

    def is_video_file(self) -> bool:
        return isinstance(self.source, str) and Path(self.source).exists()

    def get_backend_flag(self) -> int:
        backends = {
            "any": cv2.CAP_ANY,
            "dshow": cv2.CAP_DSHOW,
            "msmf": cv2.CAP_MSMF,
            "v4l2": cv2.CAP_V4L2,
        }
        return backends.get(self.backend.lower(), cv2.CAP_ANY)


def list_cameras(max_index: int = 5, backend: str = "any") -> List[int]:
    """
    Probe device indices 0..max_index-1.

    Returns:
        Indices of cameras that opened successfully
    """
    flag = CameraConfig(backend=backend).get_backend_flag()
    available = []
    for index in range(max_index):
        capture = cv2.VideoCapture(index, flag)
        try:
            if capture.isOpened():
                available.append(index)
        finally:
            capture.release()
    logger.info(f"Available cameras: {available}")
    return available


class ThreadedCamera(FrameSource):
    """
    Camera reader on a daemon thread with a bounded, oldest-dropping queue.

    The calibration loop awaits capture_frame() once per step, so only the
    newest frame matters; stale frames are discarded.

    Example:
        with ThreadedCamera(CameraConfig(source=0)) as camera:
            jpeg = await camera.capture_frame()
    """

    def __init__(
            self,
            config: Optional[CameraConfig] = None,
            queue_size: int = 2
    ):
        """
        Args:
            config: Camera/video configuration (default: CameraConfig())
            queue_size: Max buffered frames (smaller = lower latency)
        """
        self.config = config or CameraConfig()
        self._frames: queue.Queue = queue.Queue(maxsize=queue_size)

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._capture: Optional[cv2.VideoCapture] = None

        self._frame_id = 0
        self._frames_since_fps = 0
        self._dropped_frames = 0
        self._fps_window_start = time.time()
        self._current_fps = 0.0
        self._read_failures = 0

        self._is_video_file = self.config.is_video_file()
        self._is_running = False

    def start(self) -> bool:
        """
        Open the source and start the reader thread.

        Returns:
            True if running, False if the source could not be opened
        """
        if self._is_running:
            logger.warning("Capture already running")
            return True

        if self._is_video_file:
            self._capture = cv2.VideoCapture(str(self.config.source))
            source_name = Path(self.config.source).name
        else:
            self._capture = cv2.VideoCapture(self.config.source, self.config.get_backend_flag())
            source_name = f"Camera {self.config.source}"

        if not self._capture.isOpened():
            logger.error(f"Failed to open {source_name}")
            self._capture.release()
            self._capture = None
            return False

        if not self._is_video_file:
            self._capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.width)
            self._capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.height)
            self._capture.set(cv2.CAP_PROP_FPS, self.config.fps)

        logger.info(
            f"{source_name} opened: "
            f"{int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH))}x"
            f"{int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT))} @ "
            f"{int(self._capture.get(cv2.CAP_PROP_FPS))} FPS"
        )

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._capture_loop, daemon=True, name="ScryForgeCapture")
        self._thread.start()
        self._is_running = True
        return True

    def stop(self) -> None:
        """Stop the reader thread and release the device."""
        if not self._is_running:
            return

        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=2.0)
        if self._capture:
            self._capture.release()
            self._capture = None

        while True:
            try:
                self._frames.get_nowait()
            except queue.Empty:
                break

        self._is_running = False
        logger.info(f"Capture stopped ({self._dropped_frames} frames dropped)")

    def read(self, timeout: float = 1.0) -> Optional[Frame]:
        """
        Next buffered frame.

        Returns:
            Frame, or None on timeout
        """
        try:
            return self._frames.get(timeout=timeout)
        except queue.Empty:
            return None

    async def capture_frame(self) -> bytes:
        """
        Next buffered frame encoded as JPEG.

        Raises:
            CaptureError: Camera not running, read timeout or encode failure
        """
        if not self._is_running:
            raise CaptureError("Camera is not running")

        loop = asyncio.get_running_loop()
        frame = await loop.run_in_executor(None, self.read, self.config.read_timeout_sec)
        if frame is None:
            raise CaptureError(f"No frame within {self.config.read_timeout_sec:.1f}s")

        return self.encode_jpeg(frame)

    def encode_jpeg(self, frame: Frame) -> bytes:
        ok, buffer = cv2.imencode(
            ".jpg",
            frame.image,
            [int(cv2.IMWRITE_JPEG_QUALITY), self.config.jpeg_quality]
        )
        if not ok:
            raise CaptureError(f"JPEG encoding failed for frame {frame.frame_id}")
        return buffer.tobytes()

    def _capture_loop(self) -> None:
        logger.debug("Capture loop started")

        while not self._stop_event.is_set():
            if not self._capture or not self._capture.isOpened():
                logger.error("Capture source disconnected")
                break

            ret, image = self._capture.read()
            if not ret or image is None:
                self._read_failures += 1
                if self._is_video_file and self.config.loop_video:
                    self._capture.set(cv2.CAP_PROP_POS_FRAMES, 0)
                elif self._read_failures == 1 or self._read_failures % 100 == 0:
                    logger.warning(f"Failed to read frame ({self._read_failures} consecutive failures)")
                time.sleep(0.01)
                continue

            self._read_failures = 0
            self._frame_id += 1
            self._update_fps()
            self._push(Frame(image=image, timestamp=time.time(), frame_id=self._frame_id, fps=self._current_fps))

        logger.debug("Capture loop ended")

    def _push(self, frame: Frame) -> None:
        """Enqueue, replacing the oldest frame when full."""
        try:
            self._frames.put_nowait(frame)
        except queue.Full:
            try:
                self._frames.get_nowait()
            except queue.Empty:
                pass
            self._dropped_frames += 1
            try:
                self._frames.put_nowait(frame)
            except queue.Full:
                pass

    def _update_fps(self) -> None:
        self._frames_since_fps += 1
        now = time.time()
        elapsed = now - self._fps_window_start
        if elapsed >= 1.0:
            self._current_fps = self._frames_since_fps / elapsed
            self._fps_window_start = now
            self._frames_since_fps = 0

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def fps(self) -> float:
        return self._current_fps

    @property
    def dropped_frames(self) -> int:
        return self._dropped_frames

    def __enter__(self):
        if not self.start():
            raise CaptureError(f"Failed to open camera source {self.config.source!r}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
