"""
Capture module - camera frame sources.
"""
from .frame_source import FrameSource
from .threaded_camera import ThreadedCamera, CameraConfig, list_cameras

__all__ = [
    "FrameSource",
    "ThreadedCamera",
    "CameraConfig",
    "list_cameras",
]
