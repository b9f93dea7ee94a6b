"""
Geometry module - homography estimation and point mapping.
"""
from .homography import (
    compute_homography,
    CoordinateTransformer,
    WorldTransformerFactory,
)

__all__ = [
    "compute_homography",
    "CoordinateTransformer",
    "WorldTransformerFactory",
]
