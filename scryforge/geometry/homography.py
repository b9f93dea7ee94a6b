"""
Projective mapping between camera space and target (scene) space.

A homography is estimated from exactly four point correspondences by
fixing h33 = 1 and solving the remaining eight unknowns through the
normal equations (A^T A) h = A^T b.
"""
from typing import Optional, Sequence, Tuple, Union
import logging

import numpy as np
from numpy.typing import NDArray

from scryforge.core import Point, DegenerateGeometryError, NotCalibratedError

logger = logging.getLogger(__name__)

PointLike = Union[Point, Tuple[float, float], Sequence[float]]


def _as_xy(point: PointLike) -> Tuple[float, float]:
    if isinstance(point, Point):
        return point.x, point.y
    x, y = point
    return float(x), float(y)


def compute_homography(
        src_points: Sequence[PointLike],
        dst_points: Sequence[PointLike]
) -> NDArray[np.float64]:
    """
    Compute the homography H with H * src = dst (up to scale).

    Args:
        src_points: Four source points
        dst_points: Four corresponding destination points

    Returns:
        3x3 matrix with H[2, 2] == 1

    Raises:
        DegenerateGeometryError: If either list does not hold exactly 4 points

    Collinear or coincident inputs are not rejected; they give extreme
    values or, for an exactly singular system, NaN entries.
    """
    if len(src_points) != 4 or len(dst_points) != 4:
        raise DegenerateGeometryError(
            f"Calibration requires exactly 4 points "
            f"(got {len(src_points)} source, {len(dst_points)} target)"
        )

    a = np.zeros((8, 8), dtype=np.float64)
    b = np.zeros(8, dtype=np.float64)

    for i, (src, dst) in enumerate(zip(src_points, dst_points)):
        x, y = _as_xy(src)
        u, v = _as_xy(dst)
        a[2 * i] = [x, y, 1.0, 0.0, 0.0, 0.0, -x * u, -y * u]
        a[2 * i + 1] = [0.0, 0.0, 0.0, x, y, 1.0, -x * v, -y * v]
        b[2 * i] = u
        b[2 * i + 1] = v

    at = a.T
    try:
        h = np.linalg.solve(at @ a, at @ b)
    except np.linalg.LinAlgError:
        logger.debug("Singular point correspondence, homography is undefined")
        h = np.full(8, np.nan)

    return np.append(h, 1.0).reshape(3, 3)


class CoordinateTransformer:
    """
    Immutable screen-to-target point mapper.

    Example:
        transformer = CoordinateTransformer(marker_points, overlay_corners)
        world = transformer.transform(320.0, 240.0)
    """

    def __init__(
            self,
            screen_points: Sequence[PointLike],
            target_points: Sequence[PointLike]
    ):
        """
        Args:
            screen_points: Four points in screen/camera space
            target_points: Four corresponding points in target space;
                screen_points[i] maps to target_points[i]

        Raises:
            DegenerateGeometryError: If either list's length is not 4
        """
        self._homography: Optional[NDArray[np.float64]] = None
        self._homography = compute_homography(screen_points, target_points)
        self._homography.setflags(write=False)

        if not np.all(np.isfinite(self._homography)):
            logger.warning("Homography has non-finite entries; points are likely collinear")

    @property
    def homography(self) -> NDArray[np.float64]:
        """Read-only 3x3 matrix."""
        if self._homography is None:
            raise NotCalibratedError("Not calibrated yet")
        return self._homography

    def transform(self, x: float, y: float) -> Point:
        """
        Map a screen-space point into target space.

        Raises:
            NotCalibratedError: If no homography was computed
        """
        if self._homography is None:
            raise NotCalibratedError("Not calibrated yet")

        (h11, h12, h13), (h21, h22, h23), (h31, h32, h33) = self._homography
        denom = h31 * x + h32 * y + h33
        return Point(
            float((h11 * x + h12 * y + h13) / denom),
            float((h21 * x + h22 * y + h23) / denom),
        )

    def transform_point(self, point: PointLike) -> Point:
        x, y = _as_xy(point)
        return self.transform(x, y)


class WorldTransformerFactory:
    """Builds a fresh transformer per polling cycle."""

    def create_transformer(
            self,
            screen_points: Sequence[PointLike],
            world_points: Sequence[PointLike]
    ) -> CoordinateTransformer:
        return CoordinateTransformer(screen_points, world_points)
