"""
Edge pairs and per-edge visibility memory.

Each side of the candidate rectangle is watched through the two corner
markers on that side. An edge is "lost" only on a visible -> not visible
transition between consecutive steps; an edge that was never seen
cannot be lost.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple
import logging

from scryforge.core import CartesianRegion, Corner, MarkerSet, Point

logger = logging.getLogger(__name__)


class Edge(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    TOP = "top"
    BOTTOM = "bottom"


EDGE_MARKERS: Dict[Edge, Tuple[Corner, Corner]] = {
    Edge.LEFT: (Corner.TOP_LEFT, Corner.BOTTOM_LEFT),
    Edge.RIGHT: (Corner.TOP_RIGHT, Corner.BOTTOM_RIGHT),
    Edge.TOP: (Corner.TOP_LEFT, Corner.TOP_RIGHT),
    Edge.BOTTOM: (Corner.BOTTOM_LEFT, Corner.BOTTOM_RIGHT),
}


@dataclass(frozen=True)
class TokenPair:
    """Two corner markers of one edge and their calibration-space positions."""
    edge: Edge
    markers: Tuple[Corner, Corner]
    first: Point
    second: Point

    def is_visible(self, markers: MarkerSet) -> bool:
        return markers.has(*self.markers)


def token_pairs(region: CartesianRegion) -> Dict[Edge, TokenPair]:
    """Derive the four edge pairs from the current candidate region."""
    tl = Point(region.left, region.top)
    tr = Point(region.right, region.top)
    bl = Point(region.left, region.bottom)
    br = Point(region.right, region.bottom)
    return {
        Edge.LEFT: TokenPair(Edge.LEFT, EDGE_MARKERS[Edge.LEFT], tl, bl),
        Edge.RIGHT: TokenPair(Edge.RIGHT, EDGE_MARKERS[Edge.RIGHT], tr, br),
        Edge.TOP: TokenPair(Edge.TOP, EDGE_MARKERS[Edge.TOP], tl, tr),
        Edge.BOTTOM: TokenPair(Edge.BOTTOM, EDGE_MARKERS[Edge.BOTTOM], bl, br),
    }


class EdgeVisibility:
    """Two-state (seen / not seen) memory for one edge."""

    def __init__(self):
        self.last_seen = False

    def observe(self, visible: bool) -> bool:
        """
        Record this step's visibility.

        Returns:
            True if the edge was seen last step and is gone now
        """
        lost = self.last_seen and not visible
        self.last_seen = visible
        return lost

    def reset(self) -> None:
        self.last_seen = False


@dataclass(frozen=True)
class EdgeObservation:
    visible: bool
    lost: bool


class EdgeTracker:
    """Updates all four edge memories once per step."""

    def __init__(self):
        self.edges: Dict[Edge, EdgeVisibility] = {edge: EdgeVisibility() for edge in Edge}

    def update(self, markers: MarkerSet, region: CartesianRegion) -> Dict[Edge, EdgeObservation]:
        """
        Args:
            markers: Markers detected this step
            region: Candidate region the markers were displayed at

        Returns:
            Visibility and loss for every edge
        """
        observations = {}
        for edge, pair in token_pairs(region).items():
            visible = pair.is_visible(markers)
            lost = self.edges[edge].observe(visible)
            if lost:
                logger.warning(f"Lost {edge.value} edge markers {[m.value for m in pair.markers]}")
            observations[edge] = EdgeObservation(visible=visible, lost=lost)
        return observations

    def reset(self) -> None:
        for memory in self.edges.values():
            memory.reset()
