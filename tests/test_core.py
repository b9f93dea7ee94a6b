"""
Unit tests for core module.
"""
import os
import stat
import numpy as np
from pathlib import Path
import tempfile
import pytest

from scryforge.core import (
    Frame, Point, Corner, CORNER_ORDER, MarkerSet, Viewport, NormalizedRegion,
    CartesianRegion, CalibrationResult, CalibrationStatus, Category, CategoryPosition,
    Config, ScryForgeError, DetectionError, AuthenticationError, RateLimitError,
    DegenerateGeometryError, atomic_write_yaml, load_yaml
)


def test_frame_creation():
    """Test Frame dataclass."""
    img = np.zeros((480, 640, 3), dtype=np.uint8)
    frame = Frame(image=img, timestamp=123.45, frame_id=1, fps=30.0)

    assert frame.shape == (480, 640, 3)
    assert not frame.is_grayscale

    gray_frame = Frame(image=np.zeros((480, 640), dtype=np.uint8), timestamp=123.45, frame_id=2)
    assert gray_frame.is_grayscale


def test_marker_set_from_positions():
    """Test parsing of the aruco location payload."""
    markers = MarkerSet.from_positions({
        "top_left": [10, 20],
        "top_right": [110.5, 20],
        "bottom_left": None,
    })

    assert markers.top_left == Point(10.0, 20.0)
    assert markers.top_right == Point(110.5, 20.0)
    assert markers.bottom_left is None
    assert markers.bottom_right is None
    assert markers.visible_count == 2
    assert not markers.all_visible
    assert markers.has(Corner.TOP_LEFT, Corner.TOP_RIGHT)
    assert not markers.has(Corner.TOP_LEFT, Corner.BOTTOM_LEFT)


def test_marker_set_rejects_malformed():
    with pytest.raises(ValueError):
        MarkerSet.from_positions([1, 2, 3])
    with pytest.raises(ValueError):
        MarkerSet.from_positions({"top_left": [1]})
    with pytest.raises(ValueError):
        MarkerSet.from_positions({"top_left": ["a", "b"]})


def test_marker_points_follow_corner_order():
    markers = MarkerSet(
        top_left=Point(0, 0),
        top_right=Point(1, 0),
        bottom_left=Point(0, 1),
        bottom_right=Point(1, 1),
    )

    assert CORNER_ORDER == (Corner.TOP_LEFT, Corner.TOP_RIGHT, Corner.BOTTOM_RIGHT, Corner.BOTTOM_LEFT)
    assert markers.to_points() == [Point(0, 0), Point(1, 0), Point(1, 1), Point(0, 1)]

    # Absent corners are skipped, order kept
    markers.top_right = None
    assert markers.to_points() == [Point(0, 0), Point(1, 1), Point(0, 1)]


def test_cartesian_region_edges_and_normalization():
    region = CartesianRegion(center=Point(50.0, 50.0), width=50.0, height=40.0)

    assert (region.left, region.right) == (25.0, 75.0)
    assert (region.top, region.bottom) == (30.0, 70.0)

    normalized = region.to_normalized()
    assert normalized.x == pytest.approx(0.25)
    assert normalized.y == pytest.approx(0.30)
    assert normalized.width == pytest.approx(0.50)
    assert normalized.height == pytest.approx(0.40)
    assert normalized.markers is None


def test_normalization_clamps_each_field():
    region = CartesianRegion(center=Point(5.0, 50.0), width=30.0, height=50.0)

    normalized = region.to_normalized([Point(1.0, 2.0)])

    assert normalized.x == 0.0  # left edge at -10
    assert normalized.width == pytest.approx(0.30)
    assert normalized.markers == [Point(1.0, 2.0)]


def test_region_corner_points():
    region = NormalizedRegion(x=0.25, y=0.1, width=0.5, height=0.8)
    corners = region.corner_points(Viewport(x=100, y=0, width=1000, height=500))

    assert corners == [
        Point(350.0, 50.0),
        Point(850.0, 50.0),
        Point(850.0, 450.0),
        Point(350.0, 450.0),
    ]


def test_region_to_dict():
    region = NormalizedRegion(x=0.1, y=0.2, width=0.3, height=0.4, markers=[Point(5, 6)])

    assert region.to_dict() == {
        "x": 0.1, "y": 0.2, "width": 0.3, "height": 0.4, "markers": [[5, 6]]
    }


def test_calibration_result_terminal():
    region = NormalizedRegion(0, 0, 1, 1)

    assert not CalibrationResult(CalibrationStatus.CALIBRATING, region).is_terminal
    assert CalibrationResult(CalibrationStatus.CALIBRATED, region).is_terminal
    assert CalibrationResult(CalibrationStatus.FAILED, region).is_terminal
    assert CalibrationStatus.CALIBRATED.value == "Calibrated"


def test_category_position_from_dict():
    position = CategoryPosition.from_dict({"category": "treant", "x": 12, "y": 30.5, "width": 4, "height": 5})

    assert position.category == Category.TREANT
    assert (position.x, position.y) == (12.0, 30.5)

    # Size is optional
    assert CategoryPosition.from_dict({"category": "red", "x": 1, "y": 2}).width == 0.0

    with pytest.raises(ValueError):
        CategoryPosition.from_dict({"category": "not-a-token", "x": 1, "y": 2})
    with pytest.raises(ValueError):
        CategoryPosition.from_dict({"category": "red", "x": 1})


def test_error_hierarchy():
    assert issubclass(AuthenticationError, DetectionError)
    assert issubclass(RateLimitError, ScryForgeError)
    assert issubclass(DegenerateGeometryError, ValueError)
    assert str(RateLimitError()) == "Rate limit exceeded"


def test_config_defaults():
    config = Config()

    assert config.get("server", "timeout_sec") == 10.0
    assert config.get("auth", "token_poll_interval_sec") == 3.0
    assert config.get("camera", "source") == 0
    assert config.get("scrying", "poll_interval_sec") == 1.0
    assert config.get("missing", "key", "fallback") == "fallback"


def test_config_merges_user_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "scryforge.yaml"
        atomic_write_yaml(path, {"camera": {"source": 2}, "extra": {"flag": True}})

        config = Config(path)

        assert config.get("camera", "source") == 2
        assert config.get("camera", "width") == 1280  # default kept
        assert config.get_section("extra") == {"flag": True}

    # Defaults are not shared between instances
    assert Config().get("camera", "source") == 0


def test_config_falls_back_on_bad_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "broken.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")

        config = Config(path)

        assert config.get("server", "base_url") == "https://theforgerealm.com/scryforge"


def test_atomic_write_yaml():
    """Test atomic YAML writing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        filepath = Path(tmpdir) / "nested" / "tokens.yaml"

        atomic_write_yaml(filepath, {"token": "abc", "refresh_token": None})
        assert filepath.exists()

        loaded = load_yaml(filepath)
        assert loaded == {"token": "abc", "refresh_token": None}

        # No temp files left behind
        assert [p.name for p in filepath.parent.iterdir()] == ["tokens.yaml"]


@pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
def test_atomic_write_yaml_private():
    with tempfile.TemporaryDirectory() as tmpdir:
        filepath = Path(tmpdir) / "tokens.yaml"

        atomic_write_yaml(filepath, {"token": "secret"}, private=True)

        assert stat.S_IMODE(filepath.stat().st_mode) == 0o600


def test_load_yaml_edge_cases():
    with pytest.raises(FileNotFoundError):
        load_yaml(Path("nonexistent_file.yaml"))

    with tempfile.TemporaryDirectory() as tmpdir:
        empty = Path(tmpdir) / "empty.yaml"
        empty.write_text("", encoding="utf-8")
        assert load_yaml(empty) == {}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
