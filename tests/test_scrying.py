"""
Unit tests for the scrying orb, orchestrator and polling loop.
"""
import asyncio
import math

import pytest

from scryforge.core import (
    ActorPosition,
    CaptureError,
    Category,
    CategoryPosition,
    Corner,
    DetectionError,
    MarkerSet,
    NormalizedRegion,
    Point,
    ScryingError,
    Viewport,
)
from scryforge.scrying import ScryForge, ScryingLoop, SimpleScryingOrb

from fakes import FakeCamera, FakeServer, all_but, markers

# Markers sit at (100,100)-(500,400) in the camera image, see fakes.markers()
OVERLAY = [Point(0.0, 0.0), Point(1000.0, 0.0), Point(1000.0, 750.0), Point(0.0, 750.0)]

RED_CENTER = CategoryPosition(Category.RED, x=300.0, y=250.0, width=20.0, height=20.0)
BLUE_CORNER = CategoryPosition(Category.BLUE, x=100.0, y=100.0, width=20.0, height=20.0)
TREANT = CategoryPosition(Category.TREANT, x=500.0, y=400.0, width=40.0, height=40.0)


def make_forge(server, camera=None):
    forge = ScryForge(SimpleScryingOrb(server))
    forge.set_camera(camera if camera is not None else FakeCamera())
    return forge


def test_orb_uses_one_frame_for_both_detections():
    server = FakeServer(markers(), categories=[RED_CENTER])
    camera = FakeCamera()

    data = asyncio.run(SimpleScryingOrb(server).scry(camera))

    assert camera.captures == 1
    assert server.marker_calls == 1 and server.category_calls == 1
    assert data.category_positions == [RED_CENTER]
    assert data.marker_points == [Point(100.0, 100.0), Point(500.0, 100.0), Point(500.0, 400.0), Point(100.0, 400.0)]


def test_scry_maps_tracked_actors():
    forge = make_forge(FakeServer(markers(), categories=[RED_CENTER, BLUE_CORNER, TREANT]))
    forge.update_actor_category("fighter", Category.RED)
    forge.update_actor_category("wizard", Category.BLUE)

    positions = asyncio.run(forge.scry(OVERLAY))

    # Treant is detected but nobody is assigned to it
    assert [p.actor_id for p in positions] == ["fighter", "wizard"]
    fighter, wizard = positions
    assert fighter.x == pytest.approx(500.0)
    assert fighter.y == pytest.approx(375.0)
    assert wizard.x == pytest.approx(0.0, abs=1e-6)
    assert wizard.y == pytest.approx(0.0, abs=1e-6)


def test_scry_with_calibrated_region_corners():
    forge = make_forge(FakeServer(markers(), categories=[TREANT]))
    forge.update_actor_category("boss", "treant")
    forge.set_calibration(NormalizedRegion(x=0.125, y=0.125, width=0.75, height=0.75))

    corners = forge.get_calibration().corner_points(Viewport(0, 0, 1920, 1080))
    positions = asyncio.run(forge.scry(corners))

    assert positions == [ActorPosition("boss", pytest.approx(1680.0), pytest.approx(945.0))]


def test_scry_without_camera():
    forge = ScryForge(SimpleScryingOrb(FakeServer(markers())))

    assert not forge.can_scry()
    with pytest.raises(ScryingError):
        asyncio.run(forge.scry(OVERLAY))


def test_scry_needs_four_markers():
    server = FakeServer(all_but(Corner.BOTTOM_LEFT), categories=[RED_CENTER])
    forge = make_forge(server)
    forge.update_actor_category("fighter", Category.RED)

    assert asyncio.run(forge.scry(OVERLAY)) == []
    assert not forge.is_scrying


def test_scry_errors_propagate_and_release_guard():
    forge = make_forge(FakeServer(error=DetectionError("down")))

    with pytest.raises(DetectionError):
        asyncio.run(forge.scry(OVERLAY))
    assert not forge.is_scrying

    forge.set_camera(FakeCamera(error=CaptureError("unplugged")))
    with pytest.raises(CaptureError):
        asyncio.run(forge.scry(OVERLAY))


def test_overlapping_scry_is_skipped():
    server = FakeServer(markers(), categories=[RED_CENTER], delay=0.02)
    forge = make_forge(server)
    forge.update_actor_category("fighter", Category.RED)

    async def scenario():
        return await asyncio.gather(forge.scry(OVERLAY), forge.scry(OVERLAY))

    first, second = asyncio.run(scenario())

    assert len(first) == 1
    assert second == []
    assert server.marker_calls == 1


def test_actor_bookkeeping():
    forge = ScryForge(SimpleScryingOrb(FakeServer()))

    forge.update_actor_category("fighter", Category.RED)
    forge.update_actor_category("wizard", Category.BLUE)
    forge.update_actor_category("rogue", Category.RED)  # takes over red

    assert forge.get_tracked_actor("fighter") is None
    assert forge.get_tracked_actor("rogue").category == Category.RED
    assert set(forge.get_available_categories()) == {Category.RED, Category.BLUE}

    forge.remove_actor_category("wizard")
    assert [a.actor_id for a in forge.get_tracked_actors()] == ["rogue"]


def test_loop_tick_delivers_positions():
    forge = make_forge(FakeServer(markers(), categories=[RED_CENTER]))
    forge.update_actor_category("fighter", Category.RED)
    received = []
    loop = ScryingLoop(forge, lambda: OVERLAY, received.append)

    positions = asyncio.run(loop.tick())

    assert received == [positions]
    assert positions[0].actor_id == "fighter"


def test_loop_tick_skips_and_swallows_errors():
    received = []

    uncalibrated = ScryingLoop(make_forge(FakeServer(markers())), lambda: None, received.append)
    assert asyncio.run(uncalibrated.tick()) == []

    failing = ScryingLoop(make_forge(FakeServer(error=DetectionError("down"))), lambda: OVERLAY, received.append)
    assert asyncio.run(failing.tick()) == []

    # Nothing tracked: result is empty and the callback is not invoked
    idle = ScryingLoop(make_forge(FakeServer(markers(), categories=[RED_CENTER])), lambda: OVERLAY, received.append)
    assert asyncio.run(idle.tick()) == []

    assert received == []


def test_loop_tick_survives_coincident_markers():
    same = Point(100.0, 100.0)
    stacked = MarkerSet(top_left=same, top_right=same, bottom_right=same, bottom_left=same)
    forge = make_forge(FakeServer(stacked, categories=[RED_CENTER]))
    forge.update_actor_category("fighter", Category.RED)
    received = []

    positions = asyncio.run(ScryingLoop(forge, lambda: OVERLAY, received.append).tick())

    # Undefined mapping: the actor is reported with non-finite coordinates
    assert [p.actor_id for p in positions] == ["fighter"]
    assert math.isnan(positions[0].x) and math.isnan(positions[0].y)
    assert received == [positions]
    assert not forge.is_scrying


def test_loop_tick_logs_unexpected_errors():
    forge = make_forge(FakeServer(error=OSError("socket closed")))
    loop = ScryingLoop(forge, lambda: OVERLAY, lambda positions: None)

    assert asyncio.run(loop.tick()) == []
    assert loop.ticks == 1
    assert not forge.is_scrying


def test_loop_runs_until_stopped():
    forge = make_forge(FakeServer(markers(), categories=[RED_CENTER]))
    forge.update_actor_category("fighter", Category.RED)
    received = []

    async def scenario():
        loop = ScryingLoop(forge, lambda: OVERLAY, received.append, poll_interval=0.01)
        runner = asyncio.ensure_future(loop.run())
        await asyncio.sleep(0.08)
        loop.stop()
        await runner
        return loop

    loop = asyncio.run(scenario())

    assert loop.ticks >= 2
    assert len(received) == loop.ticks


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
