"""
Live token tracking.

Calibrates the visible region, then polls the vision service and prints
the scene position of every tracked actor.

Usage:
    python scripts/live_scry.py --track red=fighter --track blue=wizard
    python scripts/live_scry.py -c 1 --target 0 0 1920 1080 --track treant=boss
"""
import asyncio
import sys
import argparse
import signal
from pathlib import Path
from typing import List, Optional

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from scryforge.capture import ThreadedCamera, CameraConfig
from scryforge.calibration import AdvancedViewportCalibrator
from scryforge.core import (
    ActorPosition,
    CalibrationStatus,
    Category,
    CaptureError,
    Config,
    NormalizedRegion,
    Viewport,
)
from scryforge.scrying import ScryForge, ScryingLoop, SimpleScryingOrb
from scryforge.server import create_server_stack
import logging

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_track(value: str):
    """Parse CATEGORY=ACTOR_ID."""
    category, sep, actor_id = value.partition("=")
    if not sep or not actor_id:
        raise argparse.ArgumentTypeError(f"Expected CATEGORY=ACTOR_ID, got '{value}'")
    try:
        return Category(category.strip().lower()), actor_id.strip()
    except ValueError:
        raise argparse.ArgumentTypeError(f"Unknown category '{category}'")


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Track tabletop tokens and print their scene positions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Categories:
  """ + ", ".join(c.value for c in Category)
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=Path("config/scryforge.yaml"),
        help="Configuration file (default: config/scryforge.yaml)"
    )
    parser.add_argument(
        "-c", "--camera",
        type=int,
        default=None,
        help="Camera index (default: from config)"
    )
    parser.add_argument(
        "--target",
        type=float,
        nargs=4,
        metavar=("X", "Y", "WIDTH", "HEIGHT"),
        default=[0.0, 0.0, 1920.0, 1080.0],
        help="Scene rectangle the calibrated region maps onto (default: 0 0 1920 1080)"
    )
    parser.add_argument(
        "--track",
        type=parse_track,
        action="append",
        default=[],
        metavar="CATEGORY=ACTOR_ID",
        help="Assign a token category to an actor (repeatable)"
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between scries (default: from config)"
    )

    return parser.parse_args()


def print_positions(positions: List[ActorPosition]) -> None:
    for position in positions:
        print(f"  {position.actor_id:<20} x={position.x:8.1f}  y={position.y:8.1f}")


async def calibrate(stack, camera) -> Optional[NormalizedRegion]:
    result = None
    async for result in AdvancedViewportCalibrator(stack.server).begin(camera):
        logger.debug(f"Calibration step: {result.status.value}")

    if result is None or result.status != CalibrationStatus.CALIBRATED:
        return None
    return result.region


async def run(config: Config, args, camera) -> int:
    stack = create_server_stack(config)

    print("Calibrating...")
    region = await calibrate(stack, camera)
    if region is None:
        logger.error("Calibration failed, check that all corner markers are in view")
        return 1
    print(f"Calibrated: x={region.x:.3f} y={region.y:.3f} w={region.width:.3f} h={region.height:.3f}")

    forge = ScryForge(SimpleScryingOrb(stack.server))
    forge.set_camera(camera)
    forge.set_calibration(region)
    for category, actor_id in args.track:
        forge.update_actor_category(actor_id, category)

    viewport = Viewport(*args.target)

    def corners():
        calibration = forge.get_calibration()
        return None if calibration is None else calibration.corner_points(viewport)

    interval = args.interval if args.interval is not None else float(config.get("scrying", "poll_interval_sec"))
    loop = ScryingLoop(forge, corners, print_positions, poll_interval=interval)

    try:
        asyncio.get_running_loop().add_signal_handler(signal.SIGINT, loop.stop)
    except NotImplementedError:
        pass  # Windows: KeyboardInterrupt ends the run instead

    await loop.run()
    return 0


def main():
    args = parse_args()
    config = Config(args.config)

    if not args.track:
        logger.warning("No actors tracked; positions will always be empty")

    cam_config = CameraConfig.from_dict(config.get_section("camera"))
    if args.camera is not None:
        cam_config.source = args.camera

    print("=" * 60)
    print("LIVE SCRYING")
    print("=" * 60)
    print("Press Ctrl+C to stop")

    try:
        with ThreadedCamera(cam_config) as camera:
            return asyncio.run(run(config, args, camera))
    except CaptureError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted by user")
    return 0


if __name__ == "__main__":
    sys.exit(main())
