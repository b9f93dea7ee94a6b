"""
Viewport calibration tool.

Shows nothing itself: a display client renders the corner markers at
each reported region while this tool drives the camera and the vision
service. The final region is printed as YAML.

Usage:
    python scripts/calibrate.py --list-cameras
    python scripts/calibrate.py -c 1
    python scripts/calibrate.py -v recordings/table.mp4 --strategy simple
"""
import asyncio
import sys
import argparse
from pathlib import Path

import yaml

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from scryforge.capture import ThreadedCamera, CameraConfig, list_cameras
from scryforge.calibration import AdvancedViewportCalibrator, SimpleViewportCalibrator
from scryforge.core import CalibrationStatus, CaptureError, Config
from scryforge.server import create_server_stack
import logging

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Calibrate the visible tabletop region for ScryForge",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/calibrate.py --list-cameras         # Probe camera indices
  python scripts/calibrate.py -c 1                   # Staged calibration on camera 1
  python scripts/calibrate.py --strategy simple      # Binary-search calibration
        """
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=Path("config/scryforge.yaml"),
        help="Configuration file (default: config/scryforge.yaml)"
    )
    parser.add_argument(
        "-s", "--strategy",
        choices=["advanced", "simple"],
        default="advanced",
        help="Calibration strategy (default: advanced)"
    )

    source_group = parser.add_mutually_exclusive_group()
    source_group.add_argument(
        "-c", "--camera",
        type=int,
        default=None,
        help="Camera index (default: from config)"
    )
    source_group.add_argument(
        "-v", "--video",
        type=str,
        default=None,
        help="Video file path"
    )

    parser.add_argument(
        "--list-cameras",
        action="store_true",
        help="List available camera indices and exit"
    )

    return parser.parse_args()


def camera_config(config: Config, args) -> CameraConfig:
    cam_config = CameraConfig.from_dict(config.get_section("camera"))
    if args.video:
        cam_config.source = args.video
    elif args.camera is not None:
        cam_config.source = args.camera
    return cam_config


async def run_calibration(calibrator, camera) -> int:
    last = None
    async for result in calibrator.begin(camera):
        region = result.region
        logger.info(
            f"{result.status.value}: x={region.x:.3f} y={region.y:.3f} "
            f"w={region.width:.3f} h={region.height:.3f}"
        )
        last = result

    if last is None or last.status != CalibrationStatus.CALIBRATED:
        logger.error("Calibration failed")
        return 1

    print(yaml.safe_dump({"calibration": last.region.to_dict()}, default_flow_style=False))
    return 0


def main():
    args = parse_args()
    config = Config(args.config)

    if args.list_cameras:
        cameras = list_cameras(backend=config.get("camera", "backend"))
        print("Available cameras:", ", ".join(map(str, cameras)) or "none")
        return 0

    stack = create_server_stack(config)
    if not stack.token_vault.has_token() and not stack.token_vault.has_refresh_token():
        logger.error("Not signed in. Run scripts/login.py first.")
        return 1

    if args.strategy == "simple":
        calibrator = SimpleViewportCalibrator(stack.server)
    else:
        calibrator = AdvancedViewportCalibrator(stack.server)

    try:
        with ThreadedCamera(camera_config(config, args)) as camera:
            return asyncio.run(run_calibration(calibrator, camera))
    except CaptureError as e:
        logger.error(f"Camera error: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
