"""
Sign in to the Forge Realm and store the tokens for the other tools.

Usage:
    python scripts/login.py
    python scripts/login.py --open-browser
"""
import asyncio
import sys
import argparse
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from scryforge.core import Config, ScryForgeError
from scryforge.server import create_server_stack
import logging

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_args():
    parser = argparse.ArgumentParser(description="Sign in to the ScryForge vision service")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("config/scryforge.yaml"),
        help="Configuration file (default: config/scryforge.yaml)"
    )
    parser.add_argument(
        "--open-browser",
        action="store_true",
        help="Open the sign-in page in the default browser"
    )
    return parser.parse_args()


async def login(config: Config, open_browser: bool) -> None:
    stack = create_server_stack(config)

    token = stack.token_vault.get_token()
    if token and await stack.auth_server.force_refresh_auth_status(token):
        print("Already signed in.")
        return

    manager = stack.auth_manager(config, open_browser=open_browser)
    manager.url_listeners.append(lambda url: print(f"\nOpen this page to sign in:\n  {url}\n"))
    await manager.authenticate(config.get("auth", "client_name"))
    print(f"Signed in. Tokens stored in {config.get('auth', 'token_file')}")


def main():
    args = parse_args()
    try:
        asyncio.run(login(Config(args.config), args.open_browser))
    except ScryForgeError as e:
        logger.error(f"Sign-in failed: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
