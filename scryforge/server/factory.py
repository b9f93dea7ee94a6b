"""
Wiring of the server clients from configuration.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import requests

from scryforge.core import Config
from .auth import AuthManager, HttpAuthServer, ScryForgeAuthDecorator
from .http_server import HttpScryForgeServer
from .tokens import FileTokenVault, TokenVault


@dataclass
class ServerStack:
    token_vault: TokenVault
    auth_server: HttpAuthServer
    server: ScryForgeAuthDecorator

    def auth_manager(self, config: Config, open_browser: bool = False) -> AuthManager:
        return AuthManager(
            self.auth_server,
            self.token_vault,
            poll_interval=float(config.get("auth", "token_poll_interval_sec")),
            timeout=float(config.get("auth", "token_timeout_sec")),
            open_browser=open_browser,
        )


def create_server_stack(config: Config, token_vault: Optional[TokenVault] = None) -> ServerStack:
    """
    Build vault, auth client and the refreshing vision-service client.

    Args:
        config: Loaded configuration
        token_vault: Vault to use (default: FileTokenVault at auth.token_file)
    """
    vault = token_vault or FileTokenVault(Path(config.get("auth", "token_file")))
    session = requests.Session()

    auth_server = HttpAuthServer(
        base_url=config.get("auth", "base_url"),
        cache_duration=float(config.get("auth", "cache_duration_sec")),
        timeout=float(config.get("server", "timeout_sec")),
        session=session,
    )
    server = HttpScryForgeServer(
        vault,
        base_url=config.get("server", "base_url"),
        timeout=float(config.get("server", "timeout_sec")),
        session=session,
    )
    return ServerStack(
        token_vault=vault,
        auth_server=auth_server,
        server=ScryForgeAuthDecorator(server, auth_server, vault),
    )
