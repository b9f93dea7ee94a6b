"""
Server module - clients for the remote vision and auth services.
"""
from .base import ScryForgeServer, run_blocking, raise_for_status, parse_json
from .tokens import TokenVault, FileTokenVault
from .http_server import HttpScryForgeServer
from .auth import HttpAuthServer, ScryForgeAuthDecorator, AuthManager
from .factory import ServerStack, create_server_stack

__all__ = [
    "ScryForgeServer",
    "run_blocking",
    "raise_for_status",
    "parse_json",
    "TokenVault",
    "FileTokenVault",
    "HttpScryForgeServer",
    "HttpAuthServer",
    "ScryForgeAuthDecorator",
    "AuthManager",
    "ServerStack",
    "create_server_stack",
]
