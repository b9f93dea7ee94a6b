"""
Access/refresh token storage.
"""
from pathlib import Path
from typing import Callable, List, Optional
import logging

from scryforge.core import atomic_write_yaml, load_yaml

logger = logging.getLogger(__name__)

TokenListener = Callable[["TokenVault"], None]


class TokenVault:
    """
    In-memory JWT holder.

    clear_token() drops only the access token so a refresh remains
    possible; clear_all() forgets both.
    """

    def __init__(self, token: Optional[str] = None, refresh_token: Optional[str] = None):
        self._token = token
        self._refresh_token = refresh_token
        self._listeners: List[TokenListener] = []

    def get_token(self) -> Optional[str]:
        return self._token

    def get_refresh_token(self) -> Optional[str]:
        return self._refresh_token

    def has_token(self) -> bool:
        return bool(self._token)

    def has_refresh_token(self) -> bool:
        return bool(self._refresh_token)

    def set_keys(self, token: str, refresh_token: Optional[str]) -> None:
        self._token = token
        if refresh_token:
            self._refresh_token = refresh_token
        self._changed()

    def clear_token(self) -> None:
        self._token = None
        self._changed()

    def clear_all(self) -> None:
        self._token = None
        self._refresh_token = None
        self._changed()

    def on_tokens_updated(self, listener: TokenListener) -> None:
        """Register a callback invoked with the vault after every change."""
        self._listeners.append(listener)

    def _changed(self) -> None:
        for listener in list(self._listeners):
            listener(self)


class FileTokenVault(TokenVault):
    """Token vault persisted to a YAML file."""

    def __init__(self, path: Path):
        self.path = Path(path)
        token = refresh_token = None

        if self.path.exists():
            data = load_yaml(self.path)
            token = data.get("token")
            refresh_token = data.get("refresh_token")
            logger.info(f"Loaded tokens from {self.path}")

        super().__init__(token, refresh_token)

    def _changed(self) -> None:
        atomic_write_yaml(self.path, {
            "token": self._token,
            "refresh_token": self._refresh_token,
        }, private=True)
        super()._changed()
