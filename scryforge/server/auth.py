"""
Forge Realm authentication: status checks, token refresh, the device-style
sign-in flow and a ScryForgeServer decorator that refreshes on 401.
"""
import asyncio
import time
import webbrowser
from dataclasses import replace
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar
import logging

import requests

from scryforge.core import (
    AuthenticationError,
    AuthResponse,
    AuthStatus,
    BadRequestError,
    CategoryPosition,
    MarkerSet,
    ScryForgeError,
    ServiceUnavailableError,
    TokenStatusResult,
)
from .base import ScryForgeServer, parse_json, raise_for_status, run_blocking
from .tokens import TokenVault

logger = logging.getLogger(__name__)

DEFAULT_AUTH_URL = "https://theforgerealm.com"

T = TypeVar("T")


class HttpAuthServer:
    """
    Client for the auth endpoints.

    is_authenticated() answers from a cache for cache_duration seconds
    so UI polling does not hammer the server.
    """

    def __init__(
            self,
            base_url: str = DEFAULT_AUTH_URL,
            cache_duration: float = 300.0,
            timeout: float = 10.0,
            session: Optional[requests.Session] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.cache_duration = cache_duration
        self.timeout = timeout
        self.session = session or requests.Session()

        self._status = AuthStatus(is_authenticated=False, last_checked=0.0)
        self._cached: Optional[bool] = None
        self._cached_at = 0.0

    async def get_auth_status(self, token: Optional[str] = None) -> AuthStatus:
        """
        Validate a token against /auth/status.

        Network and parse failures are recorded as "not authenticated";
        unexpected HTTP statuses raise.

        Raises:
            AuthenticationError: Server answered with a status other than 2xx/401
        """
        return await run_blocking(self._get_auth_status, token)

    async def refresh_auth(self, token: Optional[str], refresh_token: str) -> AuthResponse:
        """
        Exchange a refresh token for a new token pair.

        Raises:
            AuthenticationError: Refresh token expired (401)
            BadRequestError: Invalid refresh request (400)
            ServiceUnavailableError: Server error (5xx)
        """
        return await run_blocking(self._refresh_auth, refresh_token)

    async def token_auth_start(self, client_name: Optional[str] = None) -> str:
        """Start a sign-in; returns the token the user confirms in a browser."""
        return await run_blocking(self._token_auth_start, client_name)

    async def get_auth_token_status(self, token: str) -> TokenStatusResult:
        return await run_blocking(self._get_auth_token_status, token)

    async def is_authenticated(self, token: Optional[str] = None) -> bool:
        if self._cache_valid():
            return self._cached
        status = await self.get_auth_status(token)
        return status.is_authenticated

    async def force_refresh_auth_status(self, token: Optional[str] = None) -> bool:
        self._cached = None
        status = await self.get_auth_status(token)
        return status.is_authenticated

    def login_url(self, token: str) -> str:
        return f"{self.base_url}/auth/login?token={token}"

    def _cache_valid(self) -> bool:
        return self._cached is not None and time.monotonic() - self._cached_at < self.cache_duration

    def _record(self, status: AuthStatus) -> AuthStatus:
        self._status = status
        self._cached = status.is_authenticated
        self._cached_at = time.monotonic()
        return replace(status)

    def _get_auth_status(self, token: Optional[str]) -> AuthStatus:
        now = time.time()
        if not token:
            return self._record(AuthStatus(False, now, error="No authentication token available"))

        try:
            response = self.session.get(
                f"{self.base_url}/auth/status",
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.warning(f"Auth status check failed: {e}")
            return self._record(AuthStatus(False, now, error=str(e)))

        if response.status_code == 401:
            return self._record(AuthStatus(False, now, error="Token expired or invalid"))
        if not response.ok:
            raise AuthenticationError("Failed to validate token")

        try:
            data = response.json()
        except ValueError as e:
            return self._record(AuthStatus(False, now, error=f"Invalid status response: {e}"))

        state = data.get("status") if isinstance(data, dict) else None
        return self._record(AuthStatus(
            is_authenticated=state == "authenticated",
            last_checked=now,
            token=token,
            error="Token renewal required" if state == "renewal_required" else None,
        ))

    def _refresh_auth(self, refresh_token: str) -> AuthResponse:
        response = self._request(
            "POST",
            "/auth/refresh",
            json={"refresh_token": refresh_token},
        )
        raise_for_status(
            response,
            {
                401: AuthenticationError("Failed to refresh authentication - token expired"),
                400: BadRequestError("Invalid refresh request"),
                500: ServiceUnavailableError("Authentication service unavailable"),
            },
            fallback=ScryForgeError,
            fallback_message="Failed to refresh authentication"
        )
        data = self._json_object(response)
        try:
            return AuthResponse(
                status=str(data.get("status", "")),
                message=str(data.get("message", "")),
                token=data["token"],
                refresh_token=data["refresh_token"],
            )
        except KeyError as e:
            raise ScryForgeError(f"Refresh response missing {e}") from e

    def _token_auth_start(self, client_name: Optional[str]) -> str:
        body = {"client_name": client_name} if client_name else None
        response = self._request("POST", "/auth/token/start", json=body)
        raise_for_status(
            response,
            {
                401: AuthenticationError("Authentication required to start token flow"),
                400: BadRequestError("Invalid token request"),
                500: ServiceUnavailableError("Authentication service unavailable"),
            },
            fallback=ScryForgeError,
            fallback_message="Failed to start token auth"
        )
        token = self._json_object(response).get("token")
        if not token:
            raise ScryForgeError("Token start response carried no token")
        return token

    def _get_auth_token_status(self, token: str) -> TokenStatusResult:
        response = self._request("GET", "/auth/token/status", params={"token": token})
        raise_for_status(
            response,
            {
                400: BadRequestError("Missing or invalid token"),
                404: BadRequestError("Invalid or expired token"),
                500: ServiceUnavailableError("Authentication service unavailable"),
            },
            fallback=ScryForgeError,
            fallback_message="Failed to check token status"
        )
        data = self._json_object(response)
        return TokenStatusResult(
            fulfilled=bool(data.get("fulfilled")),
            token=data.get("token"),
            refresh_token=data.get("refreshToken") or data.get("refresh_token"),
        )

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        try:
            return self.session.request(method, f"{self.base_url}{path}", timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ServiceUnavailableError(f"Authentication service unreachable: {e}") from e

    @staticmethod
    def _json_object(response: requests.Response) -> Dict[str, Any]:
        data = parse_json(response, ScryForgeError)
        if not isinstance(data, dict):
            raise ScryForgeError("Invalid response format from server")
        return data


class ScryForgeAuthDecorator(ScryForgeServer):
    """
    Wraps a ScryForgeServer: on AuthenticationError the token pair is
    refreshed once and the call retried.
    """

    def __init__(self, server: ScryForgeServer, auth_server: HttpAuthServer, token_vault: TokenVault):
        self.server = server
        self.auth_server = auth_server
        self.token_vault = token_vault

    async def detect_markers(self, image: bytes) -> MarkerSet:
        return await self._with_refresh(self.server.detect_markers, image)

    async def detect_categories(self, image: bytes) -> List[CategoryPosition]:
        return await self._with_refresh(self.server.detect_categories, image)

    async def _with_refresh(self, operation: Callable[[bytes], Awaitable[T]], image: bytes) -> T:
        try:
            return await operation(image)
        except AuthenticationError:
            logger.info("Access token rejected, refreshing")
            await self._refresh()
        return await operation(image)

    async def _refresh(self) -> None:
        """
        Raises:
            AuthenticationError: Refresh impossible or rejected (vault cleared)
        """
        refresh_token = self.token_vault.get_refresh_token()
        try:
            if not refresh_token:
                raise AuthenticationError("No refresh token available")
            response = await self.auth_server.refresh_auth(self.token_vault.get_token(), refresh_token)
        except ScryForgeError as e:
            logger.warning(f"Token refresh failed: {e}")
            self.token_vault.clear_all()
            raise AuthenticationError("Authentication failed and token refresh unsuccessful") from e

        self.token_vault.set_keys(response.token, response.refresh_token)
        logger.info("Tokens refreshed")


class AuthManager:
    """
    Sign-in flow: start a token, let the user confirm it in a browser,
    poll until the server reports it fulfilled, then store the tokens.
    """

    def __init__(
            self,
            auth_server: HttpAuthServer,
            token_vault: TokenVault,
            poll_interval: float = 3.0,
            timeout: float = 300.0,
            open_browser: bool = False
    ):
        self.auth_server = auth_server
        self.token_vault = token_vault
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.open_browser = open_browser
        self.url_listeners: List[Callable[[str], None]] = []

    async def authenticate(self, client_name: Optional[str] = "ScryForge Client") -> None:
        """
        Raises:
            AuthenticationError: Timeout before the sign-in was confirmed
        """
        token = await self.auth_server.token_auth_start(client_name)
        url = self.auth_server.login_url(token)
        logger.info(f"Sign in at {url}")

        for listener in self.url_listeners:
            listener(url)
        if self.open_browser:
            webbrowser.open(url)

        if not await self._poll_token_status(token):
            raise AuthenticationError("Authentication timeout or cancelled")
        logger.info("Sign-in complete")

    async def _poll_token_status(self, token: str) -> bool:
        deadline = time.monotonic() + self.timeout
        while time.monotonic() < deadline:
            result = await self.auth_server.get_auth_token_status(token)
            if result.fulfilled:
                if result.token:
                    self.token_vault.set_keys(result.token, result.refresh_token)
                return True
            await asyncio.sleep(self.poll_interval)
        return False
