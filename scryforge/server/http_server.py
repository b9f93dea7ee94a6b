"""
HTTP client for the ScryForge vision service.
"""
from typing import Any, Dict, List, Optional
import logging

import requests

from scryforge.core import (
    AuthenticationError,
    BadRequestError,
    Category,
    CategoryPosition,
    DetectionError,
    MarkerSet,
    RateLimitError,
    ServiceUnavailableError,
)
from .base import ScryForgeServer, parse_json, raise_for_status, run_blocking
from .tokens import TokenVault

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://theforgerealm.com/scryforge"

_CATEGORY_VALUES = {category.value for category in Category}


class HttpScryForgeServer(ScryForgeServer):
    """
    Uploads JPEG frames and parses detections.

    Every call needs an access token from the vault. A 401 drops the
    access token (the refresh token is kept for ScryForgeAuthDecorator).
    """

    ARUCO_PATH = "/api/v1/image/arucolocations"
    CATEGORIES_PATH = "/api/v1/image/categories/positions"

    def __init__(
            self,
            token_vault: TokenVault,
            base_url: str = DEFAULT_BASE_URL,
            timeout: float = 10.0,
            session: Optional[requests.Session] = None
    ):
        """
        Args:
            token_vault: Source of the bearer token
            base_url: Service root, without trailing slash
            timeout: Per-request timeout in seconds
            session: Shared requests session (default: new session)
        """
        self.token_vault = token_vault
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    async def detect_markers(self, image: bytes) -> MarkerSet:
        positions = await run_blocking(self._post_image, self.ARUCO_PATH, image, "aruco locations")
        try:
            return MarkerSet.from_positions(positions)
        except ValueError as e:
            raise DetectionError(f"Malformed aruco locations: {e}") from e

    async def detect_categories(self, image: bytes) -> List[CategoryPosition]:
        positions = await run_blocking(self._post_image, self.CATEGORIES_PATH, image, "category positions")
        if not isinstance(positions, list):
            raise DetectionError("Category positions must be a list")

        parsed = []
        for item in positions:
            if isinstance(item, dict) and item.get("category") not in _CATEGORY_VALUES:
                logger.warning(f"Skipping unknown category {item.get('category')!r}")
                continue
            try:
                parsed.append(CategoryPosition.from_dict(item))
            except ValueError as e:
                raise DetectionError(str(e)) from e
        return parsed

    def _auth_headers(self) -> Dict[str, str]:
        token = self.token_vault.get_token()
        if not token:
            raise AuthenticationError("No JWT token found. Please authenticate first.")
        return {"Authorization": f"Bearer {token}"}

    def _post_image(self, path: str, image: bytes, description: str) -> Any:
        """
        POST an image as multipart form data.

        Returns:
            The "positions" member of the JSON response
        """
        headers = self._auth_headers()
        url = f"{self.base_url}{path}"

        try:
            response = self.session.post(
                url,
                files={"image": ("frame.jpg", image, "image/jpeg")},
                headers=headers,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise DetectionError(f"Failed to get {description}: {e}") from e

        if response.status_code == 401:
            self.token_vault.clear_token()

        raise_for_status(
            response,
            {
                401: AuthenticationError("Authentication required. Please authenticate with ScryForge."),
                429: RateLimitError("Rate limit exceeded. Please wait before making another request."),
                503: ServiceUnavailableError("Service unavailable. Please try again later."),
                400: BadRequestError("Invalid request format."),
            },
            fallback_message=f"Failed to get {description}"
        )

        data = parse_json(response)
        if not isinstance(data, dict) or data.get("positions") is None:
            raise DetectionError("Invalid response format from server")

        return data["positions"]
