"""
Vision service contract and helpers shared by the HTTP clients.
"""
import asyncio
import functools
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Type
import logging

import requests

from scryforge.core import (
    CategoryPosition,
    DetectionError,
    MarkerSet,
    ScryForgeError,
)

logger = logging.getLogger(__name__)


class ScryForgeServer(ABC):
    """Remote marker/token detector."""

    @abstractmethod
    async def detect_markers(self, image: bytes) -> MarkerSet:
        """
        Locate the four corner fiducials in an encoded image.

        Raises:
            DetectionError: On transport/service failure or malformed data
        """

    @abstractmethod
    async def detect_categories(self, image: bytes) -> List[CategoryPosition]:
        """
        Locate categorized tokens in an encoded image.

        Raises:
            DetectionError: On transport/service failure or malformed data
        """


async def run_blocking(func: Callable[..., Any], *args, **kwargs) -> Any:
    """Run a blocking call (requests) in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))


def raise_for_status(
        response: requests.Response,
        messages: Dict[int, ScryForgeError],
        fallback: Type[ScryForgeError] = DetectionError,
        fallback_message: str = "Request failed"
) -> None:
    """
    Map a non-2xx response onto the error taxonomy.

    Args:
        response: HTTP response
        messages: Status code -> error instance to raise; the key 500
            also covers every other 5xx status
        fallback: Error class for unmapped statuses
        fallback_message: Message prefix for unmapped statuses
    """
    if response.ok:
        return

    status = response.status_code
    error: Optional[ScryForgeError] = messages.get(status)
    if error is None and status >= 500 and 500 in messages:
        error = messages[500]
    if error is None:
        error = fallback(f"{fallback_message}: {status} {response.reason}")

    logger.warning(f"{response.url} -> {status} {response.reason}")
    raise error


def parse_json(response: requests.Response, error_class: Type[ScryForgeError] = DetectionError) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise error_class("Invalid response format from server") from e
