"""
Unit tests for the vision service HTTP client.
"""
import asyncio
import pytest
import requests

from scryforge.core import (
    AuthenticationError,
    BadRequestError,
    Category,
    DetectionError,
    Point,
    RateLimitError,
    ScryForgeError,
    ServiceUnavailableError,
)
from scryforge.server import HttpScryForgeServer, TokenVault, raise_for_status

from fakes import FakeSession, make_response

IMAGE = b"\xff\xd8jpeg\xff\xd9"


def make_server(*responses, token="access", refresh_token="refresh"):
    session = FakeSession(*responses)
    vault = TokenVault(token, refresh_token)
    server = HttpScryForgeServer(vault, base_url="https://scry.test/", session=session)
    return server, session, vault


def test_detect_markers_posts_image():
    payload = {"positions": {
        "top_left": [10, 10],
        "top_right": [90, 10],
        "bottom_right": [90, 80],
        "bottom_left": [10, 80],
    }}
    server, session, _ = make_server(make_response(200, payload))

    markers = asyncio.run(server.detect_markers(IMAGE))

    assert markers.all_visible
    assert markers.bottom_right == Point(90.0, 80.0)

    method, url, kwargs = session.calls[0]
    assert method == "POST"
    assert url == "https://scry.test/api/v1/image/arucolocations"
    assert kwargs["headers"] == {"Authorization": "Bearer access"}
    assert kwargs["files"]["image"] == ("frame.jpg", IMAGE, "image/jpeg")


def test_missing_token_fails_without_request():
    server, session, _ = make_server(make_response(200, {}), token=None)

    with pytest.raises(AuthenticationError):
        asyncio.run(server.detect_markers(IMAGE))
    assert session.calls == []


def test_unauthorized_clears_access_token_only():
    server, _, vault = make_server(make_response(401, {"error": "expired"}))

    with pytest.raises(AuthenticationError):
        asyncio.run(server.detect_markers(IMAGE))

    assert vault.get_token() is None
    assert vault.get_refresh_token() == "refresh"


@pytest.mark.parametrize("status, error", [
    (429, RateLimitError),
    (503, ServiceUnavailableError),
    (400, BadRequestError),
])
def test_status_mapping(status, error):
    server, _, vault = make_server(make_response(status, {}))

    with pytest.raises(error):
        asyncio.run(server.detect_markers(IMAGE))
    assert vault.get_token() == "access"


def test_other_errors_are_detection_errors():
    server, _, _ = make_server(make_response(500, {}))

    with pytest.raises(DetectionError) as excinfo:
        asyncio.run(server.detect_markers(IMAGE))

    assert type(excinfo.value) is DetectionError
    assert "500" in str(excinfo.value)


def test_network_failure_is_detection_error():
    server, _, _ = make_server(requests.ConnectionError("refused"))

    with pytest.raises(DetectionError):
        asyncio.run(server.detect_markers(IMAGE))


def test_malformed_payloads_rejected():
    for response in (
        make_response(200, {"result": []}),
        make_response(200, text="<html>not json</html>"),
        make_response(200, {"positions": {"top_left": "nope"}}),
    ):
        server, _, _ = make_server(response)
        with pytest.raises(DetectionError):
            asyncio.run(server.detect_markers(IMAGE))


def test_detect_categories_parses_and_skips_unknown():
    payload = {"positions": [
        {"category": "red", "x": 120, "y": 80, "width": 20, "height": 20},
        {"category": "mystery_token", "x": 1, "y": 1},
        {"category": "ancient_gold_dragon", "x": 300.5, "y": 200},
    ]}
    server, session, _ = make_server(make_response(200, payload))

    positions = asyncio.run(server.detect_categories(IMAGE))

    assert [p.category for p in positions] == [Category.RED, Category.ANCIENT_GOLD_DRAGON]
    assert positions[1].x == 300.5
    assert session.calls[0][1] == "https://scry.test/api/v1/image/categories/positions"


def test_detect_categories_rejects_bad_shapes():
    server, _, _ = make_server(make_response(200, {"positions": {"red": [1, 2]}}))
    with pytest.raises(DetectionError):
        asyncio.run(server.detect_categories(IMAGE))

    server, _, _ = make_server(make_response(200, {"positions": [{"category": "red", "x": 1}]}))
    with pytest.raises(DetectionError):
        asyncio.run(server.detect_categories(IMAGE))


def test_raise_for_status_server_error_bucket():
    messages = {500: ServiceUnavailableError("down")}

    raise_for_status(make_response(204, None), messages)

    with pytest.raises(ServiceUnavailableError):
        raise_for_status(make_response(502, {}), messages)

    with pytest.raises(ScryForgeError) as excinfo:
        raise_for_status(make_response(418, {}), messages, fallback=ScryForgeError, fallback_message="Teapot")
    assert str(excinfo.value).startswith("Teapot: 418")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
