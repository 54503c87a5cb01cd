from unittest.mock import MagicMock

import pytest
import requests

from peer_review.platform_state.errors import ConnectionFailed
from peer_review.platform_state.transport import HttpTransport, TransportResponse


def _session(status_code=200, text=""):
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.ok = 200 <= status_code < 400
    session.request.return_value = response
    return session


def test_request_joins_base_url_and_path() -> None:
    session = _session(200, '{"projects": []}')
    transport = HttpTransport("http://backend:8080/api/", timeout=3, session=session)

    response = transport.request("POST", "/projects", json={"title": "x"})

    session.request.assert_called_once_with(
        "POST", "http://backend:8080/api/projects", json={"title": "x"}, timeout=3
    )
    assert response.ok
    assert response.json() == {"projects": []}
    assert session.headers["Accept"] == "application/json"


def test_error_status_is_returned_not_raised() -> None:
    transport = HttpTransport("http://backend", session=_session(500, '{"error": "boom"}'))
    response = transport.request("GET", "/platform/state")
    assert response.status_code == 500
    assert not response.ok


def test_network_errors_become_connection_failed() -> None:
    session = _session()
    session.request.side_effect = requests.exceptions.ConnectionError("refused")
    transport = HttpTransport("http://backend", session=session)
    with pytest.raises(ConnectionFailed):
        transport.request("GET", "/platform/state")


def test_timeouts_become_connection_failed() -> None:
    session = _session()
    session.request.side_effect = requests.exceptions.Timeout("slow")
    with pytest.raises(ConnectionFailed):
        HttpTransport("http://backend", session=session).request("GET", "/platform/state")


def test_close_closes_the_session() -> None:
    session = _session()
    HttpTransport("http://backend", session=session).close()
    session.close.assert_called_once()


@pytest.mark.parametrize("status, ok", [(200, True), (204, True), (299, True), (304, False), (404, False)])
def test_response_ok_means_2xx(status, ok) -> None:
    assert TransportResponse(status).ok is ok


def test_empty_body_is_not_json() -> None:
    with pytest.raises(ValueError):
        TransportResponse(200, "").json()
