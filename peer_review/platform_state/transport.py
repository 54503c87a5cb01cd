"""
HTTP transport for the backend API. The sync client only talks to a Transport,
so tests can hand it a fake one.
"""
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import requests

from .errors import ConnectionFailed

DEFAULT_TIMEOUT = 10


class TransportResponse:
    """Status plus raw body of one backend response."""

    def __init__(self, status_code: int, body: Optional[str] = None):
        self.status_code = status_code
        self.body = body

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        """Decoded body. Raises ValueError when the body is empty or not JSON."""
        if not self.body:
            raise ValueError("Empty response body")
        return json.loads(self.body)


class Transport(ABC):
    """Sends one request to a sub-resource of the backend API."""

    @abstractmethod
    def request(self, method: str, path: str, json: Optional[Any] = None) -> TransportResponse:
        """Raise ConnectionFailed when the backend cannot be reached."""
        pass


class HttpTransport(Transport):
    def __init__(self, base_url: str, timeout: float = DEFAULT_TIMEOUT, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.setdefault("Accept", "application/json")
        self.logger = logging.getLogger(self.__class__.__name__)

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(self, method: str, path: str, json: Optional[Any] = None) -> TransportResponse:
        url = self.url_for(path)
        self.logger.debug(f"{method} {url}")
        try:
            response = self.session.request(method, url, json=json, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            self.logger.error(f"Network error on {method} {url}: {e}")
            raise ConnectionFailed() from e
        if not response.ok:
            self.logger.warning(f"{method} {url} returned {response.status_code}")
        return TransportResponse(response.status_code, response.text)

    def close(self) -> None:
        self.session.close()
