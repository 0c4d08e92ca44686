#!/usr/bin/env python3
"""
Base HTTP client shared by all catalog sources.

Every source exposes the same capability set:
- fetch_by_code(code) -> raw product dict (raises NotFoundError / TransportError)
- search(query, page, page_size) -> list of raw hit dicts (raises TransportError)
"""

import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urljoin

import requests

from scanscore.core.config import CONNECT_TIMEOUT, READ_TIMEOUT, USER_AGENT
from scanscore.core.errors import NotFoundError, TransportError

logger = logging.getLogger(__name__)


class CatalogClient:
    """
    Base client for a product catalog API.

    Handles session management, timeouts and error mapping:
    - HTTP 404 → NotFoundError
    - Any other HTTP error, network failure, timeout or bad JSON → TransportError
    """

    source: str = "catalog"

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        timeout: Optional[Tuple[float, float]] = None,
        user_agent: Optional[str] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: API base URL
            session: Optional requests session (a new one is created if omitted)
            timeout: (connect, read) timeout in seconds
            user_agent: User-Agent header value
        """
        self.base_url = base_url.rstrip("/") + "/"
        self.session = session or requests.Session()
        self.timeout = timeout or (CONNECT_TIMEOUT, READ_TIMEOUT)
        self.user_agent = user_agent or USER_AGENT

    # =========================================================================
    # Capabilities
    # =========================================================================

    def fetch_by_code(self, code: str) -> Dict[str, Any]:
        raise NotImplementedError

    def search(self, query: str, page: int = 1, page_size: int = 20) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def close(self) -> None:
        self.session.close()

    # =========================================================================
    # API Request Helpers
    # =========================================================================

    def _get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Make a GET request and return the decoded JSON body.

        Args:
            endpoint: API endpoint path, relative to base_url
            params: Query parameters

        Returns:
            Response JSON

        Raises:
            NotFoundError: If the catalog answers 404
            TransportError: If the request fails for any other reason
        """
        url = urljoin(self.base_url, endpoint.lstrip("/"))
        headers = {"User-Agent": self.user_agent, "Accept": "application/json"}

        logger.debug(f"{self.source} GET {url}")

        try:
            response = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"{self.source} request failed: {e}", source=self.source)

        if response.status_code == 404:
            raise NotFoundError(
                f"{self.source} has no record at {endpoint}",
                source=self.source,
                status_code=404,
            )

        if response.status_code >= 400:
            raise TransportError(
                f"{self.source} API error: HTTP {response.status_code}",
                source=self.source,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(
                f"{self.source} returned invalid JSON: {e}",
                source=self.source,
                status_code=response.status_code,
            )

        if not isinstance(data, dict):
            raise TransportError(f"{self.source} returned unexpected payload", source=self.source)

        return data

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(base_url={self.base_url!r})"
