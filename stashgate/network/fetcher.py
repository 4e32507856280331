"""
Network fetchers.

A fetcher issues one request and returns the response, or raises NetworkError
when the request fails at the transport level. Completed requests are always
returned as responses, whatever their status.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional

import aiohttp
from aiohttp import ClientTimeout, TCPConnector

from stashgate.core.models import RequestDescriptor, Response
from stashgate.exceptions import NetworkError
from stashgate.logging_config import get_logger

logger = get_logger(__name__)

# Headers describing the wire encoding; the body handed back is already decoded
HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "content-encoding",
    "content-length",
    "keep-alive",
    "transfer-encoding",
})

# Request headers never forwarded upstream
SKIPPED_REQUEST_HEADERS = frozenset({"host", "connection", "content-length", "transfer-encoding"})


class NetworkFetcher(ABC):
    """Issue a request and return the response or raise NetworkError."""

    @abstractmethod
    async def fetch(self, request: RequestDescriptor) -> Response:
        """
        Fetch *request* from the network.

        Raises:
            NetworkError: On transport failure, abort or timeout
        """

    async def close(self) -> None:
        return None


class AiohttpFetcher(NetworkFetcher):
    """
    Network fetcher backed by an aiohttp ClientSession.

    The session and its connection pool are created on first use and released
    by close(). Relative request URLs are resolved against *origin*.
    """

    def __init__(
        self,
        origin: str,
        timeout_seconds: Optional[float] = 30.0,
        max_connections: int = 100,
    ):
        """
        Initialize AiohttpFetcher.

        Args:
            origin: Origin relative URLs resolve against (e.g. "http://localhost:3000")
            timeout_seconds: Total timeout per fetch; None disables it
            max_connections: Maximum number of pooled connections
        """
        self.origin = origin.rstrip("/")
        self.timeout = ClientTimeout(total=timeout_seconds)
        self.max_connections = max_connections
        self._session: Optional[aiohttp.ClientSession] = None

        logger.debug(
            f"Initialized AiohttpFetcher: origin={self.origin}, "
            f"timeout={timeout_seconds}, max_connections={max_connections}"
        )

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                connector=TCPConnector(limit=self.max_connections),
            )
        return self._session

    async def fetch(self, request: RequestDescriptor) -> Response:
        url = request.resolve(self.origin).url
        session = await self._get_session()

        headers = {
            key: value for key, value in request.headers.items()
            if key.lower() not in SKIPPED_REQUEST_HEADERS
        }

        try:
            logger.debug(f"Fetching {request.method} {url}")

            async with session.request(
                method=request.method,
                url=url,
                headers=headers,
                data=request.body,
                allow_redirects=True,
            ) as upstream:
                body = await upstream.read()
                response_headers = {
                    key: value for key, value in upstream.headers.items()
                    if key.lower() not in HOP_BY_HOP_HEADERS
                }
                return Response(
                    status=upstream.status,
                    headers=response_headers,
                    body=body,
                    url=str(upstream.url),
                )

        except asyncio.TimeoutError as e:
            logger.warning(f"Fetch timed out: {request.method} {url}")
            raise NetworkError(f"Request timed out: {request.method} {url}", url=url) from e
        except aiohttp.ClientError as e:
            logger.warning(f"Fetch failed: {request.method} {url}: {e}")
            raise NetworkError(f"Request failed: {request.method} {url}: {e}", url=url) from e

    async def close(self) -> None:
        """Close the HTTP session and release pooled connections."""
        if self._session and not self._session.closed:
            await self._session.close()
            logger.debug("Closed AiohttpFetcher session")
        self._session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
