"""
Upload transport.

The pipeline only needs "send these bytes, tell me whether they were
accepted". ``AiohttpUploadTransport`` does that with one HTTP POST per upload.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

import aiohttp

from .config import DEFAULT_CONTENT_TYPE, DEFAULT_UPLOAD_TIMEOUT
from .exceptions import TransportError

logger = logging.getLogger(__name__)


class UploadTransport(ABC):
    """Abstract interface for delivering an upload payload."""

    @abstractmethod
    async def send(self, url: str, payload: bytes) -> bool:
        """Deliver a payload.

        Args:
            url: Upload endpoint
            payload: Request body

        Returns:
            True if the endpoint accepted the payload, False otherwise

        Raises:
            TransportError: If the request could not be completed
        """
        ...

    async def close(self) -> None:
        """Release any resources held by the transport."""
        return None


class AiohttpUploadTransport(UploadTransport):
    """POSTs the payload with aiohttp; any 2xx response counts as accepted.

    A fresh ``ClientSession`` is used per upload. Uploads are infrequent, and
    this keeps the transport usable from whichever event loop calls it.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_UPLOAD_TIMEOUT,
        content_type: str = DEFAULT_CONTENT_TYPE,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            timeout: Total timeout for one request, in seconds
            content_type: Content-Type header sent with the payload
            headers: Extra request headers
        """
        self.timeout = timeout
        self.content_type = content_type
        self.headers = dict(headers or {})

    async def send(self, url: str, payload: bytes) -> bool:
        headers = {**self.headers, "Content-Type": self.content_type}
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        logger.debug(f"Uploading {len(payload)} bytes to {url}")
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(url, data=payload, headers=headers) as response:
                    body = await response.text()
                    if 200 <= response.status < 300:
                        logger.debug(f"Upload complete. Response: {body}")
                        return True
                    logger.warning(f"Upload rejected with status {response.status}: {body[:200]}")
                    return False
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(url, cause=e) from e
