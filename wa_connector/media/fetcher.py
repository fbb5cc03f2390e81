"""
Media Fetcher

Downloads media referenced by URL so it can be sent through the engine
as base64 content.
"""

import base64
import logging
from urllib.parse import urlsplit

import httpx

from wa_connector.engine.ports import MediaPayload
from wa_connector.errors import MediaFetchError

logger = logging.getLogger(__name__)

DEFAULT_MIMETYPE = "application/octet-stream"
DEFAULT_FILENAME = "file"


def filename_from_url(url: str) -> str:
    """Last path segment of a URL, without query string."""
    path = urlsplit(url).path
    name = path.rsplit("/", 1)[-1]
    return name or DEFAULT_FILENAME


class MediaFetcher:
    """
    Fetches remote media with a shared httpx client.

    The client is created lazily and closed by ``aclose``.
    """

    def __init__(self, timeout: float = 30.0, client: httpx.AsyncClient | None = None):
        self._timeout = timeout
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        return self._client

    async def fetch(
        self,
        url: str,
        mimetype: str | None = None,
        filename: str | None = None,
    ) -> MediaPayload:
        """
        Download ``url`` into a MediaPayload.

        The content type comes from ``mimetype``, then the response
        header, then application/octet-stream. The filename comes from
        ``filename``, then the URL path, then "file".

        Raises:
            MediaFetchError: On transport errors or non-2xx responses
        """
        try:
            response = await self._get_client().get(url)
        except httpx.HTTPError as e:
            raise MediaFetchError(url, str(e)) from e

        if not response.is_success:
            raise MediaFetchError(url, f"HTTP {response.status_code}")

        content_type = mimetype or response.headers.get("content-type") or DEFAULT_MIMETYPE
        logger.debug(f"Fetched {len(response.content)} bytes of {content_type} from {url}")

        return MediaPayload(
            mimetype=content_type,
            data=base64.b64encode(response.content).decode("ascii"),
            filename=filename or filename_from_url(url),
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
