"""
Object storage client for uploaded deal documents.

Talks to the storage sidecar over HTTP. Documents are addressed by an opaque
logical locator that is normalized to ``/objects/<key>`` before use; bucket
layout and credentials stay on the sidecar's side.

Retry strategy:
- 2xx: return immediately
- 4xx: raise StorageError immediately (persistent error, no retry)
- 5xx / transport error: retry with exponential backoff, then raise
"""

from urllib.parse import urlparse

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..config import config
from ..errors import StorageError

logger = structlog.get_logger(__name__)

OBJECTS_PREFIX = '/objects/'


class TransientStorageError(StorageError):
    """A 5xx from the storage service; worth retrying."""

    pass


def normalize_object_path(locator: str) -> str:
    """
    Normalize an object locator to the ``/objects/<key>`` form.

    Full URLs are reduced to their path; bare keys gain the prefix.
    """
    raw = locator.strip()
    if raw.startswith(('http://', 'https://')):
        raw = urlparse(raw).path
    path = '/' + raw.lstrip('/')
    if not path.startswith(OBJECTS_PREFIX):
        path = OBJECTS_PREFIX.rstrip('/') + path
    return path


class ObjectStorageClient:
    """
    Async HTTP client for the object storage sidecar.

    Configuration via environment variables:
    - OBJECT_STORAGE_URL: Base URL of the storage service
    - OBJECT_STORAGE_TOKEN: Optional bearer token
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout_seconds: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the storage client.

        Args:
            base_url: Storage service base URL (defaults to OBJECT_STORAGE_URL)
            token: Bearer token (defaults to OBJECT_STORAGE_TOKEN)
            timeout_seconds: Per-request timeout
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.base_url = (base_url or config.OBJECT_STORAGE_URL).rstrip('/')
        if not self.base_url:
            raise ValueError('OBJECT_STORAGE_URL environment variable is required')

        headers = {}
        auth_token = token or config.OBJECT_STORAGE_TOKEN
        if auth_token:
            headers['Authorization'] = f'Bearer {auth_token}'

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout_seconds,
            transport=transport,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((httpx.TransportError, TransientStorageError)),
        reraise=True,
    )
    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        response = await self._client.request(method, path, **kwargs)
        if response.status_code >= 500:
            raise TransientStorageError(
                f'Storage service error: HTTP {response.status_code}',
                context={'path': path, 'status_code': response.status_code},
            )
        if response.status_code >= 400:
            raise StorageError(
                f'Storage request rejected: HTTP {response.status_code}',
                context={'path': path, 'status_code': response.status_code},
            )
        return response

    async def download(self, locator: str) -> bytes:
        """
        Download an object's raw bytes.

        Args:
            locator: Object locator as stored on the Document row

        Returns:
            The object's content

        Raises:
            StorageError: When the object is missing or the service keeps failing
        """
        path = normalize_object_path(locator)
        try:
            response = await self._request('GET', path)
        except httpx.TransportError as e:
            raise StorageError(
                f'Storage download failed: {e}',
                context={'path': path, 'error_type': type(e).__name__},
            ) from e

        logger.debug('object_storage.downloaded', path=path, size=len(response.content))
        return response.content

    async def upload(
        self,
        locator: str,
        data: bytes,
        content_type: str | None = None,
    ) -> str:
        """
        Upload raw bytes under a logical locator.

        Args:
            locator: Target object locator
            data: Content to store
            content_type: Declared MIME type

        Returns:
            The normalized object path to persist on the Document row
        """
        path = normalize_object_path(locator)
        headers = {'Content-Type': content_type or 'application/octet-stream'}
        try:
            await self._request('PUT', path, content=data, headers=headers)
        except httpx.TransportError as e:
            raise StorageError(
                f'Storage upload failed: {e}',
                context={'path': path, 'error_type': type(e).__name__},
            ) from e

        logger.info('object_storage.uploaded', path=path, size=len(data))
        return path

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()
