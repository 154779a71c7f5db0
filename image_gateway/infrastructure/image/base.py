"""HTTP Image Provider Base - Infrastructure Layer"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from ...domain.exceptions import MalformedProviderResponseError, ProviderError
from ...domain.repository.image_provider import ImageProvider

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120.0


class HttpImageProvider(ImageProvider):
    """Base for vendors reached over plain REST.

    Subclasses set ``name`` and ``default_base_url`` and implement
    ``_headers`` for their auth scheme.
    """

    default_base_url: str = ""

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            api_key: vendor API key
            base_url: override of the vendor base URL
            timeout: socket timeout in seconds
            http_client: shared client; one is created per call when omitted
        """
        if not api_key:
            raise ValueError(f"{self.name} API key cannot be empty")
        self._api_key = api_key
        self._base_url = (base_url or self.default_base_url).rstrip("/")
        self._timeout = timeout
        self._http_client = http_client

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self._base_url}/{path.lstrip('/')}"

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                yield client

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send one request; non-2xx and transport failures become ProviderError."""
        headers = {**self._headers(), **kwargs.pop("headers", {})}
        try:
            async with self._client() as client:
                response = await client.request(method, self._url(path), headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"Request to {self.name} failed: {e}") from e

        if response.is_error:
            body = response.text
            logger.warning(f"{self.name} returned HTTP {response.status_code}: {body[:500]}")
            raise ProviderError(
                self.name,
                f"{self.name} API failed: {response.status_code} {response.reason_phrase}: {body}",
                status_code=response.status_code,
                body=body,
            )
        return response

    async def _post_json(self, path: str, payload: Dict[str, Any], **kwargs: Any) -> Any:
        response = await self._request("POST", path, json=payload, **kwargs)
        return self._json(response)

    async def _get_json(self, path: str, **kwargs: Any) -> Any:
        response = await self._request("GET", path, **kwargs)
        return self._json(response)

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise MalformedProviderResponseError(
                self.name, f"Response is not valid JSON: {response.text[:200]}"
            ) from e

    def _require(self, data: Any, *path: Any) -> Any:
        """Walk ``path`` (keys / indexes) into ``data``; missing or empty values are malformed."""
        current = data
        for step in path:
            try:
                current = current[step]
            except (KeyError, IndexError, TypeError):
                current = None
            if current is None:
                dotted = ".".join(str(p) for p in path)
                raise MalformedProviderResponseError(
                    self.name, f"Response is missing '{dotted}'"
                )
        if current == "" or current == []:
            dotted = ".".join(str(p) for p in path)
            raise MalformedProviderResponseError(self.name, f"Response has empty '{dotted}'")
        return current
