import io
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import httpx
import pytest
from PIL import Image

from image_gateway.domain.entity.image import ImageGenerationRequest, ImageGenerationResponse
from image_gateway.domain.exceptions import ProviderError
from image_gateway.domain.repository.image_provider import ImageProvider, ProviderSlot
from image_gateway.domain.service.dispatcher import ImageDispatcher
from image_gateway.domain.service.model_registry import ModelRegistry


class FakeProvider(ImageProvider):
    """Records requests; the n-th call fails when n is in ``fail_on``."""

    def __init__(self, name: str = "bfl", fail_on: Iterable[int] = (), error: Optional[Exception] = None):
        self.name = name
        self.calls: List[ImageGenerationRequest] = []
        self._fail_on = set(fail_on)
        self._error = error

    async def generate_image(self, request: ImageGenerationRequest) -> ImageGenerationResponse:
        self.calls.append(request)
        n = len(self.calls)
        if self._error is not None:
            raise self._error
        if n in self._fail_on:
            raise ProviderError(self.name, f"boom {n}")
        return ImageGenerationResponse(image_url=f"https://img.example/{self.name}/{n}.png")


def with_fresh_dispatcher(
    providers: Optional[Dict[str, ProviderSlot]] = None,
    table: Optional[Dict[str, List[str]]] = None,
) -> ImageDispatcher:
    """A new dispatcher per test, so no provider map leaks between tests."""
    registry = ModelRegistry(table) if table is not None else ModelRegistry()
    return ImageDispatcher(providers=providers or {}, registry=registry)


def png_bytes(size: Tuple[int, int] = (64, 64), mode: str = "RGB", color=(200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def mock_http_client(handler: Callable[[httpx.Request], httpx.Response]):
    """AsyncClient backed by ``handler``; returns (client, recorded requests)."""
    requests: List[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    return httpx.AsyncClient(transport=httpx.MockTransport(record)), requests


@pytest.fixture
def png_image() -> bytes:
    return png_bytes()
