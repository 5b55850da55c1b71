from typing import Callable, Iterator

import httpx
import pytest

from dkkdownload.core.config import Settings, get_settings
from dkkdownload.services.remote import ExportApiClient, build_http_client


@pytest.fixture(autouse=True)
def _fresh_settings() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def make_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], ExportApiClient]:
    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> ExportApiClient:
        settings = Settings()
        http = build_http_client(settings, transport=httpx.MockTransport(handler))
        return ExportApiClient(http, settings)

    return _make
