from collections.abc import AsyncGenerator

import httpx
from fastapi import Request

from ghdash.core.analytics import AnalyticsHandle
from ghdash.core.cache import KeyValueStore
from ghdash.settings import Settings


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_cache_store(request: Request) -> KeyValueStore:
    return request.app.state.cache_store


def get_analytics(request: Request) -> AnalyticsHandle:
    return request.app.state.analytics


async def get_http_client(request: Request) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Yield the app-wide HTTP client, or a per-request one when none is set."""

    shared = getattr(request.app.state, "http_client", None)
    if shared is not None:
        yield shared
        return

    async with httpx.AsyncClient() as client:
        yield client
