from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ghdash.api.routes.auth import router as auth_router
from ghdash.api.routes.dashboard import router as dashboard_router
from ghdash.api.routes.github_proxy import router as github_proxy_router
from ghdash.core import analytics
from ghdash.core.cache import KeyValueStore
from ghdash.core.cache import MemoryStore
from ghdash.core.cache import SqlStore
from ghdash.core.middleware import DashboardRateLimitMiddleware
from ghdash.core.observability import configure_logging
from ghdash.core.observability import init_sentry
from ghdash.db import Base
from ghdash.db import build_session_factory
from ghdash.db import create_db_engine
from ghdash.settings import Settings


def build_cache_store(app_settings: Settings) -> KeyValueStore:
    """Use the database when one is configured, else keep entries in memory."""

    if not app_settings.database_url:
        return MemoryStore()

    engine = create_db_engine(app_settings)
    Base.metadata.create_all(bind=engine)
    return SqlStore(build_session_factory(engine))


def create_app(
    app_settings: Settings | None = None,
    http_client: httpx.AsyncClient | None = None,
    cache_store: KeyValueStore | None = None,
) -> FastAPI:
    app_settings = app_settings or Settings()
    configure_logging(app_settings)
    init_sentry(app_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        app.state.analytics.dispose()

    app = FastAPI(title="ghdash", lifespan=lifespan)
    app.state.settings = app_settings
    app.state.http_client = http_client
    app.state.cache_store = (
        cache_store if cache_store is not None else build_cache_store(app_settings)
    )
    app.state.analytics = analytics.init(
        analytics.AnalyticsConfig(
            enabled=app_settings.analytics_enabled,
            measurement_id=app_settings.analytics_measurement_id,
        )
    )

    app.add_middleware(
        DashboardRateLimitMiddleware,
        requests_per_window=app_settings.rate_limit_per_minute,
        window_seconds=app_settings.rate_limit_window_seconds,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[app_settings.client_app_url],
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.include_router(dashboard_router)
    app.include_router(auth_router)
    app.include_router(github_proxy_router)

    return app


app = create_app()
