"""FastAPI application factory and server entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from baas.config import BaasConfig
from baas.config import load_config as load_baas_config
from baas.errors import BACKEND_ERRORS, describe

from . import auth_routes, routes
from .config import APIConfig, load_config
from .database import close_db, create_tables, init_db
from .dependencies import session_cookies

logger = logging.getLogger(__name__)


def create_app(
    config: APIConfig | None = None,
    baas_config: BaasConfig | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        config: API configuration (default: loaded from env/YAML).
        baas_config: Hosted backend configuration (default: loaded from env/YAML).
        transport: Optional httpx transport for every backend call, e.g.
            `httpx.MockTransport` in tests.
    """
    config = config or load_config()
    baas_config = baas_config or load_baas_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if config.database_url:
            init_db(config.database_url)
            if config.auto_create_tables:
                await create_tables()
        # The backend client rebinds a given httpx client's base URL and
        # headers, so one is only shared when a test transport is injected
        app.state.http = (
            httpx.AsyncClient(timeout=baas_config.http_timeout, transport=transport)
            if transport is not None
            else None
        )
        logger.info(
            "Catalog API started (store: %s, backend: %s)",
            "sql" if config.database_url else "rest",
            baas_config.url,
        )
        try:
            yield
        finally:
            if app.state.http is not None:
                await app.state.http.aclose()
            if config.database_url:
                await close_db()

    app = FastAPI(title="GPSR Catalog API", debug=config.debug, lifespan=lifespan)
    app.state.config = config
    app.state.baas_config = baas_config

    @app.middleware("http")
    async def write_session_cookies(request: Request, call_next):
        cookies = session_cookies(request)
        response = await call_next(request)
        cookies.apply(response, secure=config.cookie_secure)
        return response

    async def backend_error_handler(request: Request, exc: Exception) -> JSONResponse:
        failure = describe(exc)
        # Client errors from the backend pass through; anything else is a bad gateway
        status = failure.status if failure.status and 400 <= failure.status < 500 else 502
        logger.warning("Backend error on %s %s: %r", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status,
            content={"detail": {"message": failure.message, "code": failure.code}},
        )

    for error_class in BACKEND_ERRORS:
        app.add_exception_handler(error_class, backend_error_handler)

    app.include_router(auth_routes.router)
    app.include_router(routes.router)
    return app


def main() -> None:
    """Run the API server with uvicorn."""
    import uvicorn

    config = load_config()
    logging.basicConfig(
        level=logging.DEBUG if config.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(create_app(config), host=config.host, port=config.port)


if __name__ == "__main__":
    main()
