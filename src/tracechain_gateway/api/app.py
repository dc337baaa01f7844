"""FastAPI application factory."""

import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tracechain_gateway.api.auth import router as auth_router
from tracechain_gateway.api.batches import router as batches_router
from tracechain_gateway.api.live import router as live_router
from tracechain_gateway.api.records import router as records_router
from tracechain_gateway.api.users import router as users_router
from tracechain_gateway.app_logging import configure_logging
from tracechain_gateway.containers import AppContainer
from tracechain_gateway.domain.errors import GatewayError


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(title="Tracechain Gateway", lifespan=lifespan)
    app.state.container = container
    app.add_middleware(
        CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"]
    )

    @app.middleware("http")
    async def log_requests(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "%s %s -> %s (%.0fms)",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response

    @app.exception_handler(GatewayError)
    async def gateway_error(request: Request, exc: GatewayError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "%s %s failed: %s", request.method, request.url.path, exc.message
            )
        return JSONResponse(status_code=exc.status_code, content=exc.as_dict())

    app.include_router(auth_router)
    app.include_router(records_router)
    app.include_router(batches_router)
    app.include_router(users_router)
    app.include_router(live_router)

    @app.get("/health", response_model=None)
    async def health(request: Request) -> dict[str, str] | JSONResponse:
        """Check that the chaincode answers a read."""
        state_container: AppContainer = request.app.state.container
        try:
            return await state_container.stats_service.health()
        except GatewayError as exc:
            logger.warning("Health check failed: %s", exc.message)
            return JSONResponse(
                status_code=exc.status_code,
                content={"status": "error", "error": exc.message},
            )

    @app.get("/stats")
    async def stats(request: Request) -> dict[str, object]:
        """Return record totals per kind."""
        state_container: AppContainer = request.app.state.container
        return {"counts": await state_container.stats_service.counts()}

    return app
