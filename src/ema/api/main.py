from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ema.app_logging import get_logger
from ema.config import get_settings
from ema.errors import SnapshotNotFoundError
from ema.server import get_server, set_server

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan manager."""
    server = get_server()
    get_logger().info("api.startup", {"max_concurrency": server.scheduler.max_concurrency}, channel="http")

    yield

    await server.shutdown()
    set_server(None)
    get_logger().info("api.shutdown", {}, channel="http")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="EMA API",
        description="Actor input, output streaming and snapshot control for EMA",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(SnapshotNotFoundError)
    async def snapshot_not_found_handler(request: Request, exc: SnapshotNotFoundError) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={"error": "snapshot_not_found", "message": str(exc), "name": exc.name},
        )

    @app.get("/health")
    async def health():
        """Health check."""
        return {"status": "healthy"}

    from ema.api.routes import actor, snapshot

    app.include_router(actor.router, prefix="/api", tags=["actor"])
    app.include_router(snapshot.router, prefix="/api", tags=["snapshot"])

    return app


app = create_app()


def run_server(host: str | None = None, port: int | None = None, reload: bool | None = None) -> None:
    """Run the API server."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "ema.api.main:app",
        host=host or settings.api.host,
        port=port or settings.api.port,
        reload=settings.api.reload if reload is None else reload,
    )
