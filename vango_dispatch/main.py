"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vango_dispatch.api.routes import router
from vango_dispatch.config import get_settings
from vango_dispatch.service import build_service
from vango_dispatch.state.redis_store import RedisStore
from vango_dispatch.utils.logging import get_logger, setup_logging

# Setup logging first
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    logger.info("application_starting")

    service = await build_service(get_settings())
    app.state.delivery_service = service
    logger.info("delivery_service_initialized")

    yield

    logger.info("application_shutting_down")
    if isinstance(service.store, RedisStore):
        await service.store.disconnect()


app = FastAPI(
    title="Vango Dispatch",
    description="Driver matching and delivery lifecycle for building-material deliveries",
    version="0.1.0",
    lifespan=lifespan,
)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": "vango-dispatch"}


app.include_router(router, prefix="/api/v1", tags=["api"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "vango_dispatch.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.environment == "development",
    )
