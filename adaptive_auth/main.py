# =============================================================================
# ADAPTIVE AUTH - MAIN APPLICATION
# =============================================================================
# File: main.py
# Description: FastAPI application exposing the authentication engine
# =============================================================================

from typing import Any, Optional
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from adaptive_auth import __version__
from adaptive_auth.api.v1 import api_router, health_router
from adaptive_auth.api.middleware import ClientIdentityMiddleware
from adaptive_auth.auth.service import AuthenticationEngine
from adaptive_auth.core.config import settings
from adaptive_auth.core.exceptions import AuthSystemException
from adaptive_auth.db.factory import DBFactory
from adaptive_auth.session.storage import ISessionStore, MemorySessionStore, RedisSessionStore


logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def error_response(status_code: int, error_code: str, message: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": True, "error_code": error_code, "message": message, "details": {}},
    )


# =============================================================================
# STARTUP / SHUTDOWN
# =============================================================================

async def build_session_store() -> ISessionStore:
    """Session store selected by ``settings.session_backend``."""
    if settings.session_backend == "redis":
        redis = DBFactory.create_redis_adapter()
        await redis.connect()
        return RedisSessionStore(redis)
    return MemorySessionStore()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build the engine from settings when none was injected, and close
    only the engine built here on shutdown.
    """
    logger.info(f"Starting {settings.app_name} ({settings.app_env})")

    owned_engine: Optional[AuthenticationEngine] = None
    if getattr(app.state, "engine", None) is None:
        try:
            owned_engine = await AuthenticationEngine.create(store=await build_session_store())
        except AuthSystemException as e:
            logger.error(f"Engine could not start: {e.message}")
            raise
        app.state.engine = owned_engine
        logger.info(f"Serving table '{owned_engine.mapping.table_name}'")

    yield

    if owned_engine is not None:
        await owned_engine.close()
        app.state.engine = None
    logger.info(f"{settings.app_name} stopped")


# =============================================================================
# APPLICATION FACTORY
# =============================================================================

def create_application(engine: Optional[AuthenticationEngine] = None) -> FastAPI:
    """
    Assemble the FastAPI app.

    Args:
        engine: Ready engine to serve (tests inject one); when omitted,
            the lifespan builds one from settings at startup
    """
    app = FastAPI(
        title=settings.app_name,
        description="Schema-adaptive authentication over MySQL, SQLite and PostgreSQL",
        version=__version__,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        lifespan=lifespan,
    )
    app.state.engine = engine

    app.add_middleware(ClientIdentityMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Every failure leaves as {error, error_code, message, details}.

    @app.exception_handler(AuthSystemException)
    async def engine_error(request: Request, exc: AuthSystemException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return error_response(exc.status_code, f"HTTP_{exc.status_code}", exc.detail)

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        message = "An internal error occurred" if settings.is_production else str(exc)
        return error_response(500, "INTERNAL_ERROR", message)

    app.include_router(api_router)
    app.include_router(health_router)

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "adaptive_auth.main:create_application",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
