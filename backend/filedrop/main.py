"""FastAPI application entry point."""
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from filedrop.clock import Clock, now_ms
from filedrop.config import Settings, settings
from filedrop.database import build_engine, build_session_factory
from filedrop.errors import FileDropError
from filedrop.models import Base
from filedrop.schemas.setting import OssConfig
from filedrop.services.container import build_services
from filedrop.services.storage.object_store import build_s3_client

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(
    config: Optional[Settings] = None,
    clock: Clock = now_ms,
    s3_client_factory: Callable[[OssConfig], Any] = build_s3_client,
) -> FastAPI:
    config = config or settings
    configure_logging(config.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create tables, load settings and start the background tasks."""
        engine = build_engine(config.DATABASE_URL)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        session_factory = build_session_factory(engine)
        services = build_services(config, session_factory, clock=clock, s3_client_factory=s3_client_factory)
        await services.settings.ensure_defaults()

        app.state.engine = engine
        app.state.services = services
        services.start()
        logger.info(f"FileDrop API ready (database={engine.url.get_backend_name()})")

        yield

        await services.stop()
        await engine.dispose()
        logger.info("FileDrop API stopped")

    app = FastAPI(
        title="FileDrop API",
        version="1.0.0",
        description="Upload files and hand them over with a short retrieval code.",
        lifespan=lifespan,
    )

    # CORS
    origins = [o.strip() for o in config.CORS_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    max_body_bytes = int(config.MAX_REQUEST_BODY_MB * BYTES_PER_MB)

    @app.middleware("http")
    async def limit_body_and_log(request: Request, call_next):
        length = request.headers.get("content-length")
        if length and length.isdigit() and int(length) > max_body_bytes:
            logger.warning(f"{request.method} {request.url.path} rejected: body of {length} bytes")
            return JSONResponse(status_code=413, content={"detail": "Request body too large"})

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.0f}ms)")
        return response

    @app.exception_handler(FileDropError)
    async def filedrop_error_handler(request: Request, exc: FileDropError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    @app.get("/api/health")
    async def health_check(request: Request):
        """Verify API and database connectivity."""
        try:
            async with request.app.state.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return {"status": "ok", "database": "connected"}
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return {"status": "error", "database": str(e)}

    # Register routers
    from filedrop.routes.auth import router as auth_router
    from filedrop.routes.files import public_router as public_files_router
    from filedrop.routes.files import router as files_router
    from filedrop.routes.settings import router as settings_router
    from filedrop.routes.upload import router as upload_router
    app.include_router(upload_router)
    app.include_router(files_router)
    app.include_router(settings_router)
    app.include_router(auth_router)
    app.include_router(public_files_router, prefix=config.PUBLIC_FILE_PREFIX.rstrip("/"))

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("filedrop.main:app", host="0.0.0.0", port=settings.API_PORT)
