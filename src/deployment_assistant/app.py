"""FastAPI application factory for the Deployment Assistant."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from deployment_assistant.common.config import get_settings
from deployment_assistant.common.schemas import HealthResponse


def create_app() -> FastAPI:
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        from deployment_assistant.deps import get_db
        db = get_db()
        await db.init()
        await db.create_all()
        yield
        # Shutdown
        await db.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(version=settings.api_version)

    # Mount routers
    from deployment_assistant.snapshots.router import router as snapshot_router
    from deployment_assistant.analysis.router import router as analysis_router
    from deployment_assistant.expiration.router import router as expiration_router

    prefix = settings.api_prefix
    app.include_router(snapshot_router, prefix=prefix, tags=["snapshots"])
    app.include_router(analysis_router, prefix=prefix, tags=["analysis"])
    app.include_router(expiration_router, prefix=prefix, tags=["expiration"])

    return app
