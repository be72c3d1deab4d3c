"""FastAPI application factory."""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from attendance_nft.api.routes import admin, checkins
from attendance_nft.bootstrap import build_pipeline
from attendance_nft.core import timezone  # noqa: F401
from attendance_nft.core.config import Settings, configure_logging
from attendance_nft.core.database import setup_db_session
from attendance_nft.services.exceptions import NotAuthorizedError
from attendance_nft.uow import create_uow_factory

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    Startup: configure logging, set up the database session factory, verify the
    minter authorization and wire the check-in pipeline into app.state.
    An unauthorized minter aborts startup.
    """
    settings: Settings = app.state.settings

    configure_logging(settings)

    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)
    uow_factory = create_uow_factory(session_factory)

    app.state.session_factory = session_factory
    app.state.uow_factory = uow_factory

    try:
        pipeline = await build_pipeline(settings, uow_factory)
    except NotAuthorizedError as e:
        logger.error("application.startup_aborted", reason="minter_not_authorized", error=str(e))
        raise

    app.state.gateway = pipeline.gateway
    app.state.ledger = pipeline.ledger
    app.state.orchestrator = pipeline.orchestrator

    logger.info("application.startup", db_url=settings.database_url.split("@")[-1])

    yield

    logger.info("application.shutdown")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        settings: Settings to use; loaded from the environment when omitted

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or Settings()  # type: ignore[call-arg]

    app = FastAPI(
        title="Attendance NFT API",
        description="Mints attendance NFTs for Luma event check-ins",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(checkins.router)  # prefix="/api/luma"
    app.include_router(admin.router)  # prefix="/api/admin"

    @app.get("/health")
    async def health_check(request: Request, response: Response):
        """Health check endpoint with database connectivity test.

        Returns:
            200: {"status": "healthy", "chain": {...}} if the database answers
            503: {"status": "unhealthy", "error": {...}} otherwise
        """
        gateway = getattr(request.app.state, "gateway", None)
        chain = gateway.get_status() if gateway is not None else {"initialized": False}

        try:
            async with request.app.state.session_factory() as session:
                result = await session.execute(text("SELECT 1"))
                result.scalar()

            logger.debug("health_check.success")
            return {"status": "healthy", "chain": chain}

        except Exception as e:
            logger.error(
                "health_check.failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            return {
                "status": "unhealthy",
                "chain": chain,
                "error": {
                    "type": type(e).__name__,
                    "message": str(e),
                },
            }

    return app


# Create app instance for uvicorn
app = create_app()
