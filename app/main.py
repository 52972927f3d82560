from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Optional
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from app.config import Settings, get_settings
from app.context import build_context
from app.database import init_db
from app.errors import register_exception_handlers
from app.logging_config import setup_logging
from app.routers import auth_router, course_router, profile_router
from app.sweeper import SessionSweeper

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Runs on startup and shutdown.
    """
    context = app.state.context
    settings = context.settings

    # Startup: an unreachable store is logged, the listener still comes up
    try:
        init_db(context.engine)
    except SQLAlchemyError:
        logger.exception("Database initialization failed. Check DATABASE_URL.")

    sweeper = SessionSweeper(context.session_factory, settings)
    sweeper.start()
    app.state.sweeper = sweeper
    logger.info(
        f"Sessions: {settings.session_duration_minutes} min absolute, "
        f"{settings.session_idle_timeout_minutes} min idle"
    )
    yield
    # Shutdown
    await sweeper.stop()
    context.engine.dispose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    settings.validate_runtime()

    app = FastAPI(
        title="Student Portal",
        description="Student accounts, sessions and course enrollment",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.context = build_context(settings)

    # The session cookie needs credentialed CORS, so origins are explicit
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Register routers
    app.include_router(auth_router.router)
    app.include_router(profile_router.router)
    app.include_router(course_router.router)

    @app.get("/")
    async def root():
        """
        Health check endpoint.
        """
        return {
            "status": "running",
            "version": VERSION
        }

    return app


def main() -> None:
    import uvicorn

    settings = get_settings()
    setup_logging(settings.log_level)
    logger.info(f"Starting student portal on port {settings.port} ({settings.environment})")
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
