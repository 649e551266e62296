"""
FORGE MES — FastAPI ASGI Entry Point
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from mes.api.v1.router import api_router
from mes.config import get_settings
from mes.core.auth_middleware import JWTAuthMiddleware
from mes.core.errors import DomainError
from mes.core.logging import configure_logging
from mes.core.redis import close_redis
from mes.core.responses import domain_error_handler, http_error_handler
from mes.db.session import Database

logger = logging.getLogger(__name__)

ALEMBIC_INI = Path(__file__).resolve().parents[1] / "alembic.ini"


def run_migrations(database_url: str) -> None:
    """alembic upgrade head, programmatically."""
    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ALEMBIC_INI))
    cfg.set_main_option("script_location", str(ALEMBIC_INI.parent / "alembic"))
    cfg.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(cfg, "head")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: logging, migrations, database engine, Redis shutdown."""
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    if settings.RUN_MIGRATIONS_ON_STARTUP:
        # env.py drives its own event loop
        await asyncio.to_thread(run_migrations, settings.DATABASE_URL)
        logger.info("Migrations applied")

    owns_database = getattr(app.state, "database", None) is None
    if owns_database:
        app.state.database = Database(settings.DATABASE_URL, echo=settings.DEBUG)
    await app.state.database.open()
    logger.info("FORGE MES started (%s)", settings.ENVIRONMENT)
    yield
    await close_redis()
    if owns_database:
        await app.state.database.close()


def create_app(database: Database | None = None) -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title="FORGE MES",
        description="Manufacturing orders, work orders, BOMs and the stock ledger",
        version="0.1.0",
        docs_url="/api/v1/docs",
        redoc_url="/api/v1/redoc",
        openapi_url="/api/v1/openapi.json",
        lifespan=lifespan,
    )
    if database is not None:
        app.state.database = database

    app.add_middleware(JWTAuthMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health")
    async def health():
        """Health check for load balancers and Docker."""
        return {"status": "ok", "service": "forge-mes"}

    return app


app = create_app()
