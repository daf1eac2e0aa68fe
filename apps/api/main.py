import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from apps.api.api.routes import ping, tickets
from apps.api.core.config import Settings, get_settings
from apps.api.core.errors import register_exception_handlers
from apps.api.core.logging import configure_logging, init_tracer, shutdown_tracer
from apps.api.services.users import UserRepository
from apps.api.tickets import TicketAuthorizationGate, TicketRepository, TicketService


def _to_asyncpg_dsn(dsn: str) -> str:
    """Ensure the SQLAlchemy DSN uses the asyncpg driver."""

    if dsn.startswith("postgresql+asyncpg://"):
        return dsn
    if dsn.startswith("postgresql://"):
        return "postgresql+asyncpg://" + dsn[len("postgresql://") :]
    if dsn.startswith("postgres://"):
        return "postgresql+asyncpg://" + dsn[len("postgres://") :]
    return dsn


def _clear_services(app: FastAPI) -> None:
    app.state.ticket_service = None
    app.state.ticket_gate = None
    app.state.user_repository = None


async def _init_services(app: FastAPI, settings: Settings, logger: logging.Logger) -> AsyncEngine | None:
    engine = create_async_engine(_to_asyncpg_dsn(settings.postgres_dsn), echo=settings.sql_echo)
    try:
        session_factory = async_sessionmaker(engine, expire_on_commit=False)
        ticket_repository = TicketRepository(session_factory, engine=engine)
        await ticket_repository.ensure_schema()

        user_repository = UserRepository(session_factory)
        if settings.seed_sample_users:
            await user_repository.seed_sample_users()

        app.state.ticket_service = TicketService(
            ticket_repository,
            skip_audit_for_agent_self_update=settings.skip_audit_for_agent_self_update,
        )
        app.state.ticket_gate = TicketAuthorizationGate()
        app.state.user_repository = user_repository
        app.state.db_session_factory = session_factory
    except Exception:
        # Ticket routes answer 503 while the services are missing.
        logger.exception("Ticket services could not be initialised")
        _clear_services(app)
        await engine.dispose()
        return None
    return engine


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)

    app.state.logger = logger
    app.state.tracer_provider = tracer_provider
    app.state.db_session_factory = None
    _clear_services(app)

    db_engine = await _init_services(app, settings, logger)
    app.state.db_engine = db_engine
    try:
        yield
    finally:
        if db_engine is not None:
            await db_engine.dispose()
        shutdown_tracer(tracer_provider)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    register_exception_handlers(app)
    app.include_router(ping.router)
    app.include_router(tickets.router)
    return app


app = create_app()
