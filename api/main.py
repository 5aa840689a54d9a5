"""
FastAPI Application — control surface for the dispatch engine.

Provides:
- POST /scheduler          start / stop automatic sending
- GET  /scheduler          running state
- GET  /messages/sent      delivery history, newest first
- POST /messages/dispatch  run one dispatch cycle now
- GET  /health             wiring overview

The scheduler sends up to 2 pending messages every 2 minutes and is
started automatically with the app unless disabled in settings.
"""
from __future__ import annotations

import json
import structlog
from contextlib import asynccontextmanager
from typing import Optional

# Load .env before any config is read
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from cache.sent_cache import BaseSentMessageCache, create_sent_cache
from config.settings import Settings, get_settings
from core.dispatcher import DispatchService
from core.scheduler import DispatchScheduler
from database.session import close_db, init_db
from database.store_base import BaseMessageStore
from database.store_factory import create_store
from database.store_memory import InMemoryMessageStore, seed_dummy_messages
from delivery.base import DeliveryClient
from delivery.webhook import create_delivery_client
from models.schemas import (
    HealthResponse, SchedulerAction, SchedulerResponse, SchedulerState,
)
from utils.log_config import configure_logging

logger = structlog.get_logger()

DEFAULT_PAGE_SIZE = 50


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _int_param(raw: Optional[str]) -> int:
    """Lenient query int: anything unparsable counts as 0."""
    try:
        return int(raw) if raw is not None else 0
    except ValueError:
        return 0


# ──────────────────────────────────────────────────────────────
#  App factory
# ──────────────────────────────────────────────────────────────

def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[BaseMessageStore] = None,
    delivery: Optional[DeliveryClient] = None,
    cache: Optional[BaseSentMessageCache] = None,
) -> FastAPI:
    """
    Wire store, cache, delivery client, service and scheduler.

    Components passed in explicitly win over the ones built from settings.
    """
    settings = settings or get_settings()

    if store is None:
        store = create_store({
            "store_backend": settings.database.store_backend,
            "url": settings.database.url,
        })
    if delivery is None:
        delivery = create_delivery_client(settings.delivery)
    if cache is None:
        cache = create_sent_cache({
            "redis_url": settings.cache.redis_url,
            "ttl_seconds": settings.cache.ttl_seconds,
        })

    service = DispatchService(store, delivery=delivery, cache=cache)
    scheduler = DispatchScheduler(
        service,
        interval_seconds=settings.scheduler.interval_seconds,
        batch_size=settings.scheduler.batch_size,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.database.store_backend == "sql":
            await init_db()
        elif isinstance(store, InMemoryMessageStore) and settings.database.seed_dummy_messages:
            await seed_dummy_messages(store)

        if service.cache is not None:
            try:
                await service.cache.connect()
            except Exception as e:
                logger.warning("sent_cache_unavailable", error=str(e))
                service.cache = None

        if settings.scheduler.autostart:
            scheduler.start()

        logger.info("auto_sender_started",
                    store=type(store).__name__,
                    cache_enabled=service.cache is not None,
                    dry_run=service.dry_run)
        yield

        await scheduler.shutdown()
        if service.delivery is not None:
            await service.delivery.close()
        if service.cache is not None:
            await service.cache.close()
        if settings.database.store_backend == "sql":
            await close_db()
        logger.info("auto_sender_stopped")

    app = FastAPI(
        title="Auto Sender API",
        description="Automatic message sending system. Sends up to 2 pending messages every 2 minutes.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.service = service
    app.state.scheduler = scheduler

    _register_routes(app)
    return app


# ══════════════════════════════════════════════════════════════
#  ROUTES
# ══════════════════════════════════════════════════════════════

def _register_routes(app: FastAPI) -> None:

    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request) -> HealthResponse:
        state = request.app.state
        return HealthResponse(
            app=state.settings.app_name,
            store_backend=state.settings.database.store_backend,
            cache_enabled=state.service.cache is not None,
            dry_run=state.service.dry_run,
            scheduler_running=state.scheduler.is_running(),
        )

    @app.post("/scheduler", response_model=SchedulerResponse)
    async def control_scheduler(request: Request):
        """Start or stop automatic message sending: {"action": "start" | "stop"}."""
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return _error(400, "invalid JSON")

        raw_action = body.get("action") if isinstance(body, dict) else None
        action = str(raw_action or "").strip().lower()

        scheduler: DispatchScheduler = request.app.state.scheduler
        if action == SchedulerAction.START.value:
            scheduler.start()
            return SchedulerResponse(status="started")
        if action == SchedulerAction.STOP.value:
            scheduler.stop()
            return SchedulerResponse(status="stopped")
        return _error(400, "action must be 'start' or 'stop'")

    @app.get("/scheduler", response_model=SchedulerState)
    async def scheduler_state(request: Request) -> SchedulerState:
        return SchedulerState(running=request.app.state.scheduler.is_running())

    @app.get("/messages/sent")
    async def list_sent_messages(
        request: Request,
        limit: Optional[str] = None,
        offset: Optional[str] = None,
    ):
        """Messages with status=sent, newest sent_at first."""
        page_size = _int_param(limit)
        if page_size <= 0:
            page_size = DEFAULT_PAGE_SIZE
        skip = max(_int_param(offset), 0)

        service: DispatchService = request.app.state.service
        try:
            messages = await service.list_sent_messages(page_size, skip)
        except Exception as e:
            logger.error("list_sent_messages_failed", error=str(e))
            return _error(500, str(e))

        return [m.model_dump(mode="json", by_alias=True, exclude_none=True) for m in messages]

    @app.post("/messages/dispatch")
    async def dispatch_now(request: Request, limit: Optional[str] = None):
        """Run one dispatch cycle immediately, outside the schedule."""
        batch = _int_param(limit)
        scheduler: DispatchScheduler = request.app.state.scheduler
        try:
            report = await scheduler.dispatch(batch if batch > 0 else None)
        except Exception as e:
            logger.error("manual_dispatch_failed", error=str(e))
            return _error(500, str(e))
        return report.model_dump()


# ══════════════════════════════════════════════════════════════
#  Entry Point
# ══════════════════════════════════════════════════════════════

def main() -> None:
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
