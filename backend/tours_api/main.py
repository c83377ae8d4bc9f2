import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from pymongo.errors import PyMongoError

from . import __version__
from .config import Settings, get_settings
from .logging_setup import configure_logging
from .routers import tours as tours_router
from .schemas import TOUR_FIELD_TYPES
from .services.memory import MemoryTourStore
from .services.mongo import ClientManager, MongoTourStore
from .services.tours import TourService, TourStore

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> TourStore:
    if settings.backend == "memory":
        return MemoryTourStore(field_types=TOUR_FIELD_TYPES)
    clients = ClientManager(settings.database_uri, settings.server_selection_timeout_ms)
    return MongoTourStore(clients, settings.database_name, settings.tours_collection, TOUR_FIELD_TYPES)


def create_app(settings: Optional[Settings] = None, store: Optional[TourStore] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    store = store or build_store(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("starting with %s backend, collection %r", settings.backend, settings.tours_collection)
        try:
            store.startup()
        except PyMongoError as e:
            # keep serving; requests will report the connection failure
            logger.error("DB connection failed: %s", e)
        yield
        store.shutdown()

    app = FastAPI(title="Tours API", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.tour_service = TourService(store, settings.default_limit, settings.max_limit)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_time(request: Request, call_next):
        request.state.request_time = datetime.now(timezone.utc).isoformat()
        t0 = time.perf_counter()
        response = await call_next(request)
        if settings.development:
            elapsed_ms = (time.perf_counter() - t0) * 1000
            logger.info("%s %s %d %.1f ms", request.method, request.url.path, response.status_code, elapsed_ms)
        return response

    app.include_router(tours_router.router, prefix="/api")

    @app.get("/api/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()


def serve() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run("tours_api.main:app", host=settings.host, port=settings.port)
