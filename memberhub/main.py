"""MemberHub API - student association members, events and forum"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .auth.identity import JWTIdentityProvider
from .config import Settings, get_settings
from .errors import MemberHubError, StoreUnavailableError
from .routes import events, members, posts, uploads, websocket
from .services.broadcast import Broadcaster
from .services.database import Database
from .services.event_service import EventService
from .services.forum_service import ForumService
from .services.member_service import MemberService
from .services.storage import FileStore

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def configure_logging(level: str):
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def build_broadcaster(settings: Settings) -> Broadcaster:
    relay = None
    if settings.redis_url:
        from .services.redis_relay import RedisRelay
        relay = RedisRelay(settings.redis_url, settings.redis_channel)
    return Broadcaster(queue_size=settings.broadcast_queue_size, relay=relay)


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        loc = [str(p) for p in error.get("loc", ()) if p not in ("body", "query", "path")]
        field = ".".join(loc)
        parts.append(f"{field}: {error.get('msg')}" if field else error.get("msg", ""))
    return "; ".join(parts) or "Invalid request"


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
        logger.error(f"Store unavailable during {request.method} {request.url.path}: {exc.detail}")
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.exception_handler(MemberHubError)
    async def memberhub_error_handler(request: Request, exc: MemberHubError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"message": _validation_message(exc)})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler"""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"message": "Internal server error"}
        )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application and its shared services"""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    db = Database(Path(settings.database_path))
    files = FileStore(
        Path(settings.uploads_dir),
        base_url=settings.uploads_base_url,
        max_size=settings.max_upload_size,
    )
    broadcaster = build_broadcaster(settings)
    member_service = MemberService(db, files)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events"""
        logger.info(f"Starting {settings.app_name}...")
        db.initialize()
        await broadcaster.start()
        yield
        logger.info(f"Shutting down {settings.app_name}...")
        await broadcaster.close()
        db.close()

    app = FastAPI(
        title=settings.app_name,
        description="Member directory, events and forum with live updates",
        version=VERSION,
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.db = db
    app.state.files = files
    app.state.broadcaster = broadcaster
    app.state.identity_provider = JWTIdentityProvider(
        secret=settings.identity_secret,
        algorithm=settings.identity_algorithm,
        audience=settings.identity_audience,
        admin_uids=settings.admin_uids,
        expire_minutes=settings.access_token_expire_minutes,
    )
    app.state.member_service = member_service
    app.state.event_service = EventService(db, broadcaster)
    app.state.forum_service = ForumService(db, broadcaster, member_service)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(members.router, prefix="/members", tags=["members"])
    app.include_router(events.router, prefix="/events", tags=["events"])
    app.include_router(posts.router, prefix="/posts", tags=["posts"])
    app.include_router(uploads.router, prefix="/uploads", tags=["uploads"])
    app.include_router(websocket.router, tags=["realtime"])

    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "healthy", "service": "memberhub", "version": VERSION}

    @app.get("/health/store", tags=["health"])
    async def store_health():
        healthy = db.ping()
        return {"status": "healthy" if healthy else "unhealthy", "service": "store"}

    @app.get("/health/broadcast", tags=["health"])
    async def broadcast_health():
        relay = broadcaster.relay
        healthy = relay is None or relay.listening
        return {
            "status": "healthy" if healthy else "degraded",
            "subscribers": broadcaster.subscriber_count,
            "relay": None if relay is None else relay.listening,
        }

    return app


app = create_app()
