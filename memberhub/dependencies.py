"""FastAPI dependency providers.

Shared services are built once in ``create_app`` and kept on ``app.state``;
routes receive them through these providers instead of module globals.
"""

from fastapi import Request

from .config import Settings
from .services.broadcast import Broadcaster
from .services.event_service import EventService
from .services.forum_service import ForumService
from .services.member_service import MemberService
from .services.storage import FileStore


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_broadcaster(request: Request) -> Broadcaster:
    return request.app.state.broadcaster


def get_file_store(request: Request) -> FileStore:
    return request.app.state.files


def get_member_service(request: Request) -> MemberService:
    return request.app.state.member_service


def get_event_service(request: Request) -> EventService:
    return request.app.state.event_service


def get_forum_service(request: Request) -> ForumService:
    return request.app.state.forum_service


def page_limit(requested, default: int, settings: Settings) -> int:
    """Requested page size, or the collection default, capped by settings"""
    limit = requested or default
    return min(limit, settings.max_page_size)
