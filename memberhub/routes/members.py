"""Member routes"""

from typing import Optional

import pydantic
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from ..auth.identity import Identity, get_identity, require_admin
from ..config import Settings
from ..dependencies import get_app_settings, get_member_service, page_limit
from ..errors import ValidationError
from ..models.member import Member, MemberCreate, MemberPage, MemberUpdate
from ..services.member_service import MemberService

router = APIRouter()


@router.get("", response_model=MemberPage)
async def list_members(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    search: str = "",
    identity: Identity = Depends(get_identity),
    service: MemberService = Depends(get_member_service),
    settings: Settings = Depends(get_app_settings),
):
    """List members, optionally filtered by name, role or skill"""
    return service.list_members(page, page_limit(limit, settings.members_page_size, settings), search)


@router.get("/me", response_model=Member)
async def get_own_profile(
    identity: Identity = Depends(get_identity),
    service: MemberService = Depends(get_member_service),
):
    """Caller's profile, created on first login"""
    return service.ensure_member(identity)


@router.post("", status_code=201, response_model=Member)
async def add_member(
    name: str = Form(...),
    role: str = Form("Member"),
    email: Optional[str] = Form(None),
    uid: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None),
    identity: Identity = Depends(require_admin),
    service: MemberService = Depends(get_member_service),
):
    """Add a member (administrators only)"""
    try:
        data = MemberCreate(name=name, role=role, email=email, uid=uid)
    except pydantic.ValidationError as e:
        raise ValidationError(_first_error(e))

    avatar_upload = None
    if avatar is not None and avatar.filename:
        avatar_upload = (avatar.filename, await avatar.read())

    return service.create_member(data, avatar_upload)


@router.get("/{uid}", response_model=Member)
async def get_member(
    uid: str,
    identity: Identity = Depends(get_identity),
    service: MemberService = Depends(get_member_service),
):
    return service.get_member(uid)


@router.put("/{uid}", response_model=Member)
async def update_member(
    uid: str,
    data: MemberUpdate,
    identity: Identity = Depends(get_identity),
    service: MemberService = Depends(get_member_service),
):
    """Update a profile (owner or administrator)"""
    return service.update_member(uid, data, identity)


@router.post("/{uid}/avatar", response_model=Member)
async def upload_avatar(
    uid: str,
    file: UploadFile = File(...),
    identity: Identity = Depends(get_identity),
    service: MemberService = Depends(get_member_service),
):
    """Replace a member's profile picture"""
    content = await file.read()
    return service.set_avatar(uid, file.filename or "", content, identity)


def _first_error(exc: pydantic.ValidationError) -> str:
    error = exc.errors()[0]
    field = ".".join(str(part) for part in error.get("loc", ()))
    return f"{field}: {error.get('msg')}" if field else error.get("msg", "Invalid request")
