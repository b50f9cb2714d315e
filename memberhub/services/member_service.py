"""Member directory and profile operations"""

import logging
import time
from typing import Dict, Iterable, Optional

from ..auth.identity import Identity
from ..errors import DuplicateError, Forbidden, NotFoundError, ValidationError
from ..models.member import MemberCreate, MemberUpdate
from .database import Database, Q
from .storage import FileStore

logger = logging.getLogger(__name__)

AVATAR_FOLDER = "avatars"


def _contains(needle: str):
    return lambda value: isinstance(value, str) and needle in value.lower()


def _any_contains(needle: str):
    return lambda values: isinstance(values, list) and any(
        isinstance(v, str) and needle in v.lower() for v in values
    )


def _assign_project_ids(projects: list) -> list:
    """Give projects without an id a millisecond timestamp id"""
    taken = {p["id"] for p in projects if p.get("id")}
    next_id = int(time.time() * 1000)
    for project in projects:
        if project.get("id"):
            continue
        while str(next_id) in taken:
            next_id += 1
        project["id"] = str(next_id)
        taken.add(project["id"])
    return projects


class MemberService:
    """Reads and writes member documents, keyed by identity-provider uid"""

    def __init__(self, db: Database, files: FileStore):
        self.db = db
        self.files = files

    def find_member(self, uid: str) -> Optional[dict]:
        return self.db.find_one("members", Q.uid == uid)

    def get_member(self, uid: str) -> dict:
        member = self.find_member(uid)
        if not member:
            raise NotFoundError("Member not found")
        return member

    def list_members(self, page: int, limit: int, search: str = "") -> dict:
        cond = None
        search = (search or "").strip().lower()
        if search:
            cond = (
                Q.name.test(_contains(search))
                | Q.role.test(_contains(search))
                | Q.skills.test(_any_contains(search))
            )

        members, total, total_pages = self.db.page(
            "members", page, limit, cond=cond,
            sort_key=lambda m: (m.get("name") or "").lower(),
        )
        return {
            "members": members,
            "total": total,
            "totalPages": total_pages,
            "page": page,
            "limit": limit,
        }

    def _new_document(self, uid: str, name: str, email: Optional[str], role: str, avatar: Optional[str]) -> dict:
        now = self.db.timestamp()
        return {
            "id": self.db.generate_id(),
            "uid": uid,
            "name": name,
            "email": email,
            "role": role,
            "avatar": avatar,
            "bio": "",
            "skills": [],
            "projects": [],
            "socialLinks": {"github": None, "linkedin": None, "twitter": None},
            "createdAt": now,
            "updatedAt": now,
        }

    def ensure_member(self, identity: Identity) -> dict:
        """Member for the caller, created on first login from token claims"""
        member = self.find_member(identity.subject)
        if member:
            return member

        claims = identity.claims
        member = self._new_document(
            uid=identity.subject,
            name=claims.get("name") or claims.get("email") or identity.subject,
            email=claims.get("email"),
            role="Member",
            avatar=claims.get("picture"),
        )
        self.db.insert("members", member)
        logger.info(f"Member created on first login: {identity.subject}")
        return member

    def create_member(self, data: MemberCreate, avatar_upload: Optional[tuple] = None) -> dict:
        """Administrative add; avatar_upload is (filename, content)"""
        uid = data.uid or self.db.generate_id()
        if self.find_member(uid):
            raise DuplicateError("Member already exists")

        avatar = None
        if avatar_upload is not None:
            avatar = self.files.save(AVATAR_FOLDER, *avatar_upload)

        member = self._new_document(uid, data.name, data.email, data.role, avatar)
        self.db.insert("members", member)
        logger.info(f"Member added by administrator: {uid}")
        return member

    def update_member(self, uid: str, data: MemberUpdate, identity: Identity) -> dict:
        if not identity.can_act_for(uid):
            raise Forbidden("You can only edit your own profile")

        member = self.get_member(uid)
        updates = data.model_dump(by_alias=True, exclude_unset=True)

        for required in ("name", "role"):
            if required in updates and updates[required] is None:
                raise ValidationError(f"{required} cannot be empty")

        if "role" in updates and updates["role"] != member.get("role") and not identity.is_admin:
            raise Forbidden("Only administrators can change roles")

        if updates.get("projects") is not None:
            updates["projects"] = _assign_project_ids([
                {
                    "id": p.get("id"),
                    "title": p["title"],
                    "description": p.get("description"),
                    "link": p.get("link"),
                }
                for p in updates["projects"]
            ])

        if updates.get("socialLinks") is not None:
            updates["socialLinks"] = {"github": None, "linkedin": None, "twitter": None, **updates["socialLinks"]}

        if not updates:
            return member

        updates["updatedAt"] = self.db.timestamp()
        updated = self.db.update("members", member["id"], updates)
        if updated is None:
            raise NotFoundError("Member not found")

        logger.info(f"Member {uid} updated fields: {sorted(k for k in updates if k != 'updatedAt')}")
        return updated

    def set_avatar(self, uid: str, filename: str, content: bytes, identity: Identity) -> dict:
        if not identity.can_act_for(uid):
            raise Forbidden("You can only edit your own profile")

        member = self.get_member(uid)
        uri = self.files.save(AVATAR_FOLDER, filename, content)
        updated = self.db.update("members", member["id"], {"avatar": uri, "updatedAt": self.db.timestamp()})
        if updated is None:
            raise NotFoundError("Member not found")
        return updated

    # =========================================================================
    # Author resolution
    # =========================================================================

    def resolve_authors(self, uids: Iterable[str]) -> Dict[str, dict]:
        """Map each uid to {id, name, avatar}; unknown members keep only the id"""
        wanted = set(uids)
        found = {}
        if wanted:
            for member in self.db.find("members", Q.uid.one_of(list(wanted))):
                found[member["uid"]] = member

        resolved = {}
        for uid in wanted:
            member = found.get(uid)
            resolved[uid] = {
                "id": uid,
                "name": member.get("name") if member else None,
                "avatar": member.get("avatar") if member else None,
            }
        return resolved

    def resolve_author(self, uid: str) -> dict:
        return self.resolve_authors([uid])[uid]
