"""Member models"""

from pydantic import ConfigDict, Field, field_validator
from typing import Optional, List

from .common import CamelModel, Page


class Project(CamelModel):
    id: Optional[str] = None
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    link: Optional[str] = None


class SocialLinks(CamelModel):
    github: Optional[str] = None
    linkedin: Optional[str] = None
    twitter: Optional[str] = None


class MemberCreate(CamelModel):
    uid: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = None
    role: str = Field("Member", min_length=1, max_length=50)


class MemberUpdate(CamelModel):
    """Profile fields a member (or an administrator) may overwrite.

    Anything outside this allow-list is rejected rather than merged.
    """

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = None
    role: Optional[str] = Field(None, min_length=1, max_length=50)
    avatar: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=2000)
    skills: Optional[List[str]] = None
    projects: Optional[List[Project]] = None
    social_links: Optional[SocialLinks] = None

    @field_validator("skills")
    @classmethod
    def dedupe_skills(cls, skills):
        if skills is None:
            return skills
        seen = []
        for skill in skills:
            skill = skill.strip()
            if skill and skill not in seen:
                seen.append(skill)
        return seen


class Member(CamelModel):
    id: str
    uid: str
    name: str
    email: Optional[str] = None
    role: str
    avatar: Optional[str] = None
    bio: Optional[str] = None
    skills: List[str] = []
    projects: List[Project] = []
    social_links: SocialLinks = SocialLinks()
    created_at: str
    updated_at: str


class MemberPage(Page):
    members: List[Member]
