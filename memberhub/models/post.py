"""Forum models"""

from pydantic import Field
from typing import List

from .common import CamelModel, Page, ResolvedAuthor


class PostCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1, max_length=10000)


class CommentCreate(CamelModel):
    content: str = Field(..., min_length=1, max_length=2000)


class Comment(CamelModel):
    """Stored comment, author kept as the raw member uid"""

    author: str
    content: str
    created_at: str


class ResolvedComment(CamelModel):
    author: ResolvedAuthor
    content: str
    created_at: str


class Post(CamelModel):
    id: str
    title: str
    content: str
    author: ResolvedAuthor
    created_at: str
    likes: int = 0
    comments: List[ResolvedComment] = []


class PostPage(Page):
    posts: List[Post]
