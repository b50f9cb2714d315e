"""Shared schema configuration"""

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Request/response schema exchanged as camelCase JSON"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self, **kwargs) -> dict:
        return self.model_dump(by_alias=True, **kwargs)


class Page(CamelModel):
    total: int
    total_pages: int
    page: int
    limit: int


class ResolvedAuthor(CamelModel):
    """Member reference as shown next to posts and comments"""
    id: str
    name: Optional[str] = None
    avatar: Optional[str] = None
