"""Shared schema building blocks.

Responses are serialized with camelCase keys; requests accept either
camelCase or snake_case field names.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class PaginationMeta(CamelModel):
    """Offset pagination metadata for list responses."""

    total: int = Field(..., ge=0, description="Total number of matching items")
    limit: int = Field(..., ge=1, description="Items per page")
    offset: int = Field(..., ge=0, description="Items skipped")
    has_more: bool = Field(..., description="Whether another page exists")

    @classmethod
    def from_query(cls, total: int, limit: int, offset: int) -> "PaginationMeta":
        return cls(total=total, limit=limit, offset=offset, has_more=offset + limit < total)


class MessageResponse(CamelModel):
    success: bool = True
    message: str


class GroupCount(CamelModel):
    """One bucket of a grouped COUNT(*) query."""

    key: str | None
    count: int
