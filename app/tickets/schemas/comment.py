from pydantic import Field, field_validator

from app.core.datetime_utils import UTCDatetime
from app.core.schemas import CamelModel


class CommentCreate(CamelModel):
    content: str = Field(..., max_length=10000)
    is_internal: bool = False

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Comment content is required")
        return stripped


class CommentResponse(CamelModel):
    id: str
    ticket_id: str
    user_id: str
    user_name: str | None = None
    user_role: str | None = None
    content: str
    is_internal: bool
    created_at: UTCDatetime


class CommentListResponse(CamelModel):
    comments: list[CommentResponse]
    count: int


class CommentMutationResponse(CamelModel):
    success: bool = True
    message: str
    comment: CommentResponse
