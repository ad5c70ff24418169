from __future__ import annotations
from typing import Annotated, Optional

from pydantic import BaseModel, BeforeValidator, Field

from models import RequestStatus


class GroupRequestIn(BaseModel):
    subject_id: int


class RequestStatusUpdate(BaseModel):
    status: Annotated[RequestStatus, BeforeValidator(lambda v: v.strip().upper() if isinstance(v, str) else v)]
    admin_comments: Optional[str] = Field(None, max_length=500)
