from __future__ import annotations
from typing import Annotated, Optional

from pydantic import BaseModel, BeforeValidator, Field

from models import PaymentStatus


class PaymentUpdate(BaseModel):
    payment_status: Annotated[PaymentStatus, BeforeValidator(lambda v: v.strip().upper() if isinstance(v, str) else v)]


class ForcedDelete(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)
