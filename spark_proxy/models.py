from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


# --- Chat Models ---


class ChatRequest(BaseModel):
    """Only ``messages`` is checked; any other field is forwarded untouched."""

    messages: list[Any]

    model_config = {"extra": "allow"}


# --- Port Registry ---


class PortRegistry(BaseModel):
    port: int = Field(..., ge=0, le=65535)
    updated_at: datetime = Field(..., alias="updatedAt")

    model_config = {"populate_by_name": True}
