from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class ParentCreate(BaseModel):
    name: str = Field(..., min_length=1)
    device_tokens: List[str] = Field(default_factory=list)


class PolicyUpdate(BaseModel):
    """Partial settings update; omitted fields keep their stored value."""

    violence_threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    inappropriate_threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    adult_content_threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    notifications_enabled: Optional[bool] = None
