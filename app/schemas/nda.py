from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.models.nda import NdaStatus
from app.services.common import as_utc


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ---------------------------------------------------------------------------
# NDA request
# ---------------------------------------------------------------------------


class NdaRequestCreate(CamelModel):
    idea_id: UUID
    requester_id: UUID
    email: str = Field(
        min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
    )


class NdaRequestRead(CamelModel):
    id: UUID
    idea_id: UUID
    requester_id: UUID
    contact_email: str
    status: NdaStatus
    status_label: str | None = None
    signed_at: datetime | None = None
    access_expires_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    # Actions the calling actor may take next.
    allowed_actions: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @field_validator(
        "signed_at", "access_expires_at", "created_at", "updated_at", mode="before"
    )
    @classmethod
    def _utc(cls, value):
        if isinstance(value, datetime):
            return as_utc(value)
        return value


class NdaDecision(CamelModel):
    request_id: str = Field(min_length=1)
    action: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Access
# ---------------------------------------------------------------------------


class AccessCheckRead(CamelModel):
    idea_id: UUID
    redirect_to: str
    expires_at: datetime


class SessionRead(CamelModel):
    has_token: bool
    request_id: str | None = None
    status: NdaStatus | None = None
    unlocked_idea_ids: list[str] = Field(default_factory=list)
    expires_at: datetime | None = None
    reason: str
    message: str | None = None
