import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class NdaStatus(enum.Enum):
    requested = "requested"
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    signed = "signed"
    verified = "verified"


ACTIVE_STATUSES = frozenset(
    {NdaStatus.requested, NdaStatus.pending, NdaStatus.approved, NdaStatus.signed}
)

_ACTIVE_STATUS_SQL = "status IN ('requested', 'pending', 'approved', 'signed')"


# ---------------------------------------------------------------------------
# Ideas (read-only; owned by the submission side of the marketplace)
# ---------------------------------------------------------------------------


class Idea(Base):
    __tablename__ = "ideas"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    nda_requests = relationship("NdaRequest", back_populates="idea")


# ---------------------------------------------------------------------------
# NDA requests
# ---------------------------------------------------------------------------


class NdaRequest(Base):
    __tablename__ = "nda_requests"
    __table_args__ = (
        Index(
            "uq_nda_requests_active_pair",
            "idea_id",
            "requester_id",
            unique=True,
            postgresql_where=text(_ACTIVE_STATUS_SQL),
            sqlite_where=text(_ACTIVE_STATUS_SQL),
        ),
        Index("ix_nda_requests_status", "status"),
        CheckConstraint(
            "(status = 'verified') = (access_expires_at IS NOT NULL)",
            name="ck_nda_requests_expiry_iff_verified",
        ),
        CheckConstraint(
            "signed_document_path IS NULL OR status IN ('signed', 'verified')",
            name="ck_nda_requests_document_when_signed",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    idea_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("ideas.id"), nullable=False
    )
    requester_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False
    )
    contact_email: Mapped[str] = mapped_column(String(320), nullable=False)
    status: Mapped[NdaStatus] = mapped_column(
        Enum(NdaStatus, name="nda_status"),
        nullable=False,
        default=NdaStatus.requested,
    )
    signed_document_path: Mapped[str | None] = mapped_column(String(1024))
    signed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    access_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    idea = relationship("Idea", back_populates="nda_requests")
