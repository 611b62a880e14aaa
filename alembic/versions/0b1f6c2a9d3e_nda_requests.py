"""nda requests and ideas

Revision ID: 0b1f6c2a9d3e
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from alembic import op
import sqlalchemy as sa

revision = "0b1f6c2a9d3e"
down_revision = None
branch_labels = None
depends_on = None

ACTIVE_STATUS_SQL = "status IN ('requested', 'pending', 'approved', 'signed')"


def upgrade() -> None:
    # --- Enums ---
    nda_status = sa.Enum(
        "requested",
        "pending",
        "approved",
        "rejected",
        "signed",
        "verified",
        name="nda_status",
    )

    # --- Ideas (read-only here; written by the submission flow) ---
    op.create_table(
        "ideas",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    # --- NDA requests ---
    op.create_table(
        "nda_requests",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("idea_id", sa.UUID(), nullable=False),
        sa.Column("requester_id", sa.UUID(), nullable=False),
        sa.Column("contact_email", sa.String(length=320), nullable=False),
        sa.Column("status", nda_status, nullable=False),
        sa.Column("signed_document_path", sa.String(length=1024), nullable=True),
        sa.Column("signed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("access_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["idea_id"], ["ideas.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "(status = 'verified') = (access_expires_at IS NOT NULL)",
            name="ck_nda_requests_expiry_iff_verified",
        ),
        sa.CheckConstraint(
            "signed_document_path IS NULL OR status IN ('signed', 'verified')",
            name="ck_nda_requests_document_when_signed",
        ),
    )
    op.create_index("ix_nda_requests_status", "nda_requests", ["status"])
    op.create_index(
        "uq_nda_requests_active_pair",
        "nda_requests",
        ["idea_id", "requester_id"],
        unique=True,
        postgresql_where=sa.text(ACTIVE_STATUS_SQL),
        sqlite_where=sa.text(ACTIVE_STATUS_SQL),
    )


def downgrade() -> None:
    op.drop_index("uq_nda_requests_active_pair", table_name="nda_requests")
    op.drop_index("ix_nda_requests_status", table_name="nda_requests")
    op.drop_table("nda_requests")
    op.drop_table("ideas")

    sa.Enum(name="nda_status").drop(op.get_bind(), checkfirst=True)
