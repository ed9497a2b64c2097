"""Create identity tables: accounts, external_identities, role profiles.

Revision ID: 001_identity_tables
Revises:
Create Date: 2026-10-19

- accounts: canonical identity record (unique lower-cased email)
- external_identities: federated provider links, unique per
  (provider, provider_external_id) and per (account_id, provider)
- job_seeker_profiles / employer_profiles / admin_profiles: ownership rows
  for role profiles managed by the job board services
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_identity_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_PROFILE_TABLES = ("job_seeker_profiles", "employer_profiles", "admin_profiles")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    # =========================================================================
    # accounts
    # =========================================================================
    op.create_table(
        "accounts",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("first_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("last_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column(
            "role", sa.String(20), nullable=False, server_default="JOB_SEEKER"
        ),
        sa.Column(
            "is_verified", sa.Boolean(), nullable=False, server_default="false"
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("verification_code", sa.String(16), nullable=True),
        sa.Column(
            "verification_code_expiry", sa.DateTime(timezone=True), nullable=True
        ),
        sa.Column("reset_code", sa.String(16), nullable=True),
        sa.Column("reset_code_expiry", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "sessions_invalidated_before", sa.DateTime(timezone=True), nullable=True
        ),
        *_timestamps(),
        sa.UniqueConstraint("email", name="uq_accounts_email"),
        sa.CheckConstraint(
            "role IN ('JOB_SEEKER', 'EMPLOYER', 'ADMIN')",
            name="ck_accounts_role",
        ),
    )
    op.create_index(
        "ix_accounts_verification_code", "accounts", ["verification_code"]
    )
    op.create_index("ix_accounts_reset_code", "accounts", ["reset_code"])

    # =========================================================================
    # external_identities
    # =========================================================================
    op.create_table(
        "external_identities",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column(
            "account_id",
            UUID(as_uuid=True),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("provider", sa.String(50), nullable=False),
        sa.Column("provider_external_id", sa.String(255), nullable=False),
        sa.Column("email_claim", sa.String(255), nullable=True),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("avatar_uri", sa.Text(), nullable=True),
        sa.Column(
            "linked_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint(
            "provider",
            "provider_external_id",
            name="uq_external_identities_provider_external_id",
        ),
        sa.UniqueConstraint(
            "account_id",
            "provider",
            name="uq_external_identities_account_provider",
        ),
        sa.CheckConstraint(
            "provider IN ('google', 'linkedin', 'facebook')",
            name="ck_external_identities_provider",
        ),
    )
    op.create_index(
        "ix_external_identities_account_id", "external_identities", ["account_id"]
    )

    # =========================================================================
    # Role profiles (ownership columns only)
    # =========================================================================
    for table in _PROFILE_TABLES:
        op.create_table(
            table,
            sa.Column(
                "id",
                UUID(as_uuid=True),
                primary_key=True,
                server_default=sa.text("gen_random_uuid()"),
            ),
            sa.Column(
                "account_id",
                UUID(as_uuid=True),
                sa.ForeignKey("accounts.id", ondelete="CASCADE"),
                nullable=False,
                unique=True,
            ),
            *_timestamps(),
        )


def downgrade() -> None:
    for table in reversed(_PROFILE_TABLES):
        op.drop_table(table)
    op.drop_index("ix_external_identities_account_id")
    op.drop_table("external_identities")
    op.drop_index("ix_accounts_reset_code")
    op.drop_index("ix_accounts_verification_code")
    op.drop_table("accounts")
