"""Service-provider registration schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

Changes:
  - Create identities (email/password sign-in, signup metadata)
  - Create districts / communities reference tables
  - Create profiles (one per identity, approval status)
  - Create service_provider_applications (one per applicant)
  - Create enhanced_user_roles with a unique (user, role, district) grant
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── identities ────────────────────────────────────────────────────────────
    op.create_table(
        "identities",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("user_metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_identities_email", "identities", ["email"], unique=True)

    # ── districts / communities ───────────────────────────────────────────────
    op.create_table(
        "districts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
    )
    op.create_table(
        "communities",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("district_id", sa.Integer(), sa.ForeignKey("districts.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
    )

    # ── profiles ──────────────────────────────────────────────────────────────
    op.create_table(
        "profiles",
        sa.Column("id", sa.String(36), sa.ForeignKey("identities.id"), primary_key=True),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("mobile_no", sa.String(30), nullable=True),
        sa.Column("district_id", sa.Integer(), sa.ForeignKey("districts.id"), nullable=True),
        sa.Column("community_id", sa.Integer(), sa.ForeignKey("communities.id"), nullable=True),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("language", sa.String(5), nullable=False, server_default="en"),
        sa.Column("pdpa_declare", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("account_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_profiles_mobile_no", "profiles", ["mobile_no"])

    # ── service_provider_applications ─────────────────────────────────────────
    op.create_table(
        "service_provider_applications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("applicant_id", sa.String(36), nullable=False),
        sa.Column("district_id", sa.Integer(), sa.ForeignKey("districts.id"), nullable=True),
        sa.Column("community_id", sa.Integer(), sa.ForeignKey("communities.id"), nullable=True),
        sa.Column("business_name", sa.String(255), nullable=False),
        sa.Column("business_type", sa.String(50), nullable=False),
        sa.Column("business_description", sa.String(1000), nullable=True),
        sa.Column("contact_person", sa.String(255), nullable=True),
        sa.Column("contact_phone", sa.String(30), nullable=True),
        sa.Column("contact_email", sa.String(255), nullable=True),
        sa.Column("business_address", sa.String(500), nullable=True),
        sa.Column("experience_years", sa.Integer(), nullable=True),
        sa.Column("documents", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("registration_attempt", sa.String(36), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index(
        "ix_service_provider_applications_applicant_id",
        "service_provider_applications",
        ["applicant_id"],
        unique=True,
    )

    # ── enhanced_user_roles ───────────────────────────────────────────────────
    op.create_table(
        "enhanced_user_roles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("role", sa.String(30), nullable=False),
        sa.Column("district_id", sa.Integer(), sa.ForeignKey("districts.id"), nullable=True),
        sa.Column("assigned_by", sa.String(36), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("assigned_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            "user_id", "role", "district_id",
            name="uq_user_role_district",
            postgresql_nulls_not_distinct=True,
        ),
    )
    op.create_index("ix_enhanced_user_roles_user_id", "enhanced_user_roles", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_enhanced_user_roles_user_id", table_name="enhanced_user_roles")
    op.drop_table("enhanced_user_roles")
    op.drop_index(
        "ix_service_provider_applications_applicant_id",
        table_name="service_provider_applications",
    )
    op.drop_table("service_provider_applications")
    op.drop_index("ix_profiles_mobile_no", table_name="profiles")
    op.drop_table("profiles")
    op.drop_table("communities")
    op.drop_table("districts")
    op.drop_index("ix_identities_email", table_name="identities")
    op.drop_table("identities")
