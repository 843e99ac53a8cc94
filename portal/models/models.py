"""
ORM models for the community portal's service-provider onboarding.

Domain overview
---------------
Identity  — sign-in credentials + signup metadata (one per email)
  └─ Profile  — community profile row keyed by the identity id
  └─ ServiceProviderApplication — business facts awaiting admin approval
  └─ EnhancedUserRole — role grant scoped to a district
District
  └─ Community
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal.models.base import Base

# ─────────────────────────── Constants ────────────────────────────────────────

class UserRole:
    RESIDENT         = "resident"
    SERVICE_PROVIDER = "service_provider"
    FACILITY_MANAGER = "facility_manager"
    SECURITY         = "security"
    COMMUNITY_ADMIN  = "community_admin"

    LABELS = {
        RESIDENT:         "Resident",
        SERVICE_PROVIDER: "Service Provider",
        FACILITY_MANAGER: "Facility Manager",
        SECURITY:         "Security Officer",
        COMMUNITY_ADMIN:  "Community Admin",
    }


class AccountStatus:
    PENDING   = "pending"     # Awaiting community admin approval
    APPROVED  = "approved"
    REJECTED  = "rejected"
    SUSPENDED = "suspended"


class ApplicationStatus:
    PENDING      = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED     = "approved"
    REJECTED     = "rejected"


class Language:
    EN = "en"
    MS = "ms"


# ─────────────────────────── Models ───────────────────────────────────────────

class Identity(Base):
    """Sign-in identity. `user_metadata` carries the raw signup payload."""
    __tablename__ = "identities"

    id:            Mapped[str]      = mapped_column(String(36), primary_key=True)
    email:         Mapped[str]      = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str]      = mapped_column(String(255))
    user_metadata: Mapped[dict]     = mapped_column(JSON, default=dict)
    created_at:    Mapped[datetime] = mapped_column(DateTime, default=func.now())

    profile: Mapped[Optional["Profile"]] = relationship(back_populates="identity")


class District(Base):
    __tablename__ = "districts"

    id:   Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255))

    communities: Mapped[List["Community"]] = relationship(
        back_populates="district", cascade="all, delete-orphan"
    )


class Community(Base):
    __tablename__ = "communities"

    id:          Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    district_id: Mapped[int] = mapped_column(ForeignKey("districts.id"))
    name:        Mapped[str] = mapped_column(String(255))

    district: Mapped["District"] = relationship(back_populates="communities")


class Profile(Base):
    """Community profile. Created by signup as a bare row, completed by registration."""
    __tablename__ = "profiles"
    # Fetch SQL-side timestamps during flush (no lazy refresh under asyncio)
    __mapper_args__ = {"eager_defaults": True}

    id:             Mapped[str]            = mapped_column(ForeignKey("identities.id"), primary_key=True)
    full_name:      Mapped[Optional[str]]  = mapped_column(String(255), nullable=True)
    email:          Mapped[Optional[str]]  = mapped_column(String(255), nullable=True)
    mobile_no:      Mapped[Optional[str]]  = mapped_column(String(30), nullable=True, index=True)
    district_id:    Mapped[Optional[int]]  = mapped_column(ForeignKey("districts.id"), nullable=True)
    community_id:   Mapped[Optional[int]]  = mapped_column(ForeignKey("communities.id"), nullable=True)
    address:        Mapped[Optional[str]]  = mapped_column(String(500), nullable=True)
    language:       Mapped[str]            = mapped_column(String(5), default=Language.EN)
    pdpa_declare:   Mapped[bool]           = mapped_column(Boolean, default=False)
    account_status: Mapped[str]            = mapped_column(String(20), default=AccountStatus.PENDING)
    is_active:      Mapped[bool]           = mapped_column(Boolean, default=True)
    created_at:     Mapped[datetime]       = mapped_column(DateTime, default=func.now())
    updated_at:     Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, onupdate=func.now())

    identity: Mapped["Identity"] = relationship(back_populates="profile")

    @property
    def is_approved(self) -> bool:
        return self.is_active and self.account_status == AccountStatus.APPROVED


class ServiceProviderApplication(Base):
    """Business application reviewed by the community admin. One per applicant."""
    __tablename__ = "service_provider_applications"
    __mapper_args__ = {"eager_defaults": True}

    id:                   Mapped[int]           = mapped_column(Integer, primary_key=True, autoincrement=True)
    applicant_id:         Mapped[str]           = mapped_column(String(36), unique=True, index=True)
    district_id:          Mapped[Optional[int]] = mapped_column(ForeignKey("districts.id"), nullable=True)
    community_id:         Mapped[Optional[int]] = mapped_column(ForeignKey("communities.id"), nullable=True)
    business_name:        Mapped[str]           = mapped_column(String(255))
    business_type:        Mapped[str]           = mapped_column(String(50))
    business_description: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    contact_person:       Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    contact_phone:        Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    contact_email:        Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    business_address:     Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    experience_years:     Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    documents:            Mapped[dict]          = mapped_column(JSON, default=dict)
    status:               Mapped[str]           = mapped_column(String(20), default=ApplicationStatus.PENDING)
    registration_attempt: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    created_at:           Mapped[datetime]      = mapped_column(DateTime, default=func.now())
    updated_at:           Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, onupdate=func.now())


class EnhancedUserRole(Base):
    """
    Role grant for a user within a district.
    At most one row per (user, role, district); re-granting reactivates it.
    """
    __tablename__ = "enhanced_user_roles"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "role", "district_id",
            name="uq_user_role_district",
            postgresql_nulls_not_distinct=True,   # one NULL-district grant per user/role
        ),
    )

    id:          Mapped[int]           = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id:     Mapped[str]           = mapped_column(String(36), index=True)
    role:        Mapped[str]           = mapped_column(String(30))
    district_id: Mapped[Optional[int]] = mapped_column(ForeignKey("districts.id"), nullable=True)
    assigned_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    is_active:   Mapped[bool]          = mapped_column(Boolean, default=True)
    assigned_at: Mapped[datetime]      = mapped_column(DateTime, default=func.now())

    @property
    def role_label(self) -> str:
        return UserRole.LABELS.get(self.role, self.role)
