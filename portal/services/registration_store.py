"""
Registration store — database operations on profiles, service-provider
applications, role grants and the district/community catalogue.

All functions receive an AsyncSession parameter and are intentionally
pure async functions (no class coupling) for easy unit testing.
Commit is left to the caller.
"""
from __future__ import annotations

from typing import Awaitable, Callable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal.models.models import (
    AccountStatus,
    ApplicationStatus,
    Community,
    District,
    EnhancedUserRole,
    Profile,
    ServiceProviderApplication,
)


# ── Districts / communities ───────────────────────────────────────────────────

async def create_district(session: AsyncSession, name: str) -> District:
    d = District(name=name)
    session.add(d)
    await session.flush()
    return d


async def create_community(session: AsyncSession, district_id: int, name: str) -> Community:
    c = Community(district_id=district_id, name=name)
    session.add(c)
    await session.flush()
    return c


async def list_districts(session: AsyncSession) -> List[District]:
    result = await session.execute(select(District).order_by(District.name))
    return list(result.scalars().all())


async def list_communities(session: AsyncSession, district_id: int) -> List[Community]:
    result = await session.execute(
        select(Community)
        .where(Community.district_id == district_id)
        .order_by(Community.name)
    )
    return list(result.scalars().all())


async def get_district(session: AsyncSession, district_id: int) -> Optional[District]:
    return await session.get(District, district_id)


async def get_community(session: AsyncSession, community_id: int) -> Optional[Community]:
    return await session.get(Community, community_id)


# ── Profiles ──────────────────────────────────────────────────────────────────

async def phone_registered(session: AsyncSession, phone: str) -> bool:
    """True if any profile already uses this mobile number."""
    result = await session.execute(
        select(Profile.id).where(Profile.mobile_no == phone).limit(1)
    )
    return result.scalar_one_or_none() is not None


def phone_lookup_for(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[[str], Awaitable[bool]]:
    """Bind `phone_registered` to a session factory for the wizard."""
    async def _lookup(phone: str) -> bool:
        async with session_factory() as session:
            return await phone_registered(session, phone)
    return _lookup


async def get_profile(session: AsyncSession, user_id: str) -> Optional[Profile]:
    return await session.get(Profile, user_id)


async def update_profile(
    session: AsyncSession,
    user_id: str,
    mobile_no: str,
    district_id: Optional[int],
    community_id: Optional[int],
    address: str,
    language: str,
    pdpa_declare: bool,
    full_name: Optional[str] = None,
    email: Optional[str] = None,
) -> Profile:
    """
    Complete the profile row created at signup.
    The row is inserted when the signup trigger has not produced it.
    Registration always leaves the account pending and active.
    """
    profile = await get_profile(session, user_id)
    if profile is None:
        profile = Profile(id=user_id)
        session.add(profile)
    if full_name is not None:
        profile.full_name = full_name
    if email is not None:
        profile.email = email
    profile.mobile_no      = mobile_no
    profile.district_id    = district_id
    profile.community_id   = community_id
    profile.address        = address
    profile.language       = language
    profile.pdpa_declare   = pdpa_declare
    profile.account_status = AccountStatus.PENDING
    profile.is_active      = True
    await session.flush()
    return profile


async def set_account_status(
    session: AsyncSession,
    user_id: str,
    account_status: str,
    is_active: Optional[bool] = None,
) -> Optional[Profile]:
    profile = await get_profile(session, user_id)
    if profile:
        profile.account_status = account_status
        if is_active is not None:
            profile.is_active = is_active
    return profile


# ── Service-provider applications ─────────────────────────────────────────────

async def get_application(
    session: AsyncSession,
    applicant_id: str,
) -> Optional[ServiceProviderApplication]:
    result = await session.execute(
        select(ServiceProviderApplication)
        .where(ServiceProviderApplication.applicant_id == applicant_id)
    )
    return result.scalar_one_or_none()


async def upsert_application(
    session: AsyncSession,
    applicant_id: str,
    district_id: Optional[int],
    community_id: Optional[int],
    business_name: str,
    business_type: str,
    contact_person: str,
    contact_phone: str,
    contact_email: str,
    business_address: str,
    experience_years: Optional[int],
    documents: dict,
    registration_attempt: Optional[str] = None,
    business_description: Optional[str] = None,
) -> ServiceProviderApplication:
    """
    Create or refresh the applicant's pending application.
    An applicant has at most one application row.
    """
    app = await get_application(session, applicant_id)
    if app is None:
        app = ServiceProviderApplication(applicant_id=applicant_id)
        session.add(app)
    app.district_id          = district_id
    app.community_id         = community_id
    app.business_name        = business_name
    app.business_type        = business_type
    app.business_description = business_description
    app.contact_person       = contact_person
    app.contact_phone        = contact_phone
    app.contact_email        = contact_email
    app.business_address     = business_address
    app.experience_years     = experience_years
    app.documents            = documents
    app.status               = ApplicationStatus.PENDING
    app.registration_attempt = registration_attempt
    await session.flush()
    return app


# ── Role grants ───────────────────────────────────────────────────────────────

async def find_role_assignment(
    session: AsyncSession,
    user_id: str,
    role: str,
    district_id: Optional[int],
) -> Optional[EnhancedUserRole]:
    """Existing grant for (user, role, district), active or not."""
    q = select(EnhancedUserRole).where(
        EnhancedUserRole.user_id == user_id,
        EnhancedUserRole.role == role,
    )
    if district_id is None:
        q = q.where(EnhancedUserRole.district_id.is_(None))
    else:
        q = q.where(EnhancedUserRole.district_id == district_id)
    result = await session.execute(q)
    return result.scalar_one_or_none()


async def assign_role(
    session: AsyncSession,
    user_id: str,
    role: str,
    district_id: Optional[int],
    assigned_by: Optional[str] = None,
) -> Tuple[EnhancedUserRole, bool]:
    """
    Grant a role. Reactivates an existing row instead of adding a second one.
    Returns (row, created).
    """
    row = await find_role_assignment(session, user_id, role, district_id)
    if row is not None:
        row.is_active = True
        if assigned_by is not None:
            row.assigned_by = assigned_by
        await session.flush()
        return row, False

    row = EnhancedUserRole(
        user_id=user_id,
        role=role,
        district_id=district_id,
        assigned_by=assigned_by,
        is_active=True,
    )
    session.add(row)
    await session.flush()
    return row, True


async def list_role_assignments(
    session: AsyncSession,
    user_id: str,
    active_only: bool = False,
) -> List[EnhancedUserRole]:
    q = (
        select(EnhancedUserRole)
        .where(EnhancedUserRole.user_id == user_id)
        .order_by(EnhancedUserRole.id)
    )
    if active_only:
        q = q.where(EnhancedUserRole.is_active.is_(True))
    result = await session.execute(q)
    return list(result.scalars().all())
