"""
Integration tests — Registration store (services/registration_store.py).

Coverage:
  - District / community catalogue
  - Duplicate-phone lookup
  - Profile completion (with and without the signup-created row)
  - Application upsert (one row per applicant)
  - Role grants: lookup-then-branch, reactivation, NULL district
"""
from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateTable

from portal.models.models import (
    AccountStatus,
    EnhancedUserRole,
    Profile,
    ServiceProviderApplication,
    UserRole,
)
from portal.services.registration_store import (
    assign_role,
    create_community,
    create_district,
    find_role_assignment,
    get_application,
    get_profile,
    list_communities,
    list_districts,
    list_role_assignments,
    phone_lookup_for,
    phone_registered,
    update_profile,
    upsert_application,
)


async def _complete_profile(session, user_id: str = "u1", phone: str = "0123456789") -> Profile:
    return await update_profile(
        session, user_id,
        mobile_no=phone, district_id=1, community_id=1,
        address="No 1, Jalan Mawar", language="en", pdpa_declare=True,
        full_name="Aminah", email="aminah@example.com",
    )


async def _upsert(session, applicant_id: str = "u1", **overrides) -> ServiceProviderApplication:
    values = dict(
        applicant_id=applicant_id, district_id=1, community_id=1,
        business_name="Aminah Cleaning Services", business_type="cleaning",
        contact_person="Aminah", contact_phone="0123456789",
        contact_email="aminah@example.com", business_address="No 1, Jalan Mawar",
        experience_years=None, documents={}, registration_attempt="attempt-1",
    )
    values.update(overrides)
    return await upsert_application(session, **values)


# ─────────────────────────── Catalogue ────────────────────────────────────────

class TestCatalogue:
    async def test_districts_sorted_by_name(self, async_session) -> None:
        await create_district(async_session, "Shah Alam")
        await create_district(async_session, "Klang")
        names = [d.name for d in await list_districts(async_session)]
        assert names == ["Klang", "Shah Alam"]

    async def test_communities_filtered_by_district(self, async_session) -> None:
        a = await create_district(async_session, "Klang")
        b = await create_district(async_session, "Petaling")
        await create_community(async_session, a.id, "Bandar Botanik")
        await create_community(async_session, b.id, "Taman Mawar")
        names = [c.name for c in await list_communities(async_session, b.id)]
        assert names == ["Taman Mawar"]


# ─────────────────────────── Profiles ─────────────────────────────────────────

class TestProfiles:
    async def test_update_inserts_missing_row(self, async_session) -> None:
        await _complete_profile(async_session)
        profile = await get_profile(async_session, "u1")
        assert profile.mobile_no == "0123456789"
        assert profile.account_status == AccountStatus.PENDING
        assert profile.is_active is True
        assert profile.pdpa_declare is True

    async def test_update_completes_existing_row(self, async_session) -> None:
        async_session.add(Profile(id="u1", email="aminah@example.com", account_status="approved"))
        await async_session.flush()
        await _complete_profile(async_session)
        rows = (await async_session.execute(select(func.count()).select_from(Profile))).scalar_one()
        assert rows == 1
        profile = await get_profile(async_session, "u1")
        assert profile.account_status == AccountStatus.PENDING
        assert profile.updated_at is not None

    async def test_fresh_row_has_no_update_stamp(self, async_session) -> None:
        profile = await _complete_profile(async_session)
        await async_session.flush()
        assert profile.updated_at is None

    async def test_phone_registered(self, async_session) -> None:
        assert not await phone_registered(async_session, "0123456789")
        await _complete_profile(async_session)
        assert await phone_registered(async_session, "0123456789")
        assert not await phone_registered(async_session, "0199999999")

    async def test_phone_lookup_bound_to_factory(self, session_factory) -> None:
        async with session_factory() as session:
            await _complete_profile(session)
            await session.commit()
        lookup = phone_lookup_for(session_factory)
        assert await lookup("0123456789") is True
        assert await lookup("0111111111") is False


# ─────────────────────────── Applications ─────────────────────────────────────

class TestApplications:
    async def test_create(self, async_session) -> None:
        app = await _upsert(async_session, documents={"insurance": [{"url": "u"}]})
        assert app.id is not None
        assert app.status == "pending"
        assert (await get_application(async_session, "u1")).documents == {"insurance": [{"url": "u"}]}

    async def test_second_upsert_updates_same_row(self, async_session) -> None:
        first = await _upsert(async_session)
        second = await _upsert(async_session, business_name="Aminah Cleaning Sdn Bhd")
        assert first.id == second.id
        assert second.updated_at is not None
        count = (await async_session.execute(
            select(func.count()).select_from(ServiceProviderApplication)
        )).scalar_one()
        assert count == 1


# ─────────────────────────── Role grants ──────────────────────────────────────

class TestRoleGrants:
    async def test_first_grant_creates_row(self, async_session) -> None:
        row, created = await assign_role(async_session, "u1", UserRole.SERVICE_PROVIDER, 1)
        assert created is True
        assert row.is_active
        assert row.role_label == "Service Provider"

    async def test_repeat_grant_reuses_row(self, async_session) -> None:
        first, _ = await assign_role(async_session, "u1", UserRole.SERVICE_PROVIDER, 1)
        second, created = await assign_role(async_session, "u1", UserRole.SERVICE_PROVIDER, 1)
        assert created is False
        assert first.id == second.id
        assert len(await list_role_assignments(async_session, "u1")) == 1

    async def test_inactive_grant_reactivated(self, async_session) -> None:
        row, _ = await assign_role(async_session, "u1", UserRole.SERVICE_PROVIDER, 1)
        row.is_active = False
        await async_session.flush()
        assert await list_role_assignments(async_session, "u1", active_only=True) == []

        again, created = await assign_role(async_session, "u1", UserRole.SERVICE_PROVIDER, 1, assigned_by="admin")
        assert created is False
        assert again.is_active
        assert again.assigned_by == "admin"

    async def test_other_district_is_separate_grant(self, async_session) -> None:
        await assign_role(async_session, "u1", UserRole.SERVICE_PROVIDER, 1)
        _, created = await assign_role(async_session, "u1", UserRole.SERVICE_PROVIDER, 2)
        assert created is True
        assert len(await list_role_assignments(async_session, "u1")) == 2

    async def test_null_district_matched(self, async_session) -> None:
        await assign_role(async_session, "u1", UserRole.RESIDENT, None)
        _, created = await assign_role(async_session, "u1", UserRole.RESIDENT, None)
        assert created is False
        found = await find_role_assignment(async_session, "u1", UserRole.RESIDENT, None)
        assert found is not None
        rows = (await async_session.execute(select(EnhancedUserRole))).scalars().all()
        assert len(rows) == 1

    def test_postgres_constraint_treats_null_districts_as_equal(self) -> None:
        ddl = str(CreateTable(EnhancedUserRole.__table__).compile(dialect=postgresql.dialect()))
        assert "UNIQUE NULLS NOT DISTINCT (user_id, role, district_id)" in ddl
