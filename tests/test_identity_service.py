"""
Integration tests — Identity service (services/identity_service.py).

Each test gets a fresh in-memory SQLite database through the
`session_factory` fixture defined in conftest.py.
"""
from __future__ import annotations

import pytest

from portal.exceptions import (
    AccountStatusError,
    AlreadyRegisteredError,
    IdentityError,
    InvalidCredentialsError,
)
from portal.models.models import AccountStatus, Profile
from portal.services.identity_service import (
    ACCOUNT_INACTIVE,
    ACCOUNT_NOT_APPROVED,
    ACCOUNT_PENDING,
    ACCOUNT_REJECTED,
    ACCOUNT_SUSPENDED,
    account_status_code,
    hash_password,
    verify_password,
)
from portal.services.registration_store import get_profile, set_account_status

META = {"full_name": "Aminah", "registration_attempt": "attempt-1", "language": "en"}


async def _approve(session_factory, user_id: str, status: str = AccountStatus.APPROVED, is_active: bool = True) -> None:
    async with session_factory() as session:
        await set_account_status(session, user_id, status, is_active=is_active)
        await session.commit()


# ─────────────────────────── Passwords ────────────────────────────────────────

class TestPasswords:
    def test_hash_roundtrip(self) -> None:
        hashed = hash_password("secret123", rounds=4)
        assert hashed != "secret123"
        assert verify_password("secret123", hashed)
        assert not verify_password("secret124", hashed)

    def test_long_password_truncated_consistently(self) -> None:
        hashed = hash_password("p" * 100, rounds=4)
        assert verify_password("p" * 100, hashed)


# ─────────────────────────── Sign-up ──────────────────────────────────────────

class TestSignUp:
    async def test_creates_identity_and_bare_pending_profile(self, identity, session_factory) -> None:
        uid = await identity.sign_up("Aminah@Example.com", "secret123", META)
        async with session_factory() as session:
            profile = await get_profile(session, uid)
        assert profile is not None
        assert profile.email == "aminah@example.com"
        assert profile.account_status == AccountStatus.PENDING
        assert profile.mobile_no is None

    async def test_metadata_stored(self, identity) -> None:
        uid = await identity.sign_up("aminah@example.com", "secret123", META)
        meta = await identity.get_metadata(uid)
        assert meta["registration_attempt"] == "attempt-1"

    async def test_new_identity_is_signed_in(self, identity) -> None:
        uid = await identity.sign_up("aminah@example.com", "secret123", META)
        assert identity.is_signed_in(uid)
        await identity.sign_out(uid)
        assert not identity.is_signed_in(uid)

    async def test_duplicate_email_case_insensitive(self, identity) -> None:
        await identity.sign_up("aminah@example.com", "secret123", META)
        with pytest.raises(AlreadyRegisteredError):
            await identity.sign_up("AMINAH@example.com", "other-pass", META)

    async def test_unknown_identity_metadata_raises(self, identity) -> None:
        with pytest.raises(IdentityError):
            await identity.get_metadata("missing")


# ─────────────────────────── Resume ───────────────────────────────────────────

class TestResume:
    async def test_same_attempt_resumes(self, identity) -> None:
        uid = await identity.sign_up("aminah@example.com", "secret123", META)
        await identity.sign_out(uid)
        assert await identity.resume("aminah@example.com", "secret123", "attempt-1") == uid

    async def test_other_attempt_does_not_resume(self, identity) -> None:
        await identity.sign_up("aminah@example.com", "secret123", META)
        assert await identity.resume("aminah@example.com", "secret123", "attempt-2") is None

    async def test_wrong_password_does_not_resume(self, identity) -> None:
        await identity.sign_up("aminah@example.com", "secret123", META)
        assert await identity.resume("aminah@example.com", "wrong-pass", "attempt-1") is None

    async def test_unknown_email(self, identity) -> None:
        assert await identity.resume("nobody@example.com", "secret123", "attempt-1") is None


# ─────────────────────────── Sign-in gate ─────────────────────────────────────

class TestSignIn:
    async def test_pending_account_refused(self, identity) -> None:
        await identity.sign_up("aminah@example.com", "secret123", META)
        with pytest.raises(AccountStatusError) as exc_info:
            await identity.sign_in("aminah@example.com", "secret123")
        assert exc_info.value.code == ACCOUNT_PENDING

    async def test_approved_account_signs_in(self, identity, session_factory) -> None:
        uid = await identity.sign_up("aminah@example.com", "secret123", META)
        await identity.sign_out(uid)
        await _approve(session_factory, uid)
        assert await identity.sign_in("aminah@example.com", "secret123") == uid
        assert identity.is_signed_in(uid)

    async def test_deactivated_account_refused(self, identity, session_factory) -> None:
        uid = await identity.sign_up("aminah@example.com", "secret123", META)
        await _approve(session_factory, uid, is_active=False)
        with pytest.raises(AccountStatusError) as exc_info:
            await identity.sign_in("aminah@example.com", "secret123")
        assert exc_info.value.code == ACCOUNT_INACTIVE

    async def test_suspended_account_refused(self, identity, session_factory) -> None:
        uid = await identity.sign_up("aminah@example.com", "secret123", META)
        await _approve(session_factory, uid, status=AccountStatus.SUSPENDED)
        with pytest.raises(AccountStatusError) as exc_info:
            await identity.sign_in("aminah@example.com", "secret123")
        assert exc_info.value.code == ACCOUNT_SUSPENDED

    async def test_wrong_password(self, identity) -> None:
        await identity.sign_up("aminah@example.com", "secret123", META)
        with pytest.raises(InvalidCredentialsError):
            await identity.sign_in("aminah@example.com", "nope-nope")

    async def test_unknown_email(self, identity) -> None:
        with pytest.raises(InvalidCredentialsError):
            await identity.sign_in("nobody@example.com", "secret123")


class TestAccountStatusCode:
    def test_missing_profile(self) -> None:
        assert account_status_code(None) == ACCOUNT_NOT_APPROVED

    def test_rejected_wins_over_inactive(self) -> None:
        p = Profile(id="u1", account_status=AccountStatus.REJECTED, is_active=False)
        assert account_status_code(p) == ACCOUNT_REJECTED

    def test_inactive_wins_over_pending(self) -> None:
        p = Profile(id="u1", account_status=AccountStatus.PENDING, is_active=False)
        assert account_status_code(p) == ACCOUNT_INACTIVE

    def test_unrecognised_status_not_approved(self) -> None:
        p = Profile(id="u1", account_status="under_review", is_active=True)
        assert account_status_code(p) == ACCOUNT_NOT_APPROVED

    def test_approved_active_allowed(self) -> None:
        p = Profile(id="u1", account_status=AccountStatus.APPROVED, is_active=True)
        assert account_status_code(p) is None
        assert p.is_approved
