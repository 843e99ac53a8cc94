"""
Identity service — email/password accounts stored in the portal database.

Mirrors the hosted auth backend the workflow was designed against:
  - sign_up stores the identity with its signup metadata and, like the
    backend's new-user trigger, creates a bare profile row for it
  - sign_in refuses accounts that are not approved, with ACCOUNT_* codes
  - the freshly signed-up identity counts as signed in until sign_out
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Dict, Optional, Protocol, Set

import bcrypt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal.config import settings
from portal.exceptions import (
    AccountStatusError,
    AlreadyRegisteredError,
    IdentityError,
    InvalidCredentialsError,
)
from portal.models.models import AccountStatus, Identity, Language, Profile

logger = logging.getLogger(__name__)

ACCOUNT_INACTIVE     = "ACCOUNT_INACTIVE"
ACCOUNT_PENDING      = "ACCOUNT_PENDING"
ACCOUNT_REJECTED     = "ACCOUNT_REJECTED"
ACCOUNT_SUSPENDED    = "ACCOUNT_SUSPENDED"
ACCOUNT_NOT_APPROVED = "ACCOUNT_NOT_APPROVED"


class IdentityProvider(Protocol):
    """Contract the registration orchestrator depends on."""

    async def sign_up(self, email: str, password: str, metadata: Dict[str, Any]) -> str: ...

    async def resume(self, email: str, password: str, attempt_key: str) -> Optional[str]: ...

    async def sign_out(self, user_id: str) -> None: ...


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    # bcrypt has a 72 byte limit
    password_bytes = password.encode("utf-8")[:72]
    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8")[:72], password_hash.encode("utf-8"))


def account_status_code(profile: Optional[Profile]) -> Optional[str]:
    """ACCOUNT_* code blocking sign-in for this profile, None when allowed."""
    if profile is None:
        return ACCOUNT_NOT_APPROVED
    if profile.account_status == AccountStatus.REJECTED:
        return ACCOUNT_REJECTED
    if profile.account_status == AccountStatus.SUSPENDED:
        return ACCOUNT_SUSPENDED
    if not profile.is_active:
        return ACCOUNT_INACTIVE
    if profile.account_status == AccountStatus.PENDING:
        return ACCOUNT_PENDING
    if profile.account_status != AccountStatus.APPROVED:
        return ACCOUNT_NOT_APPROVED
    return None


class DatabaseIdentityService:
    """
    Parameters
    ----------
    session_factory : async_sessionmaker bound to the portal database
    bcrypt_rounds   : cost factor override (tests use the minimum)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        bcrypt_rounds: Optional[int] = None,
    ) -> None:
        self._session_factory = session_factory
        self._rounds = bcrypt_rounds
        self._signed_in: Set[str] = set()

    async def sign_up(self, email: str, password: str, metadata: Dict[str, Any]) -> str:
        email = email.strip().lower()
        password_hash = await asyncio.to_thread(hash_password, password, self._rounds)
        user_id = str(uuid.uuid4())

        async with self._session_factory() as session:
            if await self._find(session, email) is not None:
                raise AlreadyRegisteredError(email)
            session.add(Identity(
                id=user_id,
                email=email,
                password_hash=password_hash,
                user_metadata=dict(metadata),
            ))
            await session.flush()
            # New-user trigger: bare profile row
            session.add(Profile(
                id=user_id,
                full_name=metadata.get("full_name"),
                email=email,
                language=metadata.get("language") or Language.EN,
                account_status=AccountStatus.PENDING,
            ))
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise AlreadyRegisteredError(email) from exc

        self._signed_in.add(user_id)
        logger.info("Identity %s created for %s", user_id, email)
        return user_id

    async def resume(self, email: str, password: str, attempt_key: str) -> Optional[str]:
        """
        Id of an identity created earlier by the same registration attempt
        (same attempt key and password), so a retried submit can continue.
        """
        async with self._session_factory() as session:
            identity = await self._find(session, email.strip().lower())
        if identity is None:
            return None
        if (identity.user_metadata or {}).get("registration_attempt") != attempt_key:
            return None
        if not await asyncio.to_thread(verify_password, password, identity.password_hash):
            return None
        self._signed_in.add(identity.id)
        return identity.id

    async def sign_in(self, email: str, password: str) -> str:
        """
        Authenticate and enforce the approval gate.
        Raises InvalidCredentialsError or AccountStatusError(code).
        """
        async with self._session_factory() as session:
            identity = await self._find(session, email.strip().lower())
            if identity is None:
                raise InvalidCredentialsError()
            if not await asyncio.to_thread(verify_password, password, identity.password_hash):
                raise InvalidCredentialsError()
            profile = await session.get(Profile, identity.id)

        code = account_status_code(profile)
        if code is not None:
            logger.info("Sign-in refused for %s: %s", identity.id, code)
            raise AccountStatusError(code)

        self._signed_in.add(identity.id)
        return identity.id

    async def sign_out(self, user_id: str) -> None:
        self._signed_in.discard(user_id)

    def is_signed_in(self, user_id: str) -> bool:
        return user_id in self._signed_in

    async def get_metadata(self, user_id: str) -> Dict[str, Any]:
        async with self._session_factory() as session:
            identity = await session.get(Identity, user_id)
        if identity is None:
            raise IdentityError(f"Unknown identity {user_id}")
        return dict(identity.user_metadata or {})

    @staticmethod
    async def _find(session: AsyncSession, email: str) -> Optional[Identity]:
        result = await session.execute(select(Identity).where(Identity.email == email))
        return result.scalar_one_or_none()
