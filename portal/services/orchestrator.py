"""
Registration orchestrator — the write sequence behind a confirmed signup.

Sequence (strict order, no shared transaction):
  1. create the identity with the draft as signup metadata
  2. upload staged documents under the new identity's namespace
  3. complete the profile row (after a short wait for the signup trigger)
  4. upsert the service-provider application
  5. grant the role (lookup-then-branch, one row per user/role/district)
  6. sign out — the account stays pending until an admin approves it

Completed steps are not rolled back when a later one fails. Steps 3–5 are
upserts keyed by the identity, and a retry carrying the same attempt key
resumes on the identity created by the failed attempt.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal.config import settings
from portal.exceptions import (
    AlreadyRegisteredError,
    IdentityError,
    OrchestrationError,
    StorageError,
)
from portal.models.models import UserRole
from portal.services import registration_store
from portal.services.business_types import config_for, document_spec
from portal.services.document_staging import StagedFile
from portal.services.identity_service import IdentityProvider
from portal.services.storage_service import ObjectStorage, document_path

logger = logging.getLogger(__name__)

SIGNUP_DESCRIPTION = "Service provider registered via signup"

MSG_EMAIL_REGISTERED   = "This email is already registered. Please sign in instead."
MSG_SIGNUP_FAILED      = "Could not create your account. Please try again."
MSG_ACCOUNT_FAILED     = "Account creation failed. Please try again or contact the administrator."
MSG_UPLOAD_FAILED      = "Failed to upload {document}"


class RegistrationDraft(BaseModel):
    """Everything the applicant has entered so far. Owned by one wizard."""

    full_name: str = ""
    phone: str = ""
    district_id: Optional[int] = None
    community_id: Optional[int] = None
    address: str = ""
    business_name: str = ""
    business_type: str = ""
    email: str = ""
    password: str = ""
    years_of_experience: str = ""
    pdpa_accepted: bool = False
    role: str = UserRole.SERVICE_PROVIDER
    language: str = settings.DEFAULT_LANGUAGE

    @property
    def experience_years(self) -> Optional[int]:
        raw = self.years_of_experience.strip()
        return int(raw) if raw.isdigit() else None

    def signup_metadata(self, attempt_key: str) -> Dict[str, Any]:
        """Signup payload attached to the identity. Never includes the password."""
        return {
            "full_name":            self.full_name.strip(),
            "mobile_no":            self.phone or None,
            "district_id":          self.district_id,
            "community_id":         self.community_id,
            "address":              self.address.strip(),
            "language":             self.language,
            "pdpa_declare":         self.pdpa_accepted,
            "signup_flow":          self.role,
            "business_name":        self.business_name.strip(),
            "business_type":        self.business_type,
            "business_description": SIGNUP_DESCRIPTION,
            "experience_years":     self.experience_years,
            "registration_attempt": attempt_key,
        }


@dataclass
class RegistrationContext:
    """Explicit argument bundle for one submit."""
    draft: RegistrationDraft
    documents: Mapping[str, Tuple[StagedFile, ...]]
    attempt_key: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass(frozen=True)
class UploadedDocumentRef:
    url: str
    storage_path: str
    original_name: str

    def as_dict(self) -> Dict[str, str]:
        return {
            "url": self.url,
            "storage_path": self.storage_path,
            "original_name": self.original_name,
        }


@dataclass
class ProvisionedIdentity:
    user_id: str
    email: str
    role: str
    district_id: Optional[int]
    role_assignment_id: int
    application_id: Optional[int] = None
    documents: Dict[str, List[UploadedDocumentRef]] = field(default_factory=dict)
    resumed: bool = False


class RegistrationOrchestrator:
    """
    Parameters
    ----------
    session_factory    : async_sessionmaker for the relational store
    identity           : IdentityProvider implementation
    storage            : ObjectStorage implementation
    profile_sync_delay : seconds to wait before touching the profile row
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        identity: IdentityProvider,
        storage: ObjectStorage,
        profile_sync_delay: Optional[float] = None,
    ) -> None:
        self._session_factory = session_factory
        self._identity = identity
        self._storage = storage
        self._profile_sync_delay = (
            settings.PROFILE_SYNC_DELAY if profile_sync_delay is None else profile_sync_delay
        )

    async def submit(
        self,
        context: RegistrationContext,
    ) -> Tuple[Optional[ProvisionedIdentity], Optional[OrchestrationError]]:
        """
        Run the full sequence.
        Returns (identity, None) on success, (None, error) on failure; never raises.
        """
        try:
            return await self._run(context), None
        except OrchestrationError as exc:
            logger.warning(
                "Registration attempt %s failed: %s (user=%s)",
                context.attempt_key, exc.code, exc.user_id,
            )
            return None, exc
        except Exception:
            logger.exception("Unexpected error in registration attempt %s", context.attempt_key)
            return None, OrchestrationError(
                OrchestrationError.ACCOUNT_CREATION_FAILED, MSG_ACCOUNT_FAILED
            )

    async def _run(self, context: RegistrationContext) -> ProvisionedIdentity:
        draft = context.draft
        user_id, resumed = await self._create_identity(context)

        documents = await self._upload_documents(user_id, context.documents)

        await asyncio.sleep(self._profile_sync_delay)
        try:
            application_id, role_row_id = await self._write_records(user_id, context, documents)
        except OrchestrationError:
            raise
        except Exception as exc:
            logger.exception("Record writes failed for %s", user_id)
            raise OrchestrationError(
                OrchestrationError.ACCOUNT_CREATION_FAILED, MSG_ACCOUNT_FAILED, user_id=user_id
            ) from exc

        await self._identity.sign_out(user_id)
        logger.info("Registration complete for %s (%s)", user_id, draft.role)

        return ProvisionedIdentity(
            user_id=user_id,
            email=draft.email.strip().lower(),
            role=draft.role,
            district_id=draft.district_id,
            role_assignment_id=role_row_id,
            application_id=application_id,
            documents=documents,
            resumed=resumed,
        )

    # ── Step 1 ────────────────────────────────────────────────────────────────

    async def _create_identity(self, context: RegistrationContext) -> Tuple[str, bool]:
        draft = context.draft
        try:
            user_id = await self._identity.sign_up(
                draft.email, draft.password, draft.signup_metadata(context.attempt_key)
            )
            return user_id, False
        except AlreadyRegisteredError:
            user_id = await self._identity.resume(draft.email, draft.password, context.attempt_key)
            if user_id is None:
                raise OrchestrationError(
                    OrchestrationError.EMAIL_ALREADY_REGISTERED, MSG_EMAIL_REGISTERED
                )
            logger.info("Resuming attempt %s on identity %s", context.attempt_key, user_id)
            return user_id, True
        except IdentityError as exc:
            logger.warning("Sign-up rejected: %s", exc)
            raise OrchestrationError(OrchestrationError.SIGNUP_FAILED, MSG_SIGNUP_FAILED) from exc

    # ── Step 2 ────────────────────────────────────────────────────────────────

    async def _upload_documents(
        self,
        user_id: str,
        documents: Mapping[str, Tuple[StagedFile, ...]],
    ) -> Dict[str, List[UploadedDocumentRef]]:
        uploaded: Dict[str, List[UploadedDocumentRef]] = {}
        for document_type, files in documents.items():
            results = await asyncio.gather(
                *[self._upload_one(user_id, document_type, f) for f in files],
                return_exceptions=True,
            )
            failure = next((r for r in results if isinstance(r, BaseException)), None)
            if isinstance(failure, StorageError):
                spec = document_spec(document_type)
                logger.warning("Upload of %s failed for %s: %s", document_type, user_id, failure)
                raise OrchestrationError(
                    OrchestrationError.DOCUMENT_UPLOAD_FAILED,
                    MSG_UPLOAD_FAILED.format(document=spec.display_name),
                    user_id=user_id,
                ) from failure
            if failure is not None:
                raise failure
            uploaded[document_type] = list(results)
        return uploaded

    async def _upload_one(self, user_id: str, document_type: str, f: StagedFile) -> UploadedDocumentRef:
        # Files of one type upload in the same millisecond; the token keeps paths apart
        path = await self._storage.upload(
            document_path(user_id, document_type, f.safe_name, token=uuid.uuid4().hex[:8]),
            f.content,
            f.content_type,
        )
        return UploadedDocumentRef(
            url=self._storage.get_public_url(path),
            storage_path=path,
            original_name=f.name,
        )

    # ── Steps 3–5 ─────────────────────────────────────────────────────────────

    async def _write_records(
        self,
        user_id: str,
        context: RegistrationContext,
        documents: Dict[str, List[UploadedDocumentRef]],
    ) -> Tuple[Optional[int], int]:
        draft = context.draft

        async with self._session_factory() as session:
            await registration_store.update_profile(
                session,
                user_id,
                mobile_no=draft.phone,
                district_id=draft.district_id,
                community_id=draft.community_id,
                address=draft.address.strip(),
                language=draft.language,
                pdpa_declare=draft.pdpa_accepted,
                full_name=draft.full_name.strip(),
                email=draft.email.strip().lower(),
            )
            await session.commit()

        application_id: Optional[int] = None
        if draft.role == UserRole.SERVICE_PROVIDER:
            async with self._session_factory() as session:
                app = await registration_store.upsert_application(
                    session,
                    applicant_id=user_id,
                    district_id=draft.district_id,
                    community_id=draft.community_id,
                    business_name=draft.business_name.strip(),
                    business_type=config_for(draft.business_type).key,
                    business_description=SIGNUP_DESCRIPTION,
                    contact_person=draft.full_name.strip(),
                    contact_phone=draft.phone,
                    contact_email=draft.email.strip().lower(),
                    business_address=draft.address.strip(),
                    experience_years=draft.experience_years,
                    documents={
                        t: [ref.as_dict() for ref in refs] for t, refs in documents.items()
                    },
                    registration_attempt=context.attempt_key,
                )
                await session.commit()
                application_id = app.id

        async with self._session_factory() as session:
            row, created = await registration_store.assign_role(
                session, user_id, draft.role, draft.district_id
            )
            await session.commit()
            logger.info(
                "Role %s %s for %s in district %s",
                draft.role, "granted" if created else "reactivated", user_id, draft.district_id,
            )
            role_row_id = row.id

        return application_id, role_row_id
