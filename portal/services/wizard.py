"""
Two-step signup wizard.

States
------
  step1:editing ──next──▶ step1:validating ──ok──▶ step2:editing
        ▲                        │ errors                 │ back
        └────────────────────────┴────────────────────────┘
  step2:editing ──submit──▶ step2:submitting ──ok──▶ terminal:success
        ▲                         │ failure
        └─────────────────────────┘
  step1:editing / step2:editing ──cancel──▶ terminal:failed

Every other transition raises IllegalTransitionError, so e.g. submitting from
step 1 or editing while a submit is in flight cannot happen.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, FrozenSet, Optional, Sequence

from pydantic import ValidationError

from portal.exceptions import IllegalTransitionError, WizardError
from portal.services.business_types import BusinessTypeConfig, config_for
from portal.services.document_staging import DocumentStagingArea, StagedFile
from portal.services.orchestrator import (
    ProvisionedIdentity,
    RegistrationContext,
    RegistrationDraft,
    RegistrationOrchestrator,
)
from portal.validators import FieldCheck, Step1Data, check_experience_years, validate_field

logger = logging.getLogger(__name__)

PhoneLookup = Callable[[str], Awaitable[bool]]

MSG_PHONE_TAKEN = "This phone number is already registered"
MSG_PDPA        = "You must read and accept the PDPA to register"
MSG_DOCUMENT    = "Please upload {document}"
MSG_CANCELLED   = "Registration cancelled"
MSG_LOOKUP_FAILED = "Could not verify the phone number right now. Please try again."

STEP1_FIELDS = (
    "full_name", "phone", "district_id", "community_id", "address",
    "business_name", "business_type", "email", "password",
)
STEP2_FIELDS = ("years_of_experience", "pdpa_accepted")


class WizardState(str, Enum):
    STEP1_EDITING    = "step1:editing"
    STEP1_VALIDATING = "step1:validating"
    STEP2_EDITING    = "step2:editing"
    STEP2_SUBMITTING = "step2:submitting"
    SUCCESS          = "terminal:success"
    FAILED           = "terminal:failed"

    @property
    def is_terminal(self) -> bool:
        return self in (WizardState.SUCCESS, WizardState.FAILED)

    @property
    def is_editing(self) -> bool:
        return self in (WizardState.STEP1_EDITING, WizardState.STEP2_EDITING)


_TRANSITIONS: Dict[WizardState, FrozenSet[WizardState]] = {
    WizardState.STEP1_EDITING:    frozenset({WizardState.STEP1_VALIDATING, WizardState.FAILED}),
    WizardState.STEP1_VALIDATING: frozenset({WizardState.STEP1_EDITING, WizardState.STEP2_EDITING}),
    WizardState.STEP2_EDITING:    frozenset({
        WizardState.STEP1_EDITING, WizardState.STEP2_SUBMITTING, WizardState.FAILED,
    }),
    WizardState.STEP2_SUBMITTING: frozenset({WizardState.STEP2_EDITING, WizardState.SUCCESS}),
    WizardState.SUCCESS:          frozenset(),
    WizardState.FAILED:           frozenset(),
}


@dataclass
class StepOutcome:
    ok: bool
    errors: Dict[str, str] = field(default_factory=dict)
    message: Optional[str] = None
    code: Optional[str] = None
    identity: Optional[ProvisionedIdentity] = None


def _validation_errors(exc: ValidationError) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    for err in exc.errors():
        name = str(err["loc"][0]) if err.get("loc") else "__root__"
        ctx_error = (err.get("ctx") or {}).get("error")
        errors.setdefault(name, str(ctx_error) if ctx_error else err["msg"])
    # Keep the on-screen order of fields
    return {f: errors[f] for f in STEP1_FIELDS if f in errors} | {
        k: v for k, v in errors.items() if k not in STEP1_FIELDS
    }


class WizardStateMachine:
    """
    Owns one RegistrationDraft and its staged documents.

    Parameters
    ----------
    orchestrator : performs the remote writes on submit
    phone_lookup : async predicate, True if the phone is already registered
    staging      : staging area (a fresh one by default)
    language     : UI language stored on the draft
    """

    def __init__(
        self,
        orchestrator: RegistrationOrchestrator,
        phone_lookup: PhoneLookup,
        staging: Optional[DocumentStagingArea] = None,
        language: Optional[str] = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._phone_lookup = phone_lookup
        self.staging = staging if staging is not None else DocumentStagingArea()
        self.draft = RegistrationDraft()
        if language:
            self.draft.language = language
        self.state = WizardState.STEP1_EDITING
        self.errors: Dict[str, str] = {}
        self.message: Optional[str] = None
        # One key per wizard: a resubmit after partial failure reuses it
        self._context_key: Optional[str] = None

    # ── Introspection ─────────────────────────────────────────────────────────

    @property
    def business_config(self) -> BusinessTypeConfig:
        return config_for(self.draft.business_type)

    @property
    def attempt_key(self) -> Optional[str]:
        return self._context_key

    def _move(self, target: WizardState, action: str) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise IllegalTransitionError(self.state.value, action)
        logger.debug("Wizard %s → %s (%s)", self.state.value, target.value, action)
        self.state = target

    def _require(self, *states: WizardState, action: str) -> None:
        if self.state not in states:
            raise IllegalTransitionError(self.state.value, action)

    # ── Field edits ───────────────────────────────────────────────────────────

    def update_field(self, name: str, value) -> FieldCheck:
        """
        Set a draft field and return its live validation result.
        A different business type discards every staged document.
        """
        self._require(WizardState.STEP1_EDITING, WizardState.STEP2_EDITING, action=f"edit {name}")
        if name not in RegistrationDraft.model_fields:
            raise WizardError(f"Unknown field: {name}")

        if name == "business_type" and value != self.draft.business_type:
            if not self.staging.is_empty:
                logger.info("Business type changed, clearing %d staged files", len(self.staging))
            self.staging.clear()

        setattr(self.draft, name, value)
        if name == "pdpa_accepted":
            check = FieldCheck(True) if value else FieldCheck(False, MSG_PDPA)
        else:
            check = validate_field(name, value)
        if check.valid:
            self.errors.pop(name, None)
        return check

    def select_business_type(self, business_type: str) -> FieldCheck:
        return self.update_field("business_type", business_type)

    # ── Documents (step 2 only) ───────────────────────────────────────────────

    def stage_documents(self, document_type: str, files: Sequence[StagedFile]) -> None:
        self._require(WizardState.STEP2_EDITING, action="stage documents")
        self.staging.stage(document_type, files)
        self.errors.pop(f"documents.{document_type}", None)

    def unstage_document(self, document_type: str, file_name: str) -> bool:
        self._require(WizardState.STEP2_EDITING, action="remove documents")
        return self.staging.unstage(document_type, file_name)

    # ── Transitions ───────────────────────────────────────────────────────────

    async def next(self) -> StepOutcome:
        """Step 1 → Step 2 after field validation and the duplicate-phone check."""
        self._move(WizardState.STEP1_VALIDATING, "continue")
        self.message = None

        try:
            Step1Data.model_validate(self.draft.model_dump(include=set(STEP1_FIELDS)))
        except ValidationError as exc:
            return self._back_to_step1(_validation_errors(exc))

        try:
            taken = await self._phone_lookup(self.draft.phone)
        except Exception:
            logger.exception("Duplicate-phone lookup failed")
            return self._back_to_step1({"phone": MSG_LOOKUP_FAILED})
        if taken:
            return self._back_to_step1({"phone": MSG_PHONE_TAKEN})

        self.errors = {}
        self._move(WizardState.STEP2_EDITING, "continue")
        return StepOutcome(ok=True)

    def _back_to_step1(self, errors: Dict[str, str]) -> StepOutcome:
        self.errors = errors
        self.message = next(iter(errors.values()))
        self._move(WizardState.STEP1_EDITING, "continue")
        return StepOutcome(ok=False, errors=dict(errors), message=self.message)

    def back(self) -> None:
        self._move(WizardState.STEP1_EDITING, "go back")
        self.errors = {}
        self.message = None

    def validate_step2(self) -> Dict[str, str]:
        errors: Dict[str, str] = {}
        cfg = self.business_config
        if cfg.requires_experience_years:
            check = check_experience_years(self.draft.years_of_experience)
            if not check.valid:
                errors["years_of_experience"] = check.message
        for spec in self.staging.missing(cfg.required_documents):
            errors[f"documents.{spec.type}"] = MSG_DOCUMENT.format(document=spec.display_name)
        if not self.draft.pdpa_accepted:
            errors["pdpa_accepted"] = MSG_PDPA
        return errors

    async def submit(self) -> StepOutcome:
        """Step 2 → submitting → success, or back to step 2 with the failure."""
        self._require(WizardState.STEP2_EDITING, action="submit")
        errors = self.validate_step2()
        if errors:
            self.errors = errors
            self.message = next(iter(errors.values()))
            return StepOutcome(ok=False, errors=dict(errors), message=self.message)

        self._move(WizardState.STEP2_SUBMITTING, "submit")
        if self._context_key is None:
            context = RegistrationContext(
                draft=self.draft.model_copy(), documents=self.staging.snapshot()
            )
            self._context_key = context.attempt_key
        else:
            context = RegistrationContext(
                draft=self.draft.model_copy(),
                documents=self.staging.snapshot(),
                attempt_key=self._context_key,
            )

        identity, error = await self._orchestrator.submit(context)
        if error is not None:
            self.errors = {}
            self.message = error.message
            self._move(WizardState.STEP2_EDITING, "recover")
            return StepOutcome(ok=False, message=error.message, code=error.code)

        self.errors = {}
        self.message = None
        self._move(WizardState.SUCCESS, "finish")
        return StepOutcome(ok=True, identity=identity)

    def cancel(self) -> StepOutcome:
        self._move(WizardState.FAILED, "cancel")
        self.message = MSG_CANCELLED
        return StepOutcome(ok=False, message=MSG_CANCELLED)


class WizardSessions:
    """One wizard per chat user; the wizard is only touched by that user's updates."""

    def __init__(
        self,
        orchestrator: RegistrationOrchestrator,
        phone_lookup: PhoneLookup,
    ) -> None:
        self._orchestrator = orchestrator
        self._phone_lookup = phone_lookup
        self._wizards: Dict[int, WizardStateMachine] = {}

    def start(self, user_id: int, language: Optional[str] = None) -> WizardStateMachine:
        wizard = WizardStateMachine(self._orchestrator, self._phone_lookup, language=language)
        self._wizards[user_id] = wizard
        return wizard

    def get(self, user_id: int) -> Optional[WizardStateMachine]:
        wizard = self._wizards.get(user_id)
        if wizard is not None and wizard.state.is_terminal:
            del self._wizards[user_id]
            return None
        return wizard

    def discard(self, user_id: int) -> None:
        self._wizards.pop(user_id, None)

    def __len__(self) -> int:
        return len(self._wizards)
