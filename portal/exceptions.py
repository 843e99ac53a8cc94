"""
Exception hierarchy for the registration workflow and its collaborators.
"""
from __future__ import annotations

from typing import Optional


class PortalError(Exception):
    """Base class for all portal errors."""


# ── Identity ──────────────────────────────────────────────────────────────────

class IdentityError(PortalError):
    """Identity service rejected the request."""


class AlreadyRegisteredError(IdentityError):
    def __init__(self, email: str) -> None:
        super().__init__(f"User already registered: {email}")
        self.email = email


class InvalidCredentialsError(IdentityError):
    def __init__(self) -> None:
        super().__init__("Invalid login credentials")


class AccountStatusError(IdentityError):
    """
    Sign-in blocked by the account's approval state.
    `code` is one of the ACCOUNT_* codes understood by AccountStatusAdvisor.
    """

    def __init__(self, code: str) -> None:
        super().__init__(code)
        self.code = code


# ── Storage ───────────────────────────────────────────────────────────────────

class StorageError(PortalError):
    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Upload to {path!r} failed: {reason}")
        self.path = path
        self.reason = reason


# ── Wizard ────────────────────────────────────────────────────────────────────

class StagingError(PortalError):
    """A selected file cannot be staged (type, size or count limits)."""


class WizardError(PortalError):
    pass


class IllegalTransitionError(WizardError):
    def __init__(self, current: str, action: str) -> None:
        super().__init__(f"Cannot {action} while in state {current}")
        self.current = current
        self.action = action


# ── Orchestration ─────────────────────────────────────────────────────────────

class OrchestrationError(PortalError):
    """
    Failure of the registration write sequence, already phrased for the user.

    Attributes
    ----------
    code    : one of OrchestrationError.* codes
    message : human-readable message
    user_id : id of the identity when it was created before the failure
    """

    EMAIL_ALREADY_REGISTERED = "EMAIL_ALREADY_REGISTERED"
    SIGNUP_FAILED            = "SIGNUP_FAILED"
    DOCUMENT_UPLOAD_FAILED   = "DOCUMENT_UPLOAD_FAILED"
    ACCOUNT_CREATION_FAILED  = "ACCOUNT_CREATION_FAILED"

    def __init__(self, code: str, message: str, user_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.user_id = user_id
