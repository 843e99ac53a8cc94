"""
Account-status advisor.

Turns the ACCOUNT_* codes the identity service raises at sign-in into a
uniform alert: what to show and which follow-up the user is offered.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Union

from portal.services.identity_service import (
    ACCOUNT_INACTIVE,
    ACCOUNT_NOT_APPROVED,
    ACCOUNT_PENDING,
    ACCOUNT_REJECTED,
    ACCOUNT_SUSPENDED,
)

GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again."


@dataclass(frozen=True)
class AccountStatusAlert:
    status: str                 # inactive | pending | rejected | suspended | not_approved | error
    title: str
    description: str
    retry_allowed: bool
    contact_admin_action: bool

    @property
    def is_known(self) -> bool:
        return self.status != "error"


_ALERTS: Dict[str, AccountStatusAlert] = {
    ACCOUNT_INACTIVE: AccountStatusAlert(
        status="inactive",
        title="Account Deactivated",
        description="Your account has been deactivated. "
                    "Please contact your administrator for assistance.",
        retry_allowed=True,
        contact_admin_action=True,
    ),
    ACCOUNT_PENDING: AccountStatusAlert(
        status="pending",
        title="Account Pending Approval",
        description="Your account is still pending approval. "
                    "Please wait for admin approval before signing in.",
        retry_allowed=True,
        contact_admin_action=False,
    ),
    ACCOUNT_REJECTED: AccountStatusAlert(
        status="rejected",
        title="Account Rejected",
        description="Your account application has been rejected. "
                    "Please contact your administrator for more information.",
        retry_allowed=False,
        contact_admin_action=True,
    ),
    ACCOUNT_SUSPENDED: AccountStatusAlert(
        status="suspended",
        title="Account Suspended",
        description="Your account has been suspended. "
                    "Please contact your administrator to resolve this issue.",
        retry_allowed=False,
        contact_admin_action=True,
    ),
    ACCOUNT_NOT_APPROVED: AccountStatusAlert(
        status="not_approved",
        title="Account Not Approved",
        description="Your account has not been approved yet. "
                    "Please contact your administrator.",
        retry_allowed=True,
        contact_admin_action=True,
    ),
}

KNOWN_CODES = frozenset(_ALERTS)


def _code_of(error: Union[BaseException, str, None]) -> Optional[str]:
    if error is None:
        return None
    if isinstance(error, str):
        return error.strip()
    code = getattr(error, "code", None)
    if isinstance(code, str):
        return code
    return str(error).strip()


def advise(error: Union[BaseException, str, None]) -> AccountStatusAlert:
    """
    Alert for an ACCOUNT_* code, an exception carrying one (as `.code` or as
    its message), or anything else — the latter becomes a generic error alert
    that keeps the original message.
    """
    code = _code_of(error)
    if code in _ALERTS:
        return _ALERTS[code]

    detail = code or GENERIC_ERROR_MESSAGE
    return AccountStatusAlert(
        status="error",
        title="Sign-in failed",
        description=detail,
        retry_allowed=True,
        contact_admin_action=False,
    )


def format_alert(alert: AccountStatusAlert) -> str:
    """Markdown text for chat surfaces."""
    icon = {
        "inactive":     "🚫",
        "pending":      "⏳",
        "rejected":     "❌",
        "suspended":    "⛔️",
        "not_approved": "⚠️",
    }.get(alert.status, "⚠️")
    lines = [f"{icon} *{alert.title}*", "", alert.description]
    if alert.contact_admin_action:
        lines.append("\n📞 _Contact your community administrator._")
    if alert.retry_allowed:
        lines.append("🔁 _You can try again later._")
    return "\n".join(lines)
