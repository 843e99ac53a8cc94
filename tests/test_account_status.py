"""
Unit tests — Account-status advisor (services/account_status.py).
"""
from __future__ import annotations

import pytest

from portal.exceptions import AccountStatusError
from portal.services.account_status import GENERIC_ERROR_MESSAGE, KNOWN_CODES, advise, format_alert


class TestAdvise:
    @pytest.mark.parametrize("code,status,retry,contact", [
        ("ACCOUNT_INACTIVE",     "inactive",     True,  True),
        ("ACCOUNT_PENDING",      "pending",      True,  False),
        ("ACCOUNT_REJECTED",     "rejected",     False, True),
        ("ACCOUNT_SUSPENDED",    "suspended",    False, True),
        ("ACCOUNT_NOT_APPROVED", "not_approved", True,  True),
    ])
    def test_known_codes(self, code: str, status: str, retry: bool, contact: bool) -> None:
        alert = advise(code)
        assert alert.status == status
        assert alert.retry_allowed is retry
        assert alert.contact_admin_action is contact
        assert alert.is_known

    def test_all_codes_covered(self) -> None:
        assert len(KNOWN_CODES) == 5

    def test_accepts_exception_with_code(self) -> None:
        assert advise(AccountStatusError("ACCOUNT_SUSPENDED")).status == "suspended"

    def test_accepts_exception_with_code_as_message(self) -> None:
        assert advise(RuntimeError("ACCOUNT_REJECTED")).status == "rejected"

    def test_unknown_error_keeps_message(self) -> None:
        alert = advise("Network unreachable")
        assert alert.status == "error"
        assert alert.description == "Network unreachable"
        assert not alert.is_known

    def test_none_gets_generic_message(self) -> None:
        assert advise(None).description == GENERIC_ERROR_MESSAGE


class TestFormatAlert:
    def test_pending_alert_text(self) -> None:
        text = format_alert(advise("ACCOUNT_PENDING"))
        assert "Account Pending Approval" in text
        assert "Contact your community administrator" not in text

    def test_rejected_offers_contact_but_no_retry(self) -> None:
        text = format_alert(advise("ACCOUNT_REJECTED"))
        assert "Contact your community administrator" in text
        assert "try again" not in text
