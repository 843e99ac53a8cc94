"""
Workflow services middleware.

Injects the long-lived registration collaborators into handler data:
`wizards` (WizardSessions) and `identity` (DatabaseIdentityService).
"""
from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject

from portal.services.identity_service import DatabaseIdentityService
from portal.services.wizard import WizardSessions


class ServicesMiddleware(BaseMiddleware):
    def __init__(self, wizards: WizardSessions, identity: DatabaseIdentityService) -> None:
        self._wizards = wizards
        self._identity = identity

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        data["wizards"] = self._wizards
        data["identity"] = self._identity
        return await handler(event, data)
