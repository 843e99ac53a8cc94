"""
Centralized CallbackData factories.
Telegram limits callback_data to 64 bytes — all prefixes are kept short.
"""
from aiogram.filters.callback_data import CallbackData


class MainMenuCb(CallbackData, prefix="mm"):
    action: str           # main | register | signin


class RegistrationCb(CallbackData, prefix="reg"):
    action: str           # district | community | btype | back | pdpa | submit | docs_done
    value: str = ""       # id / business-type key


class DocumentCb(CallbackData, prefix="doc"):
    action: str           # pick | remove | done
    doc: str = ""         # document type
    idx: int = 0          # file index within the type (remove)
