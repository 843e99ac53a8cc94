"""
Keyboards for the service-provider registration FSM flow.
"""
from typing import List, Sequence, Tuple

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from portal.keyboards.callbacks import DocumentCb, MainMenuCb, RegistrationCb
from portal.models.models import Community, District
from portal.services.business_types import DocumentSpec
from portal.services.document_staging import StagedFile


def _cancel_row(builder: InlineKeyboardBuilder) -> None:
    builder.row(InlineKeyboardButton(text="❌ Cancel", callback_data=MainMenuCb(action="main").pack()))


def cancel_registration_kb() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    _cancel_row(builder)
    return builder.as_markup()


def district_kb(districts: List[District]) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    for d in districts:
        builder.row(
            InlineKeyboardButton(
                text=d.name,
                callback_data=RegistrationCb(action="district", value=str(d.id)).pack(),
            )
        )
    _cancel_row(builder)
    return builder.as_markup()


def community_kb(communities: List[Community]) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    for c in communities:
        builder.row(
            InlineKeyboardButton(
                text=c.name,
                callback_data=RegistrationCb(action="community", value=str(c.id)).pack(),
            )
        )
    _cancel_row(builder)
    return builder.as_markup()


def business_type_kb(types: Sequence[Tuple[str, str]]) -> InlineKeyboardMarkup:
    """Two business types per row."""
    builder = InlineKeyboardBuilder()
    for key, label in types:
        builder.button(text=label, callback_data=RegistrationCb(action="btype", value=key).pack())
    builder.adjust(2)
    _cancel_row(builder)
    return builder.as_markup()


def documents_kb(required: Sequence[DocumentSpec], staged_types: set) -> InlineKeyboardMarkup:
    """Checklist of required documents: ✅ staged, 📎 still missing."""
    builder = InlineKeyboardBuilder()
    for spec in required:
        mark = "✅" if spec.type in staged_types else "📎"
        builder.row(
            InlineKeyboardButton(
                text=f"{mark} {spec.display_name}",
                callback_data=DocumentCb(action="pick", doc=spec.type).pack(),
            )
        )
    builder.row(
        InlineKeyboardButton(text="🔙 Back",     callback_data=RegistrationCb(action="back").pack()),
        InlineKeyboardButton(text="➡️ Continue", callback_data=RegistrationCb(action="docs_done").pack()),
    )
    _cancel_row(builder)
    return builder.as_markup()


def upload_document_kb(document_type: str, files: Sequence[StagedFile]) -> InlineKeyboardMarkup:
    """Staged files of one type with remove buttons."""
    builder = InlineKeyboardBuilder()
    for i, f in enumerate(files):
        builder.row(
            InlineKeyboardButton(
                text=f"🗑 {f.name}",
                callback_data=DocumentCb(action="remove", doc=document_type, idx=i).pack(),
            )
        )
    builder.row(
        InlineKeyboardButton(text="✅ Done", callback_data=DocumentCb(action="done", doc=document_type).pack()),
    )
    return builder.as_markup()


def pdpa_kb() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(text="✅ I accept the PDPA", callback_data=RegistrationCb(action="pdpa").pack()),
    )
    builder.row(InlineKeyboardButton(text="🔙 Back", callback_data=RegistrationCb(action="back").pack()))
    _cancel_row(builder)
    return builder.as_markup()


def confirm_registration_kb() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(text="✅ Submit", callback_data=RegistrationCb(action="submit").pack()),
        InlineKeyboardButton(text="🔙 Back",   callback_data=RegistrationCb(action="back").pack()),
    )
    _cancel_row(builder)
    return builder.as_markup()
