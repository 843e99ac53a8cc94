"""
Common handlers: /start, main menu routing.
"""
import logging

from aiogram import F, Router
from aiogram.filters import CommandStart
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message
from aiogram.enums import ParseMode

from portal.keyboards import MainMenuCb, main_menu
from portal.services.wizard import WizardSessions

logger = logging.getLogger(__name__)
router = Router(name="common")

WELCOME_TEXT = (
    "🏘 *Community Services Portal*\n\n"
    "Here you can:\n"
    "• 🏢 Register your business as a service provider\n"
    "• 🔑 Sign in once an administrator has approved you\n\n"
    "Choose an action:"
)


# ── /start ────────────────────────────────────────────────────────────────────

@router.message(CommandStart())
async def cmd_start(message: Message, state: FSMContext, wizards: WizardSessions) -> None:
    await state.clear()
    wizards.discard(message.from_user.id)
    await message.answer(WELCOME_TEXT, parse_mode=ParseMode.MARKDOWN, reply_markup=main_menu())


# ── Main menu callback (also "Cancel" everywhere) ─────────────────────────────

@router.callback_query(MainMenuCb.filter(F.action == "main"))
async def cq_main_menu(callback: CallbackQuery, state: FSMContext, wizards: WizardSessions) -> None:
    await state.clear()
    wizard = wizards.get(callback.from_user.id)
    if wizard is not None and wizard.state.is_editing:
        wizard.cancel()
        logger.info("User %s cancelled registration", callback.from_user.id)
    wizards.discard(callback.from_user.id)

    await callback.message.edit_text(WELCOME_TEXT, parse_mode=ParseMode.MARKDOWN, reply_markup=main_menu())
    await callback.answer()


@router.callback_query(F.data == "noop")
async def cq_noop(callback: CallbackQuery) -> None:
    await callback.answer()
