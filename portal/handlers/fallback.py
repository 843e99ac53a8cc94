"""
Global fallback handler — included LAST in the dispatcher.

Catches any callback query that no other router handled.
Prevents infinite Telegram spinners from:
  - Stale keyboards after bot restart (MemoryStorage and wizards are wiped on redeploy)
  - Buttons from a registration step the user has already left
"""
from aiogram import Router
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramBadRequest
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery

from portal.keyboards import main_menu

router = Router(name="fallback")


@router.callback_query()
async def cq_fallback(callback: CallbackQuery, state: FSMContext) -> None:
    await callback.answer("⚠️ This button is outdated. Please start again.", show_alert=True)
    await state.clear()
    try:
        await callback.message.edit_text(
            "🔄 *Session reset.* Back to the main menu:",
            parse_mode=ParseMode.MARKDOWN,
            reply_markup=main_menu(),
        )
    except TelegramBadRequest:
        # Message too old to edit
        await callback.message.answer(
            "🔄 *Session reset.* Back to the main menu:",
            parse_mode=ParseMode.MARKDOWN,
            reply_markup=main_menu(),
        )
