"""
Email/password sign-in.

Only approved, active accounts get through; every refusal is rendered by the
account-status advisor so the user sees why and what to do next.
"""
import logging

from aiogram import F, Router
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramBadRequest
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from portal.exceptions import AccountStatusError, InvalidCredentialsError
from portal.keyboards import MainMenuCb, back_to_main, main_menu
from portal.services.account_status import advise, format_alert
from portal.services.identity_service import DatabaseIdentityService
from portal.states import SignInStates
from portal.validators import check_email

logger = logging.getLogger(__name__)
router = Router(name="sign_in")


@router.callback_query(MainMenuCb.filter(F.action == "signin"))
async def cq_start_sign_in(callback: CallbackQuery, state: FSMContext) -> None:
    await state.set_state(SignInStates.enter_email)
    await callback.message.edit_text(
        "🔑 *Sign in*\n\nEnter your *email address*:",
        parse_mode=ParseMode.MARKDOWN,
        reply_markup=back_to_main(),
    )
    await callback.answer()


@router.message(SignInStates.enter_email, F.text)
async def msg_sign_in_email(message: Message, state: FSMContext) -> None:
    email = message.text.strip().lower()
    check = check_email(email)
    if not check.valid:
        await message.answer(f"⚠️ {check.message}", reply_markup=back_to_main())
        return

    await state.update_data(email=email)
    await state.set_state(SignInStates.enter_password)
    await message.answer("🔒 Enter your *password*:", parse_mode=ParseMode.MARKDOWN, reply_markup=back_to_main())


@router.message(SignInStates.enter_password, F.text)
async def msg_sign_in_password(
    message: Message,
    state: FSMContext,
    identity: DatabaseIdentityService,
) -> None:
    password = message.text
    try:
        await message.delete()
    except TelegramBadRequest as exc:
        logger.debug("Could not delete password message: %s", exc)

    email = (await state.get_data()).get("email", "")
    try:
        user_id = await identity.sign_in(email, password)
    except InvalidCredentialsError as exc:
        await state.set_state(SignInStates.enter_email)
        await message.answer(
            f"⚠️ {exc}\n\nEnter your *email address* again:",
            parse_mode=ParseMode.MARKDOWN,
            reply_markup=back_to_main(),
        )
        return
    except AccountStatusError as exc:
        await state.clear()
        await message.answer(
            format_alert(advise(exc)), parse_mode=ParseMode.MARKDOWN, reply_markup=main_menu()
        )
        return

    await state.clear()
    await state.update_data(user_id=user_id)
    logger.info("User %s signed in as %s", message.from_user.id, user_id)
    await message.answer(
        "✅ *Signed in.* Your service-provider account is active.",
        parse_mode=ParseMode.MARKDOWN,
        reply_markup=main_menu(),
    )
