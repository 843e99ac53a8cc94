"""
Service-provider self-registration FSM handler.

Flow:
  Register → step 1 fields (name, phone, district, community, location,
  business name, business type, email, password) → duplicate-phone check
  → step 2 (experience if required, documents checklist, PDPA)
  → summary → submit → pending approval ✅

The conversation only drives the WizardStateMachine; every rule lives there.
"""
import logging
import os
from typing import Dict, Optional

from aiogram import Bot, F, Router
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import ExceptionTypeFilter, StateFilter
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, ErrorEvent, Message
from sqlalchemy.ext.asyncio import AsyncSession

from portal.config import settings
from portal.exceptions import IllegalTransitionError, StagingError
from portal.keyboards import (
    DocumentCb,
    MainMenuCb,
    RegistrationCb,
    business_type_kb,
    cancel_registration_kb,
    community_kb,
    confirm_registration_kb,
    district_kb,
    documents_kb,
    main_menu,
    pdpa_kb,
    upload_document_kb,
)
from portal.models.models import Language
from portal.services import (
    business_types,
    document_spec,
    get_community,
    get_district,
    list_communities,
    list_districts,
)
from portal.services.account_status import advise, format_alert
from portal.services.document_staging import StagedFile
from portal.services.identity_service import ACCOUNT_PENDING
from portal.services.wizard import STEP1_FIELDS, WizardState, WizardSessions, WizardStateMachine
from portal.states import RegistrationStates
from portal.validators import check_experience_years, validate_field

logger = logging.getLogger(__name__)
router = Router(name="registration")

S = RegistrationStates

_TEXT_STATES: Dict[str, str] = {
    S.enter_full_name.state:     "full_name",
    S.enter_phone.state:         "phone",
    S.enter_address.state:       "address",
    S.enter_business_name.state: "business_name",
    S.enter_email.state:         "email",
    S.enter_password.state:      "password",
}

_PROMPTS: Dict[str, str] = {
    "full_name":     "👤 Enter your *full name*:",
    "phone":         "📱 Enter your *phone number* (digits only, starting with 0, e.g. `0123456789`):",
    "district_id":   "🗺 Select your *district*:",
    "community_id":  "🏘 Select your *community*:",
    "address":       "📍 Enter your *business location / address*:",
    "business_name": "🏢 Enter your *registered business name* (e.g. _Maju Jaya Enterprise_, _ABC Sdn Bhd_):",
    "business_type": "🧰 Select your *business type*:",
    "email":         "📧 Enter your *email address*:",
    "password":      "🔒 Choose a *password* (at least 6 characters):",
}

PDPA_NOTICE = (
    "📄 *Personal Data Protection Act (PDPA) notice*\n\n"
    "Your personal data and business documents are collected to assess your "
    "service-provider application and to contact you about it. They are shared "
    "only with the community administrators reviewing your application.\n\n"
    "Do you accept?"
)


def _esc(text: str) -> str:
    """Escape legacy-Markdown control characters in user-supplied text."""
    for ch in ("\\", "_", "*", "`", "["):
        text = text.replace(ch, "\\" + ch)
    return text


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _free_name(name: str, taken) -> str:
    """`scan.pdf` -> `scan (2).pdf` while the name is already staged for the type."""
    if name not in taken:
        return name
    stem, ext = os.path.splitext(name)
    n = 2
    while f"{stem} ({n}){ext}" in taken:
        n += 1
    return f"{stem} ({n}){ext}"


async def _session_expired(message: Message, state: FSMContext) -> None:
    await state.clear()
    await message.answer(
        "🔄 *Session expired.* Start the registration again:",
        parse_mode=ParseMode.MARKDOWN,
        reply_markup=main_menu(),
    )


# ── Step 1 prompting ──────────────────────────────────────────────────────────

async def _prompt_field(
    message: Message,
    session: AsyncSession,
    state: FSMContext,
    wizard: WizardStateMachine,
    name: str,
    problem: Optional[str] = None,
) -> None:
    text = _PROMPTS[name]
    if problem:
        text = f"⚠️ {_esc(problem)}\n\n{text}"

    if name == "district_id":
        districts = await list_districts(session)
        await state.set_state(S.choose_district)
        await message.answer(text, parse_mode=ParseMode.MARKDOWN, reply_markup=district_kb(districts))
    elif name == "community_id":
        communities = await list_communities(session, wizard.draft.district_id)
        await state.set_state(S.choose_community)
        await message.answer(text, parse_mode=ParseMode.MARKDOWN, reply_markup=community_kb(communities))
    elif name == "business_type":
        await state.set_state(S.choose_business_type)
        await message.answer(
            text, parse_mode=ParseMode.MARKDOWN, reply_markup=business_type_kb(business_types())
        )
    else:
        target = next(s for s, f in _TEXT_STATES.items() if f == name)
        await state.set_state(target)
        await message.answer(text, parse_mode=ParseMode.MARKDOWN, reply_markup=cancel_registration_kb())


async def _advance_step1(
    message: Message,
    session: AsyncSession,
    state: FSMContext,
    wizard: WizardStateMachine,
    errors: Optional[Dict[str, str]] = None,
) -> None:
    """Prompt the first missing/invalid step-1 field, or run the step-1 transition."""
    errors = errors or {}
    for name in STEP1_FIELDS:
        value = getattr(wizard.draft, name)
        problem = errors.get(name)
        if problem is None:
            check = validate_field(name, value)
            if check.valid:
                continue
            problem = None if _is_blank(value) else check.message
        await _prompt_field(message, session, state, wizard, name, problem)
        return

    outcome = await wizard.next()
    if not outcome.ok:
        await _advance_step1(message, session, state, wizard, outcome.errors)
        return
    await message.answer("✅ *Step 1 complete.* Now the supporting details.", parse_mode=ParseMode.MARKDOWN)
    await _advance_step2(message, state, wizard)


# ── Step 2 prompting ──────────────────────────────────────────────────────────

async def _show_documents(message: Message, state: FSMContext, wizard: WizardStateMachine) -> None:
    cfg = wizard.business_config
    await state.set_state(S.documents)
    lines = [f"📂 *Required documents for {_esc(cfg.label)}:*", ""]
    for spec in cfg.required_documents:
        count = len(wizard.staging.files_for(spec.type))
        mark = f"✅ {count} file(s)" if count else "📎 missing"
        lines.append(f"• {spec.display_name} — {mark}")
    lines.append("\nTap a document to upload files for it.")
    await message.answer(
        "\n".join(lines),
        parse_mode=ParseMode.MARKDOWN,
        reply_markup=documents_kb(cfg.required_documents, wizard.staging.staged_types()),
    )


async def _show_summary(message: Message, state: FSMContext, wizard: WizardStateMachine) -> None:
    d = wizard.draft
    cfg = wizard.business_config
    exp_line = f"🛠 Experience: {d.years_of_experience} year(s)\n" if cfg.requires_experience_years else ""
    await state.set_state(S.confirm)
    text = (
        f"📝 *Check your registration:*\n\n"
        f"👤 {_esc(d.full_name)}\n"
        f"📱 {_esc(d.phone)}\n"
        f"📧 {_esc(d.email)}\n"
        f"📍 {_esc(d.address)}\n"
        f"🏢 {_esc(d.business_name)} ({_esc(cfg.label)})\n"
        f"{exp_line}"
        f"📂 Documents: {len(wizard.staging)} file(s)\n"
        f"📄 PDPA: accepted\n\n"
        f"_Your account will be pending until a community admin approves it._"
    )
    await message.answer(text, parse_mode=ParseMode.MARKDOWN, reply_markup=confirm_registration_kb())


async def _advance_step2(message: Message, state: FSMContext, wizard: WizardStateMachine) -> None:
    cfg = wizard.business_config
    if cfg.requires_experience_years and not check_experience_years(wizard.draft.years_of_experience).valid:
        await state.set_state(S.enter_experience)
        await message.answer(
            "🛠 How many *years of experience* does your business have?",
            parse_mode=ParseMode.MARKDOWN,
            reply_markup=cancel_registration_kb(),
        )
    elif wizard.staging.missing(cfg.required_documents):
        await _show_documents(message, state, wizard)
    elif not wizard.draft.pdpa_accepted:
        await state.set_state(S.confirm_pdpa)
        await message.answer(PDPA_NOTICE, parse_mode=ParseMode.MARKDOWN, reply_markup=pdpa_kb())
    else:
        await _show_summary(message, state, wizard)


# ── Entry: "Register" button ──────────────────────────────────────────────────

@router.callback_query(MainMenuCb.filter(F.action == "register"))
async def cq_start_registration(
    callback: CallbackQuery,
    session: AsyncSession,
    state: FSMContext,
    wizards: WizardSessions,
) -> None:
    lang = callback.from_user.language_code
    wizard = wizards.start(
        callback.from_user.id,
        language=lang if lang in (Language.EN, Language.MS) else settings.DEFAULT_LANGUAGE,
    )
    await callback.message.edit_text(
        "🏢 *Register your business*\n\n"
        "Step 1 of 2 — your details and business facts.",
        parse_mode=ParseMode.MARKDOWN,
    )
    await callback.answer()
    await _advance_step1(callback.message, session, state, wizard)


# ── Step 1: free-text fields ──────────────────────────────────────────────────

@router.message(StateFilter(*_TEXT_STATES), F.text)
async def msg_step1_field(
    message: Message,
    session: AsyncSession,
    state: FSMContext,
    wizards: WizardSessions,
) -> None:
    wizard = wizards.get(message.from_user.id)
    if wizard is None:
        await _session_expired(message, state)
        return

    name = _TEXT_STATES[await state.get_state()]
    value = message.text if name in ("phone", "password") else message.text.strip()
    if name == "password":
        try:
            await message.delete()
        except TelegramBadRequest as exc:
            logger.debug("Could not delete password message: %s", exc)

    check = wizard.update_field(name, value)
    if not check.valid:
        await _prompt_field(message, session, state, wizard, name, check.message)
        return
    await _advance_step1(message, session, state, wizard)


@router.message(StateFilter(S.choose_district, S.choose_community, S.choose_business_type))
async def msg_choice_hint(message: Message) -> None:
    """Catch accidental text input during button-selection steps."""
    await message.answer("👆 Please choose one of the buttons above.")


# ── Step 1: button choices ────────────────────────────────────────────────────

@router.callback_query(RegistrationCb.filter(F.action == "district"), S.choose_district)
async def cq_district(
    callback: CallbackQuery,
    callback_data: RegistrationCb,
    session: AsyncSession,
    state: FSMContext,
    wizards: WizardSessions,
) -> None:
    wizard = wizards.get(callback.from_user.id)
    if wizard is None:
        await callback.answer()
        await _session_expired(callback.message, state)
        return

    district = await get_district(session, int(callback_data.value))
    if district is None:
        await callback.answer("District not found.", show_alert=True)
        return
    if wizard.draft.district_id != district.id:
        wizard.update_field("community_id", None)
    wizard.update_field("district_id", district.id)
    await callback.answer(district.name)
    await _advance_step1(callback.message, session, state, wizard)


@router.callback_query(RegistrationCb.filter(F.action == "community"), S.choose_community)
async def cq_community(
    callback: CallbackQuery,
    callback_data: RegistrationCb,
    session: AsyncSession,
    state: FSMContext,
    wizards: WizardSessions,
) -> None:
    wizard = wizards.get(callback.from_user.id)
    if wizard is None:
        await callback.answer()
        await _session_expired(callback.message, state)
        return

    community = await get_community(session, int(callback_data.value))
    if community is None or community.district_id != wizard.draft.district_id:
        await callback.answer("Community not found.", show_alert=True)
        return
    wizard.update_field("community_id", community.id)
    await callback.answer(community.name)
    await _advance_step1(callback.message, session, state, wizard)


@router.callback_query(RegistrationCb.filter(F.action == "btype"), S.choose_business_type)
async def cq_business_type(
    callback: CallbackQuery,
    callback_data: RegistrationCb,
    session: AsyncSession,
    state: FSMContext,
    wizards: WizardSessions,
) -> None:
    wizard = wizards.get(callback.from_user.id)
    if wizard is None:
        await callback.answer()
        await _session_expired(callback.message, state)
        return

    had_documents = not wizard.staging.is_empty
    wizard.select_business_type(callback_data.value)
    if had_documents and wizard.staging.is_empty:
        await callback.answer("Business type changed — staged documents were cleared.", show_alert=True)
    else:
        await callback.answer(wizard.business_config.label)
    await _advance_step1(callback.message, session, state, wizard)


# ── Step 2: experience ────────────────────────────────────────────────────────

@router.message(S.enter_experience, F.text)
async def msg_experience(message: Message, state: FSMContext, wizards: WizardSessions) -> None:
    wizard = wizards.get(message.from_user.id)
    if wizard is None:
        await _session_expired(message, state)
        return

    check = wizard.update_field("years_of_experience", message.text.strip())
    if not check.valid:
        await message.answer(f"⚠️ {check.message}", reply_markup=cancel_registration_kb())
        return
    await _advance_step2(message, state, wizard)


# ── Step 2: documents ─────────────────────────────────────────────────────────

@router.callback_query(DocumentCb.filter(F.action == "pick"), S.documents)
async def cq_pick_document(
    callback: CallbackQuery,
    callback_data: DocumentCb,
    state: FSMContext,
    wizards: WizardSessions,
) -> None:
    wizard = wizards.get(callback.from_user.id)
    if wizard is None:
        await callback.answer()
        await _session_expired(callback.message, state)
        return

    spec = document_spec(callback_data.doc)
    await state.set_state(S.upload_document)
    await state.update_data(doc_type=spec.type)
    await callback.message.answer(
        f"📎 Send the *{spec.display_name}* as a file or photo.\n"
        f"_PDF, DOC, DOCX, JPG or PNG — up to {settings.MAX_FILES_PER_DOCUMENT} files, "
        f"{settings.MAX_DOCUMENT_SIZE_MB} MB each._",
        parse_mode=ParseMode.MARKDOWN,
        reply_markup=upload_document_kb(spec.type, wizard.staging.files_for(spec.type)),
    )
    await callback.answer()


@router.message(S.upload_document, F.document | F.photo)
async def msg_upload_document(
    message: Message,
    bot: Bot,
    state: FSMContext,
    wizards: WizardSessions,
) -> None:
    wizard = wizards.get(message.from_user.id)
    if wizard is None:
        await _session_expired(message, state)
        return

    doc_type = (await state.get_data()).get("doc_type")
    if message.document:
        tg_file = message.document
        taken = {f.name for f in wizard.staging.files_for(doc_type)}
        name = _free_name(message.document.file_name or f"{doc_type}.bin", taken)
        content_type = message.document.mime_type or "application/octet-stream"
    else:
        tg_file = message.photo[-1]
        name = f"{doc_type}_{tg_file.file_unique_id}.jpg"
        content_type = "image/jpeg"

    if tg_file.file_size and tg_file.file_size > settings.max_document_bytes:
        await message.answer(f"⚠️ {name} is too large (max {settings.MAX_DOCUMENT_SIZE_MB}MB)")
        return

    buf = await bot.download(tg_file)
    staged = StagedFile(name=name, content=buf.read(), content_type=content_type)
    try:
        wizard.stage_documents(doc_type, list(wizard.staging.files_for(doc_type)) + [staged])
    except StagingError as exc:
        await message.answer(f"⚠️ {exc}")
        return

    files = wizard.staging.files_for(doc_type)
    await message.answer(
        f"✅ Added *{_esc(name)}* ({len(files)} file(s) for {document_spec(doc_type).display_name}).",
        parse_mode=ParseMode.MARKDOWN,
        reply_markup=upload_document_kb(doc_type, files),
    )


@router.message(S.upload_document)
async def msg_upload_hint(message: Message) -> None:
    await message.answer("📎 Please send the document as a file or photo, or tap ✅ Done.")


@router.callback_query(DocumentCb.filter(F.action == "remove"), S.upload_document)
async def cq_remove_document(
    callback: CallbackQuery,
    callback_data: DocumentCb,
    state: FSMContext,
    wizards: WizardSessions,
) -> None:
    wizard = wizards.get(callback.from_user.id)
    if wizard is None:
        await callback.answer()
        await _session_expired(callback.message, state)
        return

    files = wizard.staging.files_for(callback_data.doc)
    if 0 <= callback_data.idx < len(files):
        wizard.unstage_document(callback_data.doc, files[callback_data.idx].name)
        await callback.answer("Removed.")
    else:
        await callback.answer("File not found.", show_alert=True)
    await callback.message.edit_reply_markup(
        reply_markup=upload_document_kb(callback_data.doc, wizard.staging.files_for(callback_data.doc))
    )


@router.callback_query(DocumentCb.filter(F.action == "done"), S.upload_document)
async def cq_document_done(callback: CallbackQuery, state: FSMContext, wizards: WizardSessions) -> None:
    wizard = wizards.get(callback.from_user.id)
    if wizard is None:
        await callback.answer()
        await _session_expired(callback.message, state)
        return
    await callback.answer()
    await _show_documents(callback.message, state, wizard)


@router.callback_query(RegistrationCb.filter(F.action == "docs_done"), S.documents)
async def cq_documents_done(callback: CallbackQuery, state: FSMContext, wizards: WizardSessions) -> None:
    wizard = wizards.get(callback.from_user.id)
    if wizard is None:
        await callback.answer()
        await _session_expired(callback.message, state)
        return

    missing = [
        msg for key, msg in wizard.validate_step2().items() if key.startswith("documents.")
    ]
    if missing:
        await callback.answer("\n".join(missing), show_alert=True)
        return
    await callback.answer()
    await _advance_step2(callback.message, state, wizard)


# ── Step 2: consent, back, submit ─────────────────────────────────────────────

@router.callback_query(RegistrationCb.filter(F.action == "pdpa"), S.confirm_pdpa)
async def cq_accept_pdpa(callback: CallbackQuery, state: FSMContext, wizards: WizardSessions) -> None:
    wizard = wizards.get(callback.from_user.id)
    if wizard is None:
        await callback.answer()
        await _session_expired(callback.message, state)
        return
    wizard.update_field("pdpa_accepted", True)
    await callback.answer("PDPA accepted")
    await _advance_step2(callback.message, state, wizard)


@router.callback_query(
    RegistrationCb.filter(F.action == "back"),
    StateFilter(S.documents, S.confirm_pdpa, S.confirm),
)
async def cq_back_to_step1(
    callback: CallbackQuery,
    session: AsyncSession,
    state: FSMContext,
    wizards: WizardSessions,
) -> None:
    """Back to step 1 at the business type; the rest of the draft is kept."""
    wizard = wizards.get(callback.from_user.id)
    if wizard is None:
        await callback.answer()
        await _session_expired(callback.message, state)
        return
    wizard.back()
    await callback.answer()
    await _prompt_field(callback.message, session, state, wizard, "business_type")


@router.callback_query(RegistrationCb.filter(F.action == "submit"), S.confirm)
async def cq_submit(callback: CallbackQuery, state: FSMContext, wizards: WizardSessions) -> None:
    wizard = wizards.get(callback.from_user.id)
    if wizard is None:
        await callback.answer()
        await _session_expired(callback.message, state)
        return

    await callback.answer("⏳ Creating your account…")
    await callback.message.edit_reply_markup(reply_markup=None)
    outcome = await wizard.submit()

    if outcome.ok:
        wizards.discard(callback.from_user.id)
        await state.clear()
        await callback.message.answer(
            "🎉 *Service provider account created!*\n\n" + format_alert(advise(ACCOUNT_PENDING)),
            parse_mode=ParseMode.MARKDOWN,
            reply_markup=main_menu(),
        )
        return

    await callback.message.answer(f"⚠️ {outcome.message}")
    if wizard.state == WizardState.STEP2_EDITING:
        await _advance_step2(callback.message, state, wizard)


# ── Wizard guard ──────────────────────────────────────────────────────────────

@router.errors(ExceptionTypeFilter(IllegalTransitionError))
async def on_illegal_transition(event: ErrorEvent) -> None:
    """A button from an older step was pressed (e.g. while a submit is running)."""
    logger.info("Ignored out-of-step action: %s", event.exception)
    if event.update.callback_query:
        await event.update.callback_query.answer("⏳ Please wait or go back to the current step.")
