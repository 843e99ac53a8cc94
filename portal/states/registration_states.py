from aiogram.fsm.state import State, StatesGroup


class RegistrationStates(StatesGroup):
    """FSM for service-provider self-registration."""
    # Step 1 — identity + business facts
    enter_full_name      = State()
    enter_phone          = State()
    choose_district      = State()
    choose_community     = State()
    enter_address        = State()
    enter_business_name  = State()
    choose_business_type = State()
    enter_email          = State()
    enter_password       = State()
    # Step 2 — experience + documents + consent
    enter_experience     = State()
    documents            = State()   # Checklist of required documents
    upload_document      = State()   # Waiting for files of one document type
    confirm_pdpa         = State()
    confirm              = State()   # Summary → submit


class SignInStates(StatesGroup):
    """FSM for email/password sign-in."""
    enter_email    = State()
    enter_password = State()
