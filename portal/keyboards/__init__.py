from portal.keyboards.callbacks import MainMenuCb, RegistrationCb, DocumentCb
from portal.keyboards.main_menu import main_menu, back_to_main
from portal.keyboards.registration_kb import (
    cancel_registration_kb,
    district_kb,
    community_kb,
    business_type_kb,
    documents_kb,
    upload_document_kb,
    pdpa_kb,
    confirm_registration_kb,
)

__all__ = [
    # callbacks
    "MainMenuCb", "RegistrationCb", "DocumentCb",
    # main menu
    "main_menu", "back_to_main",
    # registration
    "cancel_registration_kb", "district_kb", "community_kb", "business_type_kb",
    "documents_kb", "upload_document_kb", "pdpa_kb", "confirm_registration_kb",
]
