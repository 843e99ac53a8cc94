from portal.services.business_types import (
    BusinessTypeConfig, DocumentSpec,
    config_for, required_documents, business_types, document_spec, is_known_type,
)
from portal.services.document_staging import DocumentStagingArea, StagedFile
from portal.services.registration_store import (
    list_districts, list_communities, get_district, get_community,
    phone_registered, phone_lookup_for, get_profile, update_profile,
    upsert_application, get_application,
    assign_role, find_role_assignment, list_role_assignments,
)
from portal.services.identity_service import DatabaseIdentityService, IdentityProvider
from portal.services.storage_service import LocalObjectStorage, ObjectStorage, document_path
from portal.services.orchestrator import (
    RegistrationDraft, RegistrationContext, RegistrationOrchestrator,
    ProvisionedIdentity, UploadedDocumentRef,
)
from portal.services.wizard import WizardState, WizardStateMachine, WizardSessions, StepOutcome
from portal.services.account_status import AccountStatusAlert, advise, format_alert

__all__ = [
    # business types
    "BusinessTypeConfig", "DocumentSpec",
    "config_for", "required_documents", "business_types", "document_spec", "is_known_type",
    # staging
    "DocumentStagingArea", "StagedFile",
    # store
    "list_districts", "list_communities", "get_district", "get_community",
    "phone_registered", "phone_lookup_for", "get_profile", "update_profile",
    "upsert_application", "get_application",
    "assign_role", "find_role_assignment", "list_role_assignments",
    # collaborators
    "DatabaseIdentityService", "IdentityProvider",
    "LocalObjectStorage", "ObjectStorage", "document_path",
    # orchestration
    "RegistrationDraft", "RegistrationContext", "RegistrationOrchestrator",
    "ProvisionedIdentity", "UploadedDocumentRef",
    # wizard
    "WizardState", "WizardStateMachine", "WizardSessions", "StepOutcome",
    # account status
    "AccountStatusAlert", "advise", "format_alert",
]
