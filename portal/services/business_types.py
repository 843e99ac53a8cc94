"""
Business-type registry — static lookup of per-type registration requirements.

Each business type states whether years of experience are mandatory and which
supporting documents must be uploaded. Unknown types fall back to "other".
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple


@dataclass(frozen=True)
class DocumentSpec:
    type: str
    display_name: str
    display_name_localized: str   # Bahasa Melayu


@dataclass(frozen=True)
class BusinessTypeConfig:
    key: str
    label: str
    requires_experience_years: bool
    required_documents: Tuple[DocumentSpec, ...]

    @property
    def required_document_types(self) -> List[str]:
        return [d.type for d in self.required_documents]


# ── Document catalogue ────────────────────────────────────────────────────────

LICENSE               = DocumentSpec("license", "Business License", "Lesen Perniagaan")
BACKGROUND_CHECK      = DocumentSpec("background_check", "Background Check", "Semakan Latar Belakang")
TRAINING              = DocumentSpec("training", "Training Certificate", "Sijil Latihan")
BUSINESS_REGISTRATION = DocumentSpec("business_registration", "Business Registration (SSM)", "Pendaftaran Perniagaan (SSM)")
INSURANCE             = DocumentSpec("insurance", "Insurance Certificate", "Sijil Insurans")
TRADE_CERTIFICATE     = DocumentSpec("trade_certificate", "Trade Certificate", "Sijil Kemahiran")
FOOD_HANDLING         = DocumentSpec("food_handling", "Food Handling Certificate", "Sijil Pengendalian Makanan")

OTHER = "other"

_REGISTRY: Dict[str, BusinessTypeConfig] = {
    cfg.key: cfg
    for cfg in (
        BusinessTypeConfig("security", "Security Services", True,
                           (LICENSE, BACKGROUND_CHECK, TRAINING)),
        BusinessTypeConfig("cleaning", "Cleaning Services", False,
                           (BUSINESS_REGISTRATION, INSURANCE)),
        BusinessTypeConfig("maintenance", "Maintenance & Repair", True,
                           (BUSINESS_REGISTRATION, TRADE_CERTIFICATE)),
        BusinessTypeConfig("electrical", "Electrical Works", True,
                           (LICENSE, TRADE_CERTIFICATE, INSURANCE)),
        BusinessTypeConfig("plumbing", "Plumbing", True,
                           (LICENSE, TRADE_CERTIFICATE)),
        BusinessTypeConfig("landscaping", "Landscaping", False,
                           (BUSINESS_REGISTRATION,)),
        BusinessTypeConfig("pest_control", "Pest Control", True,
                           (LICENSE, INSURANCE)),
        BusinessTypeConfig("catering", "Catering", False,
                           (BUSINESS_REGISTRATION, FOOD_HANDLING)),
        BusinessTypeConfig(OTHER, "Other", False,
                           (BUSINESS_REGISTRATION,)),
    )
}


def config_for(business_type: str) -> BusinessTypeConfig:
    """Requirements for a business type; never fails."""
    return _REGISTRY.get((business_type or "").strip().lower(), _REGISTRY[OTHER])


def required_documents(business_type: str) -> Tuple[DocumentSpec, ...]:
    return config_for(business_type).required_documents


def is_known_type(business_type: str) -> bool:
    return (business_type or "").strip().lower() in _REGISTRY


def business_types() -> List[Tuple[str, str]]:
    """(key, label) pairs in display order, "other" last."""
    return [(cfg.key, cfg.label) for cfg in _REGISTRY.values()]


def document_spec(document_type: str) -> DocumentSpec:
    """Look up a document by type across all business types."""
    for cfg in _REGISTRY.values():
        for spec in cfg.required_documents:
            if spec.type == document_type:
                return spec
    return DocumentSpec(document_type, document_type.replace("_", " ").title(), document_type)
