from portal.models.base import Base, engine, AsyncSessionFactory
from portal.models.models import (
    Identity,
    District,
    Community,
    Profile,
    ServiceProviderApplication,
    EnhancedUserRole,
    UserRole,
    AccountStatus,
    ApplicationStatus,
    Language,
)

__all__ = [
    "Base",
    "engine",
    "AsyncSessionFactory",
    "Identity",
    "District",
    "Community",
    "Profile",
    "ServiceProviderApplication",
    "EnhancedUserRole",
    "UserRole",
    "AccountStatus",
    "ApplicationStatus",
    "Language",
]
