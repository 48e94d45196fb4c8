"""Persistence interfaces and their SQL implementations."""

from .base import (
    CredentialStore,
    VerificationStore,
    User,
    NewUser,
    VerificationToken,
    RefreshTokenRecord,
)
from .credential_store import SQLCredentialStore
from .verification_store import SQLVerificationStore

__all__ = [
    "CredentialStore",
    "VerificationStore",
    "User",
    "NewUser",
    "VerificationToken",
    "RefreshTokenRecord",
    "SQLCredentialStore",
    "SQLVerificationStore",
]
