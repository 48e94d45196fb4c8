"""
Store interfaces and the plain records they return.

Services depend only on these protocols; the SQL implementations live
next to this module.
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Optional, Protocol


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from drivers that drop tzinfo (SQLite)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class User:
    """User data model."""
    id: int
    username: str
    phone: str
    password_hash: str
    email: Optional[str] = None
    role: str = "user"
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar_url: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        """Public representation; never includes the password hash."""
        data = asdict(self)
        data.pop("password_hash")
        for key in ("created_at", "updated_at"):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data


@dataclass
class NewUser:
    """Registration input. ``password_hash`` must already be hashed."""
    username: str
    phone: str
    password_hash: str
    email: Optional[str] = None
    role: str = "user"
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_active: bool = True


@dataclass
class VerificationToken:
    """Stored one-time code for a phone."""
    phone: str
    code: str
    expires_at: datetime
    created_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


@dataclass
class RefreshTokenRecord:
    """Stored refresh token row."""
    token: str
    user_id: int
    jti: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


class CredentialStore(Protocol):
    """Users, password hashes and issued refresh tokens."""

    def insert_user(self, new_user: NewUser) -> User:
        """Insert a user. Raises PhoneTakenError/UsernameTakenError/EmailTakenError."""
        ...

    def find_by_id(self, user_id: int) -> Optional[User]: ...

    def find_by_phone(self, phone: str) -> Optional[User]: ...

    def find_by_username(self, username: str) -> Optional[User]: ...

    def find_by_email(self, email: str) -> Optional[User]: ...

    def update_password_hash(self, phone: str, password_hash: str) -> bool:
        """Returns False when no user has ``phone``."""
        ...

    def update_profile(self, user_id: int, **fields) -> Optional[User]:
        """Update profile columns. Returns None when the user does not exist."""
        ...

    def save_refresh_token(self, token: str, user_id: int, jti: str, expires_at: datetime) -> None: ...

    def find_refresh_token(self, token: str) -> Optional[RefreshTokenRecord]: ...

    def delete_refresh_token(self, token: str) -> bool:
        """Returns True only for the call that actually removed the row."""
        ...


class VerificationStore(Protocol):
    """One-time codes keyed by phone."""

    def upsert(self, phone: str, code: str, expires_at: datetime, created_at: datetime) -> None:
        """Atomically replace any existing row for ``phone``."""
        ...

    def find(self, phone: str, code: str) -> Optional[VerificationToken]: ...

    def find_latest(self, phone: str) -> Optional[VerificationToken]: ...

    def delete(self, phone: str, code: Optional[str] = None) -> bool:
        """Delete the row for ``phone`` (only if it still holds ``code`` when given)."""
        ...
