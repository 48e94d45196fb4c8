"""
SQL-backed credential storage.

Users are keyed by an integer id with UNIQUE phone/username/email. The
UNIQUE constraints are the final word on duplicates: an insert or update
that collides is translated into the matching ConflictError.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from ..auth.password import mask_phone
from ..db.models import RefreshTokenRow, UserRow
from ..errors import CONFLICT_ERRORS, ConflictError
from .base import NewUser, RefreshTokenRecord, User, as_utc

logger = logging.getLogger(__name__)

PROFILE_FIELDS = frozenset({
    "username",
    "email",
    "first_name",
    "last_name",
    "avatar_url",
    "role",
    "is_active",
})

# Order matters: phone is reported before username before email
UNIQUE_FIELDS = ("phone", "username", "email")


def _to_user(row: UserRow) -> User:
    return User(
        id=row.id,
        username=row.username,
        phone=row.phone,
        password_hash=row.password_hash,
        email=row.email,
        role=row.role,
        first_name=row.first_name,
        last_name=row.last_name,
        avatar_url=row.avatar_url,
        is_active=row.is_active,
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


def _to_refresh_record(row: RefreshTokenRow) -> RefreshTokenRecord:
    return RefreshTokenRecord(
        token=row.token,
        user_id=row.user_id,
        jti=row.jti,
        expires_at=as_utc(row.expires_at),
    )


class SQLCredentialStore:
    """
    CredentialStore on top of a SQLAlchemy session factory.

    Every method runs in its own short transaction, so one instance can be
    shared between request threads.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def insert_user(self, new_user: NewUser) -> User:
        row = UserRow(
            username=new_user.username,
            phone=new_user.phone,
            email=new_user.email,
            password_hash=new_user.password_hash,
            role=new_user.role,
            first_name=new_user.first_name,
            last_name=new_user.last_name,
            is_active=new_user.is_active,
        )
        try:
            with self._session_factory.begin() as session:
                session.add(row)
                session.flush()
                user = _to_user(row)
        except IntegrityError as e:
            raise self._conflict_from(e, {
                "phone": new_user.phone,
                "username": new_user.username,
                "email": new_user.email,
            }) from e

        logger.info(f"Inserted user {user.id} ({mask_phone(user.phone)})")
        return user

    def find_by_id(self, user_id: int) -> Optional[User]:
        with self._session_factory() as session:
            row = session.get(UserRow, user_id)
            return _to_user(row) if row else None

    def find_by_phone(self, phone: str) -> Optional[User]:
        return self._find_one(UserRow.phone == phone)

    def find_by_username(self, username: str) -> Optional[User]:
        return self._find_one(UserRow.username == username)

    def find_by_email(self, email: str) -> Optional[User]:
        return self._find_one(UserRow.email == email)

    def _find_one(self, condition) -> Optional[User]:
        with self._session_factory() as session:
            row = session.scalar(select(UserRow).where(condition))
            return _to_user(row) if row else None

    def update_password_hash(self, phone: str, password_hash: str) -> bool:
        with self._session_factory.begin() as session:
            result = session.execute(
                update(UserRow)
                .where(UserRow.phone == phone)
                .values(password_hash=password_hash)
            )
            updated = result.rowcount > 0

        logger.debug(f"Password hash update for {mask_phone(phone)}: updated={updated}")
        return updated

    def update_profile(self, user_id: int, **fields) -> Optional[User]:
        unknown = set(fields) - PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Not profile fields: {', '.join(sorted(unknown))}")

        try:
            with self._session_factory.begin() as session:
                row = session.get(UserRow, user_id)
                if row is None:
                    return None
                for name, value in fields.items():
                    setattr(row, name, value)
                session.flush()
                session.refresh(row)
                user = _to_user(row)
        except IntegrityError as e:
            raise self._conflict_from(e, fields) from e

        logger.debug(f"Updated profile of user {user_id}: {sorted(fields)}")
        return user

    def _conflict_from(self, error: IntegrityError, values: dict) -> Exception:
        """
        Map a UNIQUE violation to PhoneTakenError/UsernameTakenError/EmailTakenError.

        Driver messages name the column (SQLite: "users.phone") or the
        constraint (PostgreSQL: "uq_users_phone"). If neither matches, fall
        back to looking the candidate values up.
        """
        message = str(error.orig).lower()
        for field in UNIQUE_FIELDS:
            if f"users.{field}" in message or f"uq_users_{field}" in message:
                return CONFLICT_ERRORS[field]()

        lookups = {
            "phone": self.find_by_phone,
            "username": self.find_by_username,
            "email": self.find_by_email,
        }
        for field in UNIQUE_FIELDS:
            value = values.get(field)
            if value is not None and lookups[field](value) is not None:
                return CONFLICT_ERRORS[field]()

        logger.error(f"Unclassified integrity error on users: {error.orig}")
        return ConflictError()

    # ------------------------------------------------------------------
    # Refresh tokens
    # ------------------------------------------------------------------

    def save_refresh_token(self, token: str, user_id: int, jti: str, expires_at: datetime) -> None:
        with self._session_factory.begin() as session:
            session.add(RefreshTokenRow(
                token=token,
                user_id=user_id,
                jti=jti,
                expires_at=expires_at,
            ))
        logger.debug(f"Saved refresh token jti={jti} for user {user_id}")

    def find_refresh_token(self, token: str) -> Optional[RefreshTokenRecord]:
        with self._session_factory() as session:
            row = session.get(RefreshTokenRow, token)
            return _to_refresh_record(row) if row else None

    def delete_refresh_token(self, token: str) -> bool:
        with self._session_factory.begin() as session:
            result = session.execute(
                delete(RefreshTokenRow).where(RefreshTokenRow.token == token)
            )
            return result.rowcount > 0
