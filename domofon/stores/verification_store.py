"""SQL-backed storage for one-time phone verification codes."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.orm import Session, sessionmaker

from ..auth.password import mask_phone
from ..db.models import PhoneVerificationTokenRow
from .base import VerificationToken, as_utc

logger = logging.getLogger(__name__)


def _to_token(row: PhoneVerificationTokenRow) -> VerificationToken:
    return VerificationToken(
        phone=row.phone,
        code=row.verification_code,
        expires_at=as_utc(row.expires_at),
        created_at=as_utc(row.created_at),
    )


def _upsert_statement(session: Session, values: dict):
    """Single INSERT .. ON CONFLICT/DUPLICATE KEY UPDATE for the session's dialect."""
    dialect = session.get_bind().dialect.name
    table = PhoneVerificationTokenRow.__table__
    changed = {k: v for k, v in values.items() if k != "phone"}

    if dialect == "postgresql":
        stmt = postgresql.insert(table).values(**values)
        return stmt.on_conflict_do_update(index_elements=[table.c.phone], set_=changed)
    if dialect == "sqlite":
        stmt = sqlite.insert(table).values(**values)
        return stmt.on_conflict_do_update(index_elements=[table.c.phone], set_=changed)
    if dialect in ("mysql", "mariadb"):
        stmt = mysql.insert(table).values(**values)
        return stmt.on_duplicate_key_update(**changed)

    raise NotImplementedError(f"Verification upsert is not supported on {dialect}")


class SQLVerificationStore:
    """
    VerificationStore on top of a SQLAlchemy session factory.

    The table is keyed by phone, so "latest token for a phone" is simply
    the row for that phone.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def upsert(self, phone: str, code: str, expires_at: datetime, created_at: datetime) -> None:
        values = {
            "phone": phone,
            "verification_code": code,
            "expires_at": expires_at,
            "created_at": created_at,
        }
        with self._session_factory.begin() as session:
            session.execute(_upsert_statement(session, values))
        logger.debug(f"Stored verification code for {mask_phone(phone)}, expires {expires_at.isoformat()}")

    def find(self, phone: str, code: str) -> Optional[VerificationToken]:
        with self._session_factory() as session:
            row = session.scalar(
                select(PhoneVerificationTokenRow).where(
                    PhoneVerificationTokenRow.phone == phone,
                    PhoneVerificationTokenRow.verification_code == code,
                )
            )
            return _to_token(row) if row else None

    def find_latest(self, phone: str) -> Optional[VerificationToken]:
        with self._session_factory() as session:
            row = session.get(PhoneVerificationTokenRow, phone)
            return _to_token(row) if row else None

    def delete(self, phone: str, code: Optional[str] = None) -> bool:
        stmt = delete(PhoneVerificationTokenRow).where(PhoneVerificationTokenRow.phone == phone)
        if code is not None:
            stmt = stmt.where(PhoneVerificationTokenRow.verification_code == code)

        with self._session_factory.begin() as session:
            result = session.execute(stmt)
            return result.rowcount > 0
