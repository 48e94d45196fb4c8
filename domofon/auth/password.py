"""
Password hashing and phone number helpers.

Passwords are stored as bcrypt hashes only. Phone numbers are kept in one
canonical "+<digits>" form so lookups and uniqueness checks agree.
"""

import logging
from typing import Optional

import bcrypt

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 12
BCRYPT_MAX_BYTES = 72

# E.164 allows at most 15 digits after the "+"
MIN_PHONE_DIGITS = 10
MAX_PHONE_DIGITS = 15


class PasswordHandler:
    """
    bcrypt wrapper used by the credential service.

    ``rounds`` is the bcrypt cost; tests lower it to 4.
    """

    def __init__(self, rounds: int = BCRYPT_ROUNDS):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        """
        Return a salted bcrypt hash of ``password``.

        Raises:
            ValueError: empty password, or more than 72 bytes once encoded
                (bcrypt would silently ignore the tail)
        """
        if not password:
            raise ValueError("Password cannot be empty")

        raw = password.encode("utf-8")
        if len(raw) > BCRYPT_MAX_BYTES:
            raise ValueError(f"Password cannot be longer than {BCRYPT_MAX_BYTES} bytes")

        return bcrypt.hashpw(raw, bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, password: str, hashed: Optional[str]) -> bool:
        """True when ``password`` matches ``hashed``. Accounts without a hash never match."""
        if not password or not hashed:
            return False

        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError as e:
            # Malformed hash in storage or an over-long candidate
            logger.warning(f"Password verification error: {e}")
            return False

    @staticmethod
    def cost_of(hashed: str) -> Optional[int]:
        """Cost factor encoded in a ``$2b$<cost>$...`` hash, or None if unreadable."""
        parts = hashed.split("$")
        if len(parts) < 4 or not parts[2].isdigit():
            return None
        return int(parts[2])

    def needs_rehash(self, hashed: str) -> bool:
        """A stored hash made with a different cost should be replaced on next login."""
        return self.cost_of(hashed) != self.rounds


def normalize_phone(phone: Optional[str], default_country_code: str = "7") -> Optional[str]:
    """
    Normalize a phone number to "+<country><number>".

    Removes spaces, dashes, parentheses and ensures it starts with +.

    Args:
        phone: Phone number in any format
        default_country_code: Country code applied to national numbers

    Returns:
        Normalized phone number or None if invalid

    Examples:
        normalize_phone("+7 (123) 456-78-90") -> "+71234567890"
        normalize_phone("81234567890") -> "+71234567890"
        normalize_phone("1234567890") -> "+71234567890"
    """
    if not phone:
        return None

    if any(c.isalpha() for c in phone):
        return None

    cleaned = "".join(c for c in phone if c.isdigit() or c == "+")

    if "+" in cleaned[1:]:
        return None

    if not cleaned.startswith("+"):
        national_length = len(cleaned) - len(default_country_code)
        if len(cleaned) == 10:
            cleaned = "+" + default_country_code + cleaned
        elif default_country_code == "7" and len(cleaned) == 11 and cleaned.startswith("8"):
            # Russian trunk prefix: 8 XXX XXX-XX-XX
            cleaned = "+7" + cleaned[1:]
        elif cleaned.startswith(default_country_code) and national_length == 10:
            cleaned = "+" + cleaned
        else:
            return None

    digits = len(cleaned) - 1
    if digits < MIN_PHONE_DIGITS or digits > MAX_PHONE_DIGITS:
        return None

    return cleaned


def mask_phone(phone: Optional[str]) -> str:
    """Hide the middle of a phone number for log output."""
    if not phone:
        return "<none>"
    if len(phone) <= 6:
        return "*" * len(phone)
    return phone[:2] + "*" * (len(phone) - 6) + phone[-4:]
