"""
Phone verification service.

Issues one-time SMS codes, throttles resends and validates codes.

Per-phone lifecycle:
    NoToken -> Pending(code, expiry) -> Consumed   (verify_code succeeded)
                                     -> Expired    (implicit, just unusable)
                                     -> Superseded (a new send overwrote it)
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Callable, Literal, Optional

from ..auth.codes import CodeGenerator
from ..auth.password import mask_phone, normalize_phone
from ..errors import InvalidOrExpiredCodeError, InvalidPhoneError, RateLimitedError
from ..stores.base import VerificationStore
from .sms_service import SMSSender

logger = logging.getLogger(__name__)

CODE_TTL = timedelta(minutes=5)
RESEND_INTERVAL = timedelta(seconds=60)

CodePurpose = Literal["verification", "registration", "password_reset"]

MESSAGE_TEMPLATES = {
    "verification": "Your verification code: {code}",
    "registration": "Your registration code: {code}",
    "password_reset": "Your password reset code: {code}",
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class VerificationService:
    """
    Service for one-time phone verification codes.

    Handles:
    - Sending a code (with resend throttling)
    - Resending a code (same throttle)
    - Verifying and consuming a code
    """

    def __init__(
        self,
        store: VerificationStore,
        sms: SMSSender,
        code_generator: Optional[CodeGenerator] = None,
        code_ttl: timedelta = CODE_TTL,
        resend_interval: timedelta = RESEND_INTERVAL,
        default_country_code: str = "7",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize verification service.

        Args:
            store: Where codes are kept (one row per phone)
            sms: SMS transport
            code_generator: Code source (default: 4 digits)
            code_ttl: How long a code stays usable
            resend_interval: Minimum time between two sends to one phone
            default_country_code: Used to normalize national phone formats
            clock: Source of "now" (UTC)
        """
        self.store = store
        self.sms = sms
        self.codes = code_generator or CodeGenerator()
        self.code_ttl = code_ttl
        self.resend_interval = resend_interval
        self.default_country_code = default_country_code
        self._clock = clock or utc_now

    def normalize(self, phone: str) -> str:
        """Normalize ``phone`` or raise InvalidPhoneError."""
        normalized = normalize_phone(phone, self.default_country_code)
        if not normalized:
            raise InvalidPhoneError()
        return normalized

    def send_code(self, phone: str, purpose: CodePurpose = "verification") -> None:
        """
        Generate, store and text a new code to ``phone``.

        A new code replaces any previous one, so older codes stop working.
        If the SMS transport fails the stored code is kept; the error is
        raised to the caller.

        Raises:
            InvalidPhoneError: phone can't be normalized
            RateLimitedError: previous code was sent less than resend_interval ago
            SMSDeliveryError: transport failure
        """
        phone = self.normalize(phone)
        now = self._clock()

        latest = self.store.find_latest(phone)
        if latest is not None:
            elapsed = now - latest.created_at
            if elapsed < self.resend_interval:
                retry_after = math.ceil((self.resend_interval - elapsed).total_seconds())
                logger.warning(f"Code resend for {mask_phone(phone)} throttled, retry in {retry_after}s")
                raise RateLimitedError(retry_after=retry_after)

        code = self.codes.generate()
        expires_at = now + self.code_ttl
        self.store.upsert(phone, code, expires_at, now)

        message = MESSAGE_TEMPLATES[purpose].format(code=code)
        self.sms.send(phone, message)

        logger.info(f"Sent {purpose} code to {mask_phone(phone)}, valid until {expires_at.isoformat()}")

    def resend_code(self, phone: str, purpose: CodePurpose = "verification") -> None:
        """Same as send_code, throttled identically."""
        self.send_code(phone, purpose)

    def verify_code(self, phone: str, code: str) -> None:
        """
        Check ``code`` for ``phone`` and consume it.

        Wrong, never-requested, expired and already-used codes all raise
        the same InvalidOrExpiredCodeError.
        """
        phone = self.normalize(phone)
        now = self._clock()

        token = self.store.find(phone, code) if code else None
        if token is None:
            logger.warning(f"Verification failed for {mask_phone(phone)}: no matching code")
            raise InvalidOrExpiredCodeError()

        if token.is_expired(now):
            logger.warning(f"Verification failed for {mask_phone(phone)}: code expired")
            raise InvalidOrExpiredCodeError()

        # Only the call that removes the row wins when two verify at once
        if not self.store.delete(phone, code):
            logger.warning(f"Verification failed for {mask_phone(phone)}: code already consumed")
            raise InvalidOrExpiredCodeError()

        logger.info(f"Phone {mask_phone(phone)} verified")
