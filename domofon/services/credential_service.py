"""
Credential service.

Registration, phone/password login, password change, the SMS-gated
forgot/reset password flow and refresh-token issuance/rotation.

Domain failures are raised as AuthError subclasses; store and SMS
failures propagate unchanged.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple

from ..auth import ExpiringMarks, JWTHandler, PasswordHandler
from ..auth.password import mask_phone
from ..errors import (
    EmailTakenError,
    InvalidOldPasswordError,
    InvalidPasswordError,
    InvalidTokenError,
    NotVerifiedError,
    PhoneTakenError,
    UnauthorizedError,
    UserNotFoundError,
    UsernameTakenError,
)
from ..stores.base import CredentialStore, NewUser, User
from .verification_service import VerificationService

logger = logging.getLogger(__name__)

RESET_MARK_TTL = timedelta(minutes=5)
MIN_PASSWORD_LENGTH = 6


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AuthTokens:
    """Authentication tokens response."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = 900  # seconds

    def to_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in
        }


class CredentialService:
    """
    Service for user credentials.

    Handles:
    - Registration with phone/username/email uniqueness gating
    - Login with phone + password
    - Password change (old password required)
    - Forgot/reset password via SMS code and a short-lived reset mark
    - Access/refresh token pairs with refresh rotation and logout
    """

    def __init__(
        self,
        store: CredentialStore,
        verification: VerificationService,
        jwt_handler: Optional[JWTHandler] = None,
        password_handler: Optional[PasswordHandler] = None,
        reset_marks: Optional[ExpiringMarks] = None,
        min_password_length: int = MIN_PASSWORD_LENGTH,
        reveal_unknown_phone: bool = False,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize credential service.

        Args:
            store: User and refresh token persistence
            verification: SMS code service used by the reset/registration flows
            jwt_handler: Token signer (creates default if not provided)
            password_handler: bcrypt wrapper (creates default if not provided)
            reset_marks: "verified for reset" marks (5 minute TTL by default)
            min_password_length: Lower bound for new passwords
            reveal_unknown_phone: If True, reset requests for unknown phones
                raise UserNotFoundError instead of succeeding silently
            clock: Source of "now" (UTC)
        """
        self._clock = clock or utc_now
        self.store = store
        self.verification = verification
        self.jwt = jwt_handler or JWTHandler(clock=self._clock)
        self.passwords = password_handler or PasswordHandler()
        self.reset_marks = reset_marks or ExpiringMarks(RESET_MARK_TTL, clock=self._clock)
        self.min_password_length = min_password_length
        self.reveal_unknown_phone = reveal_unknown_phone

    # ------------------------------------------------------------------
    # Password hashing boundary
    # ------------------------------------------------------------------

    def hash_password(self, password: str) -> str:
        """
        Hash a plaintext password for storage.

        Raises:
            InvalidPasswordError: empty, too short or over bcrypt's 72 bytes
        """
        self._validate_new_password(password)
        try:
            return self.passwords.hash(password)
        except ValueError as e:
            raise InvalidPasswordError(str(e)) from e

    def check_password(self, password: str, password_hash: Optional[str]) -> bool:
        return self.passwords.verify(password, password_hash)

    def _validate_new_password(self, password: str) -> None:
        if not password or len(password) < self.min_password_length:
            raise InvalidPasswordError(
                f"Password must be at least {self.min_password_length} characters"
            )
        if len(password.encode("utf-8")) > 72:
            raise InvalidPasswordError("Password cannot be longer than 72 bytes")

    # ------------------------------------------------------------------
    # Registration and login
    # ------------------------------------------------------------------

    def register(self, params: NewUser) -> User:
        """
        Register a new user.

        ``params.password_hash`` must come from hash_password. Uniqueness is
        checked phone first, then username, then email. These checks are a
        fast path; the store's UNIQUE constraints catch concurrent inserts
        and raise the same errors.

        Raises:
            InvalidPhoneError, PhoneTakenError, UsernameTakenError, EmailTakenError
        """
        phone = self.verification.normalize(params.phone)
        email = params.email or None

        if self.store.find_by_phone(phone) is not None:
            raise PhoneTakenError()
        if self.store.find_by_username(params.username) is not None:
            raise UsernameTakenError()
        if email is not None and self.store.find_by_email(email) is not None:
            raise EmailTakenError()

        user = self.store.insert_user(NewUser(
            username=params.username,
            phone=phone,
            password_hash=params.password_hash,
            email=email,
            role=params.role or "user",
            first_name=params.first_name,
            last_name=params.last_name,
            is_active=params.is_active,
        ))

        logger.info(f"User registered: {user.id} ({mask_phone(phone)})")
        return user

    def send_registration_code(self, phone: str) -> None:
        """
        Text a registration code to a phone that has no account yet.

        Raises:
            PhoneTakenError: phone already registered
            RateLimitedError: code sent too recently
        """
        phone = self.verification.normalize(phone)
        if self.store.find_by_phone(phone) is not None:
            raise PhoneTakenError()
        self.verification.send_code(phone, purpose="registration")

    def authorize(self, phone: str, password: str) -> User:
        """
        Check phone + password.

        Unknown phone, wrong password and deactivated account all raise the
        same UnauthorizedError.
        """
        user = self._find_by_phone(phone)

        if user is None or not self.check_password(password, user.password_hash):
            logger.warning(f"Failed login for {mask_phone(phone)}")
            raise UnauthorizedError("Invalid phone or password")

        if not user.is_active:
            logger.warning(f"Login attempt on deactivated account {user.id}")
            raise UnauthorizedError("Invalid phone or password")

        return user

    def login(self, phone: str, password: str) -> Tuple[User, AuthTokens]:
        """Authorize and issue a token pair."""
        user = self.authorize(phone, password)
        tokens = self.issue_token_pair(user.id)
        logger.info(f"User logged in: {user.id}")
        return user, tokens

    def authenticate(self, access_token: str) -> User:
        """
        Resolve the user behind an access token.

        Raises:
            UnauthorizedError: invalid/expired token, unknown or inactive user
        """
        try:
            claims = self.jwt.parse_access(access_token)
        except InvalidTokenError as e:
            raise UnauthorizedError("Invalid or expired access token") from e

        user = self.store.find_by_id(claims.user_id)
        if user is None or not user.is_active:
            raise UnauthorizedError("Invalid or expired access token")
        return user

    def _find_by_phone(self, phone: str) -> Optional[User]:
        normalized = self.verification.normalize(phone)
        return self.store.find_by_phone(normalized)

    # ------------------------------------------------------------------
    # Password change / reset
    # ------------------------------------------------------------------

    def change_password(self, phone: str, old_password: str, new_password: str) -> None:
        """
        Change a password after checking the current one.

        Raises:
            InvalidOldPasswordError: unknown phone or wrong current password
            InvalidPasswordError: new password rejected
        """
        user = self._find_by_phone(phone)
        if user is None or not self.check_password(old_password, user.password_hash):
            logger.warning(f"Password change rejected for {mask_phone(phone)}")
            raise InvalidOldPasswordError()

        new_hash = self.hash_password(new_password)
        self.store.update_password_hash(user.phone, new_hash)

        logger.info(f"Password changed for user {user.id}")

    def request_password_reset(self, phone: str) -> None:
        """
        Start the forgot-password flow by texting a reset code.

        For an unknown phone the outcome depends on ``reveal_unknown_phone``:
        silent success (default) or UserNotFoundError.

        Raises:
            UserNotFoundError: unknown phone and reveal_unknown_phone is set
            RateLimitedError: code sent too recently
        """
        user = self._find_by_phone(phone)
        if user is None:
            logger.info(f"Password reset requested for unknown phone {mask_phone(phone)}")
            if self.reveal_unknown_phone:
                raise UserNotFoundError()
            return

        self.verification.send_code(user.phone, purpose="password_reset")

    def confirm_password_reset_code(self, phone: str, code: str) -> None:
        """Verify the texted code and open the reset window for ``phone``."""
        self.verification.verify_code(phone, code)
        self.mark_phone_verified_for_reset(phone)

    def mark_phone_verified_for_reset(self, phone: str) -> None:
        """
        Allow ``phone`` to set a new password within the mark TTL.

        Call only after VerificationService.verify_code succeeded.
        """
        phone = self.verification.normalize(phone)
        expires_at = self.reset_marks.mark(phone)
        logger.info(f"Phone {mask_phone(phone)} verified for reset until {expires_at.isoformat()}")

    def is_phone_verified_for_reset(self, phone: str) -> bool:
        return self.reset_marks.is_marked(self.verification.normalize(phone))

    def reset_password(self, phone: str, new_password: str) -> None:
        """
        Set a new password for a phone that passed SMS verification.

        The reset mark is consumed, so it can't be replayed.

        Raises:
            InvalidPasswordError: new password rejected (mark is kept)
            NotVerifiedError: no live reset mark
            UserNotFoundError: account vanished since verification
        """
        phone = self.verification.normalize(phone)
        self._validate_new_password(new_password)

        mark_expiry = self.reset_marks.take(phone)
        if mark_expiry is None:
            logger.warning(f"Password reset without verification for {mask_phone(phone)}")
            raise NotVerifiedError()

        try:
            updated = self.store.update_password_hash(phone, self.hash_password(new_password))
        except Exception:
            # Give the mark back so the user can retry within the window
            self.reset_marks.restore(phone, mark_expiry)
            raise

        if not updated:
            raise UserNotFoundError()

        logger.info(f"Password reset for {mask_phone(phone)}")

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def issue_token_pair(self, user_id: int) -> AuthTokens:
        """Sign an access/refresh pair sharing one jti and persist the refresh token."""
        access, jti = self.jwt.sign_access(user_id)
        expires_at = self.jwt.refresh_expiry()
        refresh = self.jwt.sign_refresh(user_id, jti)

        self.store.save_refresh_token(refresh, user_id, jti, expires_at)

        return AuthTokens(
            access_token=access,
            refresh_token=refresh,
            expires_in=int(self.jwt.access_ttl.total_seconds()),
        )

    def refresh(self, refresh_token: str) -> AuthTokens:
        """
        Exchange a refresh token for a new pair (rotation).

        The presented token must verify, exist in the store, be unexpired,
        belong to the same user as the stored row and that user must still
        be active. Every failure raises the same UnauthorizedError. The old
        token is deleted before the new pair is issued.
        """
        try:
            claims = self.jwt.parse_refresh(refresh_token)
        except InvalidTokenError as e:
            logger.warning(f"Refresh rejected: {e}")
            raise UnauthorizedError("Invalid or expired refresh token") from e

        record = self.store.find_refresh_token(refresh_token)
        if record is None:
            logger.warning(f"Refresh rejected: unknown token jti={claims.jti}")
            raise UnauthorizedError("Invalid or expired refresh token")

        if record.is_expired(self._clock()):
            logger.warning(f"Refresh rejected: expired token jti={claims.jti}")
            self.store.delete_refresh_token(refresh_token)
            raise UnauthorizedError("Invalid or expired refresh token")

        if record.user_id != claims.user_id:
            logger.warning(f"Refresh rejected: token jti={claims.jti} belongs to another user")
            raise UnauthorizedError("Invalid or expired refresh token")

        user = self.store.find_by_id(record.user_id)
        if user is None or not user.is_active:
            raise UnauthorizedError("Invalid or expired refresh token")

        # A concurrent refresh with the same token loses here
        if not self.store.delete_refresh_token(refresh_token):
            logger.warning(f"Refresh rejected: token jti={claims.jti} already rotated")
            raise UnauthorizedError("Invalid or expired refresh token")

        tokens = self.issue_token_pair(user.id)
        logger.info(f"Rotated refresh token for user {user.id}")
        return tokens

    def logout(self, refresh_token: str) -> None:
        """Revoke a refresh token. Unknown tokens are ignored."""
        if self.store.delete_refresh_token(refresh_token):
            logger.info("Refresh token revoked")
        else:
            logger.debug("Logout with unknown refresh token")
