"""
User profile service.

Profile mutations that touch unique fields (username, email) go through
the same taken-field checks as registration.
"""

import logging
from typing import Optional

from ..errors import EmailTakenError, UserNotFoundError, UsernameTakenError, ValidationError
from ..stores.base import CredentialStore, User

logger = logging.getLogger(__name__)


class UserService:
    """Read and update user profiles."""

    def __init__(self, store: CredentialStore):
        self.store = store

    def get_user(self, user_id: int) -> User:
        user = self.store.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError()
        return user

    def change_username(self, user_id: int, username: str) -> User:
        """
        Rename a user.

        Raises:
            ValidationError: empty username
            UsernameTakenError: another user already has it
            UserNotFoundError: unknown user
        """
        username = (username or "").strip()
        if not username:
            raise ValidationError("Username cannot be empty")

        existing = self.store.find_by_username(username)
        if existing is not None and existing.id != user_id:
            raise UsernameTakenError()

        user = self._update(user_id, username=username)
        logger.info(f"User {user_id} changed username")
        return user

    def update_email(self, user_id: int, email: Optional[str]) -> User:
        """
        Set or clear a user's email.

        Raises:
            EmailTakenError: another user already has it
            UserNotFoundError: unknown user
        """
        email = (email or "").strip() or None

        if email is not None:
            existing = self.store.find_by_email(email)
            if existing is not None and existing.id != user_id:
                raise EmailTakenError()

        user = self._update(user_id, email=email)
        logger.info(f"User {user_id} updated email")
        return user

    def update_full_name(self, user_id: int, first_name: Optional[str], last_name: Optional[str]) -> User:
        return self._update(user_id, first_name=first_name, last_name=last_name)

    def update_avatar_url(self, user_id: int, avatar_url: Optional[str]) -> User:
        """Store (or clear, with None) the avatar URL. The file itself lives elsewhere."""
        return self._update(user_id, avatar_url=avatar_url)

    def _update(self, user_id: int, **fields) -> User:
        user = self.store.update_profile(user_id, **fields)
        if user is None:
            raise UserNotFoundError()
        return user
