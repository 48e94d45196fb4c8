"""
Pytest configuration and shared fixtures.

This module provides common fixtures for testing:
- A controllable clock and a recording SMS sender
- A temporary SQLite database per test
- Wired services (verification, credentials, profiles)
- A registered sample user
"""

import os
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Generator, List, Optional, Tuple

import pytest

# Set test environment variables before imports
os.environ["JWT_TOKEN"] = "test_access_secret_for_testing_only_32bytes!"
os.environ["REFRESH_JWT_TOKEN"] = "test_refresh_secret_for_testing_only_32bytes!"
os.environ["SMS_PROVIDER"] = "log"

from domofon.auth import JWTHandler, PasswordHandler
from domofon.config import Config, DatabaseConfig
from domofon.errors import SMSDeliveryError
from domofon.services import ServiceContext, create_services
from domofon.stores import NewUser


# =============================================================================
# Configuration
# =============================================================================

@pytest.fixture(scope="session")
def test_config():
    """Test configuration values."""
    return {
        "access_secret": "test_access_secret_for_testing_only_32bytes!",
        "refresh_secret": "test_refresh_secret_for_testing_only_32bytes!",
        "test_phone": "+71234567890",
        "other_phone": "+79998887766",
        "test_password": "TestPassword123!",
        "test_username": "testuser",
        "test_email": "test@example.com",
    }


# =============================================================================
# Test doubles
# =============================================================================

class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime.now(timezone.utc).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingSMSSender:
    """SMS sender that keeps messages in memory and can be told to fail."""

    def __init__(self):
        self.messages: List[Tuple[str, str]] = []
        self.fail = False

    def send(self, phone: str, message: str) -> None:
        if self.fail:
            raise SMSDeliveryError("gateway down")
        self.messages.append((phone, message))

    def last_code(self, phone: str) -> str:
        for to, message in reversed(self.messages):
            if to == phone:
                return re.search(r"(\d{4,6})$", message).group(1)
        raise AssertionError(f"No SMS sent to {phone}")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sms_sender() -> RecordingSMSSender:
    return RecordingSMSSender()


# =============================================================================
# Database / services
# =============================================================================

@pytest.fixture
def app_config(tmp_path: Path) -> Config:
    """Config pointing at a throwaway SQLite file, with cheap bcrypt."""
    config = Config()
    config.database = DatabaseConfig(
        url=f"sqlite:///{tmp_path / 'test.db'}",
        echo=False,
        create_schema=True,
    )
    config.password.bcrypt_rounds = 4
    return config


@pytest.fixture
def context(app_config, sms_sender, clock) -> Generator[ServiceContext, None, None]:
    ctx = ServiceContext.create(app_config, sms=sms_sender, clock=clock)
    yield ctx
    ctx.close()


@pytest.fixture
def services(context):
    return create_services(context)


@pytest.fixture
def verification_service(services):
    return services[1]


@pytest.fixture
def credential_service(services):
    return services[2]


@pytest.fixture
def user_service(services):
    return services[3]


@pytest.fixture
def credential_store(context):
    return context.credential_store


@pytest.fixture
def verification_store(context):
    return context.verification_store


# =============================================================================
# Auth primitives
# =============================================================================

@pytest.fixture
def password_handler() -> PasswordHandler:
    """PasswordHandler with the minimum bcrypt cost to keep tests fast."""
    return PasswordHandler(rounds=4)


@pytest.fixture
def jwt_handler(test_config, clock) -> JWTHandler:
    """Create a JWTHandler with test secrets."""
    return JWTHandler(
        access_secret=test_config["access_secret"],
        refresh_secret=test_config["refresh_secret"],
        clock=clock,
    )


# =============================================================================
# Users
# =============================================================================

@pytest.fixture
def make_new_user(credential_service, test_config):
    """Build a NewUser with a hashed password; keyword overrides win."""
    def _make(**overrides) -> NewUser:
        password = overrides.pop("password", test_config["test_password"])
        fields = {
            "username": test_config["test_username"],
            "phone": test_config["test_phone"],
            "email": test_config["test_email"],
            "first_name": "Test",
            "last_name": "User",
            "password_hash": credential_service.hash_password(password),
        }
        fields.update(overrides)
        return NewUser(**fields)
    return _make


@pytest.fixture
def sample_user(credential_service, make_new_user):
    """Create a sample user in the store."""
    return credential_service.register(make_new_user())


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
