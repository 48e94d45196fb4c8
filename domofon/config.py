"""Configuration module for the domofon auth backend."""

import os
from dataclasses import dataclass, field
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class DatabaseConfig:
    """Relational store connection."""
    url: str = field(default_factory=lambda: os.getenv("DATABASE_URL", "sqlite:///data/domofon.db"))
    echo: bool = field(default_factory=lambda: _env_bool("DATABASE_ECHO", "false"))
    create_schema: bool = field(default_factory=lambda: _env_bool("DATABASE_CREATE_SCHEMA", "true"))


@dataclass
class JWTConfig:
    """Access/refresh token signing."""
    # Empty secrets fall back to the development key inside JWTHandler
    access_secret: str = field(default_factory=lambda: os.getenv("JWT_TOKEN", ""))
    refresh_secret: str = field(default_factory=lambda: os.getenv("REFRESH_JWT_TOKEN", ""))
    issuer: str = field(default_factory=lambda: os.getenv("JWT_ISSUER", "domofon"))
    audience: str = field(default_factory=lambda: os.getenv("JWT_AUDIENCE", "domofon"))
    access_ttl_seconds: int = field(default_factory=lambda: int(os.getenv("ACCESS_TOKEN_TTL_SECONDS", "900")))
    refresh_ttl_seconds: int = field(default_factory=lambda: int(os.getenv("REFRESH_TOKEN_TTL_SECONDS", str(86400 * 7))))


@dataclass
class VerificationConfig:
    """One-time SMS code settings."""
    code_length: int = field(default_factory=lambda: int(os.getenv("VERIFICATION_CODE_LENGTH", "4")))
    code_ttl_seconds: int = field(default_factory=lambda: int(os.getenv("VERIFICATION_CODE_TTL_SECONDS", "300")))
    resend_interval_seconds: int = field(default_factory=lambda: int(os.getenv("VERIFICATION_RESEND_INTERVAL_SECONDS", "60")))


@dataclass
class PasswordConfig:
    """Password hashing and validation."""
    bcrypt_rounds: int = field(default_factory=lambda: int(os.getenv("BCRYPT_ROUNDS", "12")))
    min_length: int = field(default_factory=lambda: int(os.getenv("MIN_PASSWORD_LENGTH", "6")))


@dataclass
class PasswordResetConfig:
    """Forgot/reset password flow."""
    mark_ttl_seconds: int = field(default_factory=lambda: int(os.getenv("PASSWORD_RESET_MARK_TTL_SECONDS", "300")))

    # False: unknown phones get a silent success so numbers can't be enumerated
    reveal_unknown_phone: bool = field(default_factory=lambda: _env_bool("PASSWORD_RESET_REVEAL_UNKNOWN_PHONE", "false"))


@dataclass
class SMSConfig:
    """SMS transport selection and credentials."""
    provider: str = field(default_factory=lambda: os.getenv("SMS_PROVIDER", "log"))
    timeout_seconds: float = field(default_factory=lambda: float(os.getenv("SMS_TIMEOUT_SECONDS", "10")))

    smsru_api_key: str = field(default_factory=lambda: os.getenv("SMSRU_API_KEY", ""))
    smsru_api_url: str = field(default_factory=lambda: os.getenv("SMSRU_API_URL", "https://sms.ru/sms/send"))

    twilio_account_sid: str = field(default_factory=lambda: os.getenv("TWILIO_ACCOUNT_SID", ""))
    twilio_auth_token: str = field(default_factory=lambda: os.getenv("TWILIO_AUTH_TOKEN", ""))
    twilio_phone_number: str = field(default_factory=lambda: os.getenv("TWILIO_PHONE_NUMBER", ""))


@dataclass
class PhoneConfig:
    """Phone number normalization."""
    default_country_code: str = field(default_factory=lambda: os.getenv("DEFAULT_COUNTRY_CODE", "7"))


@dataclass
class Config:
    """Main configuration container."""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    jwt: JWTConfig = field(default_factory=JWTConfig)
    verification: VerificationConfig = field(default_factory=VerificationConfig)
    password: PasswordConfig = field(default_factory=PasswordConfig)
    password_reset: PasswordResetConfig = field(default_factory=PasswordResetConfig)
    sms: SMSConfig = field(default_factory=SMSConfig)
    phone: PhoneConfig = field(default_factory=PhoneConfig)


def load_config() -> Config:
    """Load configuration from environment variables."""
    return Config()
