"""
Services layer for domofon.

Business logic for phone verification, credentials and profiles, meant
to be called from an HTTP boundary or any other interface.
"""

from datetime import timedelta

from ..auth import CodeGenerator, ExpiringMarks
from .base import ServiceContext
from .credential_service import CredentialService, AuthTokens
from .sms_service import SMSSender, LogSMSSender, SMSRuSender, TwilioSMSSender, build_sms_sender
from .user_service import UserService
from .verification_service import VerificationService

__all__ = [
    # Base
    "ServiceContext",
    # Services
    "VerificationService",
    "CredentialService",
    "UserService",
    # SMS
    "SMSSender",
    "LogSMSSender",
    "SMSRuSender",
    "TwilioSMSSender",
    "build_sms_sender",
    # Data classes
    "AuthTokens",
    "create_services",
]


def create_services(context: ServiceContext = None):
    """
    Factory function to create all services with proper dependencies.

    Args:
        context: Optional ServiceContext (creates one if not provided)

    Returns:
        Tuple of (context, verification, credentials, users)
    """
    if context is None:
        context = ServiceContext.create()

    cfg = context.config

    verification_service = VerificationService(
        store=context.verification_store,
        sms=context.sms,
        code_generator=CodeGenerator(cfg.verification.code_length),
        code_ttl=timedelta(seconds=cfg.verification.code_ttl_seconds),
        resend_interval=timedelta(seconds=cfg.verification.resend_interval_seconds),
        default_country_code=cfg.phone.default_country_code,
        clock=context.clock,
    )
    credential_service = CredentialService(
        store=context.credential_store,
        verification=verification_service,
        jwt_handler=context.jwt,
        password_handler=context.passwords,
        reset_marks=ExpiringMarks(
            timedelta(seconds=cfg.password_reset.mark_ttl_seconds),
            clock=context.clock,
        ),
        min_password_length=cfg.password.min_length,
        reveal_unknown_phone=cfg.password_reset.reveal_unknown_phone,
        clock=context.clock,
    )
    user_service = UserService(context.credential_store)

    return (
        context,
        verification_service,
        credential_service,
        user_service
    )
