"""
Shared service context.

The ServiceContext holds the long-lived dependencies (engine, stores,
SMS transport, token signer, clock) built once per process. Services
receive it through ``create_services`` and share it across requests.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy import Engine
from sqlalchemy.orm import sessionmaker

from ..auth import JWTHandler, PasswordHandler
from ..config import Config, load_config
from ..db import create_db_engine, create_schema, create_session_factory
from ..stores import SQLCredentialStore, SQLVerificationStore
from .sms_service import SMSSender, build_sms_sender

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ServiceContext:
    """
    Shared context for all services.

    Everything here is safe to share between request threads.
    """
    config: Config
    engine: Engine
    session_factory: sessionmaker
    credential_store: SQLCredentialStore
    verification_store: SQLVerificationStore
    sms: SMSSender
    jwt: JWTHandler
    passwords: PasswordHandler
    clock: Callable[[], datetime] = field(default=utc_now)

    @classmethod
    def create(
        cls,
        config: Optional[Config] = None,
        sms: Optional[SMSSender] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> "ServiceContext":
        """
        Factory method to create a ServiceContext with all dependencies.

        Args:
            config: Optional config (loads from env if not provided)
            sms: Optional SMS sender (built from config.sms if not provided)
            clock: Optional UTC clock (for tests)

        Returns:
            Configured ServiceContext
        """
        cfg = config or load_config()
        clock = clock or utc_now

        engine = create_db_engine(cfg.database)
        if cfg.database.create_schema:
            create_schema(engine)
        session_factory = create_session_factory(engine)

        jwt_handler = JWTHandler(
            access_secret=cfg.jwt.access_secret,
            refresh_secret=cfg.jwt.refresh_secret,
            issuer=cfg.jwt.issuer,
            audience=cfg.jwt.audience,
            access_ttl=timedelta(seconds=cfg.jwt.access_ttl_seconds),
            refresh_ttl=timedelta(seconds=cfg.jwt.refresh_ttl_seconds),
            clock=clock,
        )

        return cls(
            config=cfg,
            engine=engine,
            session_factory=session_factory,
            credential_store=SQLCredentialStore(session_factory),
            verification_store=SQLVerificationStore(session_factory),
            sms=sms or build_sms_sender(cfg.sms),
            jwt=jwt_handler,
            passwords=PasswordHandler(rounds=cfg.password.bcrypt_rounds),
            clock=clock,
        )

    def close(self):
        """Clean up resources."""
        close_sms = getattr(self.sms, "close", None)
        if close_sms is not None:
            close_sms()
        self.engine.dispose()
        logger.debug("Service context closed")
