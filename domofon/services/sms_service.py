"""
SMS transports.

The core only needs ``send(phone, message)``; which gateway sits behind it
is picked from configuration by ``build_sms_sender``.
"""

import logging
from typing import Optional, Protocol

import httpx
from twilio.base.exceptions import TwilioException
from twilio.rest import Client as TwilioClient

from ..auth.password import mask_phone
from ..config import SMSConfig
from ..errors import SMSDeliveryError

logger = logging.getLogger(__name__)


class SMSSender(Protocol):
    def send(self, phone: str, message: str) -> None:
        """Deliver ``message`` to ``phone`` or raise SMSDeliveryError."""
        ...


class LogSMSSender:
    """Development sender: writes the message to the log instead of a gateway."""

    def send(self, phone: str, message: str) -> None:
        logger.info(f"[SMS] to {mask_phone(phone)}: {message}")


class SMSRuSender:
    """Sends SMS through the sms.ru HTTP API."""

    def __init__(
        self,
        api_key: str,
        api_url: str = "https://sms.ru/sms/send",
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        if not api_key or not api_url:
            raise ValueError("sms.ru is not configured (SMSRU_API_KEY / SMSRU_API_URL)")
        self.api_key = api_key
        self.api_url = api_url
        self._client = client or httpx.Client(timeout=timeout)

    def send(self, phone: str, message: str) -> None:
        params = {
            "api_id": self.api_key,
            "to": phone.lstrip("+"),
            "msg": message,
            "json": 1,
        }

        try:
            response = self._client.get(self.api_url, params=params)
        except httpx.HTTPError as e:
            logger.error(f"SMS request to {mask_phone(phone)} failed: {e}")
            raise SMSDeliveryError(f"SMS gateway unreachable: {e}") from e

        if not response.is_success:
            logger.error(f"SMS request failed: {response.status_code} - {response.text}")
            raise SMSDeliveryError(f"SMS gateway returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise SMSDeliveryError("SMS gateway returned a non-JSON body") from e

        # Plain-mode replies ("100") and lists parse as JSON too
        if not isinstance(data, dict):
            logger.error(f"SMS gateway returned an unexpected body: {response.text}")
            raise SMSDeliveryError("SMS gateway returned an unexpected body")

        if data.get("status") != "OK":
            logger.error(f"SMS gateway rejected request: {data}")
            raise SMSDeliveryError(f"SMS gateway error: {data.get('status_text', data.get('status'))}")

        numbers = data.get("sms") or {}
        per_number = numbers.get(params["to"], {}) if isinstance(numbers, dict) else None
        if not isinstance(per_number, dict):
            logger.error(f"SMS gateway returned an unexpected per-number status: {numbers}")
            raise SMSDeliveryError("SMS gateway returned an unexpected body")

        if per_number and per_number.get("status") != "OK":
            logger.error(f"SMS to {mask_phone(phone)} rejected: {per_number}")
            raise SMSDeliveryError(f"SMS rejected: {per_number.get('status_text', 'unknown error')}")

        logger.info(f"SMS sent to {mask_phone(phone)}: {per_number.get('sms_id', '-')}")

    def close(self):
        """Close the HTTP client."""
        self._client.close()


class TwilioSMSSender:
    """Sends SMS via Twilio."""

    def __init__(self, account_sid: str, auth_token: str, from_number: str, client=None):
        if not (account_sid and auth_token and from_number):
            raise ValueError("Twilio is not configured (TWILIO_ACCOUNT_SID / TWILIO_AUTH_TOKEN / TWILIO_PHONE_NUMBER)")

        self._client = client or TwilioClient(account_sid, auth_token)
        self.from_number = from_number
        logger.info("Twilio SMS service initialized")

    def send(self, phone: str, message: str) -> None:
        try:
            msg = self._client.messages.create(
                body=message,
                from_=self.from_number,
                to=phone
            )
        except TwilioException as e:
            logger.error(f"SMS send failed to {mask_phone(phone)}: {e}")
            raise SMSDeliveryError(str(e)) from e

        logger.info(f"SMS sent successfully to {mask_phone(phone)}: {msg.sid}")


def build_sms_sender(config: SMSConfig) -> SMSSender:
    """Create the sender named by ``config.provider``."""
    provider = config.provider.lower()

    if provider == "log":
        logger.warning("SMS_PROVIDER=log: messages are written to the log, not delivered")
        return LogSMSSender()
    if provider == "smsru":
        return SMSRuSender(
            api_key=config.smsru_api_key,
            api_url=config.smsru_api_url,
            timeout=config.timeout_seconds,
        )
    if provider == "twilio":
        return TwilioSMSSender(
            account_sid=config.twilio_account_sid,
            auth_token=config.twilio_auth_token,
            from_number=config.twilio_phone_number,
        )

    raise ValueError(f"Unknown SMS provider: {config.provider!r}")
