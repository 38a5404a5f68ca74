from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from loguru import logger
from twilio.rest import Client

from ..database import settings

LOCAL_NUMBER_DIGITS = 10


@dataclass
class SmsNotification:
    to: str
    body: str


def normalize_phone_number(phone: str, country_code: str | None = None) -> str:
    """
    Convert a donor-entered phone number to E.164 for Twilio.

    Numbers written with a leading ``+`` keep their own country code. Bare
    ten-digit local numbers get ``country_code`` (``SMS_COUNTRY_CODE``) in
    front; anything else is only stripped of punctuation.

        "+91 98765-43210" -> "+919876543210"
        "98765 43210"     -> "+919876543210"
    """
    if not phone:
        return ""
    digits = re.sub(r"\D", "", phone)
    if not digits:
        return ""
    if phone.strip().startswith("+"):
        return "+" + digits
    country_code = settings.sms_country_code if country_code is None else country_code
    if country_code and len(digits) == LOCAL_NUMBER_DIGITS:
        return f"+{country_code}{digits}"
    return "+" + digits


def blood_request_body(hospital_name: str, blood_group: str, units_required: int) -> str:
    return (
        f"{hospital_name} needs {units_required} unit(s) of {blood_group} blood. "
        "Open BloodConnect to accept or decline the request."
    )


class NotificationService:
    def __init__(self) -> None:
        self.client: Optional[Client] = None
        if settings.twilio_sid and settings.twilio_token:
            self.client = Client(settings.twilio_sid, settings.twilio_token)
        else:
            logger.warning("Twilio credentials missing; donor SMS alerts will only be logged.")
        self.sender_phone = settings.twilio_phone or "+1234567890"

    async def send_sms(self, message: SmsNotification) -> bool:
        to = normalize_phone_number(message.to)
        if not to:
            logger.info("Skipping SMS with no usable phone number: {!r}", message.to)
            return False
        if self.client is None:
            logger.info("Mock SMS to {}: {}", to, message.body)
            return True

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(
                None,
                lambda: self.client.messages.create(to=to, from_=self.sender_phone, body=message.body),
            )
        except Exception as exc:
            # a failed text never blocks the in-app request
            logger.warning("SMS to {} failed: {}", to, exc)
            return False
        logger.info("SMS sent to {}", to)
        return True

    async def alert_donor(self, donor: Dict[str, Any], hospital_name: str, blood_group: str, units: int) -> bool:
        phone = donor.get("phone")
        if not phone:
            return False
        return await self.send_sms(SmsNotification(to=phone, body=blood_request_body(hospital_name, blood_group, units)))


notification_service = NotificationService()
