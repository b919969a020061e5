"""
Twilio SMS sender.

Posts to the Twilio REST API with httpx. When credentials are not
configured the message is logged instead of sent, so local setups and
demos work without an account. A message Twilio refuses raises
SmsDeliveryError so the notification consumer can retry it.
"""

import logging
import re

import httpx

from ..config import settings

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


class SmsDeliveryError(Exception):
    """Twilio did not accept the message."""


def normalize_phone(phone: str) -> str:
    """Keep digits and '+'; numbers without a country code are assumed US (+1)."""
    clean = re.sub(r"[^0-9+]", "", phone or "")
    if clean and not clean.startswith("+"):
        clean = "+1" + clean
    return clean


async def send_sms(
    to_phone: str,
    message_body: str,
    client: httpx.AsyncClient | None = None,
) -> bool:
    """
    Send one SMS.

    Returns:
        True when Twilio accepted the message, False when it was skipped
        (no number, or Twilio not configured).

    Raises:
        SmsDeliveryError: transport failure or a non-2xx answer from Twilio
    """
    to_phone = normalize_phone(to_phone)
    if not to_phone:
        logger.debug("No phone number provided, SMS skipped")
        return False

    if not settings.sms_configured:
        logger.info(f"Twilio not configured. Would send SMS to {to_phone}: {message_body!r}")
        return False

    data = {
        "To": to_phone,
        "From": settings.twilio_phone_number,
        "Body": message_body,
    }
    url = TWILIO_MESSAGES_URL.format(sid=settings.twilio_account_sid)
    auth = (settings.twilio_account_sid, settings.twilio_auth_token)

    try:
        if client is None:
            async with httpx.AsyncClient() as own_client:
                response = await own_client.post(url, auth=auth, data=data, timeout=10.0)
        else:
            response = await client.post(url, auth=auth, data=data, timeout=10.0)
    except httpx.HTTPError as e:
        logger.error(f"Twilio API error: {e}")
        raise SmsDeliveryError(str(e)) from e

    if response.status_code in (200, 201):
        sid = response.json().get("sid")
        logger.info(f"SMS sent to {to_phone} (SID: {sid})")
        return True

    try:
        error = response.json()
    except ValueError:
        error = {}
    detail = f"[{error.get('code')}]: {error.get('message', response.text[:200])}"
    logger.error(f"Twilio API error {detail}")
    raise SmsDeliveryError(f"Twilio answered {response.status_code} {detail}")
