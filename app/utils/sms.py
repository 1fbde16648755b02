import logging
from typing import Optional

import telnyx

_LOGGER = logging.getLogger(__name__)


def send_sms(to: str, body: str, api_key: Optional[str] = None, from_number: Optional[str] = None) -> Optional[str]:
    """Send one SMS through Telnyx and return the provider message id.

    Without credentials this is a dev-mode no-op that only logs the message.
    """
    if not api_key or not from_number:
        _LOGGER.info("[SMS] DEV mode: would send to %s: %s", to, body)
        return None
    telnyx.api_key = api_key
    message = telnyx.Message.create(from_=from_number, to=to, text=body)
    return getattr(message, "id", None)
