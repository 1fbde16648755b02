import re
from typing import Optional

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(raw: Optional[str], country_code: str = "+91") -> Optional[str]:
    """'98765 43210' / '+91-9876543210' -> '+919876543210'. None if under ten digits."""
    digits = _NON_DIGITS.sub("", raw or "")
    if len(digits) < 10:
        return None
    return f"{country_code}{digits[-10:]}"
