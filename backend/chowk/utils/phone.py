import re

from chowk.config import settings

_JID_SUFFIX = re.compile(r"@(s\.whatsapp\.net|lid|c\.us)$", re.IGNORECASE)


def normalize_phone(raw: str) -> str:
    """Strip chat-transport suffixes and punctuation; prefix bare 10-digit numbers
    with the default country code."""
    phone = _JID_SUFFIX.sub("", raw.strip())
    phone = re.sub(r"\D", "", phone)
    if len(phone) == 10:
        phone = settings.default_country_code + phone
    return phone
