import re

# local@domain.tld, no whitespace, one @
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(value: str) -> str:
    return (value or "").strip().lower()


def is_valid_email(email: str) -> bool:
    return isinstance(email, str) and len(email) <= 255 and _EMAIL_RE.match(email) is not None
