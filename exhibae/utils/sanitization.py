import html
import re
from typing import Optional


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """
    Sanitize a string by escaping HTML special characters to prevent XSS.
    Returns None if input is None.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        return value
    return html.escape(str(value), quote=True)


def clean_message(value: Optional[str], max_length: int = 5000) -> Optional[str]:
    """
    Normalize free text typed by users (application messages, chat, comments).

    Strips control characters and surrounding whitespace. Text is stored as
    typed; escaping happens when it is rendered into email HTML.

    Raises:
        ValueError: If input exceeds max_length
    """
    if value is None:
        return None

    value = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", str(value)).strip()

    if len(value) > max_length:
        raise ValueError(f"Input exceeds maximum length of {max_length} characters")

    return value
