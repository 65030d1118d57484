"""
Sentinel cleanup for optional text fields.

Older rows stored 0, "0", "" or "null" to mean "not set". These are mapped to
None once, where data enters or is read back, so nothing downstream has to
special-case them.
"""

from typing import Any, Optional

SENTINEL_STRINGS = frozenset({"", "0", "null"})


def clean_optional_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if value == 0 else str(value)
    text = str(value).strip()
    if text.lower() in SENTINEL_STRINGS:
        return None
    return text


def event_descriptor(event_type: Any, event_name: Any = None) -> Optional[str]:
    """event_type wins over event_name; None when neither carries a value."""
    return clean_optional_text(event_type) or clean_optional_text(event_name)
