import re
from typing import Any

_HAZARD_CHARS = re.compile(r"[<>\"'`]")


def sanitize_text(value: Any) -> str:
    """Strip markup-hazard characters (< > " ' `) and surrounding whitespace.

    Non-string input is coerced with str(); None becomes an empty string.
    """
    if value is None:
        return ""
    if not isinstance(value, str):
        value = str(value)
    return _HAZARD_CHARS.sub("", value).strip()
