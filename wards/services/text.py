from typing import Optional

import bleach


def clean_text(value) -> str:
    """Strip surrounding whitespace and any markup from free text input."""
    if value is None:
        return ''
    return bleach.clean(str(value).strip(), tags=set(), strip=True)


def clean_optional(value) -> Optional[str]:
    v = clean_text(value)
    return v or None


def append_note(existing: str, heading: str, addition: Optional[str]) -> str:
    addition = clean_text(addition)
    if not addition:
        return existing or ''
    return f"{existing or ''}\n\n{heading}: {addition}"
