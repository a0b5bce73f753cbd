# paypals/utils/sanitize.py
# Free-text cleaning for user input (names, descriptions, notification text).
# Only <p>, <b> and <i> survive, without attributes; other markup is stripped
# and stray angle brackets are escaped.

from __future__ import annotations

from typing import Optional

import bleach

ALLOWED_TAGS = ["p", "b", "i"]


def clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = bleach.clean(value, tags=ALLOWED_TAGS, attributes={}, strip=True, strip_comments=True)
    # keep plain ampersands readable ("Fish & Chips")
    return cleaned.replace("&amp;", "&").strip()


def clean_required(value: str) -> str:
    cleaned = clean_text(value)
    if not cleaned:
        raise ValueError("must not be empty")
    return cleaned
