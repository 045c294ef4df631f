from __future__ import annotations

import re
from typing import Any

from bs4 import BeautifulSoup

_WHITESPACE = re.compile(r"\s+")


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def sanitize_plain_text(value: Any) -> str:
    """Return `value` as a single line of plain text.

    Markup is stripped (only tag text survives) and runs of whitespace collapse
    to one space. None becomes an empty string.
    """
    if value is None:
        return ""
    text = str(value)
    if "<" in text and ">" in text:
        text = BeautifulSoup(text, "html.parser").get_text(" ")
    return collapse_whitespace(text)
