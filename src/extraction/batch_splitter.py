from __future__ import annotations

import re
from datetime import date
from typing import Optional

from extraction.command_parser import parse_single_task
from tasktalk.models import TaskPayload

# "next" only separates when it does not start a date phrase ("next friday").
_NOT_A_DATE = (
    r"(?!\s+(?:week|weekend|month|year|monday|tuesday|wednesday|thursday|friday|saturday|sunday"
    r"|mon|tue|tues|wed|thu|thur|thurs|fri|sat|sun)\b)"
)

BATCH_SEPARATOR = re.compile(
    r"\s*[,;]?\s*\b(?:and\s+then|after\s+that|additionally|and|also|plus|then|first|second|third|finally"
    rf"|next{_NOT_A_DATE})\b\s*[,:]?\s*",
    re.IGNORECASE,
)


def split_segments(sentence: str) -> list[str]:
    return [s.strip() for s in BATCH_SEPARATOR.split(sentence or "") if s and s.strip()]


def parse_batch_tasks(sentence: str, today: Optional[date] = None) -> list[TaskPayload]:
    """Parse a sentence that may describe several tasks.

    Segments between separator words are parsed independently; segments that
    yield no task are dropped, order is preserved.
    """
    payloads = []
    for segment in split_segments(sentence):
        payload = parse_single_task(segment, today)
        if payload is not None:
            payloads.append(payload)
    return payloads
