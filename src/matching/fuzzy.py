from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Literal, Optional

from extraction.command_parser import find_id_reference
from tasktalk.models import MatchCandidate, Task
from tasktalk.text import sanitize_plain_text

logger = logging.getLogger(__name__)

STOPWORDS = frozenset({
    "the", "a", "an", "please", "task", "event", "meeting", "with", "for", "at",
    "on", "to", "of",
})
EXACT_SCORE = 100.0

_PUNCTUATION = re.compile(r"[^\w\s]+")

ResolutionStatus = Literal["exact", "ambiguous", "none", "not_found"]


@dataclass(frozen=True)
class MatchPolicy:
    """Thresholds deciding which scored tasks count as plausible matches."""

    min_score: float = 0.5
    min_intersection: int = 2
    short_reference_tokens: int = 3
    max_suggestions: int = 3

    def qualifies(self, candidate: MatchCandidate, reference_tokens: int) -> bool:
        if candidate.score >= self.min_score:
            return True
        if candidate.intersection_count >= self.min_intersection:
            return True
        return candidate.intersection_count >= 1 and reference_tokens <= self.short_reference_tokens


@dataclass
class ReferenceResolution:
    status: ResolutionStatus
    reference: str = ""
    task: Optional[Task] = None
    candidates: list[MatchCandidate] = field(default_factory=list)


def match_tokens(text: str) -> list[str]:
    """Lowercased content words of `text`, stopwords and repeats removed."""
    lowered = _PUNCTUATION.sub(" ", sanitize_plain_text(text).lower())
    seen: list[str] = []
    for token in lowered.split():
        if token not in STOPWORDS and token not in seen:
            seen.append(token)
    return seen


def normalize_for_matching(text: str) -> str:
    return " ".join(match_tokens(text))


def score_task(task: Task, reference: str) -> MatchCandidate:
    task_tokens = match_tokens(task.text)
    ref_tokens = match_tokens(reference)
    task_norm, ref_norm = " ".join(task_tokens), " ".join(ref_tokens)
    intersection = len(set(task_tokens) & set(ref_tokens))

    if task_norm and task_norm == ref_norm:
        score = EXACT_SCORE
    elif task_norm and ref_norm and (ref_norm in task_norm or task_norm in ref_norm):
        score = float(min(len(task_norm), len(ref_norm)))
    else:
        score = float(intersection)
    return MatchCandidate(task=task, score=score, intersection_count=intersection)


def _rank(candidate: MatchCandidate) -> tuple[float, int]:
    return (candidate.score, candidate.intersection_count)


def resolve_reference(
    reference: str,
    tasks: Iterable[Task],
    policy: MatchPolicy = MatchPolicy(),
) -> ReferenceResolution:
    """Resolve a free-text description (or `id:<value>`) to one task.

    Candidates are ranked by (score, shared tokens). A single top candidate is
    an exact match; a tie at the top is ambiguous and returns up to
    `policy.max_suggestions` candidates.
    """
    tasks = list(tasks)
    task_id = find_id_reference(reference)
    if task_id is not None:
        found = next((t for t in tasks if t.id.lower() == task_id.lower()), None)
        if found is None:
            return ReferenceResolution(status="not_found", reference=task_id)
        return ReferenceResolution(
            status="exact",
            reference=task_id,
            task=found,
            candidates=[MatchCandidate(task=found, score=EXACT_SCORE, intersection_count=0)],
        )

    ref_tokens = match_tokens(reference)
    if not ref_tokens:
        return ReferenceResolution(status="none", reference=reference)

    scored = [score_task(t, reference) for t in tasks]
    qualified = [c for c in scored if policy.qualifies(c, len(ref_tokens))]
    if not qualified:
        qualified = [c for c in scored if c.score > 0 or c.intersection_count > 0]
    if not qualified:
        return ReferenceResolution(status="none", reference=reference)

    qualified.sort(key=_rank, reverse=True)
    if len(qualified) > 1 and _rank(qualified[0]) == _rank(qualified[1]):
        logger.debug(f"Ambiguous reference '{reference}': {len(qualified)} candidates")
        return ReferenceResolution(
            status="ambiguous",
            reference=reference,
            candidates=qualified[: policy.max_suggestions],
        )
    return ReferenceResolution(
        status="exact",
        reference=reference,
        task=qualified[0].task,
        candidates=qualified[:1],
    )
