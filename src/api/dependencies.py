import os
from functools import lru_cache

from api import state
from classification.task_classifier import TaskClassifier
from engine.commands import TaskCommandEngine
from engine.lock import MutationLock
from extraction.task_extractor import TaskExtractor
from llm.llm_client import LLMClient
from matching.fuzzy import MatchPolicy

# Configuration
TASK_LOCK_TIMEOUT_S = float(os.getenv("TASK_LOCK_TIMEOUT_S", "4"))
LLM_TIER = os.getenv("LLM_TIER", "large").strip().lower()
SUGGEST_DUE_DATES = os.getenv("SUGGEST_DUE_DATES", "false").lower() in {"1", "true", "yes"}

policy = MatchPolicy(
    min_score=float(os.getenv("MATCH_MIN_SCORE", "0.5")),
    min_intersection=int(os.getenv("MATCH_MIN_INTERSECTION", "2")),
    short_reference_tokens=int(os.getenv("MATCH_SHORT_REFERENCE_TOKENS", "3")),
    max_suggestions=int(os.getenv("MATCH_MAX_SUGGESTIONS", "3")),
)


@lru_cache(maxsize=1)
def get_engine() -> TaskCommandEngine:
    return TaskCommandEngine(
        lock=MutationLock(state.locks, timeout_s=TASK_LOCK_TIMEOUT_S),
        extractor=TaskExtractor(llm_client=LLMClient.from_env()),
        classifier=TaskClassifier(suggest_due_dates=SUGGEST_DUE_DATES),
        policy=policy,
        llm_tier=LLM_TIER,
    )
