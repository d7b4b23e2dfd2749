# signals.py
import logging
from typing import List, Literal, Optional

from pydantic import BaseModel

from .config import SearchTuning
from .instructors import InstructorResolver
from .query_plan import CourseCode, SearchPlan
from .store import CatalogStore, OfferingKey

log = logging.getLogger(__name__)

SignalKind = Literal["code", "subject_code", "content", "instructor", "subject", "fallback"]


class MatchSignal(BaseModel):
    offering_id: int
    score: float
    kind: SignalKind


def code_score(key: OfferingKey, code: CourseCode, tuning: SearchTuning) -> Optional[float]:
    """
    Exact number + suffix (missing suffix treated as "") scores full marks.
    A number match where the query gave no suffix is a partial match.
    """
    if key.subject_code.upper() != code.subject or key.code_number != code.code_number:
        return None
    if (key.code_suffix or "").upper() == (code.code_suffix or ""):
        return tuning.code_exact_score
    if code.code_suffix is None:
        return tuning.code_partial_score
    return None


def collect_code_signals(plan: SearchPlan, store: CatalogStore, tuning: SearchTuning) -> List[MatchSignal]:
    if not plan.codes:
        return []
    signals: List[MatchSignal] = []
    for key in store.offerings_by_code(plan.codes, plan.eligibility):
        for code in plan.codes:
            score = code_score(key, code, tuning)
            if score is not None:
                signals.append(MatchSignal(offering_id=key.offering_id, score=score, kind="code"))
    return signals


def collect_subject_code_signals(
    plan: SearchPlan, store: CatalogStore, tuning: SearchTuning
) -> List[MatchSignal]:
    if not plan.subjects:
        return []
    return [
        MatchSignal(offering_id=oid, score=tuning.subject_code_score, kind="subject_code")
        for oid in store.offerings_by_subject(plan.subjects, plan.eligibility)
    ]


def collect_content_signals(plan: SearchPlan, store: CatalogStore, tuning: SearchTuning) -> List[MatchSignal]:
    if not plan.text:
        return []
    return [
        MatchSignal(offering_id=oid, score=rank, kind="content")
        for oid, rank in store.content_matches(plan.text, plan.eligibility)
    ]


def collect_instructor_signals(
    plan: SearchPlan, store: CatalogStore, tuning: SearchTuning
) -> List[MatchSignal]:
    # Short strings match too many names to be useful.
    if len(plan.text) < tuning.min_fuzzy_query_length:
        return []
    resolver = InstructorResolver(store, tuning.instructor)
    return [
        MatchSignal(offering_id=oid, score=score, kind="instructor")
        for oid, score in resolver.resolve(plan.text, plan.eligibility).items()
    ]


def collect_subject_name_signals(
    plan: SearchPlan, store: CatalogStore, tuning: SearchTuning
) -> List[MatchSignal]:
    if len(plan.text) < tuning.min_fuzzy_query_length:
        return []
    return [
        MatchSignal(offering_id=oid, score=sim, kind="subject")
        for oid, sim in store.subject_name_matches(plan.text, plan.eligibility)
    ]


def collect_fallback_signals(plan: SearchPlan, store: CatalogStore, tuning: SearchTuning) -> List[MatchSignal]:
    # Only in pure browse mode; any query text would be drowned out otherwise.
    if not plan.browse:
        return []
    return [
        MatchSignal(offering_id=oid, score=tuning.fallback_score, kind="fallback")
        for oid in store.eligible_offerings(plan.eligibility)
    ]


COLLECTORS = (
    collect_code_signals,
    collect_subject_code_signals,
    collect_content_signals,
    collect_instructor_signals,
    collect_subject_name_signals,
    collect_fallback_signals,
)


def collect_signals(plan: SearchPlan, store: CatalogStore, tuning: SearchTuning) -> List[MatchSignal]:
    signals: List[MatchSignal] = []
    for collector in COLLECTORS:
        found = collector(plan, store, tuning)
        if found:
            log.debug("%s: %d signals", collector.__name__, len(found))
        signals.extend(found)
    return signals
