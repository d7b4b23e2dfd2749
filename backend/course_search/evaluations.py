# evaluations.py
"""
Evaluation-metric filtering and sorting.

Smart averages live on sections but results are offerings, so an offering
passes when at least one of its principal, non-cancelled, in-term sections
satisfies every active [min, max] range. One qualifying section per offering
is kept as its representative; when sorting by a metric that is the section
with the best value in the requested direction.
"""
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel

from .eval_metrics import is_eval_slug
from .query_plan import SearchPlan
from .reference_cache import ReferenceCache
from .store import CatalogStore, SectionEvaluation

log = logging.getLogger(__name__)

# (question id, min, max)
RangeFilter = Tuple[int, Optional[float], Optional[float]]


class Representative(BaseModel):
    offering_id: int
    section_id: int
    sort_value: Optional[float] = None


def evaluation_active(plan: SearchPlan) -> bool:
    return bool(plan.active_eval_filters) or is_eval_slug(plan.sort)


def section_qualifies(section: SectionEvaluation, ranges: List[RangeFilter], quarters: List[str]) -> bool:
    if not section.is_principal or section.cancelled:
        return False
    if quarters and section.term_quarter not in quarters:
        return False
    for question_id, lo, hi in ranges:
        value = section.values.get(question_id)
        if value is None:
            return False
        if lo is not None and value < lo:
            return False
        if hi is not None and value > hi:
            return False
    return True


def pick_representative(
    sections: Iterable[SectionEvaluation], sort_question: Optional[int], order: str
) -> SectionEvaluation:
    """
    Keep the section that wins under the sort comparator: extremal value in
    the requested order, missing values last, lowest section id on ties.
    Without a sort metric the lowest section id wins.
    """
    if sort_question is None:
        return min(sections, key=lambda s: s.section_id)

    def key(s: SectionEvaluation):
        value = s.values.get(sort_question)
        if value is None:
            return (1, 0.0, s.section_id)
        return (0, -value if order == "desc" else value, s.section_id)

    return min(sections, key=key)


def select_representatives(
    offering_ids: List[int],
    plan: SearchPlan,
    store: CatalogStore,
    cache: ReferenceCache,
) -> Dict[int, Representative]:
    """Offering id -> representative section, only for offerings with a qualifying section."""
    ranges: List[RangeFilter] = [
        (cache.metric_id(f.slug), f.min, f.max) for f in plan.active_eval_filters
    ]
    sort_question = cache.metric_id(plan.sort) if is_eval_slug(plan.sort) else None
    question_ids = sorted(set(cache.metric_ids().values()))

    quarters = plan.eligibility.quarters
    grouped: Dict[int, List[SectionEvaluation]] = {}
    for section in store.section_evaluations(offering_ids, quarters, question_ids):
        if section_qualifies(section, ranges, quarters):
            grouped.setdefault(section.offering_id, []).append(section)

    reps: Dict[int, Representative] = {}
    for offering_id, sections in grouped.items():
        best = pick_representative(sections, sort_question, plan.order)
        reps[offering_id] = Representative(
            offering_id=offering_id,
            section_id=best.section_id,
            sort_value=best.values.get(sort_question) if sort_question is not None else None,
        )

    log.debug("eval filter kept %d of %d offerings", len(reps), len(offering_ids))
    return reps
