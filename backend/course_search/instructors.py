# instructors.py
import logging
from typing import Dict, List, Optional, Set, Tuple

from .config import InstructorTuning
from .query_plan import EligibilityFilter
from .store import CatalogStore, InstructorAssignment, InstructorCandidate

log = logging.getLogger(__name__)


def candidate_score(candidate: InstructorCandidate, query_lower: str) -> float:
    """1.0 on an exact account-id hit, else the better of full/last name similarity."""
    if candidate.sunet is not None and candidate.sunet == query_lower:
        return 1.0
    return max(candidate.sim_full, candidate.sim_last)


def adaptive_cutoff(max_score: float, confidence_floor: float, cutoff_ratio: float) -> Optional[float]:
    """
    Minimum score a candidate needs, or None when even the best candidate is
    too weak to trust and everything should be dropped.
    """
    if max_score > confidence_floor:
        return cutoff_ratio * max_score
    return None


def filter_candidates(
    candidates: List[InstructorCandidate], query: str, tuning: InstructorTuning
) -> List[InstructorCandidate]:
    query_lower = query.lower()
    unique: Dict[int, InstructorCandidate] = {}
    for c in candidates:
        unique.setdefault(c.instructor_id, c)
    if not unique:
        return []

    scores = {iid: candidate_score(c, query_lower) for iid, c in unique.items()}
    cutoff = adaptive_cutoff(max(scores.values()), tuning.confidence_floor, tuning.cutoff_ratio)
    if cutoff is None:
        return []
    return [c for iid, c in unique.items() if scores[iid] >= cutoff]


def adjusted_score(
    candidate: InstructorCandidate, role: Optional[str], query_lower: str, tuning: InstructorTuning
) -> float:
    if candidate.sunet is not None and candidate.sunet == query_lower:
        score = 1.0
    else:
        # Last name dominates; first name alone is a weak hint.
        score = 1.0 - (
            (1.0 - tuning.full_name_weight * candidate.sim_full)
            * (1.0 - tuning.last_name_weight * candidate.sim_last)
            * (1.0 - tuning.first_name_weight * candidate.sim_first)
        )
    if role in tuning.assistant_roles:
        score *= tuning.assistant_multiplier
    return score


def aggregate_offering_score(scored: List[Tuple[int, float]], tuning: InstructorTuning) -> float:
    """
    Combine (instructor_id, adjusted score) rows for one offering. The best
    match dominates; many loosely matching instructors apply a mild penalty.
    """
    values = [s for _, s in scored]
    best = max(values)
    avg = sum(values) / len(values)
    distinct = len({iid for iid, _ in scored})
    return (tuning.max_weight * best + tuning.avg_weight * avg) / (1.0 + tuning.spread_penalty * (distinct - 1))


class InstructorResolver:
    def __init__(self, store: CatalogStore, tuning: InstructorTuning):
        self.store = store
        self.tuning = tuning

    def resolve(self, query: str, flt: EligibilityFilter) -> Dict[int, float]:
        """Offering id -> instructor match score for the free-text query."""
        candidates = filter_candidates(self.store.instructor_candidates(query), query, self.tuning)
        if not candidates:
            return {}
        log.debug("instructor candidates kept: %s", [c.instructor_id for c in candidates])

        by_id = {c.instructor_id: c for c in candidates}
        assignments: List[InstructorAssignment] = self.store.instructor_assignments(list(by_id), flt)

        query_lower = query.lower()
        rows: Dict[int, Set[Tuple[int, float]]] = {}
        for a in assignments:
            candidate = by_id.get(a.instructor_id)
            if candidate is None:
                continue
            score = adjusted_score(candidate, a.role, query_lower, self.tuning)
            rows.setdefault(a.offering_id, set()).add((a.instructor_id, score))

        return {
            offering_id: aggregate_offering_score(sorted(scored), self.tuning)
            for offering_id, scored in rows.items()
        }
