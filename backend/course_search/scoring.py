# scoring.py
from typing import Dict, List

from pydantic import BaseModel, Field

from .config import SignalWeights
from .signals import MatchSignal

# Subject-only mentions count toward the code term; both are code-shaped input.
WEIGHT_BUCKET = {
    "code": "code",
    "subject_code": "code",
    "content": "content",
    "instructor": "instructor",
    "subject": "subject",
    "fallback": "fallback",
}


class ScoredOffering(BaseModel):
    offering_id: int
    relevance: float
    matched_on: List[str] = Field(default_factory=list)


def combine_signals(signals: List[MatchSignal], weights: SignalWeights) -> Dict[int, ScoredOffering]:
    """
    relevance = sum over buckets of weight * (best score in that bucket);
    matched_on lists every signal kind that fired for the offering.
    """
    best: Dict[int, Dict[str, float]] = {}
    kinds: Dict[int, set] = {}
    for s in signals:
        bucket = WEIGHT_BUCKET[s.kind]
        per_offering = best.setdefault(s.offering_id, {})
        per_offering[bucket] = max(per_offering.get(bucket, 0.0), s.score)
        kinds.setdefault(s.offering_id, set()).add(s.kind)

    weight_of = weights.model_dump()
    return {
        offering_id: ScoredOffering(
            offering_id=offering_id,
            relevance=sum(weight_of[bucket] * score for bucket, score in buckets.items()),
            matched_on=sorted(kinds[offering_id]),
        )
        for offering_id, buckets in best.items()
    }
