# eval_metrics.py
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel


EvalSlug = Literal[
    "rating",
    "hours",
    "learning",
    "organized",
    "goals",
    "attend_in_person",
    "attend_online",
]

EVAL_SLUGS: List[str] = [
    "rating",
    "hours",
    "learning",
    "organized",
    "goals",
    "attend_in_person",
    "attend_online",
]

Direction = Literal["higher_better", "lower_better", "neutral"]
SortOrder = Literal["asc", "desc"]


class MetricRange(BaseModel):
    min: float
    max: float


class EvalMetric(BaseModel):
    slug: str
    label: str
    question_text: str
    direction: Direction
    range: MetricRange
    default_order: SortOrder


ONE_TO_FIVE = MetricRange(min=1, max=5)
ZERO_TO_HUNDRED = MetricRange(min=0, max=100)

EVAL_METRICS: Dict[str, EvalMetric] = {
    "rating": EvalMetric(
        slug="rating",
        label="Instruction quality",
        question_text="Overall, how would you describe the quality of the instruction in this course?",
        direction="higher_better",
        range=ONE_TO_FIVE,
        default_order="desc",
    ),
    "learning": EvalMetric(
        slug="learning",
        label="How much you learned",
        question_text="How much did you learn from this course?",
        direction="higher_better",
        range=ONE_TO_FIVE,
        default_order="desc",
    ),
    "organized": EvalMetric(
        slug="organized",
        label="Course organization",
        question_text="How organized was the course?",
        direction="higher_better",
        range=ONE_TO_FIVE,
        default_order="desc",
    ),
    "goals": EvalMetric(
        slug="goals",
        label="Learning goals achieved",
        question_text="How well did you achieve the learning goals of this course?",
        direction="higher_better",
        range=ONE_TO_FIVE,
        default_order="desc",
    ),
    "attend_in_person": EvalMetric(
        slug="attend_in_person",
        label="In-person attendance",
        question_text="About what percent of the class meetings did you attend in person?",
        direction="neutral",
        range=ZERO_TO_HUNDRED,
        default_order="desc",
    ),
    "attend_online": EvalMetric(
        slug="attend_online",
        label="Online attendance",
        question_text="About what percent of the class meetings did you attend online?",
        direction="neutral",
        range=ZERO_TO_HUNDRED,
        default_order="desc",
    ),
    "hours": EvalMetric(
        slug="hours",
        label="Hours per week",
        question_text=(
            "How many hours per week on average did you spend on this course "
            "(including class meetings)?"
        ),
        direction="lower_better",
        range=ZERO_TO_HUNDRED,
        default_order="asc",
    ),
}

_QUESTION_TEXT_TO_SLUG = {m.question_text: slug for slug, m in EVAL_METRICS.items()}

SORT_DEFAULT_ORDER: Dict[str, str] = {
    "relevance": "desc",
    "code": "asc",
    "units": "desc",
    **{slug: m.default_order for slug, m in EVAL_METRICS.items()},
}


def is_eval_slug(value: Optional[str]) -> bool:
    return value in EVAL_METRICS


def slug_for_question(question_text: str) -> Optional[str]:
    return _QUESTION_TEXT_TO_SLUG.get(question_text)
