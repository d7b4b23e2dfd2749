# query_plan.py
from typing import List, Optional

from pydantic import BaseModel, Field

from .schemas import EvalFilter


class CourseCode(BaseModel):
    subject: str
    code_number: int
    code_suffix: Optional[str] = None


class ParsedQuery(BaseModel):
    codes: List[CourseCode] = Field(default_factory=list)
    subjects_only: List[str] = Field(default_factory=list)
    remaining_query: str = ""


class EligibilityFilter(BaseModel):
    """
    Predicates every candidate offering must satisfy. Empty quarters/ways and
    missing unit bounds mean "no restriction".
    """

    year: str
    quarters: List[str] = Field(default_factory=list)
    ways: List[str] = Field(default_factory=list)
    units_min: Optional[int] = None
    units_max: Optional[int] = None

    def units_overlap(self, units_min: Optional[int], units_max: Optional[int]) -> bool:
        if self.units_min is not None and (units_max is None or units_max < self.units_min):
            return False
        if self.units_max is not None and (units_min is None or units_min > self.units_max):
            return False
        return True

    def ways_overlap(self, gers: List[str]) -> bool:
        if not self.ways:
            return True
        return bool(set(self.ways) & set(gers))

    def quarter_allowed(self, quarter: str) -> bool:
        return not self.quarters or quarter in self.quarters


class SearchPlan(BaseModel):
    eligibility: EligibilityFilter
    codes: List[CourseCode] = Field(default_factory=list)
    subjects: List[str] = Field(default_factory=list)
    text: str = ""

    sort: str = "relevance"
    order: str = "desc"
    eval_filters: List[EvalFilter] = Field(default_factory=list)
    page: int = 1

    @property
    def browse(self) -> bool:
        """No code, subject or free text: list every eligible offering."""
        return not self.codes and not self.subjects and not self.text

    @property
    def active_eval_filters(self) -> List[EvalFilter]:
        return [f for f in self.eval_filters if f.active]
