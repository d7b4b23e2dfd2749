# store.py
"""
Catalog store interface.

The engine never talks to a database directly; it asks a CatalogStore for
candidate rows, relevance and similarity scores, and hydrated offerings.
Two implementations exist:

  - PostgresCatalogStore (postgres_store.py): production, uses ts_rank and
    pg_trgm similarity() against the materialized views.
  - InMemoryCatalogStore (memory_store.py): a JSON catalog snapshot, used for
    tests and local development.
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from .query_plan import CourseCode, EligibilityFilter
from .schemas import CourseOffering


class OfferingKey(BaseModel):
    """The columns needed to match codes and to sort results."""

    offering_id: int
    subject_code: str
    code_number: int
    code_suffix: Optional[str] = None
    units_min: Optional[int] = None
    units_max: Optional[int] = None


class InstructorCandidate(BaseModel):
    instructor_id: int
    sunet: Optional[str] = None
    sim_full: float = 0.0
    sim_last: float = 0.0
    sim_first: float = 0.0


class InstructorAssignment(BaseModel):
    offering_id: int
    section_id: int
    instructor_id: int
    role: Optional[str] = None


class SectionEvaluation(BaseModel):
    offering_id: int
    section_id: int
    term_quarter: str
    cancelled: bool = False
    is_principal: bool = True
    # question id -> smart average; absent questions are simply missing
    values: Dict[int, float] = Field(default_factory=dict)


class CatalogStore(ABC):
    @abstractmethod
    def subject_codes(self) -> List[str]:
        """All known subject codes."""

    @abstractmethod
    def eval_questions(self) -> Dict[str, int]:
        """Evaluation question text -> question id."""

    @abstractmethod
    def available_years(self) -> List[str]:
        """Academic years with at least one eligible offering, newest first."""

    @abstractmethod
    def eligible_offerings(self, flt: EligibilityFilter) -> List[int]:
        """Ids of every offering satisfying the eligibility filter."""

    @abstractmethod
    def offerings_by_code(self, codes: List[CourseCode], flt: EligibilityFilter) -> List[OfferingKey]:
        """Eligible offerings whose subject and number match any of the codes (any suffix)."""

    @abstractmethod
    def offerings_by_subject(self, subjects: List[str], flt: EligibilityFilter) -> List[int]:
        """Eligible offerings under any of the subject codes."""

    @abstractmethod
    def content_matches(self, text: str, flt: EligibilityFilter) -> List[Tuple[int, float]]:
        """(offering_id, text relevance) for eligible offerings whose title/description match the text."""

    @abstractmethod
    def instructor_candidates(self, text: str) -> List[InstructorCandidate]:
        """
        Instructors whose account id equals text.lower() or whose full, last or
        first name is similar to text, one row per instructor.
        """

    @abstractmethod
    def instructor_assignments(
        self, instructor_ids: List[int], flt: EligibilityFilter
    ) -> List[InstructorAssignment]:
        """Distinct (offering, section, instructor, role) rows from principal sections of eligible offerings."""

    @abstractmethod
    def subject_name_matches(self, text: str, flt: EligibilityFilter) -> List[Tuple[int, float]]:
        """(offering_id, similarity) for eligible offerings whose subject long name is similar to text."""

    @abstractmethod
    def offering_keys(self, offering_ids: List[int]) -> List[OfferingKey]:
        """Sort columns for the given offerings."""

    @abstractmethod
    def section_evaluations(
        self, offering_ids: List[int], quarters: List[str], question_ids: List[int]
    ) -> List[SectionEvaluation]:
        """Sections of the offerings with their smart averages for the given questions."""

    @abstractmethod
    def fetch_offerings(self, offering_ids: List[int]) -> List[CourseOffering]:
        """Full offering records with nested sections; order is not guaranteed."""

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        pass
