from typing import List, Optional, Literal

from pydantic import BaseModel, Field, field_validator

from .eval_metrics import EvalSlug, Direction, SortOrder


Quarter = Literal["Autumn", "Winter", "Spring", "Summer"]
ALL_QUARTERS: List[str] = ["Autumn", "Winter", "Spring", "Summer"]

# Ways (GER) tags offered as filters.
Way = Literal[
    "WAY-AQR",
    "WAY-SMA",
    "WAY-A-II",
    "WAY-EDP",
    "WAY-CE",
    "WAY-SI",
    "WAY-ER",
    "WAY-FR",
]

SortOption = Literal[
    "relevance",
    "code",
    "units",
    "rating",
    "hours",
    "learning",
    "organized",
    "goals",
    "attend_in_person",
    "attend_online",
]


class EvalFilter(BaseModel):
    slug: EvalSlug
    min: Optional[float] = None
    max: Optional[float] = None

    @property
    def active(self) -> bool:
        return self.min is not None or self.max is not None


class SearchInput(BaseModel):
    year: str
    query: str = ""
    quarters: List[Quarter] = Field(default_factory=list)
    ways: List[Way] = Field(default_factory=list)
    units_min: Optional[int] = None
    units_max: Optional[int] = None
    sort: SortOption = "relevance"
    # None means the default order for the chosen sort key.
    order: Optional[SortOrder] = None
    eval_filters: List[EvalFilter] = Field(default_factory=list)
    page: int = Field(default=1, ge=1)

    @field_validator("year")
    @classmethod
    def _year_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("year must not be empty")
        return value

    @field_validator("query")
    @classmethod
    def _trim_query(cls, value: str) -> str:
        return value.strip()


class InstructorInfo(BaseModel):
    instructor_id: int
    name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    sunet: Optional[str] = None
    role: Optional[str] = None


class ScheduleInfo(BaseModel):
    schedule_id: int
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    location: Optional[str] = None
    days: List[str] = Field(default_factory=list)
    instructors: List[InstructorInfo] = Field(default_factory=list)


class SmartEvaluation(BaseModel):
    question: str
    slug: Optional[str] = None
    smart_average: float


class SectionInfo(BaseModel):
    section_id: int
    section_number: Optional[str] = None
    term_quarter: str
    component_type: Optional[str] = None
    units_min: Optional[int] = None
    units_max: Optional[int] = None
    num_enrolled: Optional[int] = None
    max_enrolled: Optional[int] = None
    cancelled: bool = False
    is_principal: bool = True
    schedules: List[ScheduleInfo] = Field(default_factory=list)
    smart_evaluations: List[SmartEvaluation] = Field(default_factory=list)


class CourseOffering(BaseModel):
    id: int
    year: str
    subject_code: str
    subject_longname: Optional[str] = None
    code_number: int
    code_suffix: Optional[str] = None
    title: str
    description: str = ""
    academic_group: Optional[str] = None
    academic_career: Optional[str] = None
    academic_organization: Optional[str] = None
    units_min: Optional[int] = None
    units_max: Optional[int] = None
    gers: List[str] = Field(default_factory=list)
    sections: List[SectionInfo] = Field(default_factory=list)


class SearchResult(CourseOffering):
    matched_on: List[str] = Field(default_factory=list)


class SearchOutput(BaseModel):
    results: List[SearchResult] = Field(default_factory=list)
    has_more: bool = False


class EvalMetricInfo(BaseModel):
    slug: str
    label: str
    question_text: str
    direction: Direction
    min: float
    max: float
    default_order: SortOrder
