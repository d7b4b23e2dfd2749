# memory_store.py
"""
In-memory CatalogStore over a JSON catalog snapshot.

Text relevance is BM25 (rank_bm25) over title + description, and an offering
only matches when every non-stopword query token appears in it. English
stopwords (spaCy's list) are dropped the way plainto_tsquery drops them; a
query made only of stopwords matches nothing. Terms are not stemmed, so
"algorithm" does not match "algorithms" here as it does in PostgreSQL.

Fuzzy similarity is difflib's ratio with the same 0.3 cut-off pg_trgm uses
for its % operator.

Snapshot layout:
    {
      "subjects":       [{"code": "CS", "longname": "Computer Science"}],
      "instructors":    [{"instructor_id": 1, "sunet": "...", "name": "...",
                          "first_name": "...", "last_name": "..."}],
      "eval_questions": [{"id": 1, "question_text": "..."}],
      "offerings":      [{"offering_id": 1, "year": "2025-2026", "subject_code": "CS",
                          "code_number": 106, "code_suffix": "A", ...,
                          "sections": [{"section_id": 10, "term_quarter": "Autumn",
                                        "schedules": [{"schedule_id": 100,
                                                       "instructors": [{"instructor_id": 1,
                                                                        "role": "PI"}]}],
                                        "smart_averages": {"1": 4.5}}]}]
    }
"""
import difflib
import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field
from rank_bm25 import BM25Okapi
from spacy.lang.en.stop_words import STOP_WORDS

from .eval_metrics import slug_for_question
from .query_plan import CourseCode, EligibilityFilter
from .schemas import (
    CourseOffering,
    InstructorInfo,
    ScheduleInfo,
    SectionInfo,
    SmartEvaluation,
)
from .store import (
    CatalogStore,
    InstructorAssignment,
    InstructorCandidate,
    OfferingKey,
    SectionEvaluation,
)

SIMILARITY_THRESHOLD = 0.3

TOKEN_RE = re.compile(r"\w+")


def _tokenise(text: str) -> List[str]:
    return TOKEN_RE.findall(text.lower())


def _query_terms(text: str) -> List[str]:
    return [t for t in _tokenise(text) if t not in STOP_WORDS]


def similarity(a: Optional[str], b: Optional[str]) -> float:
    if not a or not b:
        return 0.0
    return difflib.SequenceMatcher(None, a.lower(), b.lower()).ratio()


class SubjectRecord(BaseModel):
    code: str
    longname: Optional[str] = None


class InstructorRecord(BaseModel):
    instructor_id: int
    sunet: Optional[str] = None
    name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class QuestionRecord(BaseModel):
    id: int
    question_text: str


class ScheduleInstructorRecord(BaseModel):
    instructor_id: int
    role: Optional[str] = None


class ScheduleRecord(BaseModel):
    schedule_id: int
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    location: Optional[str] = None
    days: List[str] = Field(default_factory=list)
    instructors: List[ScheduleInstructorRecord] = Field(default_factory=list)


class SectionRecord(BaseModel):
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
    schedules: List[ScheduleRecord] = Field(default_factory=list)
    smart_averages: Dict[int, float] = Field(default_factory=dict)


class OfferingRecord(BaseModel):
    offering_id: int
    year: str
    subject_code: str
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
    sections: List[SectionRecord] = Field(default_factory=list)


class CatalogSnapshot(BaseModel):
    subjects: List[SubjectRecord] = Field(default_factory=list)
    instructors: List[InstructorRecord] = Field(default_factory=list)
    eval_questions: List[QuestionRecord] = Field(default_factory=list)
    offerings: List[OfferingRecord] = Field(default_factory=list)


class InMemoryCatalogStore(CatalogStore):
    def __init__(self, snapshot: CatalogSnapshot):
        self.snapshot = snapshot
        self.offerings: Dict[int, OfferingRecord] = {o.offering_id: o for o in snapshot.offerings}
        self.instructors: Dict[int, InstructorRecord] = {i.instructor_id: i for i in snapshot.instructors}
        self.subject_longnames: Dict[str, Optional[str]] = {s.code: s.longname for s in snapshot.subjects}
        self.questions: Dict[int, str] = {q.id: q.question_text for q in snapshot.eval_questions}

        self._corpus_ids = list(self.offerings)
        self._corpus = [
            _tokenise(f"{self.offerings[oid].title} {self.offerings[oid].description}")
            for oid in self._corpus_ids
        ]
        self._bm25 = BM25Okapi(self._corpus) if self._corpus else None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InMemoryCatalogStore":
        return cls(CatalogSnapshot.model_validate(data))

    @classmethod
    def load(cls, path: str) -> "InMemoryCatalogStore":
        return cls.from_dict(json.loads(Path(path).read_text(encoding="utf-8")))

    # --- eligibility ---

    def _is_eligible(self, offering: OfferingRecord, flt: EligibilityFilter) -> bool:
        if offering.year != flt.year:
            return False
        if not any(not s.cancelled and flt.quarter_allowed(s.term_quarter) for s in offering.sections):
            return False
        if not flt.ways_overlap(offering.gers):
            return False
        return flt.units_overlap(offering.units_min, offering.units_max)

    def _eligible(self, flt: EligibilityFilter) -> List[OfferingRecord]:
        return [o for o in self.offerings.values() if self._is_eligible(o, flt)]

    # --- reference data ---

    def subject_codes(self) -> List[str]:
        return sorted(self.subject_longnames)

    def eval_questions(self) -> Dict[str, int]:
        return {text: qid for qid, text in self.questions.items()}

    def available_years(self) -> List[str]:
        years = {o.year for o in self.offerings.values() if any(not s.cancelled for s in o.sections)}
        return sorted(years, reverse=True)

    # --- candidates ---

    def eligible_offerings(self, flt: EligibilityFilter) -> List[int]:
        return [o.offering_id for o in self._eligible(flt)]

    def offerings_by_code(self, codes: List[CourseCode], flt: EligibilityFilter) -> List[OfferingKey]:
        wanted = {(c.subject, c.code_number) for c in codes}
        return [
            self._key(o)
            for o in self._eligible(flt)
            if (o.subject_code.upper(), o.code_number) in wanted
        ]

    def offerings_by_subject(self, subjects: List[str], flt: EligibilityFilter) -> List[int]:
        wanted = {s.upper() for s in subjects}
        return [o.offering_id for o in self._eligible(flt) if o.subject_code.upper() in wanted]

    def content_matches(self, text: str, flt: EligibilityFilter) -> List[Tuple[int, float]]:
        tokens = _query_terms(text)
        if not tokens or self._bm25 is None:
            return []
        eligible = {o.offering_id for o in self._eligible(flt)}
        scores = self._bm25.get_scores(tokens)
        matches: List[Tuple[int, float]] = []
        for idx, offering_id in enumerate(self._corpus_ids):
            if offering_id not in eligible:
                continue
            doc = set(self._corpus[idx])
            if all(t in doc for t in tokens):
                matches.append((offering_id, max(float(scores[idx]), 0.0)))
        return matches

    def instructor_candidates(self, text: str) -> List[InstructorCandidate]:
        lowered = text.lower()
        out: List[InstructorCandidate] = []
        for inst in sorted(self.instructors.values(), key=lambda i: i.instructor_id):
            sim_full = similarity(inst.name, text)
            sim_last = similarity(inst.last_name, text)
            sim_first = similarity(inst.first_name, text)
            exact = inst.sunet is not None and inst.sunet == lowered
            if exact or max(sim_full, sim_last, sim_first) >= SIMILARITY_THRESHOLD:
                out.append(
                    InstructorCandidate(
                        instructor_id=inst.instructor_id,
                        sunet=inst.sunet,
                        sim_full=sim_full,
                        sim_last=sim_last,
                        sim_first=sim_first,
                    )
                )
        return out

    def instructor_assignments(
        self, instructor_ids: List[int], flt: EligibilityFilter
    ) -> List[InstructorAssignment]:
        wanted = set(instructor_ids)
        seen = set()
        out: List[InstructorAssignment] = []
        for offering in self._eligible(flt):
            for section in offering.sections:
                if not section.is_principal or not flt.quarter_allowed(section.term_quarter):
                    continue
                for schedule in section.schedules:
                    for si in schedule.instructors:
                        key = (offering.offering_id, section.section_id, si.instructor_id, si.role)
                        if si.instructor_id in wanted and key not in seen:
                            seen.add(key)
                            out.append(
                                InstructorAssignment(
                                    offering_id=offering.offering_id,
                                    section_id=section.section_id,
                                    instructor_id=si.instructor_id,
                                    role=si.role,
                                )
                            )
        return out

    def subject_name_matches(self, text: str, flt: EligibilityFilter) -> List[Tuple[int, float]]:
        out: List[Tuple[int, float]] = []
        for offering in self._eligible(flt):
            score = similarity(self.subject_longnames.get(offering.subject_code), text)
            if score >= SIMILARITY_THRESHOLD:
                out.append((offering.offering_id, score))
        return out

    # --- ranking and hydration ---

    def _key(self, offering: OfferingRecord) -> OfferingKey:
        return OfferingKey(
            offering_id=offering.offering_id,
            subject_code=offering.subject_code,
            code_number=offering.code_number,
            code_suffix=offering.code_suffix,
            units_min=offering.units_min,
            units_max=offering.units_max,
        )

    def offering_keys(self, offering_ids: List[int]) -> List[OfferingKey]:
        return [self._key(self.offerings[oid]) for oid in offering_ids if oid in self.offerings]

    def section_evaluations(
        self, offering_ids: List[int], quarters: List[str], question_ids: List[int]
    ) -> List[SectionEvaluation]:
        wanted = set(question_ids)
        out: List[SectionEvaluation] = []
        for oid in offering_ids:
            offering = self.offerings.get(oid)
            if offering is None:
                continue
            for section in sorted(offering.sections, key=lambda s: s.section_id):
                if not section.is_principal or section.cancelled:
                    continue
                if quarters and section.term_quarter not in quarters:
                    continue
                out.append(
                    SectionEvaluation(
                        offering_id=oid,
                        section_id=section.section_id,
                        term_quarter=section.term_quarter,
                        cancelled=section.cancelled,
                        is_principal=section.is_principal,
                        values={q: v for q, v in section.smart_averages.items() if q in wanted},
                    )
                )
        return out

    def _instructor_info(self, si: ScheduleInstructorRecord) -> InstructorInfo:
        inst = self.instructors.get(si.instructor_id)
        if inst is None:
            return InstructorInfo(instructor_id=si.instructor_id, name="", role=si.role)
        return InstructorInfo(
            instructor_id=inst.instructor_id,
            name=inst.name,
            first_name=inst.first_name,
            last_name=inst.last_name,
            sunet=inst.sunet,
            role=si.role,
        )

    def _section_info(self, section: SectionRecord) -> SectionInfo:
        evaluations = []
        for qid, value in sorted(section.smart_averages.items()):
            question = self.questions.get(qid)
            if question is None:
                continue
            evaluations.append(
                SmartEvaluation(question=question, slug=slug_for_question(question), smart_average=value)
            )
        return SectionInfo(
            section_id=section.section_id,
            section_number=section.section_number,
            term_quarter=section.term_quarter,
            component_type=section.component_type,
            units_min=section.units_min,
            units_max=section.units_max,
            num_enrolled=section.num_enrolled,
            max_enrolled=section.max_enrolled,
            cancelled=section.cancelled,
            is_principal=section.is_principal,
            schedules=[
                ScheduleInfo(
                    schedule_id=s.schedule_id,
                    start_date=s.start_date,
                    end_date=s.end_date,
                    start_time=s.start_time,
                    end_time=s.end_time,
                    location=s.location,
                    days=s.days,
                    instructors=[self._instructor_info(si) for si in s.instructors],
                )
                for s in section.schedules
            ],
            smart_evaluations=evaluations,
        )

    def fetch_offerings(self, offering_ids: List[int]) -> List[CourseOffering]:
        out: List[CourseOffering] = []
        for oid in offering_ids:
            o = self.offerings.get(oid)
            if o is None:
                continue
            out.append(
                CourseOffering(
                    id=o.offering_id,
                    year=o.year,
                    subject_code=o.subject_code,
                    subject_longname=self.subject_longnames.get(o.subject_code),
                    code_number=o.code_number,
                    code_suffix=o.code_suffix,
                    title=o.title,
                    description=o.description,
                    academic_group=o.academic_group,
                    academic_career=o.academic_career,
                    academic_organization=o.academic_organization,
                    units_min=o.units_min,
                    units_max=o.units_max,
                    gers=o.gers,
                    sections=[self._section_info(s) for s in o.sections],
                )
            )
        return out
