# postgres_store.py
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

import psycopg2

from .errors import SearchUnavailable
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

log = logging.getLogger(__name__)

OFFERING_SELECT = """
    SELECT
        mv.offering_id,
        mv.year,
        mv.subject_code,
        mv.subject_longname,
        mv.code_number,
        mv.code_suffix,
        mv.title,
        mv.description,
        mv.academic_group,
        mv.academic_career,
        mv.academic_organization,
        mv.units_min,
        mv.units_max,
        mv.gers::text[],
        mv.sections
    FROM course_offerings_full_mv mv
"""

OFFERING_KEY_SELECT = """
    SELECT
        mv.offering_id,
        mv.subject_code,
        mv.code_number,
        mv.code_suffix,
        mv.units_min,
        mv.units_max
    FROM course_offerings_full_mv mv
"""

INSTRUCTOR_CANDIDATES_SQL = """
    SELECT DISTINCT ON (c.id)
        c.id,
        c.sunet,
        similarity(c.first_and_last_name, %(q)s),
        similarity(c.last_name, %(q)s),
        similarity(c.first_name, %(q)s)
    FROM (
        SELECT id, sunet, first_and_last_name, last_name, first_name
          FROM instructors WHERE sunet = %(q_lower)s
        UNION ALL
        SELECT id, sunet, first_and_last_name, last_name, first_name
          FROM instructors WHERE first_and_last_name %% %(q)s
        UNION ALL
        SELECT id, sunet, first_and_last_name, last_name, first_name
          FROM instructors WHERE last_name %% %(q)s
        UNION ALL
        SELECT id, sunet, first_and_last_name, last_name, first_name
          FROM instructors WHERE first_name %% %(q)s
    ) c
    ORDER BY c.id;
"""


def decimal_to_float(val: Any) -> Optional[float]:
    if val is None:
        return None
    return float(val)


def build_eligibility_clause(flt: EligibilityFilter, offering_col: str) -> Tuple[str, List[Any]]:
    """
    EXISTS predicate against eligible_offerings_mv for the offering id held
    in offering_col. Only the restrictions the filter actually carries are
    added.
    """
    clauses: List[str] = [f"eo.offering_id = {offering_col}", "eo.year = %s"]
    params: List[Any] = [flt.year]
    if flt.quarters:
        clauses.append("eo.term_quarter::text = ANY(%s)")
        params.append(list(flt.quarters))
    if flt.ways:
        clauses.append("eo.gers::text[] && %s::text[]")
        params.append(list(flt.ways))
    if flt.units_min is not None:
        clauses.append("eo.units_max >= %s")
        params.append(flt.units_min)
    if flt.units_max is not None:
        clauses.append("eo.units_min <= %s")
        params.append(flt.units_max)

    sql = f"EXISTS (SELECT 1 FROM eligible_offerings_mv eo WHERE {' AND '.join(clauses)})"
    return sql, params


def instructor_from_mv(obj: Dict[str, Any]) -> InstructorInfo:
    return InstructorInfo(
        instructor_id=obj["instructorId"],
        name=obj.get("name") or "",
        first_name=obj.get("firstName"),
        last_name=obj.get("lastName"),
        sunet=obj.get("sunet"),
        role=obj.get("role"),
    )


def schedule_from_mv(obj: Dict[str, Any]) -> ScheduleInfo:
    return ScheduleInfo(
        schedule_id=obj["scheduleId"],
        start_date=obj.get("startDate"),
        end_date=obj.get("endDate"),
        start_time=obj.get("startTime"),
        end_time=obj.get("endTime"),
        location=obj.get("location"),
        days=obj.get("days") or [],
        instructors=[instructor_from_mv(i) for i in obj.get("instructors") or []],
    )


def section_from_mv(obj: Dict[str, Any]) -> SectionInfo:
    evaluations = [
        SmartEvaluation(
            question=e["question"],
            slug=slug_for_question(e["question"]),
            smart_average=decimal_to_float(e["smartAverage"]),
        )
        for e in obj.get("smartEvaluations") or []
        if e.get("smartAverage") is not None
    ]
    return SectionInfo(
        section_id=obj["sectionId"],
        section_number=obj.get("sectionNumber"),
        term_quarter=obj.get("termQuarter") or "",
        component_type=obj.get("componentType"),
        units_min=obj.get("unitsMin"),
        units_max=obj.get("unitsMax"),
        num_enrolled=obj.get("numEnrolled"),
        max_enrolled=obj.get("maxEnrolled"),
        cancelled=bool(obj.get("cancelled", False)),
        is_principal=bool(obj.get("isPrincipal", True)),
        schedules=[schedule_from_mv(s) for s in obj.get("schedules") or []],
        smart_evaluations=evaluations,
    )


def row_to_offering(row: Any) -> CourseOffering:
    (
        offering_id,
        year,
        subject_code,
        subject_longname,
        code_number,
        code_suffix,
        title,
        description,
        academic_group,
        academic_career,
        academic_organization,
        units_min,
        units_max,
        gers,
        sections,
    ) = row

    return CourseOffering(
        id=offering_id,
        year=year,
        subject_code=subject_code,
        subject_longname=subject_longname,
        code_number=code_number,
        code_suffix=code_suffix,
        title=title,
        description=description or "",
        academic_group=academic_group,
        academic_career=academic_career,
        academic_organization=academic_organization,
        units_min=units_min,
        units_max=units_max,
        gers=list(gers or []),
        sections=[section_from_mv(s) for s in sections or []],
    )


def row_to_offering_key(row: Any) -> OfferingKey:
    offering_id, subject_code, code_number, code_suffix, units_min, units_max = row
    return OfferingKey(
        offering_id=offering_id,
        subject_code=subject_code,
        code_number=code_number,
        code_suffix=code_suffix,
        units_min=units_min,
        units_max=units_max,
    )


class PostgresCatalogStore(CatalogStore):
    """
    CatalogStore over the catalog database. Expects the pg_trgm extension and
    the eligible_offerings_mv, course_offerings_full_mv and
    course_content_search views. One instance wraps one request's connection.
    """

    def __init__(self, conn):
        self.conn = conn

    @contextmanager
    def _cursor(self) -> Iterator[Any]:
        cur = None
        try:
            cur = self.conn.cursor()
            yield cur
        except psycopg2.Error as exc:
            log.warning("catalog query failed: %s", exc)
            raise SearchUnavailable() from exc
        finally:
            if cur is not None:
                cur.close()

    def _fetchall(self, sql: str, params: Any = None) -> List[Any]:
        with self._cursor() as cur:
            cur.execute(sql, params)
            return cur.fetchall()

    def ping(self) -> bool:
        try:
            self._fetchall("SELECT 1;")
        except SearchUnavailable:
            return False
        return True

    def close(self) -> None:
        self.conn.close()

    # --- reference data ---

    def subject_codes(self) -> List[str]:
        rows = self._fetchall("SELECT code FROM subjects ORDER BY code;")
        return [r[0] for r in rows]

    def eval_questions(self) -> Dict[str, int]:
        rows = self._fetchall("SELECT id, question_text FROM evaluation_numeric_questions;")
        return {question_text: question_id for question_id, question_text in rows}

    def available_years(self) -> List[str]:
        rows = self._fetchall("SELECT DISTINCT year FROM eligible_offerings_mv ORDER BY year DESC;")
        return [r[0] for r in rows]

    # --- candidates ---

    def eligible_offerings(self, flt: EligibilityFilter) -> List[int]:
        elig_sql, params = build_eligibility_clause(flt, "co.id")
        rows = self._fetchall(f"SELECT co.id FROM course_offerings co WHERE {elig_sql};", params)
        return [r[0] for r in rows]

    def offerings_by_code(self, codes: List[CourseCode], flt: EligibilityFilter) -> List[OfferingKey]:
        if not codes:
            return []
        elig_sql, elig_params = build_eligibility_clause(flt, "co.id")
        sql = f"""
            SELECT co.id, s.code, co.code_number, co.code_suffix, co.units_min, co.units_max
            FROM course_offerings co
            JOIN subjects s ON s.id = co.subject_id
            WHERE s.code = ANY(%s)
              AND co.code_number = ANY(%s)
              AND {elig_sql};
        """
        params: List[Any] = [
            sorted({c.subject for c in codes}),
            sorted({c.code_number for c in codes}),
            *elig_params,
        ]
        return [row_to_offering_key(r) for r in self._fetchall(sql, params)]

    def offerings_by_subject(self, subjects: List[str], flt: EligibilityFilter) -> List[int]:
        if not subjects:
            return []
        elig_sql, elig_params = build_eligibility_clause(flt, "co.id")
        sql = f"""
            SELECT co.id
            FROM course_offerings co
            JOIN subjects s ON s.id = co.subject_id
            WHERE s.code = ANY(%s)
              AND {elig_sql};
        """
        rows = self._fetchall(sql, [list(subjects), *elig_params])
        return [r[0] for r in rows]

    def content_matches(self, text: str, flt: EligibilityFilter) -> List[Tuple[int, float]]:
        elig_sql, elig_params = build_eligibility_clause(flt, "cs.offering_id")
        sql = f"""
            SELECT cs.offering_id,
                   ts_rank(cs.search_vector, plainto_tsquery('english'::regconfig, %s))
            FROM course_content_search cs
            WHERE cs.search_vector @@ plainto_tsquery('english'::regconfig, %s)
              AND {elig_sql};
        """
        rows = self._fetchall(sql, [text, text, *elig_params])
        return [(r[0], decimal_to_float(r[1]) or 0.0) for r in rows]

    def instructor_candidates(self, text: str) -> List[InstructorCandidate]:
        rows = self._fetchall(INSTRUCTOR_CANDIDATES_SQL, {"q": text, "q_lower": text.lower()})
        return [
            InstructorCandidate(
                instructor_id=r[0],
                sunet=r[1],
                sim_full=decimal_to_float(r[2]) or 0.0,
                sim_last=decimal_to_float(r[3]) or 0.0,
                sim_first=decimal_to_float(r[4]) or 0.0,
            )
            for r in rows
        ]

    def instructor_assignments(
        self, instructor_ids: List[int], flt: EligibilityFilter
    ) -> List[InstructorAssignment]:
        if not instructor_ids:
            return []
        clauses = ["si.instructor_id = ANY(%s)", "sec.is_principal"]
        params: List[Any] = [list(instructor_ids)]
        if flt.quarters:
            clauses.append("sec.term_quarter::text = ANY(%s)")
            params.append(list(flt.quarters))
        elig_sql, elig_params = build_eligibility_clause(flt, "sec.course_offering_id")
        clauses.append(elig_sql)
        params.extend(elig_params)

        sql = f"""
            SELECT DISTINCT sec.course_offering_id, sec.id, si.instructor_id, ir.code
            FROM schedule_instructors si
            JOIN instructor_roles ir ON ir.id = si.instructor_role_id
            JOIN schedules sch ON sch.id = si.schedule_id
            JOIN sections sec ON sec.id = sch.section_id
            WHERE {' AND '.join(clauses)};
        """
        return [
            InstructorAssignment(offering_id=r[0], section_id=r[1], instructor_id=r[2], role=r[3])
            for r in self._fetchall(sql, params)
        ]

    def subject_name_matches(self, text: str, flt: EligibilityFilter) -> List[Tuple[int, float]]:
        elig_sql, elig_params = build_eligibility_clause(flt, "co.id")
        sql = f"""
            SELECT co.id, similarity(s.longname, %s)
            FROM subjects s
            JOIN course_offerings co ON co.subject_id = s.id
            WHERE s.longname %% %s
              AND {elig_sql};
        """
        rows = self._fetchall(sql, [text, text, *elig_params])
        return [(r[0], decimal_to_float(r[1]) or 0.0) for r in rows]

    # --- ranking and hydration ---

    def offering_keys(self, offering_ids: List[int]) -> List[OfferingKey]:
        if not offering_ids:
            return []
        sql = f"{OFFERING_KEY_SELECT} WHERE mv.offering_id = ANY(%s);"
        return [row_to_offering_key(r) for r in self._fetchall(sql, [list(offering_ids)])]

    def section_evaluations(
        self, offering_ids: List[int], quarters: List[str], question_ids: List[int]
    ) -> List[SectionEvaluation]:
        if not offering_ids:
            return []
        clauses = [
            "sec.course_offering_id = ANY(%s)",
            "sec.is_principal",
            "NOT sec.cancelled",
        ]
        params: List[Any] = [list(question_ids), list(offering_ids)]
        if quarters:
            clauses.append("sec.term_quarter::text = ANY(%s)")
            params.append(list(quarters))

        sql = f"""
            SELECT
                sec.course_offering_id,
                sec.id,
                sec.term_quarter::text,
                sec.cancelled,
                sec.is_principal,
                esa.question_id,
                esa.smart_average
            FROM sections sec
            LEFT JOIN evaluation_smart_averages esa
                   ON esa.section_id = sec.id
                  AND esa.question_id = ANY(%s)
            WHERE {' AND '.join(clauses)}
            ORDER BY sec.course_offering_id, sec.id;
        """
        sections: Dict[int, SectionEvaluation] = {}
        for offering_id, section_id, quarter, cancelled, principal, question_id, value in self._fetchall(
            sql, params
        ):
            section = sections.get(section_id)
            if section is None:
                section = SectionEvaluation(
                    offering_id=offering_id,
                    section_id=section_id,
                    term_quarter=quarter,
                    cancelled=cancelled,
                    is_principal=principal,
                )
                sections[section_id] = section
            if question_id is not None and value is not None:
                section.values[question_id] = decimal_to_float(value)
        return list(sections.values())

    def fetch_offerings(self, offering_ids: List[int]) -> List[CourseOffering]:
        if not offering_ids:
            return []
        sql = f"{OFFERING_SELECT} WHERE mv.offering_id = ANY(%s);"
        return [row_to_offering(r) for r in self._fetchall(sql, [list(offering_ids)])]
