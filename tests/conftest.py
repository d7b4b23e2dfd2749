import pytest

from course_search.config import SearchTuning
from course_search.eval_metrics import EVAL_METRICS
from course_search.memory_store import InMemoryCatalogStore
from course_search.reference_cache import ReferenceCache

YEAR = "2025-2026"

RATING = 1
HOURS = 2
LEARNING = 3


def _section(section_id, quarter, instructors=(), smart=None, cancelled=False, principal=True):
    return {
        "section_id": section_id,
        "section_number": "01",
        "term_quarter": quarter,
        "component_type": "LEC",
        "cancelled": cancelled,
        "is_principal": principal,
        "schedules": [
            {
                "schedule_id": section_id * 10,
                "days": ["Monday", "Wednesday"],
                "start_time": "10:30",
                "end_time": "11:20",
                "location": "Hewlett 200",
                "instructors": [{"instructor_id": iid, "role": role} for iid, role in instructors],
            }
        ],
        "smart_averages": {str(k): v for k, v in (smart or {}).items()},
    }


def _offering(offering_id, subject, number, suffix, title, description, units, sections, gers=(), year=YEAR):
    return {
        "offering_id": offering_id,
        "year": year,
        "subject_code": subject,
        "code_number": number,
        "code_suffix": suffix,
        "title": title,
        "description": description,
        "academic_group": "ENGR",
        "academic_career": "UG",
        "academic_organization": subject,
        "units_min": units[0],
        "units_max": units[1],
        "gers": list(gers),
        "sections": sections,
    }


@pytest.fixture
def catalog_data():
    """A small catalog covering every signal and filter path."""
    return {
        "subjects": [
            {"code": "CS", "longname": "Computer Science"},
            {"code": "CSE", "longname": "Computer Science and Engineering"},
            {"code": "MATH", "longname": "Mathematics"},
            {"code": "PHIL", "longname": "Philosophy"},
        ],
        "instructors": [
            {"instructor_id": 1, "sunet": "msahami", "name": "Mehran Sahami", "first_name": "Mehran", "last_name": "Sahami"},
            {"instructor_id": 2, "sunet": "jzelenski", "name": "Julie Zelenski", "first_name": "Julie", "last_name": "Zelenski"},
            {"instructor_id": 3, "sunet": "cgregg", "name": "Chris Gregg", "first_name": "Chris", "last_name": "Gregg"},
        ],
        "eval_questions": [
            {"id": RATING, "question_text": EVAL_METRICS["rating"].question_text},
            {"id": HOURS, "question_text": EVAL_METRICS["hours"].question_text},
            {"id": LEARNING, "question_text": EVAL_METRICS["learning"].question_text},
        ],
        "offerings": [
            _offering(
                101, "CS", 106, "A",
                "Programming Methodology",
                "Introduction to programming in Python.",
                (3, 5),
                [
                    _section(1011, "Autumn", [(1, "PI")], {RATING: 4.5, HOURS: 12.0}),
                    _section(1012, "Winter", [(1, "PI")], {RATING: 3.8, HOURS: 9.0}),
                ],
                gers=["WAY-AQR"],
            ),
            _offering(
                102, "CS", 106, "B",
                "Programming Abstractions",
                "Recursion, data structures and algorithms in C++.",
                (3, 5),
                [
                    _section(1021, "Autumn", [(2, "PI")], {RATING: 4.2, HOURS: 15.0}),
                    _section(1022, "Spring", [(3, "PI")], {RATING: 4.6}),
                ],
            ),
            _offering(
                103, "CS", 107, None,
                "Computer Organization and Systems",
                "Machine-level programming in C.",
                (3, 5),
                [_section(1031, "Winter", [(3, "PI"), (1, "TA")], {RATING: 3.5, HOURS: 20.0})],
            ),
            _offering(
                104, "CSE", 8, "A",
                "Intro to Computing",
                "Introductory coding for beginners.",
                (4, 4),
                [_section(1041, "Autumn")],
            ),
            _offering(
                105, "MATH", 51, None,
                "Linear Algebra and Multivariable Calculus",
                "Vectors, matrices and differential calculus.",
                (5, 5),
                [
                    _section(1051, "Autumn", smart={RATING: 4.0, HOURS: 11.0}),
                    _section(1052, "Winter", smart={RATING: 5.0, HOURS: 1.0}, cancelled=True),
                    _section(1053, "Autumn", smart={RATING: 5.0, HOURS: 2.0}, principal=False),
                ],
                gers=["WAY-AQR", "WAY-FR"],
            ),
            _offering(
                106, "PHIL", 1, None,
                "Introduction to Philosophy",
                "Knowledge, mind, and ethics.",
                (3, 4),
                [_section(1061, "Spring", [(2, "PI")], {RATING: 4.1})],
                gers=["WAY-ER"],
            ),
            _offering(
                107, "MATH", 19, None,
                "Calculus",
                "Limits and derivatives.",
                (3, 3),
                [_section(1071, "Autumn")],
                year="2024-2025",
            ),
        ],
    }


@pytest.fixture
def store(catalog_data):
    return InMemoryCatalogStore.from_dict(catalog_data)


@pytest.fixture
def cache():
    return ReferenceCache()


@pytest.fixture
def tuning():
    return SearchTuning()


@pytest.fixture
def big_catalog_data():
    """n ECON offerings with one Autumn section each; n set by the test."""

    def build(n):
        return {
            "subjects": [{"code": "ECON", "longname": "Economics"}],
            "instructors": [],
            "eval_questions": [],
            "offerings": [
                _offering(
                    1000 + i, "ECON", i, None,
                    f"Economics Topic {i}",
                    "Markets and incentives.",
                    (3, 5),
                    [_section(5000 + i, "Autumn")],
                )
                for i in range(1, n + 1)
            ],
        }

    return build
