# query_parser.py
import re
from typing import List, Pattern, Tuple

from .query_plan import CourseCode, ParsedQuery


WHITESPACE_RE = re.compile(r"\s+")


def normalize_query(text: str) -> str:
    """Trim and collapse runs of whitespace to single spaces."""
    return WHITESPACE_RE.sub(" ", text).strip()


def _subject_alternation(known_subjects: List[str]) -> str:
    # Longest first so "CSE" wins over "CS".
    ordered = sorted({s.upper() for s in known_subjects if s}, key=len, reverse=True)
    return "|".join(re.escape(s) for s in ordered)


def _code_pattern(alternation: str) -> Pattern[str]:
    # subject, optional space, digits, optional 1-5 char suffix, bounded by whitespace/edges
    return re.compile(
        rf"(?:^|\s)({alternation})\s*(\d+)([A-Za-z0-9-]{{1,5}})?(?=\s|$)",
        re.IGNORECASE,
    )


def _subject_pattern(alternation: str) -> Pattern[str]:
    return re.compile(rf"(?:^|\s)({alternation})(?=\s|$)", re.IGNORECASE)


def _remove_spans(text: str, spans: List[Tuple[int, int]]) -> str:
    # Right-to-left so earlier offsets stay valid.
    for start, end in sorted(spans, reverse=True):
        text = text[:start] + " " + text[end:]
    return text


def parse_search_query(raw: str, known_subjects: List[str]) -> ParsedQuery:
    """
    Split a raw search string into course codes, bare subject mentions and
    leftover free text.

      - "CS 106A", "cs106a", "MATH 51" -> CourseCode entries
      - "PHIL" on its own -> subjects_only
      - everything else -> remaining_query (whitespace collapsed)

    Matching is case-insensitive; subjects and suffixes come back upper-cased.
    """
    working = normalize_query(raw)
    alternation = _subject_alternation(known_subjects)
    if not alternation:
        return ParsedQuery(remaining_query=working)

    codes: List[CourseCode] = []
    spans: List[Tuple[int, int]] = []
    for m in _code_pattern(alternation).finditer(working):
        suffix = m.group(3)
        codes.append(
            CourseCode(
                subject=m.group(1).upper(),
                code_number=int(m.group(2)),
                code_suffix=suffix.upper() if suffix else None,
            )
        )
        spans.append((m.start(), m.end()))
    working = _remove_spans(working, spans)

    subjects_only: List[str] = []
    spans = []
    for m in _subject_pattern(alternation).finditer(working):
        subject = m.group(1).upper()
        if subject not in subjects_only:
            subjects_only.append(subject)
        spans.append((m.start(), m.end()))
    working = _remove_spans(working, spans)

    return ParsedQuery(
        codes=codes,
        subjects_only=subjects_only,
        remaining_query=normalize_query(working),
    )
