# ranking.py
from typing import Any, Callable, List, Optional, Tuple

from pydantic import BaseModel

from .eval_metrics import is_eval_slug


class RankedRow(BaseModel):
    offering_id: int
    relevance: float = 0.0
    subject_code: str
    code_number: int
    code_suffix: Optional[str] = None
    units_min: Optional[int] = None
    units_max: Optional[int] = None
    eval_value: Optional[float] = None


SortKey = Tuple[Callable[[RankedRow], Any], bool]


def _nulls_last(getter: Callable[[RankedRow], Optional[float]], descending: bool) -> SortKey:
    def key(row: RankedRow):
        value = getter(row)
        if descending:
            # Reversed sort: present values (True) come first.
            return (value is not None, value if value is not None else 0)
        return (value is None, value if value is not None else 0)

    return key, descending


def _suffix_key(row: RankedRow):
    # None sorts before any suffix when ascending.
    return (row.code_suffix is not None, row.code_suffix or "")


def _course_code(descending: bool) -> List[SortKey]:
    return [
        (lambda r: r.subject_code, descending),
        (lambda r: r.code_number, descending),
        (_suffix_key, descending),
    ]


def sort_keys(sort: str, order: str) -> List[SortKey]:
    """Most significant key first. Every chain ends in a total order."""
    descending = order == "desc"
    relevance_desc: SortKey = (lambda r: r.relevance, True)

    if sort == "code":
        keys = _course_code(descending) + [relevance_desc]
    elif sort == "units":
        if descending:
            units = _nulls_last(lambda r: r.units_max, True)
        else:
            units = _nulls_last(lambda r: r.units_min, False)
        keys = [units, relevance_desc] + _course_code(False)
    elif is_eval_slug(sort):
        keys = [_nulls_last(lambda r: r.eval_value, descending), relevance_desc] + _course_code(False)
    else:
        keys = [(lambda r: r.relevance, descending)] + _course_code(False)

    return keys + [(lambda r: r.offering_id, False)]


def sort_rows(rows: List[RankedRow], sort: str, order: str) -> List[RankedRow]:
    # Stable sorts applied least significant first.
    out = list(rows)
    for key, descending in reversed(sort_keys(sort, order)):
        out.sort(key=key, reverse=descending)
    return out


def paginate(rows: List[RankedRow], page: int, page_size: int) -> Tuple[List[RankedRow], bool]:
    """
    Window the sorted rows for a 1-indexed page. One extra row is fetched
    past the page; its presence is the has_more flag.
    """
    offset = (page - 1) * page_size
    window = rows[offset : offset + page_size + 1]
    has_more = len(window) > page_size
    return window[:page_size], has_more
