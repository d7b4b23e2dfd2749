import pytest

from course_search.config import SignalWeights
from course_search.query_plan import CourseCode, EligibilityFilter, SearchPlan
from course_search.scoring import combine_signals
from course_search.signals import (
    MatchSignal,
    code_score,
    collect_code_signals,
    collect_content_signals,
    collect_fallback_signals,
    collect_instructor_signals,
    collect_signals,
    collect_subject_code_signals,
    collect_subject_name_signals,
)
from course_search.store import OfferingKey

from conftest import YEAR


def plan(**kwargs):
    kwargs.setdefault("eligibility", EligibilityFilter(year=YEAR))
    return SearchPlan(**kwargs)


def key(number, suffix=None, subject="CS"):
    return OfferingKey(offering_id=1, subject_code=subject, code_number=number, code_suffix=suffix)


class TestCodeScore:
    def test_exact_with_suffix(self, tuning):
        assert code_score(key(106, "A"), CourseCode(subject="CS", code_number=106, code_suffix="A"), tuning) == 1.0

    def test_exact_without_suffix(self, tuning):
        assert code_score(key(107), CourseCode(subject="CS", code_number=107), tuning) == 1.0

    def test_query_without_suffix_is_partial(self, tuning):
        assert code_score(key(106, "B"), CourseCode(subject="CS", code_number=106), tuning) == 0.7

    def test_wrong_suffix_is_no_match(self, tuning):
        assert code_score(key(106, "B"), CourseCode(subject="CS", code_number=106, code_suffix="A"), tuning) is None

    def test_query_suffix_against_suffixless_offering(self, tuning):
        assert code_score(key(107), CourseCode(subject="CS", code_number=107, code_suffix="A"), tuning) is None

    def test_other_number(self, tuning):
        assert code_score(key(107), CourseCode(subject="CS", code_number=106), tuning) is None


class TestCollectors:
    def test_code_signals(self, store, tuning):
        signals = collect_code_signals(plan(codes=[CourseCode(subject="CS", code_number=106)]), store, tuning)
        assert sorted((s.offering_id, s.score) for s in signals) == [(101, 0.7), (102, 0.7)]

    def test_code_signals_respect_year(self, store, tuning):
        p = plan(codes=[CourseCode(subject="MATH", code_number=19)])
        assert collect_code_signals(p, store, tuning) == []

    def test_subject_code_signals(self, store, tuning):
        signals = collect_subject_code_signals(plan(subjects=["CS"]), store, tuning)
        assert sorted(s.offering_id for s in signals) == [101, 102, 103]
        assert all(s.score == 0.3 and s.kind == "subject_code" for s in signals)

    def test_content_signals(self, store, tuning):
        signals = collect_content_signals(plan(text="recursion"), store, tuning)
        assert [s.offering_id for s in signals] == [102]
        assert signals[0].score > 0

    def test_content_requires_every_term(self, store, tuning):
        signals = collect_content_signals(plan(text="programming python"), store, tuning)
        assert [s.offering_id for s in signals] == [101]

    def test_content_skipped_without_text(self, store, tuning):
        assert collect_content_signals(plan(subjects=["CS"]), store, tuning) == []

    def test_short_text_skips_fuzzy_signals(self, store, tuning):
        p = plan(text="Sah")
        assert collect_instructor_signals(p, store, tuning) == []
        assert collect_subject_name_signals(p, store, tuning) == []

    def test_instructor_signals(self, store, tuning):
        signals = collect_instructor_signals(plan(text="Sahami"), store, tuning)
        assert {s.offering_id for s in signals} == {101, 103}

    def test_subject_name_signals(self, store, tuning):
        signals = collect_subject_name_signals(plan(text="Philosophy"), store, tuning)
        by_id = {s.offering_id: s.score for s in signals}
        assert by_id[106] == pytest.approx(1.0)


class TestFallback:
    def test_browse_mode_emits_every_eligible_offering(self, store, tuning):
        signals = collect_fallback_signals(plan(), store, tuning)
        assert sorted(s.offering_id for s in signals) == [101, 102, 103, 104, 105, 106]
        assert all(s.score == 0.5 for s in signals)

    def test_eligibility_filters_narrow_browse(self, store, tuning):
        p = plan(eligibility=EligibilityFilter(year=YEAR, ways=["WAY-AQR"]))
        assert sorted(s.offering_id for s in collect_fallback_signals(p, store, tuning)) == [101, 105]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"text": "ab"},
            {"text": "machine learning"},
            {"subjects": ["PHIL"]},
            {"codes": [CourseCode(subject="CS", code_number=1)]},
        ],
    )
    def test_never_fires_with_query_input(self, store, tuning, kwargs):
        signals = collect_signals(plan(**kwargs), store, tuning)
        assert not [s for s in signals if s.kind == "fallback"]


class TestCombineSignals:
    def test_weighted_sum_of_best_per_kind(self):
        signals = [
            MatchSignal(offering_id=1, score=1.0, kind="code"),
            MatchSignal(offering_id=1, score=0.7, kind="code"),
            MatchSignal(offering_id=1, score=0.2, kind="content"),
            MatchSignal(offering_id=1, score=0.5, kind="instructor"),
            MatchSignal(offering_id=1, score=0.4, kind="subject"),
        ]
        scored = combine_signals(signals, SignalWeights())
        assert scored[1].relevance == pytest.approx(7 * 1.0 + 6 * 0.2 + 4 * 0.5 + 3 * 0.4)
        assert scored[1].matched_on == ["code", "content", "instructor", "subject"]

    def test_subject_code_counts_toward_code_weight(self):
        scored = combine_signals([MatchSignal(offering_id=2, score=0.3, kind="subject_code")], SignalWeights())
        assert scored[2].relevance == pytest.approx(2.1)
        assert scored[2].matched_on == ["subject_code"]

    def test_code_and_subject_code_take_the_max(self):
        signals = [
            MatchSignal(offering_id=3, score=0.3, kind="subject_code"),
            MatchSignal(offering_id=3, score=0.7, kind="code"),
        ]
        assert combine_signals(signals, SignalWeights())[3].relevance == pytest.approx(4.9)

    def test_fallback_weight(self):
        scored = combine_signals([MatchSignal(offering_id=4, score=0.5, kind="fallback")], SignalWeights())
        assert scored[4].relevance == pytest.approx(0.5)

    def test_offerings_are_kept_apart(self):
        signals = [
            MatchSignal(offering_id=1, score=1.0, kind="code"),
            MatchSignal(offering_id=2, score=0.5, kind="instructor"),
        ]
        scored = combine_signals(signals, SignalWeights())
        assert scored[1].relevance == pytest.approx(7.0)
        assert scored[2].relevance == pytest.approx(2.0)

    def test_no_signals(self):
        assert combine_signals([], SignalWeights()) == {}
