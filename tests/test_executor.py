import pytest

from course_search.errors import SearchUnavailable
from course_search.executor import build_search_plan, search
from course_search.memory_store import InMemoryCatalogStore
from course_search.query_plan import ParsedQuery
from course_search.reference_cache import ReferenceCache
from course_search.schemas import EvalFilter, SearchInput

from conftest import YEAR, _offering, _section


def run(store, cache, **kwargs):
    kwargs.setdefault("year", YEAR)
    return search(SearchInput(**kwargs), store, cache)


def ids(output):
    return [r.id for r in output.results]


class TestBuildSearchPlan:
    def test_default_order_follows_sort_key(self):
        parsed = ParsedQuery()
        assert build_search_plan(SearchInput(year=YEAR), parsed).order == "desc"
        assert build_search_plan(SearchInput(year=YEAR, sort="code"), parsed).order == "asc"
        assert build_search_plan(SearchInput(year=YEAR, sort="hours"), parsed).order == "asc"
        assert build_search_plan(SearchInput(year=YEAR, sort="rating"), parsed).order == "desc"

    def test_explicit_order_wins(self):
        plan = build_search_plan(SearchInput(year=YEAR, sort="hours", order="desc"), ParsedQuery())
        assert plan.order == "desc"


class TestQueries:
    def test_exact_code(self, store, cache):
        out = run(store, cache, query="CS 106A")
        assert ids(out) == [101]
        assert out.results[0].matched_on == ["code"]
        assert out.has_more is False

    def test_code_without_suffix_matches_every_suffix(self, store, cache):
        assert ids(run(store, cache, query="cs 106")) == [101, 102]

    def test_bare_subject(self, store, cache):
        out = run(store, cache, query="CS")
        assert ids(out) == [101, 102, 103]
        assert all(r.matched_on == ["subject_code"] for r in out.results)

    def test_content(self, store, cache):
        out = run(store, cache, query="recursion")
        assert out.results[0].id == 102
        assert "content" in out.results[0].matched_on

    def test_instructor_last_name(self, store, cache):
        out = run(store, cache, query="Sahami")
        assert ids(out)[:2] == [101, 103]
        assert "instructor" in out.results[0].matched_on

    def test_duplicate_listing_does_not_match_instructor(self, catalog_data, cache):
        catalog_data["offerings"].append(
            _offering(
                108, "PHIL", 99, None,
                "Ethics of Computing",
                "Cross-listed seminar.",
                (3, 3),
                [
                    _section(1081, "Autumn"),
                    _section(1082, "Autumn", [(1, "PI")], principal=False),
                ],
            )
        )
        store = InMemoryCatalogStore.from_dict(catalog_data)
        out = run(store, cache, query="Sahami")
        assert ids(out)[:2] == [101, 103]
        assert all("instructor" not in r.matched_on for r in out.results if r.id == 108)

    def test_instructor_account_id(self, store, cache):
        assert ids(run(store, cache, query="jzelenski"))[:2] == [102, 106]

    def test_results_are_hydrated(self, store, cache):
        result = run(store, cache, query="CS 107").results[0]
        assert result.subject_longname == "Computer Science"
        section = result.sections[0]
        names = [i.name for s in section.schedules for i in s.instructors]
        assert names == ["Chris Gregg", "Mehran Sahami"]
        assert {e.slug for e in section.smart_evaluations} == {"rating", "hours"}

    def test_same_request_same_answer(self, store, cache):
        first = run(store, cache, query="programming", sort="units")
        second = run(store, cache, query="programming", sort="units")
        assert first == second


class TestBrowse:
    def test_lists_every_eligible_offering(self, store, cache):
        out = run(store, cache)
        assert ids(out) == [101, 102, 103, 104, 105, 106]
        assert all(r.matched_on == ["all"] for r in out.results)

    def test_ways(self, store, cache):
        assert ids(run(store, cache, ways=["WAY-AQR"])) == [101, 105]

    def test_units_min(self, store, cache):
        assert set(ids(run(store, cache, units_min=5))) == {101, 102, 103, 105}

    def test_units_max(self, store, cache):
        assert set(ids(run(store, cache, units_max=3))) == {101, 102, 103, 106}

    def test_quarters(self, store, cache):
        assert ids(run(store, cache, quarters=["Spring"])) == [102, 106]

    def test_only_cancelled_sections_in_quarter(self, store, cache):
        # MATH 51's only Winter section is cancelled.
        assert 105 not in ids(run(store, cache, quarters=["Winter"]))


class TestEvaluations:
    def test_rating_filter_sorted_by_hours(self, store, cache):
        out = run(
            store,
            cache,
            sort="hours",
            eval_filters=[EvalFilter(slug="rating", min=4)],
        )
        assert ids(out) == [105, 101, 102, 106]

    def test_sort_by_rating_within_quarter(self, store, cache):
        assert ids(run(store, cache, quarters=["Spring"], sort="rating")) == [102, 106]

    def test_filter_with_query(self, store, cache):
        out = run(store, cache, query="CS", eval_filters=[EvalFilter(slug="hours", max=12)])
        assert ids(out) == [101]

    def test_empty_filter_is_ignored(self, store, cache):
        out = run(store, cache, query="CS", eval_filters=[EvalFilter(slug="hours")])
        assert ids(out) == [101, 102, 103]


class TestYear:
    def test_other_year_is_invisible(self, store, cache):
        out = run(store, cache, query="MATH 19")
        assert out.results == []
        assert out.has_more is False

    def test_requested_year(self, store, cache):
        assert ids(run(store, cache, year="2024-2025", query="MATH 19")) == [107]

    def test_unknown_year(self, store, cache):
        assert run(store, cache, year="1999-2000").results == []


class VanishingStore(InMemoryCatalogStore):
    """Ranks offering 102 but can no longer load it."""

    def fetch_offerings(self, offering_ids):
        return [o for o in super().fetch_offerings(offering_ids) if o.id != 102]


def test_offering_deleted_mid_request(catalog_data, cache):
    store = VanishingStore.from_dict(catalog_data)
    with pytest.raises(SearchUnavailable):
        run(store, cache, query="cs 106")


class TestPagination:
    @pytest.mark.parametrize(
        "n,page,count,has_more",
        [(15, 1, 10, True), (15, 2, 5, False), (20, 2, 10, False), (20, 3, 0, False)],
    )
    def test_pages(self, big_catalog_data, n, page, count, has_more):
        store = InMemoryCatalogStore.from_dict(big_catalog_data(n))
        out = search(SearchInput(year=YEAR, page=page), store, ReferenceCache())
        assert len(out.results) == count
        assert out.has_more is has_more

    def test_pages_do_not_overlap(self, big_catalog_data):
        store = InMemoryCatalogStore.from_dict(big_catalog_data(15))
        cache = ReferenceCache()
        first = ids(search(SearchInput(year=YEAR, page=1), store, cache))
        second = ids(search(SearchInput(year=YEAR, page=2), store, cache))
        assert not set(first) & set(second)
        assert first + second == list(range(1001, 1016))
