# executor.py
import logging
import time
from typing import Dict, List, Optional

from .config import DEFAULT_TUNING, SearchTuning
from .errors import SearchUnavailable
from .eval_metrics import SORT_DEFAULT_ORDER
from .evaluations import Representative, evaluation_active, select_representatives
from .query_parser import parse_search_query
from .query_plan import EligibilityFilter, ParsedQuery, SearchPlan
from .ranking import RankedRow, paginate, sort_rows
from .reference_cache import ReferenceCache
from .schemas import SearchInput, SearchOutput, SearchResult
from .scoring import ScoredOffering, combine_signals
from .signals import collect_signals
from .store import CatalogStore

log = logging.getLogger(__name__)


def build_search_plan(search_input: SearchInput, parsed: ParsedQuery) -> SearchPlan:
    order = search_input.order or SORT_DEFAULT_ORDER[search_input.sort]
    return SearchPlan(
        eligibility=EligibilityFilter(
            year=search_input.year,
            quarters=list(search_input.quarters),
            ways=list(search_input.ways),
            units_min=search_input.units_min,
            units_max=search_input.units_max,
        ),
        codes=parsed.codes,
        subjects=parsed.subjects_only,
        text=parsed.remaining_query,
        sort=search_input.sort,
        order=order,
        eval_filters=search_input.eval_filters,
        page=search_input.page,
    )


def build_ranked_rows(
    scored: Dict[int, ScoredOffering],
    store: CatalogStore,
    representatives: Optional[Dict[int, Representative]] = None,
) -> List[RankedRow]:
    rows: List[RankedRow] = []
    for key in store.offering_keys(sorted(scored)):
        rep = representatives.get(key.offering_id) if representatives is not None else None
        rows.append(
            RankedRow(
                offering_id=key.offering_id,
                relevance=scored[key.offering_id].relevance,
                subject_code=key.subject_code,
                code_number=key.code_number,
                code_suffix=key.code_suffix,
                units_min=key.units_min,
                units_max=key.units_max,
                eval_value=rep.sort_value if rep is not None else None,
            )
        )
    return rows


def assemble_results(
    page_rows: List[RankedRow],
    scored: Dict[int, ScoredOffering],
    plan: SearchPlan,
    store: CatalogStore,
) -> List[SearchResult]:
    """
    Hydrate the page in ranked order and attach match provenance. An offering
    that ranked but cannot be hydrated fails the request, since the page size
    and has_more were computed with it.
    """
    page_ids = [r.offering_id for r in page_rows]
    offerings = {o.id: o for o in store.fetch_offerings(page_ids)}

    results: List[SearchResult] = []
    for offering_id in page_ids:
        offering = offerings.get(offering_id)
        if offering is None:
            log.warning("offering %s vanished before hydration", offering_id)
            raise SearchUnavailable(f"offering {offering_id} could not be hydrated")
        matched_on = ["all"] if plan.browse else scored[offering_id].matched_on
        results.append(SearchResult(**offering.model_dump(), matched_on=matched_on))
    return results


def search(
    search_input: SearchInput,
    store: CatalogStore,
    cache: ReferenceCache,
    tuning: SearchTuning = DEFAULT_TUNING,
) -> SearchOutput:
    """
    Run one search request end to end:

      parse -> collect signals -> combine scores -> eval filter (if active)
      -> sort -> page -> hydrate

    Store failures surface as SearchUnavailable; nothing partial is returned.
    """
    t0 = time.perf_counter()

    cache.init(store)
    parsed = parse_search_query(search_input.query, cache.subject_codes())
    plan = build_search_plan(search_input, parsed)

    signals = collect_signals(plan, store, tuning)
    scored = combine_signals(signals, tuning.weights)

    representatives: Optional[Dict[int, Representative]] = None
    if scored and evaluation_active(plan):
        representatives = select_representatives(sorted(scored), plan, store, cache)
        scored = {oid: s for oid, s in scored.items() if oid in representatives}

    rows = sort_rows(build_ranked_rows(scored, store, representatives), plan.sort, plan.order)
    page_rows, has_more = paginate(rows, plan.page, tuning.page_size)
    results = assemble_results(page_rows, scored, plan, store)

    elapsed = time.perf_counter() - t0
    log.info(
        "query=%r  year=%s  sort=%s/%s  page=%d  matches=%d  returned=%d  %.3fs",
        search_input.query,
        plan.eligibility.year,
        plan.sort,
        plan.order,
        plan.page,
        len(rows),
        len(results),
        elapsed,
    )
    return SearchOutput(results=results, has_more=has_more)
