import logging
import threading
from typing import Iterator, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from . import config
from .config import DEFAULT_TUNING, SearchTuning
from .db import get_db_conn
from .errors import SearchUnavailable
from .eval_metrics import EVAL_METRICS, EVAL_SLUGS
from .executor import search
from .memory_store import InMemoryCatalogStore
from .postgres_store import PostgresCatalogStore
from .reference_cache import ReferenceCache
from .schemas import EvalMetricInfo, SearchInput, SearchOutput
from .store import CatalogStore

log = logging.getLogger("course_search.api")
logging.basicConfig(level=config.LOG_LEVEL, format="%(levelname)s  %(name)s  %(message)s")

app = FastAPI(title="Course Search API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_cache = ReferenceCache()
_snapshot_store: Optional[InMemoryCatalogStore] = None
_snapshot_lock = threading.Lock()


def load_snapshot_store() -> InMemoryCatalogStore:
    """Load CATALOG_SNAPSHOT once per process; an unreadable file is a store failure."""
    global _snapshot_store
    if _snapshot_store is None:
        with _snapshot_lock:
            if _snapshot_store is None:
                log.info("Loading catalog snapshot %s", config.CATALOG_SNAPSHOT)
                try:
                    _snapshot_store = InMemoryCatalogStore.load(config.CATALOG_SNAPSHOT)
                except (OSError, ValueError) as exc:
                    log.warning("catalog snapshot %s unusable: %s", config.CATALOG_SNAPSHOT, exc)
                    raise SearchUnavailable() from exc
    return _snapshot_store


def get_store() -> Iterator[CatalogStore]:
    """
    One store per request. With CATALOG_SNAPSHOT set, every request shares a
    read-only in-memory catalog; otherwise each request gets its own database
    connection, closed when the response is done.
    """
    if config.CATALOG_SNAPSHOT:
        yield load_snapshot_store()
        return

    store = PostgresCatalogStore(get_db_conn())
    try:
        yield store
    finally:
        store.close()


def get_cache() -> ReferenceCache:
    return _cache


def get_tuning() -> SearchTuning:
    return DEFAULT_TUNING


@app.exception_handler(SearchUnavailable)
def search_unavailable_handler(request: Request, exc: SearchUnavailable) -> JSONResponse:
    log.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "search unavailable"})


@app.get("/healthz")
@app.get("/api/healthz")
def health():
    try:
        gen = get_store()
        store = next(gen)
        try:
            db_ok = store.ping()
        finally:
            gen.close()
    except SearchUnavailable:
        db_ok = False

    return {"status": "ok", "db_ok": db_ok}


@app.get("/eval-metrics", response_model=List[EvalMetricInfo])
@app.get("/api/eval-metrics", response_model=List[EvalMetricInfo])
def eval_metrics():
    return [
        EvalMetricInfo(
            slug=m.slug,
            label=m.label,
            question_text=m.question_text,
            direction=m.direction,
            min=m.range.min,
            max=m.range.max,
            default_order=m.default_order,
        )
        for m in EVAL_METRICS.values()
    ]


@app.get("/years", response_model=List[str])
@app.get("/api/years", response_model=List[str])
def available_years(
    store: CatalogStore = Depends(get_store),
    cache: ReferenceCache = Depends(get_cache),
):
    cache.init(store)
    return cache.years()


@app.post("/search", response_model=SearchOutput)
@app.post("/api/search", response_model=SearchOutput)
def search_endpoint(
    req: SearchInput,
    store: CatalogStore = Depends(get_store),
    cache: ReferenceCache = Depends(get_cache),
    tuning: SearchTuning = Depends(get_tuning),
):
    return search(req, store, cache, tuning)


def _split_param(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def search_input_from_params(params, default_year: Optional[str] = None) -> SearchInput:
    """
    Build a SearchInput from flat URL parameters:
    quarters/ways are comma-separated, eval ranges are min_eval_<slug> /
    max_eval_<slug>. A missing year falls back to default_year.
    """
    data = {
        "year": params.get("year") or default_year or "",
        "query": params.get("query", ""),
        "quarters": _split_param(params.get("quarters")),
        "ways": _split_param(params.get("ways")),
        "sort": params.get("sort") or "relevance",
        "page": params.get("page") or 1,
    }
    for name in ("units_min", "units_max", "order"):
        if params.get(name):
            data[name] = params.get(name)

    eval_filters = []
    for slug in EVAL_SLUGS:
        lo = params.get(f"min_eval_{slug}")
        hi = params.get(f"max_eval_{slug}")
        if not lo and not hi:
            continue
        eval_filters.append({"slug": slug, "min": lo or None, "max": hi or None})
    data["eval_filters"] = eval_filters

    return SearchInput.model_validate(data)


@app.get("/search", response_model=SearchOutput)
@app.get("/api/search", response_model=SearchOutput)
def search_get_endpoint(
    request: Request,
    store: CatalogStore = Depends(get_store),
    cache: ReferenceCache = Depends(get_cache),
    tuning: SearchTuning = Depends(get_tuning),
):
    default_year = config.DEFAULT_YEAR
    if not request.query_params.get("year") and not default_year:
        cache.init(store)
        default_year = cache.latest_year()

    try:
        req = search_input_from_params(request.query_params, default_year)
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail=exc.errors(include_url=False, include_context=False, include_input=False),
        )
    return search(req, store, cache, tuning)
