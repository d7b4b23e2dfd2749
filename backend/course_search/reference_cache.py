import logging
import threading
from typing import Dict, List, Optional

from .errors import ReferenceDataError, SearchUnavailable
from .eval_metrics import EVAL_METRICS
from .store import CatalogStore

log = logging.getLogger(__name__)


class ReferenceCache:
    """
    Read-through cache for the subject-code list, the academic-year list and
    the eval slug -> question id map. Populated on the first init() and never
    invalidated; the data only changes with a catalog reload, which means a
    restart.

    Nothing is cached when a load fails or returns no subjects, so the next
    request retries instead of searching with an empty subject list. Fills
    happen under a lock, so concurrent first requests load once.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subjects: Optional[List[str]] = None
        self._years: Optional[List[str]] = None
        self._metric_ids: Optional[Dict[str, int]] = None

    @property
    def ready(self) -> bool:
        return self._subjects is not None and self._years is not None and self._metric_ids is not None

    def init(self, store: CatalogStore) -> None:
        if self.ready:
            return
        with self._lock:
            if self._subjects is None:
                self._subjects = self._load_subjects(store)
                log.info("warmed %d subject codes", len(self._subjects))
            if self._years is None:
                self._years = self._load_years(store)
                log.info("warmed %d academic years", len(self._years))
            if self._metric_ids is None:
                self._metric_ids = self._load_metric_ids(store)
                log.info("warmed %d eval questions", len(self._metric_ids))

    @staticmethod
    def _load_subjects(store: CatalogStore) -> List[str]:
        try:
            subjects = store.subject_codes()
        except SearchUnavailable as exc:
            raise ReferenceDataError("could not load subject codes") from exc
        if not subjects:
            raise ReferenceDataError("subject code list is empty")
        return list(subjects)

    @staticmethod
    def _load_years(store: CatalogStore) -> List[str]:
        try:
            return list(store.available_years())
        except SearchUnavailable as exc:
            raise ReferenceDataError("could not load academic years") from exc

    @staticmethod
    def _load_metric_ids(store: CatalogStore) -> Dict[str, int]:
        try:
            questions = store.eval_questions()
        except SearchUnavailable as exc:
            raise ReferenceDataError("could not load eval questions") from exc
        metric_ids: Dict[str, int] = {}
        for slug, metric in EVAL_METRICS.items():
            question_id = questions.get(metric.question_text)
            if question_id is not None:
                metric_ids[slug] = question_id
        return metric_ids

    def subject_codes(self) -> List[str]:
        if self._subjects is None:
            raise ReferenceDataError("subject codes not loaded")
        return self._subjects

    def years(self) -> List[str]:
        """Academic years with offerings, newest first."""
        if self._years is None:
            raise ReferenceDataError("academic years not loaded")
        return self._years

    def latest_year(self) -> Optional[str]:
        years = self.years()
        return years[0] if years else None

    def metric_ids(self) -> Dict[str, int]:
        if self._metric_ids is None:
            raise ReferenceDataError("eval questions not loaded")
        return self._metric_ids

    def metric_id(self, slug: str) -> int:
        metric_ids = self.metric_ids()
        if slug not in metric_ids:
            raise ReferenceDataError(f"no eval question for metric {slug!r}")
        return metric_ids[slug]
