# errors.py


class SearchUnavailable(Exception):
    """The catalog store failed; the request gets no partial results."""

    def __init__(self, message: str = "search unavailable"):
        super().__init__(message)


class ReferenceDataError(SearchUnavailable):
    """Subject codes or eval question ids could not be loaded."""
