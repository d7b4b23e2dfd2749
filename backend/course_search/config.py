# config.py
import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


DATABASE_URL: Optional[str] = os.getenv("DATABASE_URL")
DB_STATEMENT_TIMEOUT_MS = int(os.getenv("DB_STATEMENT_TIMEOUT_MS", "15000"))

# When set, the API serves from a JSON catalog snapshot instead of PostgreSQL.
CATALOG_SNAPSHOT: Optional[str] = os.getenv("CATALOG_SNAPSHOT")

# Year for GET /search without a year parameter; unset means the newest year.
DEFAULT_YEAR: Optional[str] = os.getenv("DEFAULT_YEAR")

CORS_ORIGINS: List[str] = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
    if origin.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

PAGE_SIZE = 10


class SignalWeights(BaseModel):
    code: float = 7.0
    content: float = 6.0
    instructor: float = 4.0
    subject: float = 3.0
    fallback: float = 1.0


class InstructorTuning(BaseModel):
    """
    Constants for instructor matching, tuned by hand against real queries.
    """

    full_name_weight: float = 0.55
    last_name_weight: float = 0.95
    first_name_weight: float = 0.15
    assistant_multiplier: float = 0.5
    assistant_roles: List[str] = Field(default_factory=lambda: ["TA"])

    # Adaptive threshold: keep nothing unless the best candidate beats
    # confidence_floor, then keep everything within cutoff_ratio of it.
    confidence_floor: float = 0.8
    cutoff_ratio: float = 0.6

    # Per-offering aggregation.
    max_weight: float = 0.97
    avg_weight: float = 0.03
    spread_penalty: float = 0.05


class SearchTuning(BaseModel):
    code_exact_score: float = 1.0
    code_partial_score: float = 0.7
    subject_code_score: float = 0.3
    fallback_score: float = 0.5
    min_fuzzy_query_length: int = 4

    weights: SignalWeights = Field(default_factory=SignalWeights)
    instructor: InstructorTuning = Field(default_factory=InstructorTuning)

    page_size: int = PAGE_SIZE


DEFAULT_TUNING = SearchTuning()
