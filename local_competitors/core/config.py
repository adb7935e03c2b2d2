"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_RADIUS_STEPS = (1500, 3000, 5000, 10000, 20000)


@dataclass(frozen=True)
class Settings:
    google_api_key: str
    max_competitors: int = 10
    max_calls_per_invocation: int = 60
    max_pages: int = 3
    page_delay_seconds: float = 2.0
    radius_steps: Tuple[int, ...] = DEFAULT_RADIUS_STEPS
    dual_strategy: bool = True
    deadline_seconds: Optional[float] = None
    request_timeout: float = 10.0
    retry_limit: int = 2
    places_budget_per_window: int = 500
    budget_window_seconds: float = 600.0


def _parse_radius_steps(raw: Optional[str]) -> Tuple[int, ...]:
    if not raw:
        return DEFAULT_RADIUS_STEPS
    steps = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            steps.append(int(part))
        except ValueError:
            logger.warning("Ignoring invalid radius step %r in COMPETITORS_RADIUS_STEPS", part)
    if not steps:
        return DEFAULT_RADIUS_STEPS
    return tuple(sorted(set(steps)))


def _parse_optional_float(raw: Optional[str]) -> Optional[float]:
    if raw is None or not raw.strip():
        return None
    value = float(raw)
    return value if value > 0 else None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    google_api_key = os.getenv("GOOGLE_PLACES_API_KEY", "")
    max_competitors = int(os.getenv("COMPETITORS_MAX_RESULTS", "10"))
    max_calls = int(os.getenv("COMPETITORS_MAX_CALLS", "60"))
    max_pages = int(os.getenv("COMPETITORS_MAX_PAGES", "3"))
    page_delay_seconds = float(os.getenv("COMPETITORS_PAGE_DELAY_SECONDS", "2.0"))
    radius_steps = _parse_radius_steps(os.getenv("COMPETITORS_RADIUS_STEPS"))
    dual_strategy = os.getenv("COMPETITORS_DUAL_STRATEGY", "true").lower() in {"1", "true", "yes"}
    deadline_seconds = _parse_optional_float(os.getenv("COMPETITORS_DEADLINE_SECONDS"))
    request_timeout = float(os.getenv("PLACES_REQUEST_TIMEOUT", "10"))
    retry_limit = int(os.getenv("PLACES_RETRY_LIMIT", "2"))
    places_budget_per_window = int(os.getenv("PLACES_BUDGET_PER_WINDOW", "500"))
    budget_window_seconds = float(os.getenv("PLACES_BUDGET_WINDOW_SECONDS", "600"))

    if not google_api_key:
        logger.warning("GOOGLE_PLACES_API_KEY is not configured; competitor discovery will be skipped.")

    return Settings(
        google_api_key=google_api_key,
        max_competitors=max_competitors,
        max_calls_per_invocation=max_calls,
        max_pages=max_pages,
        page_delay_seconds=page_delay_seconds,
        radius_steps=radius_steps,
        dual_strategy=dual_strategy,
        deadline_seconds=deadline_seconds,
        request_timeout=request_timeout,
        retry_limit=retry_limit,
        places_budget_per_window=places_budget_per_window,
        budget_window_seconds=budget_window_seconds,
    )
