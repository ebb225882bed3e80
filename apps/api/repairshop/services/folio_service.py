"""Folio service - human-readable order numbers with retry-on-conflict.

Folios look like ``OS-2026-02-001``: one sequence per (year, month) bucket,
zero-padded to three digits and free to grow past 999. Allocation reads the
highest folio in the bucket, increments it and inserts; concurrent creators
can race, so a folio collision (unique constraint) is retried with a freshly
computed folio after a short jittered backoff.
"""

from __future__ import annotations

import logging
import random
import time
from datetime import datetime, timezone, tzinfo
from typing import Any, Callable

from repairshop.core.structured_logging import build_log_context
from repairshop.db.models import Order
from repairshop.services.order_stores import InsertOutcome, OrderStore

logger = logging.getLogger(__name__)

FOLIO_PREFIX = "OS"
MIN_SEQUENCE_WIDTH = 3

MAX_RETRIES = 3
BACKOFF_BASE_SECONDS = 0.010
BACKOFF_MAX_JITTER_SECONDS = 0.020
BACKOFF_CAP_SECONDS = 0.200


class FolioGenerationError(Exception):
    """No unique folio could be allocated within the retry budget.

    Transient: callers may retry the whole operation later.
    """

    def __init__(self, attempts: int, message: str | None = None) -> None:
        self.attempts = attempts
        super().__init__(message or f"Could not allocate a unique folio after {attempts} attempts")


def folio_prefix(now: datetime, tz: tzinfo | None = None) -> str:
    """Bucket prefix for ``now`` in the shop timezone, e.g. ``OS-2026-02-``."""
    local = now.astimezone(tz) if tz is not None else now
    return f"{FOLIO_PREFIX}-{local.year}-{local.month:02d}-"


def format_folio(prefix: str, sequence: int) -> str:
    """Render a folio; width grows past 3 digits but never truncates."""
    return f"{prefix}{sequence:0{MIN_SEQUENCE_WIDTH}d}"


def parse_folio_sequence(folio: str) -> int:
    """Numeric suffix of a folio (``OS-2026-02-017`` -> 17)."""
    try:
        return int(folio.rsplit("-", 1)[1])
    except (IndexError, ValueError) as exc:
        raise ValueError(f"Malformed folio: {folio!r}") from exc


def backoff_delay(
    attempt: int,
    jitter: Callable[[float, float], float] = random.uniform,
) -> float:
    """Exponential backoff with jitter, in seconds (attempt is 0-based)."""
    base = min(BACKOFF_CAP_SECONDS, BACKOFF_BASE_SECONDS * (2 ** attempt))
    return base + jitter(0.0, BACKOFF_MAX_JITTER_SECONDS)


class FolioAllocator:
    """
    Allocates folios and creates orders with them.

    All collaborators are injected so tests can drive contention
    deterministically.
    """

    def __init__(
        self,
        store: OrderStore,
        *,
        tz: tzinfo | None = None,
        max_retries: int = MAX_RETRIES,
        sleep: Callable[[float], None] = time.sleep,
        jitter: Callable[[float, float], float] = random.uniform,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.tz = tz
        self.max_retries = max_retries
        self.sleep = sleep
        self.jitter = jitter
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def next_folio(self, now: datetime | None = None) -> str:
        """Compute the next folio for the bucket containing ``now``."""
        prefix = folio_prefix(now or self.clock(), self.tz)
        latest = self.store.latest_folio(prefix)
        sequence = parse_folio_sequence(latest) + 1 if latest else 1
        return format_folio(prefix, sequence)

    def create_order_with_folio(self, fields: dict[str, Any]) -> Order:
        """
        Insert an order under a freshly allocated folio.

        Raises:
            FolioGenerationError: every attempt hit a folio collision
            Exception: any non-conflict store error, on the first occurrence
        """
        for attempt in range(self.max_retries):
            folio = self.next_folio()
            result = self.store.insert({**fields, "folio": folio})

            if result.outcome == InsertOutcome.SUCCESS:
                if attempt:
                    logger.info(
                        "Allocated folio %s after %s attempts",
                        folio,
                        attempt + 1,
                        extra=build_log_context(folio=folio),
                    )
                return result.order

            if result.outcome == InsertOutcome.OTHER:
                raise result.error

            logger.warning(
                "Folio collision on %s (attempt %s/%s)",
                folio,
                attempt + 1,
                self.max_retries,
                extra=build_log_context(folio=folio),
            )
            # No wait after the final attempt
            if attempt < self.max_retries - 1:
                self.sleep(backoff_delay(attempt, self.jitter))

        raise FolioGenerationError(self.max_retries)
