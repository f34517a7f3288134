"""
Launch-date text -> epoch-second ranges for CoinGecko range queries.

The token table records launch dates as free text in three shapes:

  "March 21, 2025"  exact date       -> midnight UTC of that date
  "December 2024"   month and year   -> midnight UTC on the 1st of the month
  "Early 2025"      vague year       -> midnight UTC on January 1st

Anything unparseable, and any date that lands in the future, resolves to
one year before now so the upstream range query stays valid.
"""

from __future__ import annotations

import math
import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

SECONDS_PER_DAY = 24 * 60 * 60
FALLBACK_DAYS = 365

# Day counts accepted by CoinGecko's `days` parameter (besides "max")
DAY_BUCKETS = (1, 7, 14, 30, 90, 180, 365)
DEFAULT_DAY_BUCKET = 30

_EARLY_RE = re.compile(r"\bearly\b")
_YEAR_RE = re.compile(r"\b(\d{4})\b")
_MONTH_YEAR_RE = re.compile(r"^[a-z]+\s+\d{4}$")

_EXACT_FORMATS = ("%B %d, %Y", "%b %d, %Y", "%B %d %Y", "%b %d %Y", "%Y-%m-%d")
_MONTH_YEAR_FORMATS = ("%B %Y", "%b %Y")


@dataclass(frozen=True)
class DateRange:
    from_epoch: int
    to_epoch: int

    @property
    def days(self) -> int:
        """Inclusive day count covered by the range."""
        return math.ceil((self.to_epoch - self.from_epoch) / SECONDS_PER_DAY)


def _parse_first(text: str, formats: tuple[str, ...]) -> datetime | None:
    for fmt in formats:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=UTC)
        except ValueError:
            continue
    return None


class DateRangeResolver:
    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock

    def _fallback_epoch(self, now: float) -> int:
        return math.floor(now - FALLBACK_DAYS * SECONDS_PER_DAY)

    def _parse(self, text: str) -> datetime | None:
        raw = " ".join(text.split())
        normalized = raw.lower()

        if _EARLY_RE.search(normalized):
            year = _YEAR_RE.search(normalized)
            if not year:
                return None
            return datetime(int(year.group(1)), 1, 1, tzinfo=UTC)

        if _MONTH_YEAR_RE.match(normalized):
            return _parse_first(raw, _MONTH_YEAR_FORMATS)

        return _parse_first(raw, _EXACT_FORMATS)

    def resolve_epoch(self, launch_date_text: str) -> int:
        """Epoch seconds for the launch date, never later than now."""
        now = self._clock()
        parsed = self._parse(launch_date_text or "")
        if parsed is None:
            return self._fallback_epoch(now)

        epoch = int(parsed.timestamp())
        # mis-entered future launch dates would make the range query invalid
        if epoch > now:
            return self._fallback_epoch(now)
        return epoch

    def resolve(self, launch_date_text: str) -> DateRange:
        from_epoch = self.resolve_epoch(launch_date_text)
        return DateRange(from_epoch=from_epoch, to_epoch=math.floor(self._clock()))

    def days_bucket(self, launch_date_text: str) -> int:
        """Days since launch, snapped up to the nearest DAY_BUCKETS value."""
        epoch = self.resolve_epoch(launch_date_text)
        days = math.ceil((math.floor(self._clock()) - epoch) / SECONDS_PER_DAY)
        if days <= 0:
            return DEFAULT_DAY_BUCKET
        for bucket in DAY_BUCKETS:
            if days <= bucket:
                return bucket
        return DAY_BUCKETS[-1]


def day_start(epoch: int) -> int:
    """Midnight UTC of the day containing epoch."""
    return (epoch // SECONDS_PER_DAY) * SECONDS_PER_DAY
