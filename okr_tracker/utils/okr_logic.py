"""OKR scoring, quarter arithmetic and business limits."""

import calendar
import math
import re
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Optional, Tuple, Union

from okr_tracker.constants.constants import OKRCategory, OKRStatus

# ------------------------------
# Business limits
# ------------------------------
MAX_OKRS_PER_QUARTER = 5
RECOMMENDED_OKRS = 3
MAX_FOCUS = 2
CHECKIN_INTERVAL_DAYS = 14
TARGET_SCORE = 0.7
MIN_OKRS_FOR_LEVEL_UP = 4

QUARTER_PATTERN = re.compile(r"^Q([1-4]) (\d{4})$")

DateLike = Union[date, datetime]


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _as_datetime(value: DateLike) -> datetime:
    """Timezone-aware UTC datetime; bare dates start at midnight."""
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ------------------------------
# Score & progress
# ------------------------------
def progress_to_score(progress: float) -> float:
    """Map 0-100 progress onto a 0.0-1.0 score."""
    return clamp(progress / 100, 0.0, 1.0)


def score_to_progress(score: float) -> int:
    return round_half_up(score * 100)


def get_score_interpretation(score: float) -> str:
    if score >= TARGET_SCORE:
        return "Erfolgreich"
    if score >= 0.4:
        return "Teilweise erreicht"
    return "Nicht erreicht"


# ------------------------------
# Quarters
# ------------------------------
def parse_quarter(quarter: Optional[str]) -> Optional[Tuple[int, int]]:
    """Return (quarter_number, year) or None for anything not shaped like 'Q1 2026'."""
    if not quarter:
        return None
    match = QUARTER_PATTERN.match(quarter)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def format_quarter(number: int, year: int) -> str:
    return f"Q{number} {year}"


def get_current_quarter(today: Optional[date] = None) -> str:
    today = today or date.today()
    return format_quarter(math.ceil(today.month / 3), today.year)


def get_next_quarter(quarter: Optional[str] = None) -> str:
    parsed = parse_quarter(quarter) or parse_quarter(get_current_quarter())
    number, year = parsed
    if number == 4:
        return format_quarter(1, year + 1)
    return format_quarter(number + 1, year)


def get_previous_quarter(quarter: Optional[str] = None) -> str:
    parsed = parse_quarter(quarter) or parse_quarter(get_current_quarter())
    number, year = parsed
    if number == 1:
        return format_quarter(4, year - 1)
    return format_quarter(number - 1, year)


def get_quarter_date_range(quarter: str) -> Tuple[datetime, datetime]:
    """
    Calendar range of a quarter: midnight of its first day and midnight of
    its last day. Malformed input yields (now, now).
    """
    parsed = parse_quarter(quarter)
    if parsed is None:
        now = datetime.now()
        return now, now
    number, year = parsed
    start_month = (number - 1) * 3 + 1
    end_month = start_month + 2
    last_day = calendar.monthrange(year, end_month)[1]
    return datetime(year, start_month, 1), datetime(year, end_month, last_day)


def get_quarter_end_date(quarter: str) -> date:
    return get_quarter_date_range(quarter)[1].date()


def get_available_quarters(today: Optional[date] = None) -> List[dict]:
    current = get_current_quarter(today)
    return [
        {"value": q, "label": q, "is_current": q == current}
        for q in (get_previous_quarter(current), current, get_next_quarter(current))
    ]


# ------------------------------
# Status
# ------------------------------
STATUS_LABELS = {
    OKRStatus.on_track: "Im Plan",
    OKRStatus.at_risk: "Gefährdet",
    OKRStatus.off_track: "Kritisch",
}

CONFIDENCE_LABELS = {
    1: "Wird nicht erreicht",
    2: "Unwahrscheinlich",
    3: "Möglich",
    4: "Wahrscheinlich",
    5: "Wird erreicht",
}

CATEGORY_LABELS = {
    OKRCategory.performance: "Performance",
    OKRCategory.skill: "Skill",
    OKRCategory.learning: "Learning",
    OKRCategory.career: "Karriere",
}


def calculate_expected_progress(
    start: DateLike, end: DateLike, now: Optional[datetime] = None
) -> int:
    """Expected progress at `now`: 80% of the linear elapsed share of the period."""
    now = _as_datetime(now) if now else _utcnow()
    start_dt = _as_datetime(start)
    end_dt = _as_datetime(end)

    if now <= start_dt:
        return 0
    if now >= end_dt:
        return 100

    elapsed = (now - start_dt).total_seconds()
    total = (end_dt - start_dt).total_seconds()
    return round_half_up(elapsed / total * 100 * 0.8)


def calculate_status(
    progress: float, start: DateLike, end: DateLike, now: Optional[datetime] = None
) -> OKRStatus:
    diff = progress - calculate_expected_progress(start, end, now)
    if diff >= -10:
        return OKRStatus.on_track
    if diff >= -30:
        return OKRStatus.at_risk
    return OKRStatus.off_track


def get_status_label(status: OKRStatus) -> str:
    return STATUS_LABELS[OKRStatus(status)]


def get_confidence_label(confidence: int) -> str:
    return CONFIDENCE_LABELS.get(confidence, CONFIDENCE_LABELS[3])


def get_category_label(category: OKRCategory) -> str:
    return CATEGORY_LABELS[OKRCategory(category)]


# ------------------------------
# Progress aggregation
# ------------------------------
def calculate_kr_progress(current: float, start: float, target: float) -> int:
    """Share of the way from start to target, in percent, clamped to [0, 100]."""
    if target == start:
        return 100 if current >= target else 0
    progress = round_half_up(max(0.0, (current - start) / (target - start) * 100))
    return int(clamp(progress, 0, 100))


def calculate_okr_progress(kr_progresses: Iterable[float]) -> int:
    values = list(kr_progresses)
    if not values:
        return 0
    return int(clamp(round_half_up(sum(values) / len(values)), 0, 100))


# ------------------------------
# Check-ins & limits
# ------------------------------
def next_checkin_at(from_time: Optional[datetime] = None) -> datetime:
    return (from_time or _utcnow()) + timedelta(days=CHECKIN_INTERVAL_DAYS)


def is_checkin_overdue(next_checkin: Optional[DateLike], now: Optional[datetime] = None) -> bool:
    if next_checkin is None:
        return False
    now = _as_datetime(now) if now else _utcnow()
    return _as_datetime(next_checkin) < now


def get_checkin_days_remaining(next_checkin: Optional[DateLike], now: Optional[datetime] = None) -> Optional[int]:
    """Whole days until the next check-in is due; negative once overdue."""
    if next_checkin is None:
        return None
    now = _as_datetime(now) if now else _utcnow()
    seconds = (_as_datetime(next_checkin) - now).total_seconds()
    return math.ceil(seconds / 86400)


def can_add_focus(current_focus_count: int) -> bool:
    return current_focus_count < MAX_FOCUS


def can_create_okr(current_okr_count: int) -> bool:
    return current_okr_count < MAX_OKRS_PER_QUARTER


def qualifies_for_level_up(qualifying_okr_count: int) -> bool:
    return qualifying_okr_count >= MIN_OKRS_FOR_LEVEL_UP
