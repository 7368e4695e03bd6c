from datetime import date, datetime, timedelta, timezone

import pytest

from okr_tracker.constants.constants import OKRCategory, OKRStatus
from okr_tracker.utils import okr_logic


@pytest.mark.parametrize("progress", [0, 1, 33, 50, 70, 99, 100])
def test_progress_to_score_is_linear(progress):
    assert okr_logic.progress_to_score(progress) == pytest.approx(progress / 100)


def test_progress_to_score_clamps_out_of_range_values():
    assert okr_logic.progress_to_score(-20) == 0.0
    assert okr_logic.progress_to_score(150) == 1.0


def test_score_to_progress_rounds_half_up():
    assert okr_logic.score_to_progress(0.125) == 13
    assert okr_logic.score_to_progress(0.7) == 70


def test_score_interpretation():
    assert okr_logic.get_score_interpretation(0.7) == "Erfolgreich"
    assert okr_logic.get_score_interpretation(0.4) == "Teilweise erreicht"
    assert okr_logic.get_score_interpretation(0.39) == "Nicht erreicht"


def test_round_half_up_differs_from_bankers_rounding():
    assert okr_logic.round_half_up(2.5) == 3
    assert okr_logic.round_half_up(0.5) == 1
    assert okr_logic.round_half_up(1.49) == 1


def test_next_quarter_wraps_year():
    assert okr_logic.get_next_quarter("Q4 2025") == "Q1 2026"
    assert okr_logic.get_next_quarter("Q2 2026") == "Q3 2026"


def test_previous_quarter_wraps_year():
    assert okr_logic.get_previous_quarter("Q1 2026") == "Q4 2025"


@pytest.mark.parametrize("quarter", ["Q1 2024", "Q2 2025", "Q3 2026", "Q4 2030"])
def test_next_undoes_previous(quarter):
    assert okr_logic.get_next_quarter(okr_logic.get_previous_quarter(quarter)) == quarter


def test_malformed_quarter_falls_back_to_current():
    current = okr_logic.get_current_quarter()
    assert okr_logic.get_next_quarter("2026-Q1") == okr_logic.get_next_quarter(current)
    assert okr_logic.parse_quarter("Q5 2026") is None


def test_current_quarter_from_date():
    assert okr_logic.get_current_quarter(date(2026, 3, 31)) == "Q1 2026"
    assert okr_logic.get_current_quarter(date(2026, 4, 1)) == "Q2 2026"
    assert okr_logic.get_current_quarter(date(2026, 12, 1)) == "Q4 2026"


def test_quarter_date_range_uses_calendar_days():
    start, end = okr_logic.get_quarter_date_range("Q1 2024")
    assert start == datetime(2024, 1, 1)
    assert end == datetime(2024, 3, 31)
    assert okr_logic.get_quarter_end_date("Q2 2026") == date(2026, 6, 30)


def test_quarter_date_range_for_malformed_input_is_empty():
    start, end = okr_logic.get_quarter_date_range("nope")
    assert start == end


def test_available_quarters_marks_current():
    quarters = okr_logic.get_available_quarters(date(2026, 5, 10))
    assert [q["value"] for q in quarters] == ["Q1 2026", "Q2 2026", "Q3 2026"]
    assert [q["is_current"] for q in quarters] == [False, True, False]


def test_expected_progress_is_80_percent_of_elapsed_share():
    start = datetime(2026, 1, 1, tzinfo=timezone.utc)
    end = datetime(2026, 1, 11, tzinfo=timezone.utc)
    now = datetime(2026, 1, 6, tzinfo=timezone.utc)
    assert okr_logic.calculate_expected_progress(start, end, now) == 40
    assert okr_logic.calculate_expected_progress(start, end, start - timedelta(days=1)) == 0
    assert okr_logic.calculate_expected_progress(start, end, end) == 100


def test_status_thresholds():
    start = datetime(2026, 1, 1, tzinfo=timezone.utc)
    end = datetime(2026, 1, 11, tzinfo=timezone.utc)
    now = datetime(2026, 1, 6, tzinfo=timezone.utc)  # expected 40
    assert okr_logic.calculate_status(30, start, end, now) == OKRStatus.on_track
    assert okr_logic.calculate_status(29, start, end, now) == OKRStatus.at_risk
    assert okr_logic.calculate_status(10, start, end, now) == OKRStatus.at_risk
    assert okr_logic.calculate_status(9, start, end, now) == OKRStatus.off_track


def test_status_accepts_naive_and_date_values():
    status = okr_logic.calculate_status(0, datetime(2026, 1, 1), date(2026, 3, 31), datetime(2026, 1, 1))
    assert status == OKRStatus.on_track


def test_kr_progress():
    assert okr_logic.calculate_kr_progress(50, 0, 100) == 50
    assert okr_logic.calculate_kr_progress(-10, 0, 100) == 0
    assert okr_logic.calculate_kr_progress(250, 0, 100) == 100
    # decreasing targets
    assert okr_logic.calculate_kr_progress(75, 100, 50) == 50


def test_kr_progress_when_target_equals_start():
    assert okr_logic.calculate_kr_progress(5, 5, 5) == 100
    assert okr_logic.calculate_kr_progress(4, 5, 5) == 0


def test_okr_progress_is_rounded_mean():
    assert okr_logic.calculate_okr_progress([]) == 0
    assert okr_logic.calculate_okr_progress([50, 51]) == 51
    assert okr_logic.calculate_okr_progress([100, 0, 0]) == 33


def test_checkin_schedule():
    now = datetime(2026, 2, 1, 12, tzinfo=timezone.utc)
    due = okr_logic.next_checkin_at(now)
    assert due == now + timedelta(days=14)
    assert okr_logic.get_checkin_days_remaining(due, now) == 14
    assert okr_logic.get_checkin_days_remaining(now + timedelta(hours=1), now) == 1
    assert okr_logic.is_checkin_overdue(now - timedelta(minutes=1), now) is True
    assert okr_logic.is_checkin_overdue(None, now) is False
    assert okr_logic.get_checkin_days_remaining(None, now) is None


def test_limits():
    assert okr_logic.can_create_okr(4) is True
    assert okr_logic.can_create_okr(5) is False
    assert okr_logic.can_add_focus(1) is True
    assert okr_logic.can_add_focus(2) is False
    assert okr_logic.qualifies_for_level_up(3) is False
    assert okr_logic.qualifies_for_level_up(4) is True


def test_labels():
    assert okr_logic.get_status_label(OKRStatus.at_risk) == "Gefährdet"
    assert okr_logic.get_status_label("off_track") == "Kritisch"
    assert okr_logic.get_confidence_label(5) == "Wird erreicht"
    assert okr_logic.get_confidence_label(42) == "Möglich"
    assert okr_logic.get_category_label(OKRCategory.learning) == "Learning"
