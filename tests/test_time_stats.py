"""
Tests for the weekly time report and unbilled revenue calculations.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone

import pytest

import timebill.time_stats as time_stats
from factories import at, entry

# Monday
NOW = at(10, 12)


@pytest.mark.unit
def test_duration_seconds_truncates_to_whole_seconds():
    item = entry(1, at(10, 9), at(10, 9, 0, 30) + timedelta(microseconds=900000))
    assert time_stats.duration_seconds(item) == 30


@pytest.mark.unit
def test_duration_seconds_of_running_entry_is_none():
    assert time_stats.duration_seconds(entry(1, at(10, 9))) is None


@pytest.mark.parametrize(
    ("start", "end"),
    [
        (None, at(10, 9)),
        (at(10, 11), at(10, 9)),
    ],
)
@pytest.mark.unit
def test_duration_seconds_rejects_malformed_entries(start, end):
    with pytest.raises(time_stats.MalformedEntry):
        time_stats.duration_seconds(entry(7, start, end))


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [
        (0, '0:00:00'),
        (59, '0:00:59'),
        (4500, '1:15:00'),
        (90061, '25:01:01'),
        (None, '0:00:00'),
    ],
)
@pytest.mark.unit
def test_format_duration(seconds, expected):
    assert time_stats.format_duration(seconds) == expected


@pytest.mark.unit
def test_single_billable_entry_on_monday():
    report = time_stats.compute_weekly_stats(
        [entry(1, at(10, 9), at(10, 11), hourly_rate=50)], NOW
    )

    assert report.total_seconds_this_week == 7200
    assert report.total_seconds_last_week == 0
    assert report.unbilled_revenue == 100
    assert report.hours_for('Mon') == 2.0
    assert all(bucket.hours == 0 for bucket in report.weekly_chart_data if bucket.label != 'Mon')


@pytest.mark.unit
def test_invoiced_entry_counts_hours_but_not_revenue():
    report = time_stats.compute_weekly_stats(
        [entry(1, at(10, 9), at(10, 11), hourly_rate=50, invoice_id='inv_1')], NOW
    )

    assert report.total_seconds_this_week == 7200
    assert report.unbilled_revenue == 0


@pytest.mark.unit
def test_running_timer_is_left_out():
    report = time_stats.compute_weekly_stats([entry(1, at(10, 9), hourly_rate=50)], NOW)

    assert report == time_stats.AggregateReport.empty(NOW)
    assert report.total_seconds_this_week == 0
    assert all(bucket.hours == 0 for bucket in report.weekly_chart_data)


@pytest.mark.unit
def test_entries_on_the_same_day_add_up():
    report = time_stats.compute_weekly_stats(
        [
            entry(1, at(7, 9), at(7, 10), hourly_rate=20),
            entry(2, at(7, 14), at(7, 15), hourly_rate=30),
        ],
        NOW,
    )

    assert report.hours_for('Fri') == 2.0
    assert report.unbilled_revenue == pytest.approx(50)


@pytest.mark.unit
def test_chart_always_has_seven_days_ending_today():
    report = time_stats.compute_weekly_stats([], NOW)

    assert [bucket.label for bucket in report.weekly_chart_data] == [
        'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun', 'Mon'
    ]
    assert report.to_dict()['weeklyChartData'][0] == {'name': 'Tue', 'hours': 0.0}


@pytest.mark.unit
def test_chart_rounds_only_at_output():
    # Three 20-minute sessions: 0.333.. each, 1.0 in total
    items = [entry(i, at(9, 9 + i), at(9, 9 + i, 20)) for i in range(3)]
    report = time_stats.compute_weekly_stats(items, NOW)
    assert report.hours_for('Sun') == 1.0


@pytest.mark.unit
def test_week_boundaries():
    items = [
        entry(1, at(4, 0, 0), at(4, 1, 0)),          # first moment of this week
        entry(2, at(3, 23, 59), at(4, 0, 59)),       # last minute of last week
        entry(3, datetime(2024, 5, 28, 0, 0), datetime(2024, 5, 28, 0, 30)),   # first moment of last week
        entry(4, datetime(2024, 5, 27, 23, 0), datetime(2024, 5, 27, 23, 30)),  # too old
    ]
    report = time_stats.compute_weekly_stats(items, NOW)

    assert report.total_seconds_this_week == 3600
    assert report.total_seconds_last_week == 3600 + 1800
    assert report.hours_for('Tue') == 1.0


@pytest.mark.unit
def test_non_billable_and_missing_rate_add_no_revenue():
    items = [
        entry(1, at(10, 8), at(10, 9), is_billable=False, hourly_rate=100),
        entry(2, at(10, 9), at(10, 10)),
    ]
    report = time_stats.compute_weekly_stats(items, NOW)

    assert report.total_seconds_this_week == 7200
    assert report.unbilled_revenue == 0


@pytest.mark.unit
def test_last_week_time_adds_no_revenue():
    report = time_stats.compute_weekly_stats(
        [entry(1, at(2, 9), at(2, 11), hourly_rate=50)], NOW
    )
    assert report.total_seconds_last_week == 7200
    assert report.unbilled_revenue == 0


@pytest.mark.unit
def test_malformed_entries_are_skipped_with_warning(caplog):
    items = [
        entry(1, at(10, 9), at(10, 10), hourly_rate=10),
        entry(2, at(10, 11), at(10, 9), hourly_rate=10),
        entry(3, None, at(10, 9), hourly_rate=10),
    ]
    with caplog.at_level(logging.WARNING, logger='timebill.time_stats'):
        report = time_stats.compute_weekly_stats(items, NOW)

    assert report.total_seconds_this_week == 3600
    assert report.unbilled_revenue == 10
    assert 'Time entry 2' in caplog.text
    assert 'Time entry 3' in caplog.text


@pytest.mark.unit
def test_report_is_repeatable():
    items = [
        entry(1, at(10, 9), at(10, 11), hourly_rate=50),
        entry(2, at(5, 9), at(5, 9, 45), hourly_rate=35.5),
        entry(3, at(1, 9), at(1, 10)),
    ]
    first = time_stats.compute_weekly_stats(items, NOW)
    second = time_stats.compute_weekly_stats(items, NOW)

    assert json.dumps(first.to_dict()) == json.dumps(second.to_dict())


@pytest.mark.unit
def test_running_entry_never_changes_the_report():
    finished = [entry(1, at(10, 9), at(10, 11), hourly_rate=50)]
    running = entry(2, at(10, 11), hourly_rate=500)

    assert (time_stats.compute_weekly_stats(finished + [running], NOW)
            == time_stats.compute_weekly_stats(finished, NOW))


@pytest.mark.parametrize("is_billable", [True, False])
@pytest.mark.parametrize("hourly_rate", [None, 0, 75, 1000])
@pytest.mark.unit
def test_billed_entry_rate_and_flag_do_not_change_revenue(is_billable, hourly_rate):
    base = [entry(1, at(10, 9), at(10, 10), hourly_rate=40)]
    billed = entry(2, at(9, 9), at(9, 12), is_billable=is_billable, hourly_rate=hourly_rate, invoice_id=9)

    report = time_stats.compute_weekly_stats(base + [billed], NOW)
    assert report.unbilled_revenue == 40


@pytest.mark.unit
def test_revenue_is_additive_over_disjoint_sets():
    group_a = [entry(1, at(10, 9), at(10, 10, 20), hourly_rate=33.3), entry(2, at(6, 8), at(6, 9), hourly_rate=12)]
    group_b = [entry(3, at(8, 13), at(8, 13, 7), hourly_rate=99.99), entry(4, at(4, 9), at(4, 17), hourly_rate=0.5)]

    combined = time_stats.compute_weekly_stats(group_a + group_b, NOW).unbilled_revenue
    separate = (time_stats.compute_weekly_stats(group_a, NOW).unbilled_revenue
                + time_stats.compute_weekly_stats(group_b, NOW).unbilled_revenue)
    assert combined == pytest.approx(separate)


@pytest.mark.unit
def test_unbilled_total_matches_weekly_report():
    items = [
        entry(1, at(10, 9), at(10, 11), hourly_rate=50),
        entry(2, at(1, 9), at(1, 11), hourly_rate=50),
    ]
    assert time_stats.compute_unbilled_total(items, NOW) == time_stats.compute_weekly_stats(items, NOW).unbilled_revenue


@pytest.mark.unit
def test_unbilled_total_windows():
    items = [
        entry(1, at(10, 9), at(10, 11), hourly_rate=50),
        entry(2, at(1, 9), at(1, 11), hourly_rate=50),
        entry(3, datetime(2024, 1, 5, 9), datetime(2024, 1, 5, 10), hourly_rate=10),
        entry(4, at(10, 12), hourly_rate=50),
    ]
    assert time_stats.compute_unbilled_total(items, NOW) == 100
    assert time_stats.compute_unbilled_total(items, NOW, window_days=1) == 100
    assert time_stats.compute_unbilled_total(items, NOW, window_days=14) == 200
    assert time_stats.compute_unbilled_total(items, NOW, window_days=None) == 210


@pytest.mark.unit
def test_summarize_entries_counts_all_finished_time():
    items = [
        entry(1, at(10, 9), at(10, 10), hourly_rate=50),
        entry(2, at(1, 9), at(1, 10), hourly_rate=50, invoice_id=3),
        entry(3, at(1, 12), at(1, 12, 30), is_billable=False),
        entry(4, at(10, 11)),
    ]
    summary = time_stats.summarize_entries(items)

    assert summary.total_seconds == 3600 * 2 + 1800
    assert summary.unbilled_seconds == 3600
    assert summary.unbilled_revenue == 50


@pytest.mark.unit
def test_aware_timestamps_are_bucketed():
    now = datetime(2024, 6, 10, 12, tzinfo=timezone.utc)
    item = entry(1, datetime(2024, 6, 10, 9, tzinfo=timezone.utc), datetime(2024, 6, 10, 10, tzinfo=timezone.utc),
                 hourly_rate=10)

    report = time_stats.compute_weekly_stats([item], now)
    assert report.hours_for('Mon') == 1.0
    assert report.unbilled_revenue == 10


@pytest.mark.unit
def test_day_label_follows_the_zone_of_now():
    sydney = timezone(timedelta(hours=10))
    now = datetime(2024, 6, 10, 9, tzinfo=sydney)
    # 08:00 on Monday in Sydney, still Sunday in UTC
    item = entry(1, datetime(2024, 6, 9, 22, tzinfo=timezone.utc), datetime(2024, 6, 9, 22, 30, tzinfo=timezone.utc))

    report = time_stats.compute_weekly_stats([item], now)

    assert report.hours_for('Mon') == 0.5
    assert report.hours_for('Sun') == 0.0
    assert report.total_seconds_this_week == 1800


@pytest.mark.unit
def test_empty_report_shape():
    report = time_stats.AggregateReport.empty(NOW)
    data = report.to_dict()

    assert data['totalSecondsThisWeek'] == 0
    assert data['totalSecondsLastWeek'] == 0
    assert data['unbilledRevenue'] == 0
    assert len(data['weeklyChartData']) == 7
    with pytest.raises(KeyError):
        report.hours_for('Funday')
