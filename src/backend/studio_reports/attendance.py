"""
Attendance histograms for the dashboard charts.

Each view is a pure function of the lesson set and a reference instant. The
weekly and monthly views substitute illustrative numbers when no attendance
exists at all; those results carry ``is_placeholder=True``.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, List, Optional, Sequence

from .dataset import StudioDataset
from .dates import WEEKDAY_NAMES, add_days, compute_time_window, month_week_buckets
from .models import AttendanceReport, AttendanceSeries, LessonRecord

DAILY_LABELS = ("00-04", "04-08", "08-12", "12-16", "16-20", "20-24", "Other")
WEEKLY_LABELS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
MONTHLY_LABELS = ("Week 1", "Week 2", "Week 3", "Week 4")

OTHER_SLOT = 6
HOURS_PER_SLOT = 4
WEEKLY_FALLBACK_WEEKS = 4

WEEKLY_PLACEHOLDER = (15, 23, 18, 28, 19, 12, 7)
MONTHLY_PLACEHOLDER = (72, 85, 78, 91)

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def parse_start_hour(start_time: Any) -> Optional[int]:
    """
    Hour of a free-text start time such as ``"09:15"`` or ``"18"``.

    Only the leading integer before the first ``:`` is read. Returns ``None``
    for non-text values and hours outside 0..23.
    """

    if not isinstance(start_time, str):
        return None
    match = _LEADING_INT.match(start_time.split(":")[0])
    if not match:
        return None
    hour = int(match.group(1))
    if hour < 0 or hour > 23:
        return None
    return hour


def daily_slot(lesson: LessonRecord) -> int:
    hour = parse_start_hour(lesson.start_time)
    if hour is None:
        return OTHER_SLOT
    return hour // HOURS_PER_SLOT


def _participants(lessons: Sequence[LessonRecord]) -> int:
    return sum(lesson.participant_count for lesson in lessons)


def daily_attendance(lessons: Sequence[LessonRecord], now: datetime) -> AttendanceSeries:
    dataset = StudioDataset(lessons=lessons)
    window = compute_time_window(now)
    values = [0] * len(DAILY_LABELS)
    for lesson in dataset.todays_lessons(window):
        values[daily_slot(lesson)] += lesson.participant_count
    return AttendanceSeries(name="daily", labels=DAILY_LABELS, values=tuple(values))


def _week_fixed_counts(dataset: StudioDataset, week_start: datetime) -> List[int]:
    counts = []
    for index in range(len(WEEKDAY_NAMES)):
        day_start = add_days(week_start, index)
        counts.append(_participants(dataset.fixed_lessons_between(day_start, add_days(day_start, 1))))
    return counts


def weekly_attendance(lessons: Sequence[LessonRecord], now: datetime) -> AttendanceSeries:
    dataset = StudioDataset(lessons=lessons)
    window = compute_time_window(now)

    values = _week_fixed_counts(dataset, window.week_start)
    for index, day in enumerate(WEEKDAY_NAMES):
        values[index] += _participants(dataset.recurring_lessons(day))

    if sum(values) == 0:
        for offset in range(1, WEEKLY_FALLBACK_WEEKS + 1):
            previous = _week_fixed_counts(dataset, add_days(window.week_start, -7 * offset))
            values = [current + extra for current, extra in zip(values, previous)]
            if sum(values) > 0:
                break

    if sum(values) == 0:
        return AttendanceSeries(name="weekly", labels=WEEKLY_LABELS, values=WEEKLY_PLACEHOLDER, is_placeholder=True)
    return AttendanceSeries(name="weekly", labels=WEEKLY_LABELS, values=tuple(values))


def monthly_attendance(lessons: Sequence[LessonRecord], now: datetime) -> AttendanceSeries:
    dataset = StudioDataset(lessons=lessons)
    # Recurring lessons are added once per bucket, not once per occurrence.
    recurring = sum(
        lesson.participant_count for lesson in dataset.recurring_lessons() if lesson.day_of_week in WEEKDAY_NAMES
    )
    values = [
        _participants(dataset.fixed_lessons_between(start, end)) + recurring
        for start, end in month_week_buckets(compute_time_window(now).now)
    ]
    if sum(values) == 0:
        return AttendanceSeries(name="monthly", labels=MONTHLY_LABELS, values=MONTHLY_PLACEHOLDER, is_placeholder=True)
    return AttendanceSeries(name="monthly", labels=MONTHLY_LABELS, values=tuple(values))


def attendance_report(lessons: Sequence[LessonRecord], now: datetime) -> AttendanceReport:
    return AttendanceReport(
        daily=daily_attendance(lessons, now),
        weekly=weekly_attendance(lessons, now),
        monthly=monthly_attendance(lessons, now),
    )
