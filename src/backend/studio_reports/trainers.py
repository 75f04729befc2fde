"""
Per-trainer activity rollup.

Lessons are attributed to trainers through an ordered list of matchers, from
the exact id match down to a first-name substring match. The substring rule
is a weak signal kept for lessons whose trainer was only ever typed in by hand;
it can attribute a lesson to the wrong trainer when first names overlap.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Iterable, List, Optional, Sequence, Set

from .classifier import is_staff, resolve_avatar, resolve_speciality, resolve_trainer_display_name
from .dates import compute_time_window, sunday_week_start
from .models import BookingRecord, LessonRecord, TrainerPerformance, UserRecord

ATTENDED_BOOKING_STATUSES = frozenset({"attended", "completed"})

LESSON_WEIGHT = 10
ATTENDANCE_WEIGHT = 5
UNIQUE_STUDENT_WEIGHT = 2

Matcher = Callable[[Optional[str], Optional[str], UserRecord], bool]


def _full_name(trainer: UserRecord) -> Optional[str]:
    if trainer.first_name and trainer.last_name:
        return f"{trainer.first_name} {trainer.last_name}"
    return None


def _by_id(ref_id: Optional[str], ref_name: Optional[str], trainer: UserRecord) -> bool:
    return ref_id is not None and ref_id == trainer.id


def _by_email(ref_id: Optional[str], ref_name: Optional[str], trainer: UserRecord) -> bool:
    return ref_name is not None and ref_name == trainer.email


def _by_full_name(ref_id: Optional[str], ref_name: Optional[str], trainer: UserRecord) -> bool:
    return ref_name is not None and ref_name == _full_name(trainer)


def _by_name(ref_id: Optional[str], ref_name: Optional[str], trainer: UserRecord) -> bool:
    return ref_name is not None and ref_name == trainer.name


def _by_first_name_substring(ref_id: Optional[str], ref_name: Optional[str], trainer: UserRecord) -> bool:
    if not ref_name or not trainer.first_name:
        return False
    return trainer.first_name.lower() in ref_name.lower()


LESSON_MATCHERS: Sequence[Matcher] = (_by_id, _by_email, _by_full_name, _by_name, _by_first_name_substring)
BOOKING_MATCHERS: Sequence[Matcher] = (_by_id, _by_email, _by_full_name, _by_name)


def matches_trainer(
    ref_id: Optional[str],
    ref_name: Optional[str],
    trainer: UserRecord,
    matchers: Sequence[Matcher] = LESSON_MATCHERS,
) -> bool:
    return any(matcher(ref_id, ref_name, trainer) for matcher in matchers)


def is_active_trainer(trainer: UserRecord) -> bool:
    return is_staff(trainer) and trainer.status in (None, "active")


def lesson_attendance(lesson: LessonRecord) -> int:
    return lesson.attendee_count or max(len(lesson.participants), len(lesson.attendees))


def round_one_decimal(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _average(total: int, lessons: int) -> float:
    return round_one_decimal(total / lessons) if lessons else 0.0


def activity_level(monthly_lessons: int) -> str:
    if monthly_lessons >= 10:
        return "High"
    if monthly_lessons >= 5:
        return "Medium"
    if monthly_lessons > 0:
        return "Low"
    return "Inactive"


def performance_score(monthly_lessons: int, monthly_attendance: int, monthly_unique_students: int) -> int:
    return (
        monthly_lessons * LESSON_WEIGHT
        + monthly_attendance * ATTENDANCE_WEIGHT
        + monthly_unique_students * UNIQUE_STUDENT_WEIGHT
    )


@dataclass
class _Tally:
    lessons: int = 0
    attendance: int = 0
    students: Set[str] = field(default_factory=set)

    def add_lesson(self, lesson: LessonRecord) -> None:
        self.lessons += 1
        self.attendance += lesson_attendance(lesson)
        self.students.update(lesson.participants)
        self.students.update(lesson.attendees)

    def add_booking(self, booking: BookingRecord) -> None:
        self.attendance += 1
        if booking.user_id:
            self.students.add(booking.user_id)


@dataclass(frozen=True)
class _Windows:
    now: datetime
    day_start: datetime
    day_end: datetime
    week_start: datetime
    month_start: datetime

    def buckets(self, when: datetime, daily: _Tally, weekly: _Tally, monthly: _Tally) -> Iterable[_Tally]:
        if self.day_start <= when < self.day_end:
            yield daily
        if self.week_start <= when <= self.now:
            yield weekly
        if self.month_start <= when <= self.now:
            yield monthly


def _windows(now: datetime) -> _Windows:
    window = compute_time_window(now)
    return _Windows(
        now=window.now,
        day_start=window.day_start,
        day_end=window.day_end,
        # Trainer weeks start on Sunday, unlike the attendance charts.
        week_start=sunday_week_start(window.now),
        month_start=window.month_start,
    )


def _trainer_row(
    trainer: UserRecord,
    lessons: Sequence[LessonRecord],
    bookings: Sequence[BookingRecord],
    windows: _Windows,
) -> TrainerPerformance:
    daily, weekly, monthly = _Tally(), _Tally(), _Tally()

    for lesson in lessons:
        if not matches_trainer(lesson.trainer_id, lesson.trainer_name, trainer):
            continue
        when = lesson.scheduled_date or lesson.created_at
        if when is None or lesson.is_excluded:
            continue
        for tally in windows.buckets(when, daily, weekly, monthly):
            tally.add_lesson(lesson)

    for booking in bookings:
        if not matches_trainer(booking.trainer_id, booking.trainer_name, trainer, BOOKING_MATCHERS):
            continue
        if booking.date is None or booking.status not in ATTENDED_BOOKING_STATUSES:
            continue
        for tally in windows.buckets(booking.date, daily, weekly, monthly):
            tally.add_booking(booking)

    document = trainer.document
    return TrainerPerformance(
        id=trainer.id,
        name=resolve_trainer_display_name(document),
        email=trainer.email or "",
        phone=trainer.phone or "",
        speciality=resolve_speciality(document),
        avatar=resolve_avatar(document),
        rating=document.get("rating") or 0,
        experience=document.get("experience") or 0,
        join_date=trainer.created_at or trainer.join_date,
        daily_lessons=daily.lessons,
        daily_attendance=daily.attendance,
        daily_unique_students=len(daily.students),
        weekly_lessons=weekly.lessons,
        weekly_attendance=weekly.attendance,
        weekly_unique_students=len(weekly.students),
        monthly_lessons=monthly.lessons,
        monthly_attendance=monthly.attendance,
        monthly_unique_students=len(monthly.students),
        daily_avg_attendance=_average(daily.attendance, daily.lessons),
        weekly_avg_attendance=_average(weekly.attendance, weekly.lessons),
        monthly_avg_attendance=_average(monthly.attendance, monthly.lessons),
        performance_score=performance_score(monthly.lessons, monthly.attendance, len(monthly.students)),
        activity_level=activity_level(monthly.lessons),
    )


def trainer_performance(
    users: Sequence[UserRecord],
    lessons: Sequence[LessonRecord],
    now: datetime,
    bookings: Sequence[BookingRecord] = (),
) -> List[TrainerPerformance]:
    """Rank active staff by monthly performance score, highest first."""

    windows = _windows(now)
    rows = [_trainer_row(trainer, lessons, bookings, windows) for trainer in users if is_active_trainer(trainer)]
    return sorted(rows, key=lambda row: row.performance_score, reverse=True)
