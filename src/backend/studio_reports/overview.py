"""
Dashboard overview: headline cards, occupancy, today's lessons, recent activity
and the member status summary.
"""

from __future__ import annotations

import math
import re
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from .classifier import (
    is_staff,
    resolve_lesson_title,
    resolve_member_name,
    resolve_trainer_display_name,
    resolve_trainer_label,
)
from .dataset import StudioDataset
from .dates import compute_time_window
from .finance import EXPENSE, INCOME, monthly_net_income
from .models import ActivityItem, DashboardOverview, LessonRecord, MemberSummary, StatCard, TodayLesson, UserRecord

DEFAULT_LESSON_CAPACITY = 10
RECENT_ACTIVITY_DAYS = 7
RECENT_ACTIVITY_LIMIT = 15
NEW_MEMBER_CARD_DAYS = 7
NEW_MEMBER_SUMMARY_DAYS = 30

_CLOCK = re.compile(r"^\s*(\d{1,2})(?::(\d{1,2}))?")


# ---------------------------------------------------------------------------
# Cards
# ---------------------------------------------------------------------------


def occupancy_rate(
    lessons: Sequence[LessonRecord],
    now: datetime,
    default_capacity: int = DEFAULT_LESSON_CAPACITY,
) -> int:
    """Participants over capacity for this week's fixed-date lessons, as an integer percent."""

    window = compute_time_window(now)
    week_lessons = StudioDataset(lessons=lessons).fixed_lessons_between(window.week_start, window.week_end)
    capacity = sum(lesson.capacity or default_capacity for lesson in week_lessons)
    if not capacity:
        return 0
    participants = sum(len(lesson.participants) or len(lesson.attendees) for lesson in week_lessons)
    return math.floor(participants * 100 / capacity + 0.5)


def _signed(value: float) -> str:
    return f"{value:+,.2f}"


def stat_cards(
    dataset: StudioDataset,
    now: datetime,
    default_capacity: int = DEFAULT_LESSON_CAPACITY,
) -> List[StatCard]:
    window = compute_time_window(now)
    customers = dataset.customers()
    new_customers = dataset.joined_since(customers, window.now - timedelta(days=NEW_MEMBER_CARD_DAYS))
    todays = dataset.todays_lessons(window)
    net_income = monthly_net_income(dataset.transactions, window.now)
    occupancy = occupancy_rate(dataset.lessons, window.now, default_capacity)

    return [
        StatCard(key="totalMembers", value=len(customers), change=f"+{len(new_customers)}", trend="up"),
        StatCard(
            key="activeLessons",
            value=len(todays),
            change=f"+{len(todays)}",
            trend="up" if todays else "down",
        ),
        StatCard(
            key="monthlyIncome",
            value=net_income,
            change=_signed(net_income),
            trend="down" if net_income < 0 else "up",
        ),
        StatCard(key="occupancyRate", value=occupancy, change=f"{occupancy}%", trend="up" if occupancy else "down"),
    ]


# ---------------------------------------------------------------------------
# Today's lessons
# ---------------------------------------------------------------------------


def display_time(lesson: LessonRecord) -> Optional[str]:
    """``HH:MM`` from the free-text start time, else from the scheduled instant."""

    if isinstance(lesson.start_time, str):
        match = _CLOCK.match(lesson.start_time)
        if match:
            hour, minute = int(match.group(1)), int(match.group(2) or 0)
            if hour < 24 and minute < 60:
                return f"{hour:02d}:{minute:02d}"
    if lesson.scheduled_date is not None:
        return lesson.scheduled_date.strftime("%H:%M")
    return None


def today_lessons(lessons: Sequence[LessonRecord], now: datetime) -> List[TodayLesson]:
    window = compute_time_window(now)
    rows = [
        TodayLesson(
            id=lesson.id,
            title=resolve_lesson_title(lesson.document),
            trainer=resolve_trainer_label(lesson.document),
            display_time=display_time(lesson),
            participants=lesson.participant_count,
            capacity=lesson.capacity,
        )
        for lesson in StudioDataset(lessons=lessons).todays_lessons(window)
    ]
    # Untimed lessons go last.
    return sorted(rows, key=lambda row: (row.display_time is None, row.display_time or ""))


# ---------------------------------------------------------------------------
# Recent activity
# ---------------------------------------------------------------------------


def _ago(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'} ago"


def time_ago(timestamp: datetime, now: datetime) -> str:
    minutes = math.floor((now - timestamp).total_seconds() / 60)
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return _ago(minutes, "minute")
    hours = minutes // 60
    if hours < 24:
        return _ago(hours, "hour")
    return _ago(hours // 24, "day")


def _member_action(user: UserRecord) -> str:
    if user.status == "pending":
        return "Applied for membership"
    if user.status in ("approved", "active"):
        return "Membership approved"
    return "Registered"


def _transaction_action(kind: Optional[str], amount: float) -> str:
    formatted = f"{amount:,.2f}"
    if kind == INCOME:
        return f"Paid {formatted}"
    if kind == EXPENSE:
        return f"Expense of {formatted} recorded"
    return f"Transaction of {formatted}"


def recent_activity(
    dataset: StudioDataset,
    now: datetime,
    days: int = RECENT_ACTIVITY_DAYS,
    limit: int = RECENT_ACTIVITY_LIMIT,
) -> List[ActivityItem]:
    """Records created in the last ``days`` days, newest first, at most ``limit`` items."""

    reference = compute_time_window(now).now
    since = reference - timedelta(days=days)

    def recent(created_at: Optional[datetime]) -> bool:
        return created_at is not None and created_at >= since

    def item(name: str, action: str, kind: str, timestamp: datetime) -> ActivityItem:
        return ActivityItem(name=name, action=action, time=time_ago(timestamp, reference), type=kind, timestamp=timestamp)

    items: List[ActivityItem] = []
    for user in dataset.users:
        if not recent(user.created_at):
            continue
        if is_staff(user):
            name = resolve_trainer_display_name(user.document)
            items.append(item("Admin", f"{name} added as trainer", "trainer", user.created_at))
        else:
            items.append(item(resolve_member_name(user.document), _member_action(user), "member", user.created_at))

    for lesson in dataset.lessons:
        if lesson.status == "deleted" or not recent(lesson.created_at):
            continue
        title = resolve_lesson_title(lesson.document)
        items.append(
            item(resolve_trainer_label(lesson.document), f'Created the "{title}" lesson', "lesson", lesson.created_at)
        )

    for equipment in dataset.equipment:
        if recent(equipment.created_at):
            items.append(item("Admin", f'Added "{equipment.name}" equipment', "equipment", equipment.created_at))

    for transaction in dataset.transactions:
        if not recent(transaction.created_at):
            continue
        items.append(
            item(
                transaction.member_name or "Member",
                _transaction_action(transaction.type, transaction.amount),
                "payment" if transaction.type == INCOME else "expense",
                transaction.created_at,
            )
        )

    for booking in dataset.bookings:
        if not recent(booking.created_at):
            continue
        lesson_name = booking.lesson_name or "Lesson"
        action = f"Cancelled {lesson_name}" if booking.status == "cancelled" else f"Booked {lesson_name}"
        items.append(item(booking.member_name or "Member", action, "booking", booking.created_at))

    items.sort(key=lambda activity: activity.timestamp, reverse=True)
    return items[:limit]


# ---------------------------------------------------------------------------
# Member summary
# ---------------------------------------------------------------------------


def _is_deleted(user: UserRecord) -> bool:
    return user.status in ("deleted", "permanently_deleted") or user.membership_status == "deleted"


def member_summary(dataset: StudioDataset, now: datetime) -> MemberSummary:
    """Status counts over customer members."""

    reference = compute_time_window(now).now
    customers = dataset.customers()

    frozen = cancelled = deleted = expired = active = 0
    for user in customers:
        if _is_deleted(user):
            deleted += 1
            continue
        if user.membership_status == "frozen" or user.status == "frozen":
            frozen += 1
            continue
        if user.membership_status == "cancelled":
            cancelled += 1
            continue
        if user.package_expiry is not None and user.package_expiry < reference:
            expired += 1
            continue
        if user.status not in ("pending", "rejected") and user.membership_status != "inactive":
            active += 1

    new_members = dataset.joined_since(customers, reference - timedelta(days=NEW_MEMBER_SUMMARY_DAYS))
    return MemberSummary(
        total_members=len(customers),
        active_members=active,
        expired_members=expired,
        new_members=len(new_members),
        frozen_members=frozen,
        cancelled_members=cancelled,
        deleted_members=deleted,
    )


def dashboard_overview(
    dataset: StudioDataset,
    now: datetime,
    activity_days: int = RECENT_ACTIVITY_DAYS,
    activity_limit: int = RECENT_ACTIVITY_LIMIT,
    default_capacity: int = DEFAULT_LESSON_CAPACITY,
) -> DashboardOverview:
    return DashboardOverview(
        cards=stat_cards(dataset, now, default_capacity),
        occupancy_rate=occupancy_rate(dataset.lessons, now, default_capacity),
        today_lessons=today_lessons(dataset.lessons, now),
        recent_activity=recent_activity(dataset, now, activity_days, activity_limit),
    )
