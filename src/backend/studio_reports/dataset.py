from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, List, Optional, Sequence, Tuple

from .classifier import is_member
from .dates import TimeWindow, add_days, weekday_name
from .models import (
    BookingRecord,
    EquipmentRecord,
    LessonRecord,
    StudioSnapshot,
    TransactionFilters,
    TransactionRecord,
    UserRecord,
)


@dataclass
class StudioDataset:
    """
    Read-only view over one fetched snapshot.

    The helpers never mutate the underlying records, so any number of
    aggregations can run against the same dataset.
    """

    lessons: Sequence[LessonRecord] = ()
    transactions: Sequence[TransactionRecord] = ()
    users: Sequence[UserRecord] = ()
    bookings: Sequence[BookingRecord] = ()
    equipment: Sequence[EquipmentRecord] = ()

    def __post_init__(self) -> None:
        self.lessons = tuple(self.lessons)
        self.transactions = tuple(self.transactions)
        self.users = tuple(self.users)
        self.bookings = tuple(self.bookings)
        self.equipment = tuple(self.equipment)

    @classmethod
    def from_snapshot(cls, snapshot: StudioSnapshot) -> "StudioDataset":
        return cls(
            lessons=snapshot.lessons,
            transactions=snapshot.transactions,
            users=snapshot.users,
            bookings=snapshot.bookings,
            equipment=snapshot.equipment,
        )

    def active_lessons(self) -> Iterator[LessonRecord]:
        return (lesson for lesson in self.lessons if not lesson.is_excluded)

    def fixed_lessons_between(self, start: datetime, end: datetime) -> List[LessonRecord]:
        """Fixed-date lessons with ``start <= scheduled_date < end``."""

        return [
            lesson
            for lesson in self.active_lessons()
            if lesson.scheduled_date is not None and start <= lesson.scheduled_date < end
        ]

    def recurring_lessons(self, day: Optional[str] = None) -> List[LessonRecord]:
        return [
            lesson
            for lesson in self.active_lessons()
            if lesson.is_recurring and (day is None or lesson.day_of_week == day)
        ]

    def lessons_on(self, day_start: datetime) -> List[LessonRecord]:
        """
        Lessons taking place on the day beginning at ``day_start``.

        A lesson with a fixed date only counts on that date; the weekday
        recurrence is consulted solely when no fixed date is present.
        """

        fixed = self.fixed_lessons_between(day_start, add_days(day_start, 1))
        return fixed + self.recurring_lessons(weekday_name(day_start))

    def todays_lessons(self, window: TimeWindow) -> List[LessonRecord]:
        return self.lessons_on(window.day_start)

    def iter_transactions(
        self,
        filters: Optional[TransactionFilters],
        now: datetime,
    ) -> Iterator[Tuple[TransactionRecord, datetime]]:
        """
        Yield ``(transaction, effective_date)`` pairs matching ``filters``.

        The effective date falls back to ``now`` for undated entries so they are
        still counted.
        """

        filters = filters or TransactionFilters()
        for transaction in self.transactions:
            effective = transaction.date or transaction.created_at or now
            if filters.start is not None and effective < filters.start:
                continue
            if filters.end is not None and effective > filters.end:
                continue
            if filters.type and filters.type != "all" and transaction.type != filters.type:
                continue
            if filters.member_id and transaction.member_id != filters.member_id:
                continue
            if filters.category and transaction.category != filters.category:
                continue
            yield transaction, effective

    def customers(self) -> List[UserRecord]:
        """Users whose role is explicitly ``customer``."""

        return [user for user in self.users if is_member(user)]

    @staticmethod
    def joined_at(user: UserRecord) -> Optional[datetime]:
        return user.join_date or user.created_at

    def joined_since(self, users: Sequence[UserRecord], since: datetime) -> List[UserRecord]:
        return [user for user in users if (joined := self.joined_at(user)) is not None and joined >= since]
