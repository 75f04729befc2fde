from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple


def _camel(name: str) -> str:
    head, *tail = name.split("_")
    return head + "".join(part.title() for part in tail)


def serialize(obj: Any) -> Any:
    """
    Convert result dataclasses into JSON-serialisable structures.

    Field names become camelCase, datetimes become ISO strings. Fields declared
    with ``metadata={"serialize": False}`` (the raw documents) are skipped.
    """

    if is_dataclass(obj) and not isinstance(obj, type):
        return {
            _camel(item.name): serialize(getattr(obj, item.name))
            for item in fields(obj)
            if item.metadata.get("serialize", True)
        }
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Mapping):
        return {str(key): serialize(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [serialize(item) for item in obj]
    return obj


def _raw() -> Any:
    return field(default_factory=dict, compare=False, repr=False, metadata={"serialize": False})


# ---------------------------------------------------------------------------
# Source records (read from the document store)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LessonRecord:
    """
    A lesson document.

    ``scheduled_date`` is set for fixed-date lessons; recurring templates only
    carry ``day_of_week``. Either may be missing, in which case the lesson is
    left out of the time-bucketed views.
    """

    id: str
    scheduled_date: Optional[datetime] = None
    day_of_week: Optional[str] = None
    start_time: Any = None
    trainer_id: Optional[str] = None
    trainer_name: Optional[str] = None
    participants: Tuple[str, ...] = ()
    attendees: Tuple[str, ...] = ()
    attendee_count: Optional[int] = None
    capacity: Optional[int] = None
    status: Optional[str] = None
    created_at: Optional[datetime] = None
    document: Mapping[str, Any] = _raw()

    @property
    def participant_count(self) -> int:
        return len(self.participants)

    @property
    def is_excluded(self) -> bool:
        return self.status in ("cancelled", "deleted")

    @property
    def is_recurring(self) -> bool:
        return self.scheduled_date is None and bool(self.day_of_week)


@dataclass(frozen=True)
class TransactionRecord:
    """
    Income or expense entry. ``amount`` is always non-negative; the sign is
    implied by ``type``.
    """

    id: str
    type: Optional[str]
    amount: float = 0.0
    category: str = "Other"
    date: Optional[datetime] = None
    status: Optional[str] = None
    member_id: Optional[str] = None
    member_name: Optional[str] = None
    created_at: Optional[datetime] = None
    document: Mapping[str, Any] = _raw()


@dataclass(frozen=True)
class UserRecord:
    id: str
    role: Optional[str] = None
    status: Optional[str] = None
    membership_status: Optional[str] = None
    membership_type: Optional[str] = None
    remaining_classes: int = 0
    package_expiry: Optional[datetime] = None
    is_active: Optional[bool] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[datetime] = None
    join_date: Optional[datetime] = None
    freeze_end_date: Optional[datetime] = None
    source: str = "users"
    document: Mapping[str, Any] = _raw()


@dataclass(frozen=True)
class BookingRecord:
    id: str
    trainer_id: Optional[str] = None
    trainer_name: Optional[str] = None
    user_id: Optional[str] = None
    date: Optional[datetime] = None
    status: Optional[str] = None
    member_name: Optional[str] = None
    lesson_name: Optional[str] = None
    created_at: Optional[datetime] = None
    document: Mapping[str, Any] = _raw()


@dataclass(frozen=True)
class EquipmentRecord:
    id: str
    name: str
    created_at: Optional[datetime] = None
    document: Mapping[str, Any] = _raw()


@dataclass(frozen=True)
class StudioSnapshot:
    """Everything fetched from the store for one request."""

    lessons: Sequence[LessonRecord] = ()
    transactions: Sequence[TransactionRecord] = ()
    users: Sequence[UserRecord] = ()
    bookings: Sequence[BookingRecord] = ()
    equipment: Sequence[EquipmentRecord] = ()


# ---------------------------------------------------------------------------
# Derived views
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AttendanceSeries:
    """
    Bucketed attendance values for one chart.

    ``is_placeholder`` is True when ``values`` is illustrative data substituted
    for an all-zero result, never real attendance.
    """

    name: str
    labels: Sequence[str]
    values: Sequence[int]
    is_placeholder: bool = False

    @property
    def total(self) -> int:
        return sum(self.values)

    def as_dict(self) -> Dict[str, Any]:
        return serialize(self)


@dataclass(frozen=True)
class AttendanceReport:
    daily: AttendanceSeries
    weekly: AttendanceSeries
    monthly: AttendanceSeries

    def as_dict(self) -> Dict[str, Any]:
        return serialize(self)


@dataclass(frozen=True)
class TransactionFilters:
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    type: Optional[str] = None
    member_id: Optional[str] = None
    category: Optional[str] = None


@dataclass(frozen=True)
class FinancialSummary:
    total_income: float
    total_expenses: float
    net_profit: float
    transaction_count: int
    income_transactions: int
    expense_transactions: int
    pending_payments: float
    category_breakdown: Dict[str, Dict[str, float]]
    monthly_breakdown: Dict[str, Dict[str, float]]

    def as_dict(self) -> Dict[str, Any]:
        return serialize(self)


@dataclass(frozen=True)
class TrainerPerformance:
    id: str
    name: str
    email: str
    phone: str
    speciality: str
    avatar: Optional[str]
    rating: float
    experience: Any
    join_date: Optional[datetime]
    daily_lessons: int
    daily_attendance: int
    daily_unique_students: int
    weekly_lessons: int
    weekly_attendance: int
    weekly_unique_students: int
    monthly_lessons: int
    monthly_attendance: int
    monthly_unique_students: int
    daily_avg_attendance: float
    weekly_avg_attendance: float
    monthly_avg_attendance: float
    performance_score: int
    activity_level: str

    def as_dict(self) -> Dict[str, Any]:
        return serialize(self)


@dataclass(frozen=True)
class PackageMemberInfo:
    id: str
    name: str
    email: str
    phone: str
    remaining_classes: int
    package_expiry_date: Optional[datetime]
    membership_type: str
    join_date: Optional[datetime]
    action_required: str
    days_expired: Optional[int] = None
    days_until_expiry: Optional[int] = None


@dataclass(frozen=True)
class PackageExpirationReport:
    expired_with_credits: Sequence[PackageMemberInfo] = field(default_factory=list)
    expiring_soon: Sequence[PackageMemberInfo] = field(default_factory=list)
    recently_expired: Sequence[PackageMemberInfo] = field(default_factory=list)

    @property
    def summary(self) -> Dict[str, int]:
        return {
            "expiredWithCredits": len(self.expired_with_credits),
            "expiringSoon": len(self.expiring_soon),
            "recentlyExpired": len(self.recently_expired),
        }

    def as_dict(self) -> Dict[str, Any]:
        data = serialize(self)
        data["summary"] = self.summary
        return data


@dataclass(frozen=True)
class CreditReset:
    member_id: str
    source: str
    previous_credits: int
    package_expiry_date: datetime


@dataclass(frozen=True)
class Unfreeze:
    member_id: str
    source: str
    freeze_end_date: datetime


@dataclass(frozen=True)
class MaintenancePlan:
    """Store writes derived from the current member set; applied by the caller."""

    credit_resets: Sequence[CreditReset] = ()
    unfreezes: Sequence[Unfreeze] = ()

    @property
    def is_empty(self) -> bool:
        return not self.credit_resets and not self.unfreezes

    def as_dict(self) -> Dict[str, Any]:
        return serialize(self)


@dataclass(frozen=True)
class StatCard:
    key: str
    value: Any
    change: str
    trend: str


@dataclass(frozen=True)
class TodayLesson:
    id: str
    title: str
    trainer: str
    display_time: Optional[str]
    participants: int
    capacity: Optional[int]


@dataclass(frozen=True)
class ActivityItem:
    name: str
    action: str
    time: str
    type: str
    timestamp: datetime


@dataclass(frozen=True)
class MemberSummary:
    total_members: int
    active_members: int
    expired_members: int
    new_members: int
    frozen_members: int
    cancelled_members: int
    deleted_members: int

    def as_dict(self) -> Dict[str, Any]:
        return serialize(self)


@dataclass(frozen=True)
class DashboardOverview:
    cards: Sequence[StatCard]
    occupancy_rate: int
    today_lessons: Sequence[TodayLesson]
    recent_activity: Sequence[ActivityItem]

    def as_dict(self) -> Dict[str, Any]:
        return serialize(self)


@dataclass(frozen=True)
class StudioReport:
    generated_at: datetime
    overview: DashboardOverview
    attendance: AttendanceReport
    finance: FinancialSummary
    trainers: List[TrainerPerformance]
    packages: PackageExpirationReport
    members: MemberSummary

    def as_dict(self) -> Dict[str, Any]:
        data = serialize(self)
        data["packages"] = self.packages.as_dict()
        return data
