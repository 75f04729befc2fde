from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from .attendance import attendance_report
from .config import ReportSettings
from .dataset import StudioDataset
from .dates import coerce_timezone, localize_now
from .finance import summarize_transactions
from .models import (
    AttendanceReport,
    DashboardOverview,
    FinancialSummary,
    MaintenancePlan,
    MemberSummary,
    PackageExpirationReport,
    StudioReport,
    StudioSnapshot,
    TrainerPerformance,
    TransactionFilters,
)
from .overview import dashboard_overview, member_summary
from .packages import package_expiration_report, plan_package_maintenance
from .trainers import trainer_performance


class StudioReportService:
    """
    Builds every derived view from one materialised snapshot.

    The service never talks to the store: callers load a ``StudioSnapshot``
    first, and apply any ``MaintenancePlan`` it returns themselves.
    """

    def __init__(self, snapshot: StudioSnapshot, settings: Optional[ReportSettings] = None) -> None:
        self.settings = settings or ReportSettings()
        self.tz = coerce_timezone(self.settings.timezone)
        self.dataset = StudioDataset.from_snapshot(snapshot)

    def build(self, now: datetime, filters: Optional[TransactionFilters] = None) -> StudioReport:
        now = self._now(now)
        return StudioReport(
            generated_at=now,
            overview=self.overview(now),
            attendance=self.attendance(now),
            finance=self.finance(filters, now),
            trainers=self.trainers(now),
            packages=self.packages(now),
            members=self.members(now),
        )

    def _now(self, now: datetime) -> datetime:
        return localize_now(now, self.tz)

    def overview(self, now: datetime) -> DashboardOverview:
        return dashboard_overview(
            self.dataset,
            self._now(now),
            activity_days=self.settings.activity_days,
            activity_limit=self.settings.activity_limit,
            default_capacity=self.settings.default_lesson_capacity,
        )

    def attendance(self, now: datetime) -> AttendanceReport:
        return attendance_report(self.dataset.lessons, self._now(now))

    def finance(self, filters: Optional[TransactionFilters], now: datetime) -> FinancialSummary:
        return summarize_transactions(self.dataset.transactions, filters, self._now(now))

    def trainers(self, now: datetime) -> List[TrainerPerformance]:
        return trainer_performance(self.dataset.users, self.dataset.lessons, self._now(now), self.dataset.bookings)

    def packages(self, now: datetime) -> PackageExpirationReport:
        return package_expiration_report(self.dataset.users, self._now(now))

    def members(self, now: datetime) -> MemberSummary:
        return member_summary(self.dataset, self._now(now))

    def maintenance_plan(self, now: datetime) -> MaintenancePlan:
        return plan_package_maintenance(self.dataset.users, self._now(now))
