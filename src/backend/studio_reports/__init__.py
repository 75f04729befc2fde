"""
Reporting helpers for the studio management console.

This package turns the raw lesson, transaction, member, booking and equipment
documents of the studio's document store into the derived views shown on the
console: attendance charts, finance summaries, trainer rankings, package
expiry lists and the dashboard overview.
"""

from .config import ReportSettings, load_settings  # noqa: F401
from .models import (  # noqa: F401
    AttendanceReport,
    AttendanceSeries,
    BookingRecord,
    DashboardOverview,
    EquipmentRecord,
    FinancialSummary,
    LessonRecord,
    MaintenancePlan,
    MemberSummary,
    PackageExpirationReport,
    PackageMemberInfo,
    StudioReport,
    StudioSnapshot,
    TrainerPerformance,
    TransactionFilters,
    TransactionRecord,
    UserRecord,
)
from .repository import (  # noqa: F401
    DocumentRepository,
    ReportDataUnavailable,
    RepositoryConfig,
    SQLDocumentRepository,
    build_repository_from_env,
)
from .service import StudioReportService  # noqa: F401
