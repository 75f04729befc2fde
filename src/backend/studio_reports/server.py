from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Response
from pydantic import BaseModel, validator

from .config import ReportSettings, load_settings
from .dates import coerce_timezone, localize_now
from .export import package_report_csv
from .ingest import build_snapshot
from .models import StudioSnapshot, TransactionFilters, serialize
from .repository import DocumentRepository, ReportDataUnavailable, build_repository_from_env
from .service import StudioReportService

load_dotenv()

logger = logging.getLogger(__name__)

app = FastAPI(title="Studio Reports API", version="0.1.0")
settings: ReportSettings = load_settings()
repository: Optional[DocumentRepository] = build_repository_from_env()

Document = Dict[str, Any]


class ReportRequest(BaseModel):
    now: Optional[datetime] = None
    timezone: Optional[str] = None
    lessons: Optional[List[Document]] = None
    transactions: Optional[List[Document]] = None
    users: Optional[List[Document]] = None
    members: Optional[List[Document]] = None
    bookings: Optional[List[Document]] = None
    equipment: Optional[List[Document]] = None

    def has_inline_data(self) -> bool:
        return any(
            collection is not None
            for collection in (
                self.lessons,
                self.transactions,
                self.users,
                self.members,
                self.bookings,
                self.equipment,
            )
        )


class DashboardRequest(ReportRequest):
    maintenance_done: bool = False


class FinanceRequest(ReportRequest):
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    type: Optional[str] = None
    member_id: Optional[str] = None
    category: Optional[str] = None

    @validator("end")
    def _validate_range(cls, end: Optional[datetime], values: Dict[str, Any]) -> Optional[datetime]:
        start = values.get("start")
        if start and end and (start.tzinfo is None) == (end.tzinfo is None) and end < start:
            raise ValueError("end must not be before start")
        return end


class ReportResponse(BaseModel):
    data: Dict[str, Any]
    source: str


@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/reports/dashboard", response_model=ReportResponse)
async def dashboard_endpoint(request: DashboardRequest) -> ReportResponse:
    service, now, source = _prepare(request)
    data = service.build(now).as_dict()

    if repository is not None and settings.auto_maintenance:
        applied = 0
        if not request.maintenance_done:
            plan = service.maintenance_plan(now)
            if not plan.is_empty:
                applied = repository.apply_maintenance(plan, now)
                logger.info("Applied %s maintenance updates", applied)
        data["maintenance"] = {"applied": applied, "maintenanceDone": True}
    return ReportResponse(data=data, source=source)


@app.post("/reports/attendance", response_model=ReportResponse)
async def attendance_endpoint(request: ReportRequest) -> ReportResponse:
    service, now, source = _prepare(request)
    return ReportResponse(data=service.attendance(now).as_dict(), source=source)


@app.post("/reports/finance", response_model=ReportResponse)
async def finance_endpoint(request: FinanceRequest) -> ReportResponse:
    service, now, source = _prepare(request)
    filters = TransactionFilters(
        start=request.start,
        end=request.end,
        type=request.type,
        member_id=request.member_id,
        category=request.category,
    )
    return ReportResponse(data=service.finance(filters, now).as_dict(), source=source)


@app.post("/reports/trainers", response_model=ReportResponse)
async def trainers_endpoint(request: ReportRequest) -> ReportResponse:
    service, now, source = _prepare(request)
    return ReportResponse(data={"trainers": serialize(service.trainers(now))}, source=source)


@app.post("/reports/packages", response_model=ReportResponse)
async def packages_endpoint(request: ReportRequest) -> ReportResponse:
    service, now, source = _prepare(request)
    return ReportResponse(data=service.packages(now).as_dict(), source=source)


@app.post("/reports/packages/export")
async def packages_export_endpoint(request: ReportRequest) -> Response:
    service, now, _ = _prepare(request)
    content = package_report_csv(service.packages(now))
    filename = f"package-report-{now.strftime('%Y-%m-%d')}.csv"
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _prepare(request: ReportRequest) -> Tuple[StudioReportService, datetime, str]:
    report_settings = settings
    if request.timezone:
        report_settings = settings.model_copy(update={"timezone": request.timezone})
    tz = coerce_timezone(report_settings.timezone)
    now = localize_now(request.now, tz) if request.now else datetime.now(tz)

    snapshot, source = _load_snapshot(request, tz)
    return StudioReportService(snapshot, report_settings), now, source


def _load_snapshot(request: ReportRequest, tz: ZoneInfo) -> Tuple[StudioSnapshot, str]:
    if repository is not None:
        try:
            return repository.load(tz), "database"
        except ReportDataUnavailable as exc:
            logger.warning("Report data unavailable: %s", exc)
            raise HTTPException(status_code=503, detail="Report data unavailable") from exc

    if not request.has_inline_data():
        raise HTTPException(
            status_code=500,
            detail=(
                "STUDIO_REPORTS_DATABASE_URL is not configured; "
                "supply the collections in the request body for ad-hoc reports."
            ),
        )

    snapshot = build_snapshot(
        tz,
        lessons=request.lessons or (),
        transactions=request.transactions or (),
        users=request.users or (),
        members=request.members or (),
        bookings=request.bookings or (),
        equipment=request.equipment or (),
    )
    return snapshot, "inline"
