from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_usage.db.session import get_db
from fleet_usage.models.user import User
from fleet_usage.schemas.report import ConsumptionReport, DashboardOut, MaintenanceReport
from fleet_usage.core.security import get_current_user
from fleet_usage.core.response_builders import build_consumption_report
from fleet_usage.services import reports

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/consumption", response_model=ConsumptionReport)
async def consumption(
    group_by: Literal["vehicle", "user", "purpose"] = Query("vehicle"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    report = await reports.consumption_report(db, group_by, date_from, date_to)
    return build_consumption_report(group_by, report)


@router.get("/maintenance", response_model=MaintenanceReport)
async def maintenance(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    rows, total_cost = await reports.maintenance_report(db)
    return MaintenanceReport(rows=rows, total_cost=total_cost)


@router.get("/dashboard", response_model=DashboardOut)
async def dashboard(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return DashboardOut(**await reports.dashboard(db))
