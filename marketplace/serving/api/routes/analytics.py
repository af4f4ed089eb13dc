"""
Admin Analytics Endpoints

REST API over the report assembler. Query parameters are passed through
as raw strings; the assembler validates them and raises
``InvalidReportRequest``, which the application maps to 400.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Response
import structlog

from marketplace.reporting.assembler import ReportAssembler, utc_now
from marketplace.serving.api.dependencies import get_assembler

router = APIRouter()
logger = structlog.get_logger(__name__)

EXTENSIONS = {
    "application/json": "json",
    "text/csv; charset=utf-8": "csv",
}


def _envelope(data: Dict[str, Any]) -> Dict[str, Any]:
    return {"success": True, "data": data}


@router.get("/dashboard")
async def get_dashboard(
    period: Optional[str] = Query(None, description="today, week, month, quarter or year"),
    start_date: Optional[str] = Query(None, description="ISO date or datetime"),
    end_date: Optional[str] = Query(None, description="ISO date or datetime; a bare date includes the day"),
    assembler: ReportAssembler = Depends(get_assembler),
) -> Dict[str, Any]:
    """
    Dashboard KPIs, trend, regional revenue, correlation, segmentation,
    forecast, top products, recent activity and alerts.
    """
    report = await assembler.get_dashboard_report(period=period, start_date=start_date, end_date=end_date)
    return _envelope(report)


@router.get("/orders")
async def get_order_analytics(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    group_by: str = Query("day", description="hour, day, week, month or quarter"),
    assembler: ReportAssembler = Depends(get_assembler),
) -> Dict[str, Any]:
    """Order analytics grouped by time bucket."""
    report = await assembler.get_order_analytics(start_date=start_date, end_date=end_date, group_by=group_by)
    return _envelope(report)


@router.get("/customers")
async def get_customer_analytics(assembler: ReportAssembler = Depends(get_assembler)) -> Dict[str, Any]:
    """Lifetime value, churn, segmentation, demographics and cohort retention."""
    return _envelope(await assembler.get_customer_analytics())


@router.get("/realtime")
async def get_realtime_stats(assembler: ReportAssembler = Depends(get_assembler)) -> Dict[str, Any]:
    """Today's live numbers against yesterday."""
    return _envelope(await assembler.get_realtime_stats())


@router.get("/products/{product_id}")
async def get_product_analytics(
    product_id: str,
    assembler: ReportAssembler = Depends(get_assembler),
) -> Dict[str, Any]:
    """Sales, customer regions and inventory status of one product."""
    return _envelope(await assembler.get_product_analytics(product_id))


@router.get("/export")
async def export_report(
    type: str = Query("dashboard", description="dashboard, products, orders or customers"),
    format: str = Query("json", description="json or csv"),
    assembler: ReportAssembler = Depends(get_assembler),
) -> Response:
    """Download a report as a JSON or CSV attachment."""
    content_type, body = await assembler.export_report(type, format)

    extension = EXTENSIONS[content_type]
    filename = f"{type.strip().lower()}-export-{utc_now().strftime('%Y%m%dT%H%M%S')}.{extension}"
    logger.debug("Export attachment prepared", filename=filename, bytes=len(body))

    return Response(
        content=body,
        media_type=content_type,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
