from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..core.security import TokenClaims, require_admin, require_member
from ..models.database import get_db
from ..services.dashboard_service import DashboardService
from ..utils.responses import success_response

logger = structlog.get_logger()
router = APIRouter(tags=["dashboard"])


@router.get("/landing-page")
async def landing_page(db: AsyncSession = Depends(get_db)):
    data = await DashboardService(db).landing_page()
    return success_response("berhasil menampilkan landing page", data)


@router.get("/user/dashboard")
async def user_dashboard(
    current_user: TokenClaims = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    data = await DashboardService(db).user_dashboard(current_user.id)
    return success_response("berhasil menampilkan dashboard pengguna", data)


@router.get("/admin/dashboard")
async def admin_dashboard(
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    data = await DashboardService(db).admin_dashboard()
    return success_response("berhasil menampilkan dashboard admin", data)


@router.get("/admin/reports")
async def donation_report(
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Blood donation report.

    Returns monthly donation counts, blood type and status distributions
    and the completion rate.
    """
    try:
        report = await DashboardService(db).donation_report()
        return success_response("berhasil menampilkan laporan donasi darah", report)
    except Exception as e:
        logger.error("Failed to build donation report", error=str(e))
        raise HTTPException(status_code=500, detail="Gagal membuat laporan donasi darah")
