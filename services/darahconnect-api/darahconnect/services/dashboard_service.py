from typing import Any, Dict

import pandas as pd
from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..core.security import ROLE_USER
from ..models.database import BloodDonation, BloodRequest, Certificate, User
from ..repositories import (
    BloodDonationRepository,
    BloodRequestRepository,
    CertificateRepository,
    DonationRepository,
    HealthPassportRepository,
    HospitalRepository,
    NotificationRepository,
    UserRepository,
)
from ..utils.clock import utcnow
from .health_passport_service import is_passport_valid

logger = structlog.get_logger()

REPORT_COLUMNS = ["donation_date", "blood_type", "status"]


def campaign_active_conditions():
    return (
        BloodRequest.event_type == "campaign",
        BloodRequest.status.in_(("verified", "registered")),
        or_(BloodRequest.event_date.is_(None), BloodRequest.event_date >= utcnow()),
    )


class DashboardService:
    """Aggregated counters for dashboards, the landing page and reports."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.blood_donations = BloodDonationRepository(db)
        self.blood_requests = BloodRequestRepository(db)
        self.certificates = CertificateRepository(db)
        self.donations = DonationRepository(db)
        self.passports = HealthPassportRepository(db)
        self.hospitals = HospitalRepository(db)
        self.notifications = NotificationRepository(db)
        self.users = UserRepository(db)

    async def user_dashboard(self, user_id: int) -> Dict[str, Any]:
        passport = await self.passports.get_by_user(user_id)
        if passport is None:
            passport_status = None
        elif is_passport_valid(passport):
            passport_status = passport.status
        else:
            passport_status = "expired"

        return {
            "total_donor": await self.blood_donations.count(BloodDonation.user_id == user_id),
            "last_donation": await self.blood_donations.last_created_at(user_id),
            "total_sertifikat": await self.certificates.count(Certificate.user_id == user_id),
            "health_passport_status": passport_status,
            "unread_notifications": await self.notifications.count_unread(user_id),
        }

    async def admin_dashboard(self) -> Dict[str, Any]:
        requests = self.blood_requests
        return {
            "total_donor": await requests.count(BloodRequest.event_type == "blood_request"),
            "total_campaign": await requests.count(BloodRequest.event_type == "campaign"),
            "donor_terverifikasi": await requests.count(
                BloodRequest.event_type == "blood_request", BloodRequest.status == "verified"
            ),
            "request_pending": await requests.count(
                BloodRequest.event_type == "blood_request", BloodRequest.status == "pending"
            ),
            "campaign_active": await requests.count(*campaign_active_conditions()),
            "total_users": await self.users.count(User.role == ROLE_USER),
            "total_donations_amount": await self.donations.total_amount("success"),
        }

    async def landing_page(self) -> Dict[str, Any]:
        """Public counters shown on the landing page."""
        return {
            "total_pendonor": await self.users.count(User.role == ROLE_USER),
            "total_donasi_darah": await self.blood_donations.count(BloodDonation.status == "completed"),
            "total_rumah_sakit": await self.hospitals.count(),
            "campaign_active": await self.blood_requests.count(*campaign_active_conditions()),
            "permintaan_darah": await self.blood_requests.count(
                BloodRequest.event_type == "blood_request",
                BloodRequest.status.in_(("verified", "registered")),
            ),
        }

    async def donation_report(self) -> Dict[str, Any]:
        """
        Blood donation report built with pandas.

        Returns:
            Dict[str, Any]: total, completion_rate, monthly counts keyed
            ``YYYY-MM``, and blood type and status distributions
        """
        rows = await self.blood_donations.report_rows()
        df = pd.DataFrame([tuple(row) for row in rows], columns=REPORT_COLUMNS)

        if df.empty:
            return {
                "total": 0,
                "completion_rate": 0.0,
                "monthly": {},
                "blood_type_distribution": {},
                "status_distribution": {},
            }

        df["donation_date"] = pd.to_datetime(df["donation_date"])
        df["month"] = df["donation_date"].dt.strftime("%Y-%m")

        monthly = df.groupby("month").size().sort_index()
        blood_types = df["blood_type"].value_counts().sort_index()
        statuses = df["status"].value_counts().sort_index()
        completion_rate = round(float((df["status"] == "completed").mean()) * 100, 2)

        logger.info("Donation report generated", rows=len(df))
        return {
            "total": int(len(df)),
            "completion_rate": completion_rate,
            "monthly": {month: int(count) for month, count in monthly.items()},
            "blood_type_distribution": {key: int(count) for key, count in blood_types.items()},
            "status_distribution": {key: int(count) for key, count in statuses.items()},
        }
