"""
Business logic services for DarahConnect.
"""

from .blood_donation_service import BloodDonationService
from .blood_request_service import BloodRequestService
from .certificate_service import CertificateService
from .dashboard_service import DashboardService
from .donation_service import DonationService
from .donor_registration_service import DonorRegistrationService
from .donor_schedule_service import DonorScheduleService
from .health_passport_service import HealthPassportService
from .hospital_service import HospitalService
from .notification_service import NotificationService
from .user_service import UserService

__all__ = [
    "BloodDonationService",
    "BloodRequestService",
    "CertificateService",
    "DashboardService",
    "DonationService",
    "DonorRegistrationService",
    "DonorScheduleService",
    "HealthPassportService",
    "HospitalService",
    "NotificationService",
    "UserService",
]
