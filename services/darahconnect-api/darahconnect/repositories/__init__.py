"""
Data-access layer: one repository per entity.
"""

from .base import BaseRepository
from .users import UserRepository
from .hospitals import HospitalRepository
from .blood_requests import BloodRequestRepository
from .donor_schedules import DonorScheduleRepository
from .donor_registrations import DonorRegistrationRepository
from .health_passports import HealthPassportRepository
from .blood_donations import BloodDonationRepository
from .certificates import CertificateRepository
from .notifications import NotificationRepository
from .donations import DonationRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "HospitalRepository",
    "BloodRequestRepository",
    "DonorScheduleRepository",
    "DonorRegistrationRepository",
    "HealthPassportRepository",
    "BloodDonationRepository",
    "CertificateRepository",
    "NotificationRepository",
    "DonationRepository",
]
