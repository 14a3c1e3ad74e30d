"""
Database models and Pydantic schemas for the DarahConnect API.
"""

from .database import (
    Base,
    BloodDonation,
    BloodRequest,
    Certificate,
    Donation,
    DonorRegistration,
    DonorSchedule,
    HealthPassport,
    Hospital,
    Notification,
    User,
    get_db,
    get_db_session,
    init_database,
)

__all__ = [
    "Base",
    "get_db",
    "get_db_session",
    "init_database",
    "BloodDonation",
    "BloodRequest",
    "Certificate",
    "Donation",
    "DonorRegistration",
    "DonorSchedule",
    "HealthPassport",
    "Hospital",
    "Notification",
    "User",
]
