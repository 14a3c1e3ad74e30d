"""
API routers for the DarahConnect API.
"""

from . import (
    auth,
    blood_donations,
    blood_requests,
    certificates,
    dashboard,
    donations,
    donor_registrations,
    donor_schedules,
    health,
    health_passports,
    hospitals,
    notifications,
    users,
)

__all__ = [
    "auth",
    "blood_donations",
    "blood_requests",
    "certificates",
    "dashboard",
    "donations",
    "donor_registrations",
    "donor_schedules",
    "health",
    "health_passports",
    "hospitals",
    "notifications",
    "users",
]
