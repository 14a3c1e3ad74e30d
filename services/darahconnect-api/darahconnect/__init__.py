"""
DarahConnect API

This service coordinates blood donation for DarahConnect. It handles user
accounts, blood requests and campaigns, donor schedules and registrations,
health passports, donation certificates, notifications and monetary
donations through the Midtrans payment gateway.

Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "DarahConnect Team"
__description__ = "Blood donation coordination service"
