from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from typing import Optional
from datetime import date, datetime
from enum import Enum

from ..utils.clock import to_naive_utc


class Role(str, Enum):
    """Account role carried in the JWT ``role`` claim."""
    USER = "User"
    ADMINISTRATOR = "Administrator"


class BloodType(str, Enum):
    """Blood type enumeration."""
    A_POSITIVE = "A+"
    A_NEGATIVE = "A-"
    B_POSITIVE = "B+"
    B_NEGATIVE = "B-"
    AB_POSITIVE = "AB+"
    AB_NEGATIVE = "AB-"
    O_POSITIVE = "O+"
    O_NEGATIVE = "O-"


class UrgencyLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class EventType(str, Enum):
    """Distinguishes a user blood request from an admin campaign."""
    BLOOD_REQUEST = "blood_request"
    CAMPAIGN = "campaign"


class BloodRequestStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REGISTERED = "registered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class ScheduleStatus(str, Enum):
    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RegistrationStatus(str, Enum):
    REGISTERED = "registered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


class BloodDonationStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    REJECTED = "rejected"
    DEFERRED = "deferred"
    CANCELLED = "cancelled"


class HealthPassportStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    SUSPENDED = "suspended"


class NotificationType(str, Enum):
    REQUEST = "Request"
    DONATION = "Donation"
    CERTIFICATE = "Certificate"
    REMINDER = "Reminder"
    SYSTEM = "System"
    INFORMATION = "information"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    EXPIRED = "expired"


class RequestSchema(BaseModel):
    """Base for request bodies: enum values stored raw, datetimes as naive UTC."""
    model_config = ConfigDict(use_enum_values=True, str_strip_whitespace=True)

    @field_validator("*")
    @classmethod
    def normalize_datetimes(cls, v):
        if isinstance(v, datetime):
            return to_naive_utc(v)
        return v


class ReadSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# List queries
# ---------------------------------------------------------------------------

class ListQuery(BaseModel):
    """Pagination, sorting and search shared by every list endpoint."""
    model_config = ConfigDict(use_enum_values=True)

    page: int = Field(1, description="Page number, starting at 1")
    limit: int = Field(10, description="Items per page (max 100)")
    sort: str = Field("created_at", description="Column to sort by")
    order: str = Field("desc", description="asc or desc")
    search: Optional[str] = Field(None, description="Case-insensitive text search")

    @model_validator(mode="after")
    def apply_defaults(self):
        if self.page < 1:
            self.page = 1
        if self.limit < 1:
            self.limit = 10
        self.limit = min(self.limit, 100)
        self.order = "asc" if (self.order or "").lower() == "asc" else "desc"
        if not self.sort:
            self.sort = "created_at"
        if self.search is not None:
            self.search = self.search.strip() or None
        return self

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class UserListQuery(ListQuery):
    role: Optional[Role] = None


class HospitalListQuery(ListQuery):
    city: Optional[str] = None
    province: Optional[str] = None


class BloodRequestListQuery(ListQuery):
    urgency_level: Optional[UrgencyLevel] = None
    blood_type: Optional[str] = None
    status: Optional[BloodRequestStatus] = None
    event_type: Optional[EventType] = None
    min_quantity: Optional[int] = None
    max_quantity: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class DonorScheduleListQuery(ListQuery):
    status: Optional[ScheduleStatus] = None
    has_slots: Optional[bool] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class DonorRegistrationListQuery(ListQuery):
    status: Optional[RegistrationStatus] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class HealthPassportListQuery(ListQuery):
    status: Optional[HealthPassportStatus] = None


class BloodDonationListQuery(ListQuery):
    status: Optional[BloodDonationStatus] = None
    blood_type: Optional[str] = None


class CertificateListQuery(ListQuery):
    pass


class NotificationListQuery(ListQuery):
    is_read: Optional[bool] = None
    notification_type: Optional[NotificationType] = None


class DonationListQuery(ListQuery):
    order_id: Optional[str] = None
    status: Optional[PaymentStatus] = None


# ---------------------------------------------------------------------------
# Users and authentication
# ---------------------------------------------------------------------------

class LoginRequest(RequestSchema):
    email: EmailStr = Field(..., description="Account email")
    password: str = Field(..., min_length=1, description="Account password")


class RegisterRequest(RequestSchema):
    name: str = Field(..., min_length=1, description="Full name")
    gender: str = Field(..., min_length=1, description="Gender")
    email: EmailStr = Field(..., description="Account email")
    password: str = Field(..., min_length=6, description="Plain password")
    phone: str = Field(..., min_length=1, description="Phone number")
    blood_type: BloodType = Field(..., description="Blood type")
    birth_date: date = Field(..., description="Birth date (YYYY-MM-DD)")
    address: str = Field(..., min_length=1, description="Home address")


class UserUpdateRequest(RequestSchema):
    name: Optional[str] = None
    gender: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    phone: Optional[str] = None
    blood_type: Optional[BloodType] = None
    birth_date: Optional[date] = None
    address: Optional[str] = None


class RequestResetPasswordRequest(RequestSchema):
    email: EmailStr


class ResetPasswordRequest(RequestSchema):
    password: str = ""


class UserSummary(ReadSchema):
    id: int
    name: str
    email: str


class UserRead(ReadSchema):
    id: int
    name: str
    gender: Optional[str] = None
    email: str
    phone: Optional[str] = None
    blood_type: Optional[str] = None
    birth_date: Optional[date] = None
    address: Optional[str] = None
    role: str
    is_verified: bool
    url_file: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"


# ---------------------------------------------------------------------------
# Hospitals
# ---------------------------------------------------------------------------

class HospitalCreate(RequestSchema):
    name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    province: str = Field(..., min_length=1)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class HospitalUpdate(RequestSchema):
    name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class HospitalRead(ReadSchema):
    id: int
    name: str
    address: str
    city: str
    province: str
    latitude: float
    longitude: float
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Blood requests and campaigns
# ---------------------------------------------------------------------------

class BloodRequestCreate(RequestSchema):
    hospital_id: int = Field(..., description="Hospital where the blood is needed")
    patient_name: str = Field(..., min_length=1)
    blood_type: BloodType
    quantity: int = Field(..., ge=1, description="Number of donors/bags needed")
    urgency_level: UrgencyLevel = UrgencyLevel.MEDIUM
    diagnosis: Optional[str] = None
    event_name: Optional[str] = None
    event_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None


class BloodRequestUpdate(RequestSchema):
    patient_name: Optional[str] = None
    event_name: Optional[str] = None
    event_date: Optional[datetime] = None
    blood_type: Optional[BloodType] = None
    quantity: Optional[int] = Field(None, ge=1)
    urgency_level: Optional[UrgencyLevel] = None
    diagnosis: Optional[str] = None
    expiry_date: Optional[datetime] = None
    status: Optional[BloodRequestStatus] = None


class CampaignCreate(RequestSchema):
    hospital_id: int
    event_name: str = Field(..., min_length=1)
    event_date: datetime
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    slots_available: int = Field(..., ge=1)
    blood_type: Optional[BloodType] = None
    diagnosis: Optional[str] = Field(None, description="Campaign description")

    @model_validator(mode="after")
    def check_times(self):
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValueError("end_time harus setelah start_time")
        return self


class CampaignUpdate(RequestSchema):
    hospital_id: Optional[int] = None
    event_name: Optional[str] = None
    event_date: Optional[datetime] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    slots_available: Optional[int] = Field(None, ge=0)
    blood_type: Optional[BloodType] = None
    diagnosis: Optional[str] = None


class BloodRequestStatusUpdate(RequestSchema):
    status: BloodRequestStatus


class BloodRequestRead(ReadSchema):
    id: int
    user_id: int
    hospital_id: int
    event_type: str
    event_name: Optional[str] = None
    event_date: Optional[datetime] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    patient_name: Optional[str] = None
    blood_type: Optional[str] = None
    quantity: int
    urgency_level: Optional[str] = None
    diagnosis: Optional[str] = None
    slots_available: int
    slots_booked: int
    status: str
    expiry_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    user: Optional[UserSummary] = None
    hospital: Optional[HospitalRead] = None


# ---------------------------------------------------------------------------
# Donor schedules
# ---------------------------------------------------------------------------

class DonorScheduleCreate(RequestSchema):
    hospital_id: int
    event_name: str = Field(..., min_length=1)
    event_date: datetime
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    slots_available: int = Field(..., ge=1)
    description: Optional[str] = None


class DonorScheduleUpdate(RequestSchema):
    hospital_id: Optional[int] = None
    event_name: Optional[str] = None
    event_date: Optional[datetime] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    slots_available: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None


class DonorScheduleStatusUpdate(RequestSchema):
    status: ScheduleStatus


class DonorScheduleRead(ReadSchema):
    id: int
    hospital_id: int
    event_name: str
    event_date: datetime
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    slots_available: int
    slots_booked: int
    description: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: datetime
    hospital: Optional[HospitalRead] = None


# ---------------------------------------------------------------------------
# Donor registrations
# ---------------------------------------------------------------------------

class DonorRegistrationCreate(RequestSchema):
    schedule_id: Optional[int] = Field(None, description="Donor schedule to join")
    request_id: Optional[int] = Field(None, description="Blood request or campaign to join")
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_single_target(self):
        if (self.schedule_id is None) == (self.request_id is None):
            raise ValueError("Pilih salah satu: schedule_id atau request_id")
        return self


class DonorRegistrationUpdate(RequestSchema):
    notes: Optional[str] = None
    status: Optional[RegistrationStatus] = None


class DonorRegistrationStatusUpdate(RequestSchema):
    status: RegistrationStatus


class DonorRegistrationRead(ReadSchema):
    id: int
    user_id: int
    schedule_id: Optional[int] = None
    request_id: Optional[int] = None
    status: str
    notes: Optional[str] = None
    event_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    user: Optional[UserSummary] = None
    schedule: Optional[DonorScheduleRead] = None
    blood_request: Optional[BloodRequestRead] = None


# ---------------------------------------------------------------------------
# Health passports
# ---------------------------------------------------------------------------

class HealthPassportStatusUpdate(RequestSchema):
    status: HealthPassportStatus
    renew: bool = Field(False, description="Reset the expiry window")


class HealthPassportRead(ReadSchema):
    id: int
    user_id: int
    passport_number: str
    expiry_date: datetime
    status: str
    created_at: datetime
    updated_at: datetime
    user: Optional[UserSummary] = None


# ---------------------------------------------------------------------------
# Blood donations and certificates
# ---------------------------------------------------------------------------

class BloodDonationCreate(RequestSchema):
    registration_id: int
    donation_date: Optional[datetime] = None
    blood_type: Optional[BloodType] = None


class BloodDonationUpdate(RequestSchema):
    donation_date: Optional[datetime] = None
    blood_type: Optional[BloodType] = None


class BloodDonationStatusUpdate(RequestSchema):
    status: BloodDonationStatus


class BloodDonationRead(ReadSchema):
    id: int
    user_id: int
    hospital_id: int
    registration_id: int
    donation_date: datetime
    blood_type: str
    status: str
    created_at: datetime
    updated_at: datetime
    user: Optional[UserSummary] = None
    hospital: Optional[HospitalRead] = None


class CertificateRead(ReadSchema):
    id: int
    donation_id: int
    user_id: int
    certificate_number: str
    digital_signature: str
    created_at: datetime
    updated_at: datetime
    user: Optional[UserSummary] = None
    donation: Optional[BloodDonationRead] = None


class CertificateVerification(BaseModel):
    certificate_number: str
    valid: bool
    issued_to: Optional[str] = None
    issued_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

class NotificationCreate(RequestSchema):
    user_id: int
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    notification_type: NotificationType = NotificationType.SYSTEM


class NotificationUpdate(RequestSchema):
    title: Optional[str] = None
    message: Optional[str] = None
    notification_type: Optional[NotificationType] = None
    is_read: Optional[bool] = None


class NotificationRead(ReadSchema):
    id: int
    user_id: int
    title: str
    message: str
    notification_type: str
    is_read: bool
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Monetary donations
# ---------------------------------------------------------------------------

class PaymentRequest(RequestSchema):
    amount: int = Field(..., ge=1000, description="Amount in rupiah")
    phone: Optional[str] = None


class PaymentResponse(BaseModel):
    order_id: str
    token: Optional[str] = None
    redirect_url: str


class PaymentNotification(BaseModel):
    """Midtrans HTTP notification payload (subset)."""
    order_id: str
    transaction_status: str
    status_code: str = ""
    gross_amount: str = ""
    signature_key: str = ""
    transaction_time: Optional[str] = None
    payment_type: Optional[str] = None
    fraud_status: Optional[str] = None


class DonationRead(ReadSchema):
    id: int
    user_id: Optional[int] = None
    order_id: str
    amount: int
    status: str
    payment_type: Optional[str] = None
    transaction_time: Optional[datetime] = None
    redirect_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    user: Optional[UserSummary] = None


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

class HealthCheckResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(default_factory=datetime.now, description="Check timestamp")
    version: str = Field(..., description="Service version")
    database_status: str = Field(..., description="Database connection status")
    uptime_seconds: float = Field(..., description="Service uptime in seconds")


class Pagination(BaseModel):
    page: int
    per_page: int
    total_items: int
    total_pages: int


class Meta(BaseModel):
    code: int
    message: str
