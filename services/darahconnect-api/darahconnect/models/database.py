from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

from contextlib import asynccontextmanager

from ..core.config import settings
from ..utils.clock import utcnow

Base = declarative_base()

# Create async engine
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    future=True
)

# Create async session factory
AsyncSessionLocal = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


async def init_database():
    """Initialize database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def get_db_session() -> AsyncSession:
    """Get database session context manager."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# Dependency for FastAPI
async def get_db() -> AsyncSession:
    """Database dependency for FastAPI."""
    async with get_db_session() as session:
        yield session


class TimestampMixin:
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class User(TimestampMixin, Base):
    """Registered account, either a donor/requester or an administrator."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    gender = Column(String(20), nullable=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)
    blood_type = Column(String(5), nullable=True)
    birth_date = Column(Date, nullable=True)
    address = Column(Text, nullable=True)
    role = Column(String(20), nullable=False, default="User")
    is_verified = Column(Boolean, nullable=False, default=False)
    verify_email_token = Column(String(64), nullable=True, index=True)
    reset_password_token = Column(Text, nullable=True)
    url_file = Column(String(512), nullable=True)
    public_id = Column(String(255), nullable=True)
    google_id = Column(String(255), nullable=True, unique=True)


class Hospital(TimestampMixin, Base):
    """Hospital reference data."""
    __tablename__ = "hospitals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    address = Column(Text, nullable=False)
    city = Column(String(100), nullable=False)
    province = Column(String(100), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)


class BloodRequest(TimestampMixin, Base):
    """A request for blood, or an admin-run donation campaign (event_type)."""
    __tablename__ = "blood_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    hospital_id = Column(Integer, ForeignKey("hospitals.id"), nullable=False, index=True)
    event_type = Column(String(20), nullable=False, default="blood_request", index=True)
    event_name = Column(String(255), nullable=True)
    event_date = Column(DateTime, nullable=True)
    start_time = Column(DateTime, nullable=True)
    end_time = Column(DateTime, nullable=True)
    patient_name = Column(String(255), nullable=True)
    blood_type = Column(String(5), nullable=True)
    quantity = Column(Integer, nullable=False, default=0)
    urgency_level = Column(String(20), nullable=True)
    diagnosis = Column(Text, nullable=True)
    slots_available = Column(Integer, nullable=False, default=0)
    slots_booked = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="pending", index=True)
    expiry_date = Column(DateTime, nullable=True)

    # Relationships
    user = relationship("User", lazy="selectin")
    hospital = relationship("Hospital", lazy="selectin")


class DonorSchedule(TimestampMixin, Base):
    """Hospital-hosted donation event with slot counters."""
    __tablename__ = "donor_schedules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    hospital_id = Column(Integer, ForeignKey("hospitals.id"), nullable=False, index=True)
    event_name = Column(String(255), nullable=False)
    event_date = Column(DateTime, nullable=False)
    start_time = Column(DateTime, nullable=True)
    end_time = Column(DateTime, nullable=True)
    slots_available = Column(Integer, nullable=False, default=0)
    slots_booked = Column(Integer, nullable=False, default=0)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="upcoming", index=True)

    # Relationships
    hospital = relationship("Hospital", lazy="selectin")


class DonorRegistration(TimestampMixin, Base):
    """A user's signup against a donor schedule or a blood request/campaign."""
    __tablename__ = "donor_registrations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    schedule_id = Column(Integer, ForeignKey("donor_schedules.id"), nullable=True, index=True)
    request_id = Column(Integer, ForeignKey("blood_requests.id"), nullable=True, index=True)
    status = Column(String(20), nullable=False, default="registered", index=True)
    notes = Column(Text, nullable=True)

    # Relationships
    user = relationship("User", lazy="selectin")
    schedule = relationship("DonorSchedule", lazy="selectin")
    blood_request = relationship("BloodRequest", lazy="selectin")

    @property
    def event_date(self):
        if self.schedule is not None:
            return self.schedule.event_date
        if self.blood_request is not None:
            return self.blood_request.event_date
        return None

    @property
    def hospital_id(self):
        if self.schedule is not None:
            return self.schedule.hospital_id
        if self.blood_request is not None:
            return self.blood_request.hospital_id
        return None


class HealthPassport(TimestampMixin, Base):
    """Time-boxed donor eligibility credential, one per user."""
    __tablename__ = "health_passports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    passport_number = Column(String(32), nullable=False, unique=True)
    expiry_date = Column(DateTime, nullable=False)
    status = Column(String(20), nullable=False, default="active")

    # Relationships
    user = relationship("User", lazy="selectin")


class BloodDonation(TimestampMixin, Base):
    """Physical donation made against a registration."""
    __tablename__ = "blood_donations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    hospital_id = Column(Integer, ForeignKey("hospitals.id"), nullable=False)
    registration_id = Column(Integer, ForeignKey("donor_registrations.id"), nullable=False, unique=True)
    donation_date = Column(DateTime, nullable=False)
    blood_type = Column(String(5), nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)

    # Relationships
    user = relationship("User", lazy="selectin")
    hospital = relationship("Hospital", lazy="selectin")


class Certificate(TimestampMixin, Base):
    """Certificate issued when a blood donation is completed."""
    __tablename__ = "certificates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    donation_id = Column(Integer, ForeignKey("blood_donations.id", ondelete="CASCADE"), nullable=False, unique=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    certificate_number = Column(String(32), nullable=False, unique=True, index=True)
    digital_signature = Column(String(128), nullable=False)

    # Relationships
    donation = relationship("BloodDonation", lazy="selectin")
    user = relationship("User", lazy="selectin")


class Notification(TimestampMixin, Base):
    """User-addressed message."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    notification_type = Column(String(30), nullable=False, default="System")
    is_read = Column(Boolean, nullable=False, default=False, index=True)


class Donation(TimestampMixin, Base):
    """Monetary donation paid through Midtrans, keyed by order id."""
    __tablename__ = "donations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    order_id = Column(String(64), nullable=False, unique=True, index=True)
    amount = Column(BigInteger, nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    payment_type = Column(String(50), nullable=True)
    transaction_time = Column(DateTime, nullable=True)
    redirect_url = Column(String(512), nullable=True)

    # Relationships
    user = relationship("User", lazy="selectin")
