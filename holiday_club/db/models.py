from __future__ import annotations

import datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, String, Text, Time, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Async-compatible declarative base for all ORM models."""


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


class Club(Base):
    __tablename__ = "clubs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    start_date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    end_date: Mapped[datetime.date] = mapped_column(Date, nullable=False)

    # Either session may be absent, but not both
    morning_start: Mapped[datetime.time | None] = mapped_column(Time, nullable=True)
    morning_end: Mapped[datetime.time | None] = mapped_column(Time, nullable=True)
    afternoon_start: Mapped[datetime.time | None] = mapped_column(Time, nullable=True)
    afternoon_end: Mapped[datetime.time | None] = mapped_column(Time, nullable=True)

    min_age: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    max_age: Mapped[int] = mapped_column(Integer, nullable=False, default=11)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    bookings_open: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    days: Mapped[list[ClubDay]] = relationship("ClubDay", back_populates="club", lazy="select")
    booking_options: Mapped[list[BookingOption]] = relationship(
        "BookingOption", back_populates="club", lazy="select"
    )

    def __repr__(self) -> str:
        return f"<Club(id={self.id}, slug={self.slug!r}, {self.start_date}..{self.end_date})>"


class ClubDay(Base):
    __tablename__ = "club_days"
    __table_args__ = (UniqueConstraint("club_id", "date", name="uq_club_days_club_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    club_id: Mapped[int] = mapped_column(Integer, ForeignKey("clubs.id"), nullable=False, index=True)
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)

    morning_capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    afternoon_capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)  # admin switch, e.g. bank holidays

    club: Mapped[Club] = relationship("Club", back_populates="days")

    def __repr__(self) -> str:
        return f"<ClubDay(club_id={self.club_id}, date={self.date}, available={self.is_available})>"


class BookingOption(Base):
    __tablename__ = "booking_options"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    club_id: Mapped[int] = mapped_column(Integer, ForeignKey("clubs.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    option_type: Mapped[str] = mapped_column(String(20), nullable=False)  # full_week / single_day / multi_day
    time_slot: Mapped[str] = mapped_column(String(20), nullable=False)  # full_day / morning / afternoon
    price_per_child: Mapped[int] = mapped_column(Integer, nullable=False)  # pence; per day for multi_day
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    club: Mapped[Club] = relationship("Club", back_populates="booking_options")

    def __repr__(self) -> str:
        return f"<BookingOption(id={self.id}, type={self.option_type!r}, slot={self.time_slot!r})>"


class PromoCode(Base):
    __tablename__ = "promo_codes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    discount_percent: Mapped[int] = mapped_column(Integer, nullable=False)  # 0-100
    valid_from: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False)
    valid_until: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False)
    max_uses: Mapped[int | None] = mapped_column(Integer, nullable=True)
    times_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    club_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("clubs.id"), nullable=True)  # NULL = all clubs
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<PromoCode(code={self.code!r}, discount={self.discount_percent}%)>"


class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    club_id: Mapped[int] = mapped_column(Integer, ForeignKey("clubs.id"), nullable=False, index=True)
    booking_option_id: Mapped[int] = mapped_column(Integer, ForeignKey("booking_options.id"), nullable=False)
    # Set on add-days bookings: the booking whose dates are being extended
    parent_booking_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("bookings.id"), nullable=True, index=True
    )

    parent_name: Mapped[str] = mapped_column(String(255), nullable=False)
    parent_email: Mapped[str] = mapped_column(String(255), nullable=False)
    parent_phone: Mapped[str] = mapped_column(String(30), nullable=False)
    num_children: Mapped[int] = mapped_column(Integer, nullable=False)

    subtotal: Mapped[int] = mapped_column(Integer, nullable=False)
    discount_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    promo_code_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("promo_codes.id"), nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")  # pending / paid / complete / cancelled / refunded
    stripe_checkout_session_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    stripe_payment_intent_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    club: Mapped[Club] = relationship("Club")
    booking_option: Mapped[BookingOption] = relationship("BookingOption")
    days: Mapped[list[BookingDay]] = relationship("BookingDay", back_populates="booking", lazy="select")
    children: Mapped[list[Child]] = relationship("Child", back_populates="booking", lazy="select")

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, club_id={self.club_id}, status={self.status!r})>"


class Child(Base):
    """Details and consents for one child on a paid booking."""

    __tablename__ = "children"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    booking_id: Mapped[int] = mapped_column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    date_of_birth: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    allergies: Mapped[str] = mapped_column(Text, nullable=False, default="")
    medical_notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    emergency_contact_name: Mapped[str] = mapped_column(String(255), nullable=False)
    emergency_contact_phone: Mapped[str] = mapped_column(String(30), nullable=False)

    photo_consent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    activity_consent: Mapped[bool] = mapped_column(Boolean, nullable=False)
    medical_consent: Mapped[bool] = mapped_column(Boolean, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    booking: Mapped[Booking] = relationship("Booking", back_populates="children")

    def __repr__(self) -> str:
        return f"<Child(booking_id={self.booking_id}, name={self.name!r})>"


class BookingDay(Base):
    __tablename__ = "booking_days"
    __table_args__ = (UniqueConstraint("booking_id", "date", name="uq_booking_days_booking_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    booking_id: Mapped[int] = mapped_column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    time_slot: Mapped[str] = mapped_column(String(20), nullable=False)

    booking: Mapped[Booking] = relationship("Booking", back_populates="days")

    def __repr__(self) -> str:
        return f"<BookingDay(booking_id={self.booking_id}, date={self.date}, slot={self.time_slot!r})>"
