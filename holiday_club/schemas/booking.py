from __future__ import annotations

import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from holiday_club.schemas.club import CalendarResponse
from holiday_club.services.selection import OptionType, SelectionIssue

# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


class SelectionClickRequest(BaseModel):
    """A click on a calendar day, carrying the selection held so far."""

    option_id: int
    dates: list[datetime.date] = []
    clicked: datetime.date
    child_count: int = 1


class ExtensionClickRequest(BaseModel):
    dates: list[datetime.date] = []
    clicked: datetime.date


class SelectionResponse(BaseModel):
    """The selection after a click, plus whatever still blocks submission."""

    option_type: OptionType
    dates: list[datetime.date]
    count: int
    child_count: int
    issue: SelectionIssue | None = None
    message: str | None = None


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------


class QuoteRequest(BaseModel):
    option_id: int
    dates: list[datetime.date] = []
    child_count: int = 1
    promo_code: str | None = None


class QuoteResponse(BaseModel):
    """Price breakdown in pence, with a display string for the total."""

    dates: list[datetime.date]
    child_count: int
    subtotal: int
    discount_percent: int
    discount_amount: int
    total: int
    total_display: str
    promo_code_id: int | None = None


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


class ParentDetails(BaseModel):
    parent_name: str = Field(min_length=1, max_length=255)
    parent_email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    parent_phone: str = Field(min_length=1, max_length=30)


class CheckoutRequestBody(QuoteRequest, ParentDetails):
    """Submit a selection for payment."""


class AddDaysCheckoutRequest(BaseModel):
    booking_id: int
    dates: list[datetime.date]


class CheckoutResponse(BaseModel):
    booking_id: int
    session_id: str
    checkout_url: str
    total: int


# ---------------------------------------------------------------------------
# Extension
# ---------------------------------------------------------------------------


class ExtensionResponse(BaseModel):
    """Add-days view for an existing booking.

    ``status`` is ``"fully_booked"`` when every remaining club day is already
    covered; no calendar is returned in that case.
    """

    status: Literal["open", "fully_booked"]
    booking_id: int
    club_slug: str
    child_count: int
    booked_dates: list[datetime.date]
    pool: list[datetime.date] = []
    price_per_day: int | None = None
    calendar: CalendarResponse | None = None


# ---------------------------------------------------------------------------
# Promo codes
# ---------------------------------------------------------------------------


class PromoValidateRequest(BaseModel):
    code: str
    club_id: int


class PromoValidateResponse(BaseModel):
    id: int
    code: str
    discount_percent: int
    club_id: int | None = None


# ---------------------------------------------------------------------------
# Payment confirmation
# ---------------------------------------------------------------------------


class VerifyPaymentRequest(BaseModel):
    booking_id: int


class VerifyPaymentResponse(BaseModel):
    """Outcome of checking a booking's payment session with the provider."""

    status: Literal["already_paid", "unpaid", "verified"]
    message: str
    checkout_url: str | None = None


# ---------------------------------------------------------------------------
# Children
# ---------------------------------------------------------------------------


class ChildDetails(BaseModel):
    child_name: str = Field(min_length=1, max_length=255)
    date_of_birth: datetime.date
    allergies: str = ""
    medical_notes: str = ""
    emergency_contact_name: str = Field(min_length=1, max_length=255)
    emergency_contact_phone: str = Field(min_length=1, max_length=30)
    photo_consent: bool = False
    activity_consent: bool
    medical_consent: bool


class ChildrenRequest(BaseModel):
    children: list[ChildDetails] = Field(min_length=1)


class ChildResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    date_of_birth: datetime.date
    allergies: str
    medical_notes: str
    emergency_contact_name: str
    emergency_contact_phone: str
    photo_consent: bool
    activity_consent: bool
    medical_consent: bool


class ChildrenResponse(BaseModel):
    booking_id: int
    status: str
    children: list[ChildResponse]
