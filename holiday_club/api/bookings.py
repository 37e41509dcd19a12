"""Booking API endpoints.

Provides endpoints for:
- Applying calendar clicks to a selection
- Quoting a selection, with an optional promo code
- Checking out a new booking
- Adding days to an existing booking
"""

from __future__ import annotations

import datetime
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from holiday_club.api.clubs import calendar_response, get_club_option, load_booking_plan, resolve_month
from holiday_club.api.promo_codes import resolve_promo_code
from holiday_club.config import get_settings
from holiday_club.db.base import CONFIRMED_STATUSES, BookingRepository, StaleAvailabilityError
from holiday_club.db.factory import get_booking_repository
from holiday_club.db.models import Booking, BookingOption, Club
from holiday_club.schemas.booking import (
    AddDaysCheckoutRequest,
    CheckoutRequestBody,
    CheckoutResponse,
    ExtensionClickRequest,
    ExtensionResponse,
    QuoteRequest,
    QuoteResponse,
    SelectionClickRequest,
    SelectionResponse,
)
from holiday_club.services.checkout import (
    CheckoutGateway,
    CheckoutGatewayError,
    CheckoutRequest,
    CheckoutSession,
    booking_description,
    build_checkout_payload,
    extension_description,
    get_checkout_gateway,
)
from holiday_club.services.extension import BookingPlan, check_extension, price_extension
from holiday_club.services.pricing import PriceBreakdown, format_price, price_selection
from holiday_club.services.selection import (
    OptionType,
    Selection,
    SelectionIssue,
    TimeSlot,
    check_selection,
    issue_message,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["bookings"])

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _min_days(option_type: OptionType) -> int | None:
    return get_settings().MIN_MULTI_DAY if option_type is OptionType.MULTI_DAY else None


def _message(issue: SelectionIssue) -> str:
    settings = get_settings()
    return issue_message(issue, settings.MIN_MULTI_DAY, settings.MAX_CHILDREN)


def _check_child_count(child_count: int) -> None:
    max_children = get_settings().MAX_CHILDREN
    if not 1 <= child_count <= max_children:
        raise HTTPException(status_code=400, detail=_message(SelectionIssue.INVALID_CHILD_COUNT))


def _stale(dates: list[datetime.date]) -> HTTPException:
    return HTTPException(
        status_code=409,
        detail={
            "message": "Some selected dates are no longer available",
            "dates": [d.isoformat() for d in dates],
        },
    )


def _selection_response(selection: Selection, issue: SelectionIssue | None) -> SelectionResponse:
    return SelectionResponse(
        option_type=selection.option_type,
        dates=selection.sorted_dates(),
        count=selection.count,
        child_count=selection.child_count,
        issue=issue,
        message=_message(issue) if issue is not None else None,
    )


def _submittable_selection(
    plan: BookingPlan,
    option: BookingOption,
    dates: list[datetime.date],
    child_count: int,
) -> Selection:
    """Build the selection a quote or checkout is priced on, or raise 400/409."""
    option_type = OptionType(option.option_type)
    if option_type is OptionType.FULL_WEEK:
        selection = plan.start(option_type, child_count)
    else:
        selection = Selection(option_type, frozenset(dates), child_count)
        stale = plan.stale_dates(selection)
        if stale:
            raise _stale(stale)

    issue = check_selection(selection, _min_days(option_type), get_settings().MAX_CHILDREN)
    if issue is not None:
        raise HTTPException(status_code=400, detail=_message(issue))
    return selection


async def _price(
    repo: BookingRepository,
    club: Club,
    option: BookingOption,
    body: QuoteRequest,
) -> tuple[Selection, PriceBreakdown, int | None]:
    _check_child_count(body.child_count)
    plan = await load_booking_plan(repo, club, TimeSlot(option.time_slot), body.child_count)
    selection = _submittable_selection(plan, option, body.dates, body.child_count)
    promo = await resolve_promo_code(repo, body.promo_code, club.id)
    discount_percent = promo.discount_percent if promo is not None else 0
    price = price_selection(selection, option.price_per_child, discount_percent)
    return selection, price, promo.id if promo is not None else None


def require_gateway(gateway: CheckoutGateway | None) -> CheckoutGateway:
    if gateway is None:
        raise HTTPException(status_code=503, detail="Online payment is not configured")
    return gateway


def _require_bookings_open(club: Club) -> None:
    if not club.bookings_open:
        raise HTTPException(status_code=400, detail="Bookings are not currently open for this club")


async def _create_pending_booking(
    repo: BookingRepository,
    booking: Booking,
    selection: Selection,
    time_slot: str,
) -> Booking:
    try:
        return await repo.create_booking(booking, selection.sorted_dates(), time_slot)
    except StaleAvailabilityError as exc:
        raise _stale(exc.dates) from exc


async def _open_checkout_session(
    repo: BookingRepository,
    gateway: CheckoutGateway,
    request: CheckoutRequest,
) -> CheckoutSession:
    """Create the payment session; a pending booking whose session fails is cancelled."""
    try:
        session = await gateway.create_session(request)
    except CheckoutGatewayError as exc:
        logger.error("Checkout failed for booking %d: %s", request.booking_id, exc)
        await repo.set_booking_status(request.booking_id, "cancelled")
        raise HTTPException(status_code=502, detail="Could not create payment session") from exc

    await repo.attach_checkout_session(request.booking_id, session.id)
    return session


def _success_url(extra: str = "") -> str:
    return f"{get_settings().SITE_URL}/booking/success?session_id={{CHECKOUT_SESSION_ID}}{extra}"


def _hold_expiry() -> datetime.datetime:
    """When the payment page closes; matches how long the pending booking holds its places."""
    minutes = get_settings().PENDING_HOLD_MINUTES
    return datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(minutes=minutes)


async def load_confirmed_booking(repo: BookingRepository, booking_id: int, action: str) -> Booking:
    """Load a paid (or complete) booking, or raise 404/400.

    *action* completes the 400 message, e.g. ``"Days can only be added"``.
    """
    booking = await repo.get_booking(booking_id)
    if booking is None:
        raise HTTPException(status_code=404, detail="Booking not found")
    if booking.status not in CONFIRMED_STATUSES:
        raise HTTPException(status_code=400, detail=f"{action} to a paid booking")
    return booking


# ---------------------------------------------------------------------------
# New bookings
# ---------------------------------------------------------------------------


@router.post("/api/selection/click", response_model=SelectionResponse)
async def click_date(
    body: SelectionClickRequest,
    repo: Annotated[BookingRepository, Depends(get_booking_repository)],
) -> SelectionResponse:
    """Apply a calendar click to the selection held so far.

    Dates in the held selection that are no longer available are dropped before
    the click is applied.
    """
    _check_child_count(body.child_count)
    club, option = await get_club_option(repo, body.option_id)
    option_type = OptionType(option.option_type)

    plan = await load_booking_plan(repo, club, TimeSlot(option.time_slot), body.child_count)
    selection = plan.restore(Selection(option_type, frozenset(body.dates), body.child_count))
    selection = plan.click(selection, body.clicked)
    issue = check_selection(selection, _min_days(option_type), get_settings().MAX_CHILDREN)
    return _selection_response(selection, issue)


@router.post("/api/quote", response_model=QuoteResponse)
async def quote(
    body: QuoteRequest,
    repo: Annotated[BookingRepository, Depends(get_booking_repository)],
) -> QuoteResponse:
    """Price a selection, applying a promo code if one is given."""
    club, option = await get_club_option(repo, body.option_id)
    selection, price, promo_code_id = await _price(repo, club, option, body)
    return QuoteResponse(
        dates=selection.sorted_dates(),
        child_count=selection.child_count,
        subtotal=price.subtotal,
        discount_percent=price.discount_percent,
        discount_amount=price.discount_amount,
        total=price.total,
        total_display=format_price(price.total),
        promo_code_id=promo_code_id,
    )


@router.post("/api/checkout", response_model=CheckoutResponse)
async def checkout(
    body: CheckoutRequestBody,
    repo: Annotated[BookingRepository, Depends(get_booking_repository)],
    gateway: Annotated[CheckoutGateway | None, Depends(get_checkout_gateway)],
) -> CheckoutResponse:
    """Reserve the selected dates as a pending booking and start payment."""
    gateway = require_gateway(gateway)
    club, option = await get_club_option(repo, body.option_id)
    _require_bookings_open(club)
    selection, price, promo_code_id = await _price(repo, club, option, body)

    booking = await _create_pending_booking(
        repo,
        Booking(
            club_id=club.id,
            booking_option_id=option.id,
            parent_name=body.parent_name,
            parent_email=body.parent_email,
            parent_phone=body.parent_phone,
            num_children=selection.child_count,
            subtotal=price.subtotal,
            discount_amount=price.discount_amount,
            total_amount=price.total,
            promo_code_id=promo_code_id,
            status="pending",
        ),
        selection,
        option.time_slot,
    )

    request = CheckoutRequest(
        payload=build_checkout_payload(selection, option.id, price, promo_code_id),
        booking_id=booking.id,
        product_name=club.name,
        description=booking_description(option.name, selection, per_day=option.option_type == OptionType.MULTI_DAY),
        customer_email=body.parent_email,
        success_url=_success_url(),
        cancel_url=f"{get_settings().SITE_URL}/clubs/{club.slug}",
        currency=get_settings().CURRENCY,
        expires_at=_hold_expiry(),
    )
    session = await _open_checkout_session(repo, gateway, request)
    logger.info("Booking %d awaiting payment of %s", booking.id, format_price(price.total))
    return CheckoutResponse(booking_id=booking.id, session_id=session.id, checkout_url=session.url, total=price.total)


# ---------------------------------------------------------------------------
# Adding days to an existing booking
# ---------------------------------------------------------------------------


async def _load_extension(repo: BookingRepository, booking_id: int) -> tuple[Booking, BookingPlan]:
    """The original booking behind *booking_id* and its add-days plan.

    Days added to an add-days booking are added to the booking it extends.
    """
    booking = await load_confirmed_booking(repo, booking_id, "Days can only be added")
    if booking.parent_booking_id is not None:
        booking = await load_confirmed_booking(repo, booking.parent_booking_id, "Days can only be added")

    booked = await repo.get_booked_dates(booking.id)
    plan = await load_booking_plan(
        repo, booking.club, TimeSlot(booking.booking_option.time_slot), booking.num_children, booked
    )
    return booking, plan


async def _extension_option(repo: BookingRepository, booking: Booking) -> BookingOption:
    """The option added days are charged at.

    That is the club's per-day option for the same time slot when there is one,
    otherwise the booking's own option.
    """
    for option in await repo.get_booking_options(booking.club_id):
        if option.option_type == OptionType.MULTI_DAY and option.time_slot == booking.booking_option.time_slot:
            return option
    return booking.booking_option


@router.get("/api/bookings/{booking_id}/add-days", response_model=ExtensionResponse)
async def get_add_days(
    booking_id: int,
    repo: Annotated[BookingRepository, Depends(get_booking_repository)],
    month: str | None = Query(default=None, description="Month to show, YYYY-MM"),
    selected: list[datetime.date] = Query(default=[], description="New dates selected so far"),
) -> ExtensionResponse:
    """Show which days can still be added to a booking.

    Returns ``status="fully_booked"`` without a calendar when none are left.
    """
    booking, plan = await _load_extension(repo, booking_id)
    booked_dates = sorted(plan.booked_dates)
    if plan.is_exhausted:
        return ExtensionResponse(
            status="fully_booked",
            booking_id=booking.id,
            club_slug=booking.club.slug,
            child_count=booking.num_children,
            booked_dates=booked_dates,
        )

    option = await _extension_option(repo, booking)
    selection = plan.restore(Selection(OptionType.MULTI_DAY, frozenset(selected), booking.num_children))
    view = plan.month_view(
        resolve_month(month, booking.club), selection.dates, get_settings().LOW_AVAILABILITY_RATIO
    )
    return ExtensionResponse(
        status="open",
        booking_id=booking.id,
        club_slug=booking.club.slug,
        child_count=booking.num_children,
        booked_dates=booked_dates,
        pool=sorted(plan.pool),
        price_per_day=option.price_per_child,
        calendar=calendar_response(view, selection),
    )


@router.post("/api/bookings/{booking_id}/add-days/click", response_model=SelectionResponse)
async def click_add_day(
    booking_id: int,
    body: ExtensionClickRequest,
    repo: Annotated[BookingRepository, Depends(get_booking_repository)],
) -> SelectionResponse:
    """Toggle a date in an add-days selection."""
    booking, plan = await _load_extension(repo, booking_id)
    selection = plan.restore(Selection(OptionType.MULTI_DAY, frozenset(body.dates), booking.num_children))
    selection = plan.click(selection, body.clicked)
    return _selection_response(selection, check_extension(selection, get_settings().MAX_CHILDREN))


@router.post("/api/checkout/add-days", response_model=CheckoutResponse)
async def checkout_add_days(
    body: AddDaysCheckoutRequest,
    repo: Annotated[BookingRepository, Depends(get_booking_repository)],
    gateway: Annotated[CheckoutGateway | None, Depends(get_checkout_gateway)],
) -> CheckoutResponse:
    """Reserve extra days on a paid booking and start payment for them."""
    gateway = require_gateway(gateway)
    booking, plan = await _load_extension(repo, body.booking_id)
    _require_bookings_open(booking.club)
    if plan.is_exhausted:
        raise HTTPException(status_code=409, detail="There are no more days available to add")

    selection = Selection(OptionType.MULTI_DAY, frozenset(body.dates), booking.num_children)
    overlap = sorted(selection.dates & plan.booked_dates)
    if overlap:
        raise HTTPException(
            status_code=400,
            detail="Already booked: " + ", ".join(d.isoformat() for d in overlap),
        )
    stale = plan.stale_dates(selection)
    if stale:
        raise _stale(stale)
    issue = check_extension(selection, get_settings().MAX_CHILDREN)
    if issue is not None:
        raise HTTPException(status_code=400, detail=_message(issue))

    option = await _extension_option(repo, booking)
    price = price_extension(plan, selection, option.price_per_child)
    time_slot = booking.booking_option.time_slot

    extension = await _create_pending_booking(
        repo,
        Booking(
            club_id=booking.club_id,
            booking_option_id=option.id,
            parent_booking_id=booking.id,
            parent_name=booking.parent_name,
            parent_email=booking.parent_email,
            parent_phone=booking.parent_phone,
            num_children=booking.num_children,
            subtotal=price.subtotal,
            discount_amount=price.discount_amount,
            total_amount=price.total,
            status="pending",
        ),
        selection,
        time_slot,
    )

    request = CheckoutRequest(
        payload=build_checkout_payload(selection, option.id, price),
        booking_id=extension.id,
        product_name=f"{booking.club.name} - Additional Days",
        description=extension_description(selection),
        customer_email=booking.parent_email,
        success_url=_success_url("&type=add_days"),
        cancel_url=f"{get_settings().SITE_URL}/add-days/{booking.id}",
        currency=get_settings().CURRENCY,
        expires_at=_hold_expiry(),
        extra_metadata={
            "type": "add_days",
            "originalBookingId": str(booking.id),
            "pricePerDay": str(option.price_per_child),
        },
    )
    session = await _open_checkout_session(repo, gateway, request)
    logger.info("Add-days booking %d for booking %d awaiting payment", extension.id, booking.id)
    return CheckoutResponse(
        booking_id=extension.id, session_id=session.id, checkout_url=session.url, total=price.total
    )
