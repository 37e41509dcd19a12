"""Selectable-day pools for new bookings and for adding days to an existing one.

Both flows share the same calendar, selection and pricing code; the only
difference is how the pool of selectable dates is built.  For a new booking it
is every available club day.  For an extension it is every available club day
the booking has not already paid for, which keeps the new selection disjoint
from ``booked_dates`` by construction.
"""

from __future__ import annotations

import datetime
from collections.abc import Collection, Iterable
from dataclasses import dataclass, field, replace

from holiday_club.services.club_calendar import (
    DEFAULT_LOW_RATIO,
    ClubWindow,
    DayRecord,
    DayState,
    MonthView,
    build_month_view,
    classify,
    index_days,
)
from holiday_club.services.pricing import PriceBreakdown, apply_discount, compute_subtotal
from holiday_club.services.selection import (
    OptionType,
    Selection,
    SelectionIssue,
    apply_click,
    check_selection,
    start_selection,
)


def compute_extension_pool(
    window: ClubWindow,
    days: Iterable[DayRecord],
    booked_dates: Collection[datetime.date],
) -> frozenset[datetime.date]:
    """Return the available club days not already in *booked_dates*."""
    return frozenset(
        d.date for d in days if d.is_available and window.contains(d.date) and d.date not in booked_dates
    )


@dataclass(frozen=True)
class BookingPlan:
    """The availability snapshot one booking flow works against.

    Build it with :meth:`for_new_booking` or :meth:`for_extension`, then route
    clicks, month views and pricing through it.  Rebuild from a fresh snapshot
    whenever availability may have changed.
    """

    window: ClubWindow
    days: tuple[DayRecord, ...]
    booked_dates: frozenset[datetime.date] = field(default_factory=frozenset)
    pool: frozenset[datetime.date] = field(default_factory=frozenset)

    @classmethod
    def for_new_booking(cls, window: ClubWindow, days: Iterable[DayRecord]) -> BookingPlan:
        days = tuple(days)
        return cls(window, days, frozenset(), compute_extension_pool(window, days, ()))

    @classmethod
    def for_extension(
        cls,
        window: ClubWindow,
        days: Iterable[DayRecord],
        booked_dates: Iterable[datetime.date],
    ) -> BookingPlan:
        days = tuple(days)
        booked = frozenset(booked_dates)
        return cls(window, days, booked, compute_extension_pool(window, days, booked))

    @property
    def is_exhausted(self) -> bool:
        """True when nothing is left to pick; callers show a "fully booked" dead end."""
        return not self.pool

    def _pool_records(self) -> list[DayRecord]:
        return [d for d in self.days if d.date in self.pool]

    def classify(self, day: datetime.date, selected: Collection[datetime.date] = ()) -> DayState:
        return classify(day, self.window, index_days(self._pool_records()), self.booked_dates, selected)

    def month_view(
        self,
        month: datetime.date,
        selected: Collection[datetime.date] = (),
        low_ratio: float = DEFAULT_LOW_RATIO,
    ) -> MonthView:
        # Pool days are the selectable ones; everything else in range keeps its
        # capacity info but is rendered unavailable (or booked).
        days = [d if d.date in self.pool else replace(d, is_available=False) for d in self.days]
        return build_month_view(month, self.window, days, self.booked_dates, selected, low_ratio)

    def start(self, option_type: OptionType, child_count: int = 1) -> Selection:
        return start_selection(option_type, self.pool, child_count)

    def click(self, selection: Selection, day: datetime.date) -> Selection:
        state = self.classify(day, selection.dates)
        return apply_click(selection, day, state, self.pool)

    def restore(self, selection: Selection) -> Selection:
        """Drop any dates that are no longer in the pool (e.g. after a stale-availability refresh)."""
        if selection.option_type is OptionType.FULL_WEEK:
            return start_selection(OptionType.FULL_WEEK, self.pool, selection.child_count)
        return Selection(selection.option_type, selection.dates & self.pool, selection.child_count)

    def stale_dates(self, selection: Selection) -> list[datetime.date]:
        """Selected dates that this snapshot can no longer offer."""
        return sorted(selection.dates - self.pool)


def start_extension(plan: BookingPlan, child_count: int) -> Selection:
    """An empty add-days selection; extensions toggle dates like multi-day bookings."""
    return plan.start(OptionType.MULTI_DAY, child_count)


def check_extension(selection: Selection, max_children: int) -> SelectionIssue | None:
    return check_selection(selection, min_days=1, max_children=max_children)


def price_extension(
    plan: BookingPlan,
    selection: Selection,
    price_per_day: int,
    discount_percent: int = 0,
) -> PriceBreakdown:
    """Price only the newly selected days; already-booked days were paid for originally.

    Raises:
        ValueError: If the selection overlaps the booking's existing dates.
    """
    if selection.dates & plan.booked_dates:
        raise ValueError("Extension selection overlaps dates already booked")

    subtotal = compute_subtotal(OptionType.MULTI_DAY, price_per_day, selection.count, selection.child_count)
    discount = apply_discount(subtotal, discount_percent)
    return PriceBreakdown(
        subtotal=subtotal,
        discount_percent=discount_percent,
        discount_amount=discount.discount_amount,
        total=discount.total,
    )
