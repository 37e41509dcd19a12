"""Date-selection rules for each booking option type.

A :class:`Selection` is an immutable value: every click produces a new one, so
whichever layer drives the flow (API request, wizard state) simply keeps the
latest value and passes it back in.
"""

from __future__ import annotations

import datetime
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from enum import Enum

from holiday_club.services.club_calendar import DayState

MIN_MULTI_DAY = 2
MIN_CHILDREN = 1
MAX_CHILDREN = 10


class OptionType(str, Enum):
    FULL_WEEK = "full_week"
    SINGLE_DAY = "single_day"
    MULTI_DAY = "multi_day"


class TimeSlot(str, Enum):
    FULL_DAY = "full_day"
    MORNING = "morning"
    AFTERNOON = "afternoon"


class SelectionIssue(str, Enum):
    """Reasons a selection cannot be submitted yet."""

    EMPTY = "empty_selection"
    INCOMPLETE = "incomplete_selection"
    TOO_MANY = "too_many_dates"
    INVALID_CHILD_COUNT = "invalid_child_count"


# States that can never change a selection.
_INERT_STATES = frozenset({DayState.BOOKED, DayState.UNAVAILABLE, DayState.OUT_OF_RANGE})


@dataclass(frozen=True)
class Selection:
    """The dates chosen so far for one booking option, plus the child count."""

    option_type: OptionType
    dates: frozenset[datetime.date] = field(default_factory=frozenset)
    child_count: int = 1

    @property
    def count(self) -> int:
        return len(self.dates)

    def sorted_dates(self) -> list[datetime.date]:
        return sorted(self.dates)

    def with_child_count(self, child_count: int) -> Selection:
        return replace(self, child_count=child_count)


def start_selection(
    option_type: OptionType,
    available: Iterable[datetime.date],
    child_count: int = 1,
) -> Selection:
    """Create the initial selection when an option is chosen.

    Full-week options start (and stay) with every available day; the other
    types start empty.
    """
    if option_type is OptionType.FULL_WEEK:
        return Selection(option_type, frozenset(available), child_count)
    return Selection(option_type, frozenset(), child_count)


def apply_click(
    selection: Selection,
    clicked: datetime.date,
    state: DayState,
    available: Iterable[datetime.date] = (),
) -> Selection:
    """Return the selection that results from clicking *clicked*.

    *state* is the cell's classification from the calendar.  *available* is the
    full set of selectable days and is only consulted for full-week options,
    whose date set is fixed.
    """
    if selection.option_type is OptionType.FULL_WEEK:
        return replace(selection, dates=frozenset(available))

    if state in _INERT_STATES:
        return selection

    if selection.option_type is OptionType.SINGLE_DAY:
        # No deselect path: the current pick is only replaced by a new one.
        if clicked in selection.dates:
            return selection
        return replace(selection, dates=frozenset({clicked}))

    if clicked in selection.dates:
        return replace(selection, dates=selection.dates - {clicked})
    return replace(selection, dates=selection.dates | {clicked})


def check_selection(
    selection: Selection,
    min_days: int | None = None,
    max_children: int = MAX_CHILDREN,
) -> SelectionIssue | None:
    """Return the first problem blocking submission, or ``None`` when it can proceed.

    *min_days* overrides the per-type minimum (the add-days flow only needs one).
    """
    if not MIN_CHILDREN <= selection.child_count <= max_children:
        return SelectionIssue.INVALID_CHILD_COUNT
    if selection.count == 0:
        return SelectionIssue.EMPTY
    if selection.option_type is OptionType.SINGLE_DAY and selection.count > 1:
        return SelectionIssue.TOO_MANY
    if min_days is None:
        min_days = MIN_MULTI_DAY if selection.option_type is OptionType.MULTI_DAY else 1
    if selection.count < min_days:
        return SelectionIssue.INCOMPLETE
    return None


def issue_message(issue: SelectionIssue, min_days: int = MIN_MULTI_DAY, max_children: int = MAX_CHILDREN) -> str:
    """User-facing text for a selection issue."""
    if issue is SelectionIssue.EMPTY:
        return "Please select at least one date."
    if issue is SelectionIssue.INCOMPLETE:
        return f"Please select at least {min_days} days for a multi-day booking."
    if issue is SelectionIssue.TOO_MANY:
        return "Please select exactly one date for a single-day booking."
    return f"Number of children must be between {MIN_CHILDREN} and {max_children}."
