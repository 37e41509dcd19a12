"""Tests for the per-option-type date selection rules."""

from __future__ import annotations

import datetime

import pytest

from holiday_club.services.club_calendar import DayState
from holiday_club.services.selection import (
    OptionType,
    Selection,
    SelectionIssue,
    apply_click,
    check_selection,
    issue_message,
    start_selection,
)

DAY_8 = datetime.date(2025, 4, 8)
DAY_9 = datetime.date(2025, 4, 9)
DAY_10 = datetime.date(2025, 4, 10)
WEEK = frozenset(datetime.date(2025, 7, 21) + datetime.timedelta(days=i) for i in range(5))


class TestStartSelection:
    def test_full_week_starts_with_every_available_day(self):
        selection = start_selection(OptionType.FULL_WEEK, WEEK, child_count=2)
        assert selection.dates == WEEK
        assert selection.child_count == 2

    @pytest.mark.parametrize("option_type", [OptionType.SINGLE_DAY, OptionType.MULTI_DAY])
    def test_other_types_start_empty(self, option_type):
        assert start_selection(option_type, WEEK).count == 0


class TestSingleDay:
    def test_second_pick_replaces_first(self):
        selection = Selection(OptionType.SINGLE_DAY)
        selection = apply_click(selection, DAY_9, DayState.AVAILABLE)
        selection = apply_click(selection, DAY_10, DayState.AVAILABLE)
        assert selection.dates == {DAY_10}

    def test_clicking_the_selected_day_keeps_it(self):
        selection = Selection(OptionType.SINGLE_DAY, frozenset({DAY_9}))
        assert apply_click(selection, DAY_9, DayState.SELECTED) == selection


class TestMultiDay:
    def test_click_adds_then_removes(self):
        start = Selection(OptionType.MULTI_DAY, frozenset({DAY_8}))
        added = apply_click(start, DAY_9, DayState.AVAILABLE)
        assert added.dates == {DAY_8, DAY_9}
        assert apply_click(added, DAY_9, DayState.SELECTED) == start

    def test_no_upper_bound(self):
        selection = Selection(OptionType.MULTI_DAY)
        for offset in range(10):
            selection = apply_click(selection, DAY_8 + datetime.timedelta(days=offset), DayState.AVAILABLE)
        assert selection.count == 10


class TestFullWeek:
    @pytest.mark.parametrize("state", list(DayState))
    def test_any_click_returns_the_full_set(self, state):
        selection = Selection(OptionType.FULL_WEEK, frozenset({DAY_8}))
        assert apply_click(selection, DAY_9, state, WEEK).dates == WEEK


class TestInertStates:
    @pytest.mark.parametrize("option_type", [OptionType.SINGLE_DAY, OptionType.MULTI_DAY])
    @pytest.mark.parametrize("state", [DayState.BOOKED, DayState.UNAVAILABLE, DayState.OUT_OF_RANGE])
    def test_click_is_ignored(self, option_type, state):
        selection = Selection(option_type, frozenset({DAY_8}))
        assert apply_click(selection, DAY_9, state) is selection


class TestCheckSelection:
    def test_empty(self):
        assert check_selection(Selection(OptionType.SINGLE_DAY)) is SelectionIssue.EMPTY
        assert check_selection(Selection(OptionType.MULTI_DAY)) is SelectionIssue.EMPTY

    def test_multi_day_needs_two(self):
        one = Selection(OptionType.MULTI_DAY, frozenset({DAY_8}))
        two = Selection(OptionType.MULTI_DAY, frozenset({DAY_8, DAY_9}))
        assert check_selection(one) is SelectionIssue.INCOMPLETE
        assert check_selection(two) is None

    def test_minimum_can_be_overridden(self):
        one = Selection(OptionType.MULTI_DAY, frozenset({DAY_8}))
        assert check_selection(one, min_days=1) is None
        two = Selection(OptionType.MULTI_DAY, frozenset({DAY_8, DAY_9}))
        assert check_selection(two, min_days=3) is SelectionIssue.INCOMPLETE

    def test_single_day_with_two_dates(self):
        selection = Selection(OptionType.SINGLE_DAY, frozenset({DAY_8, DAY_9}))
        assert check_selection(selection) is SelectionIssue.TOO_MANY

    @pytest.mark.parametrize("children", [0, 11])
    def test_child_count_bounds(self, children):
        selection = Selection(OptionType.SINGLE_DAY, frozenset({DAY_8}), children)
        assert check_selection(selection) is SelectionIssue.INVALID_CHILD_COUNT

    def test_child_count_checked_first(self):
        assert check_selection(Selection(OptionType.MULTI_DAY, child_count=0)) is SelectionIssue.INVALID_CHILD_COUNT

    def test_full_week_ready(self):
        assert check_selection(start_selection(OptionType.FULL_WEEK, WEEK)) is None


def test_issue_messages_mention_limits():
    assert "3 days" in issue_message(SelectionIssue.INCOMPLETE, min_days=3)
    assert "between 1 and 6" in issue_message(SelectionIssue.INVALID_CHILD_COUNT, max_children=6)
