"""Unit tests for betting event transitions and option validation."""

from __future__ import annotations

import pytest

from classquest.bets.service import VALID_TRANSITIONS, normalize_options, validate_transition
from classquest.ledger.errors import InvalidArgument, InvariantViolation


class TestTransitions:
    @pytest.mark.parametrize("current,target", [
        ("open", "closed"),
        ("open", "resolved"),
        ("closed", "resolved"),
    ])
    def test_valid(self, current, target):
        validate_transition(current, target)

    @pytest.mark.parametrize("current,target", [
        ("closed", "open"),
        ("resolved", "open"),
        ("resolved", "closed"),
        ("open", "open"),
    ])
    def test_invalid(self, current, target):
        with pytest.raises(InvariantViolation, match="Invalid transition"):
            validate_transition(current, target)

    def test_resolved_is_terminal(self):
        assert VALID_TRANSITIONS["resolved"] == []


class TestNormalizeOptions:
    def test_strips_labels_and_casts_odds(self):
        options = normalize_options([{"label": " A ", "odds": 2}, {"label": "B", "odds": "1.5"}])
        assert options == [{"label": "A", "odds": 2.0}, {"label": "B", "odds": 1.5}]

    def test_needs_two_options(self):
        with pytest.raises(InvalidArgument, match="at least two"):
            normalize_options([{"label": "A", "odds": 2.0}])

    @pytest.mark.parametrize("odds", [0, -1.0, float("nan"), float("inf")])
    def test_odds_must_be_positive(self, odds):
        with pytest.raises(InvalidArgument, match="Invalid odds"):
            normalize_options([{"label": "A", "odds": odds}, {"label": "B", "odds": 1.5}])

    def test_duplicate_labels(self):
        with pytest.raises(InvalidArgument, match="Duplicate"):
            normalize_options([{"label": "A", "odds": 2.0}, {"label": "A ", "odds": 1.5}])

    def test_blank_label(self):
        with pytest.raises(InvalidArgument, match="empty"):
            normalize_options([{"label": "  ", "odds": 2.0}, {"label": "B", "odds": 1.5}])
