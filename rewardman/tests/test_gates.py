"""Tests for earn and adjustment gates."""

import pytest

from rewardman.gates import GateError, Gates


class TestEarnEventValidity:
    """E1: earn events need a source and positive integer points."""

    def test_valid(self):
        result = Gates.earn_event_validity("booking", "B1", 150)
        assert result.passed is True
        assert result.gate_name == "E1_EarnEventValidity"

    @pytest.mark.parametrize("points", [0, -5, 1.5, "10", True, None])
    def test_invalid_points(self, points):
        with pytest.raises(GateError, match="positive integer"):
            Gates.earn_event_validity("booking", "B1", points)

    def test_missing_source(self):
        assert Gates.check_earn_event_validity("", "B1", 10) is False
        assert Gates.check_earn_event_validity("booking", "", 10) is False

    def test_source_lengths_match_columns(self):
        assert Gates.check_earn_event_validity("b" * 50, "x" * 100, 10) is True
        assert Gates.check_earn_event_validity("b" * 51, "B1", 10) is False

        with pytest.raises(GateError) as exc:
            Gates.earn_event_validity("booking", "x" * 101, 10)
        assert exc.value.details["source_id_length"] == 101


class TestAdjustmentValidity:
    """A1: adjustments are non-zero and justified."""

    def test_valid_negative(self):
        assert Gates.adjustment_validity(-20, "Goodwill reversal").passed is True

    def test_zero_rejected(self):
        with pytest.raises(GateError) as exc:
            Gates.adjustment_validity(0, "Nothing")
        assert exc.value.details == {"delta": 0}

    def test_blank_reason_rejected(self):
        with pytest.raises(GateError, match="reason"):
            Gates.adjustment_validity(10, "   ")
