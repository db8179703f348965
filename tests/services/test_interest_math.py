from datetime import date
from decimal import Decimal

import pytest

from societyledger.models.tenant import CompoundingFrequency, InterestMethod
from societyledger.services.interest_service import compute_interest, grace_window

SIMPLE = InterestMethod.SIMPLE
COMPOUND = InterestMethod.COMPOUND
MONTHLY = CompoundingFrequency.MONTHLY
DAILY = CompoundingFrequency.DAILY


class TestComputeInterest:
    def test_simple_33_days(self):
        assert compute_interest(Decimal("1000"), Decimal("12"), SIMPLE, MONTHLY, 33) == Decimal("132.00")

    def test_simple_scales_with_balance(self):
        assert compute_interest(Decimal("10000"), Decimal("12"), SIMPLE, MONTHLY, 33) == Decimal("1320.00")

    def test_compound_monthly_one_month(self):
        assert compute_interest(Decimal("1000"), Decimal("12"), COMPOUND, MONTHLY, 30) == Decimal("120.00")

    def test_compound_monthly_two_months(self):
        assert compute_interest(Decimal("1000"), Decimal("12"), COMPOUND, MONTHLY, 60) == Decimal("254.40")

    def test_compound_daily_exceeds_monthly(self):
        daily = compute_interest(Decimal("1000"), Decimal("12"), COMPOUND, DAILY, 30)
        assert Decimal("120.00") < daily < Decimal("130.00")

    def test_result_has_two_places(self):
        result = compute_interest(Decimal("999.99"), Decimal("1.5"), COMPOUND, MONTHLY, 17)
        assert result == result.quantize(Decimal("0.01"))

    @pytest.mark.parametrize(
        "balance,rate,days",
        [
            (Decimal("0"), Decimal("12"), 30),
            (Decimal("-500"), Decimal("12"), 30),
            (Decimal("1000"), Decimal("0"), 30),
            (Decimal("1000"), Decimal("12"), 0),
        ],
    )
    def test_nothing_due(self, balance, rate, days):
        assert compute_interest(balance, rate, SIMPLE, MONTHLY, days) == Decimal("0.00")


class TestGraceWindow:
    def test_from_period(self, sample_entry, sample_config):
        due, grace_end = grace_window(sample_entry(period="2025-01"), sample_config())
        assert due == date(2025, 1, 10)
        assert grace_end == date(2025, 1, 20)

    def test_from_entry_date_without_period(self, sample_entry, sample_config):
        entry = sample_entry(period=None, entry_date=date(2025, 2, 3))
        due, grace_end = grace_window(entry, sample_config(grace_period_days=5))
        assert due == date(2025, 2, 10)
        assert grace_end == date(2025, 2, 15)

    def test_due_day_clamped_to_month_end(self, sample_entry, sample_config):
        due, _ = grace_window(sample_entry(period="2025-02"), sample_config(bill_due_day=31))
        assert due == date(2025, 2, 28)

    def test_period_wins_over_posting_date(self, sample_entry, sample_config):
        entry = sample_entry(period="2025-01", entry_date=date(2025, 2, 5))
        due, _ = grace_window(entry, sample_config())
        assert due == date(2025, 1, 10)
