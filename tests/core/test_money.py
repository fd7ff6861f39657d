from decimal import Decimal

import pytest

from core.money import format_fcfa, mean_fcfa, median_price, to_fcfa, variance_percentage


class TestMoney:
    def test_to_fcfa_rounds_half_up(self):
        assert to_fcfa(Decimal("10.5")) == 11
        assert to_fcfa(Decimal("10.49")) == 10
        assert to_fcfa(2.5) == 3

    def test_variance_percentage(self):
        assert variance_percentage(11000, 10000) == Decimal("10")
        assert variance_percentage(9500, 10000) == Decimal("-5")
        assert variance_percentage(10000, 10000) == Decimal("0")

    def test_variance_percentage_requires_positive_reference(self):
        with pytest.raises(ValueError):
            variance_percentage(1000, 0)

    def test_mean_fcfa(self):
        assert mean_fcfa([]) == 0
        assert mean_fcfa([1000, 1001]) == 1001
        assert mean_fcfa([9000, 10000, 11000]) == 10000

    def test_median_is_upper_median(self):
        assert median_price([]) == 0
        assert median_price([3, 1, 2]) == 2
        assert median_price([4, 1, 3, 2]) == 3

    def test_format_fcfa(self):
        assert format_fcfa(12500) == "12 500 FCFA"
        assert format_fcfa(0) == "0 FCFA"
