from decimal import Decimal
from src.money import round_money, sum_money, to_number


def test_round_money_halves_away_from_zero():
    assert round_money(1.005) == Decimal("1.01")
    assert round_money("2.675") == Decimal("2.68")
    assert round_money(-1.005) == Decimal("-1.01")


def test_round_money_treats_none_as_zero():
    assert round_money(None) == Decimal("0.00")


def test_sum_money_sums_exactly_then_rounds():
    assert sum_money([0.1, 0.2]) == Decimal("0.30")
    assert sum_money([]) == Decimal("0.00")


def test_to_number_is_rounded_float():
    assert to_number(Decimal("10.005")) == 10.01
    assert isinstance(to_number("3"), float)
