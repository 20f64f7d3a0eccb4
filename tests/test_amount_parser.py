from decimal import Decimal

import pytest

from fuel_ledger.excel.reader import parse_amount


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1.234.567,50", Decimal("1234567.5")),
        ("1,234,567.50", Decimal("1234567.5")),
        ("1234567", Decimal("1234567")),
        ("1.234.567", Decimal("1234567")),
        ("1.500", Decimal("1500")),
        ("1234.5", Decimal("1234.5")),
        ("1,234,567", Decimal("1234567")),
        ("1234567,89", Decimal("1234567.89")),
        ("1,500", Decimal("1500")),
        ("Rp 1.500.000", Decimal("1500000")),
        ("Rp1.500.000,25", Decimal("1500000.25")),
        ("IDR 2,000,000", Decimal("2000000")),
        ("  750 000 ", Decimal("750000")),
        ("-1.000", Decimal("-1000")),
        ("Rp 1.500.000,-", Decimal("1500000")),
        ("2.750.000.-", Decimal("2750000")),
        ("1.250,50 IDR", Decimal("1250.50")),
    ],
)
def test_parse_text_amounts(raw, expected):
    assert parse_amount(raw) == expected


@pytest.mark.parametrize(
    "raw, expected",
    [
        (1234567, Decimal("1234567")),
        (1234.5, Decimal("1235")),
        (1234.49, Decimal("1234")),
        (Decimal("10.5"), Decimal("11")),
    ],
)
def test_numbers_are_rounded_to_whole_rupiah(raw, expected):
    assert parse_amount(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "   ", "-", "n/a", "Rp", True, float("nan")])
def test_unparseable_values_are_ignored(raw):
    assert parse_amount(raw) is None
