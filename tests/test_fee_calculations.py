import datetime

import pytest

from services.fee_calculations import (
    annual_amount, compute_annual, monthly_portion, value_amount, scholarship_deduction,
    compare_items, change_between, parse_month, month_end, month_key, total_pages,
)


@pytest.mark.parametrize("amount,frequency,expected", [
    (100, "MONTHLY", 1200),
    (500, "TERM", 1500),
    (1000, "ANNUAL", 1000),
    (200, "ONE_TIME", 200),
    (100, None, 1200),
    (80, "WEEKLY", 80),
])
def test_annual_amount(amount, frequency, expected):
    assert annual_amount(amount, frequency) == expected


def test_annual_amount_custom_terms():
    assert annual_amount(500, "TERM", terms_per_year=2) == 1000


def test_compute_annual_mixed_items():
    items = [
        {"label": "Tuition", "amount": 1000, "frequency": "MONTHLY"},
        {"label": "Exam", "amount": 3000, "frequency": "TERM"},
        {"label": "Admission", "amount": 500, "frequency": "ONE_TIME"},
    ]
    assert compute_annual(items) == 21500


def test_monthly_portion_charges_one_time_only_in_effective_month():
    items = [
        {"label": "Tuition", "amount": 1000, "frequency": "MONTHLY"},
        {"label": "Library", "amount": 1200, "frequency": "ANNUAL"},
        {"label": "Exam", "amount": 3000, "frequency": "TERM"},
        {"label": "Admission", "amount": 500, "frequency": "ONE_TIME"},
    ]
    effective = datetime.date(2025, 4, 1)

    base, breakdown = monthly_portion(items, datetime.date(2025, 4, 1), effective)
    assert base == 2350
    assert [b["monthly_portion"] for b in breakdown] == [1000, 100, 750, 500]
    assert breakdown[0]["category"] == "General"

    base, _ = monthly_portion(items, datetime.date(2025, 5, 1), effective)
    assert base == 1850


def test_monthly_portion_matches_annual_for_recurring_items():
    items = [
        {"label": "Tuition", "amount": 1000, "frequency": "MONTHLY"},
        {"label": "Exam", "amount": 3000, "frequency": "TERM"},
    ]
    base, _ = monthly_portion(items, datetime.date(2025, 6, 1), datetime.date(2025, 4, 1))
    assert base * 12 == compute_annual(items)


def test_value_amount():
    assert value_amount(1000, "PERCENTAGE", 12.5) == 125
    assert value_amount(1000, "FIXED", 300) == 300


def test_scholarship_deduction_sums_each_scholarship():
    total, applied = scholarship_deduction(1000, [
        {"name": "Merit", "value_type": "PERCENTAGE", "value": 10},
        {"name": "Sports", "value_type": "FIXED", "value": 50},
    ])
    assert total == 150
    assert [a["deduction"] for a in applied] == [100, 50]


def test_scholarship_deduction_never_exceeds_base():
    total, applied = scholarship_deduction(100, [{"value_type": "FIXED", "value": 500}])
    assert total == 100
    assert applied[0]["deduction"] == 500


def test_compare_items_reports_every_label():
    old = [
        {"label": "Tuition", "amount": 1000, "frequency": "MONTHLY"},
        {"label": "Lab", "amount": 200, "frequency": "ANNUAL"},
        {"label": "Library", "amount": 100, "frequency": "ANNUAL"},
    ]
    new = [
        {"label": "Tuition", "amount": 1200, "frequency": "MONTHLY"},
        {"label": "Library", "amount": 100, "frequency": "ANNUAL"},
        {"label": "Sports", "amount": 300, "frequency": "TERM"},
    ]
    result = compare_items(old, new)

    assert [r["label"] for r in result] == ["Tuition", "Lab", "Library", "Sports"]
    assert [r["change_type"] for r in result] == ["modified", "removed", "unchanged", "added"]
    assert [r["amount_change"] for r in result] == [200, -200, 0, 300]
    assert result[3]["to_frequency"] == "TERM"


def test_change_between():
    change = change_between(12000, 13200)
    assert change == {
        "annual_change": 1200,
        "monthly_change": 100,
        "percentage_change": 10.0,
        "is_increase": True,
    }


def test_change_between_from_zero_has_no_percentage():
    change = change_between(0, 500)
    assert change["percentage_change"] == 0
    assert change["is_increase"] is True


def test_parse_month():
    assert parse_month("2025-04") == datetime.date(2025, 4, 1)
    assert parse_month("2025-04-17") == datetime.date(2025, 4, 1)


@pytest.mark.parametrize("value", ["", "2025-13", "april", "25-04"])
def test_parse_month_rejects_bad_input(value):
    with pytest.raises(ValueError, match="YYYY-MM"):
        parse_month(value)


def test_month_helpers():
    assert month_end(datetime.date(2024, 2, 10)) == datetime.date(2024, 2, 29)
    assert month_key(datetime.date(2025, 11, 1)) == "2025-11"
    assert total_pages(0, 20) == 0
    assert total_pages(41, 20) == 3
