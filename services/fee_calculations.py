"""
Fee Calculations - pure arithmetic shared by the fee routers
No database access here: annualising line items, monthly portions,
scholarship deductions and version-to-version item diffs.
"""
import calendar
import datetime
from config import settings

MONTHS_PER_YEAR = 12


def money(value) -> float:
    """Round to 2 decimal places (paise / cents)"""
    return round(float(value or 0), 2)


def item_frequency(item) -> str:
    return (item.get("frequency") or "MONTHLY").upper()


def annual_amount(amount, frequency, terms_per_year=None) -> float:
    """Yearly value of a single line item"""
    terms = terms_per_year or settings.TERMS_PER_YEAR
    amount = float(amount or 0)
    frequency = (frequency or "MONTHLY").upper()

    if frequency == "MONTHLY":
        return amount * MONTHS_PER_YEAR
    if frequency == "TERM":
        return amount * terms
    # ANNUAL, ONE_TIME and anything unknown count once a year
    return amount


def compute_annual(items, terms_per_year=None) -> float:
    """Total annual fee for a list of item dicts"""
    return money(sum(annual_amount(i.get("amount"), item_frequency(i), terms_per_year) for i in items))


def monthly_portion(items, period_month, effective_month=None, terms_per_year=None):
    """
    Split the yearly items into what is payable for one month.
    Returns (base, breakdown). ONE_TIME items are charged only in the
    month the structure version became effective.
    """
    terms = terms_per_year or settings.TERMS_PER_YEAR
    period_month = month_start(period_month)
    effective_month = month_start(effective_month) if effective_month else None

    base = 0.0
    breakdown = []
    for it in items:
        amount = float(it.get("amount") or 0)
        frequency = item_frequency(it)

        if frequency == "MONTHLY":
            portion = amount
        elif frequency == "ANNUAL":
            portion = amount / MONTHS_PER_YEAR
        elif frequency == "TERM":
            portion = amount * terms / MONTHS_PER_YEAR
        elif frequency == "ONE_TIME":
            portion = amount if effective_month == period_month else 0.0
        else:
            portion = amount

        portion = money(portion)
        base += portion
        breakdown.append({
            "category": it.get("category") or "General",
            "label": it.get("label"),
            "frequency": frequency,
            "base": money(amount),
            "monthly_portion": portion,
        })

    return money(base), breakdown


def value_amount(base, value_type, value) -> float:
    if (value_type or "").upper() == "PERCENTAGE":
        return money(float(base) * float(value or 0) / 100)
    return money(value)


def scholarship_deduction(base, scholarships):
    """
    scholarships: iterable of dicts with value_type / value.
    Returns (total, per-scholarship deductions). Total never exceeds base.
    """
    total = 0.0
    applied = []
    for s in scholarships:
        deduction = value_amount(base, s.get("value_type"), s.get("value"))
        total += deduction
        applied.append(dict(s, deduction=deduction))
    return money(min(total, float(base))), applied


def compare_items(from_items, to_items):
    """
    Item level diff between two snapshots, matched by label.
    Every label from either side is reported once, in first-seen order.
    """
    from_map = {i.get("label"): i for i in from_items}
    to_map = {i.get("label"): i for i in to_items}

    labels = list(from_map)
    labels += [label for label in to_map if label not in from_map]

    result = []
    for label in labels:
        old = from_map.get(label)
        new = to_map.get(label)
        old_amount = float(old.get("amount") or 0) if old else 0.0
        new_amount = float(new.get("amount") or 0) if new else 0.0

        if old is None:
            change_type = "added"
            amount_change = new_amount
        elif new is None:
            change_type = "removed"
            amount_change = -old_amount
        else:
            amount_change = new_amount - old_amount
            change_type = "modified" if amount_change != 0 else "unchanged"

        result.append({
            "label": label,
            "from_amount": old_amount,
            "to_amount": new_amount,
            "amount_change": money(amount_change),
            "change_type": change_type,
            "from_frequency": item_frequency(old) if old else "MONTHLY",
            "to_frequency": item_frequency(new) if new else "MONTHLY",
        })
    return result


def change_between(prev_annual, annual):
    annual_change = money(annual - prev_annual)
    percentage = (annual_change / prev_annual * 100) if prev_annual > 0 else 0
    return {
        "annual_change": annual_change,
        "monthly_change": money(annual_change / MONTHS_PER_YEAR),
        "percentage_change": round(percentage, 2),
        "is_increase": annual_change > 0,
    }


# =====================
# MONTH HELPERS
# =====================

def parse_month(value: str) -> datetime.date:
    """'2025-04' (or '2025-04-15') -> date(2025, 4, 1); raises ValueError"""
    if not value:
        raise ValueError("Invalid month format. Use YYYY-MM")
    try:
        parsed = datetime.datetime.strptime(value[:7], "%Y-%m")
    except ValueError:
        raise ValueError("Invalid month format. Use YYYY-MM")
    return parsed.date()


def month_start(d: datetime.date) -> datetime.date:
    return d.replace(day=1)


def month_end(d: datetime.date) -> datetime.date:
    last_day = calendar.monthrange(d.year, d.month)[1]
    return d.replace(day=last_day)


def month_key(d: datetime.date) -> str:
    return d.strftime("%Y-%m")


def current_month() -> datetime.date:
    return month_start(datetime.date.today())


def total_pages(total, page_size) -> int:
    return (total + page_size - 1) // page_size if page_size else 0
