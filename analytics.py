"""
Derived analytics over already-fetched expense and income records.

Every function here is pure: records come in, plain dicts come out, and the
current time is always passed in as ``now``. Records only need ``amount``,
``date`` and, for expenses, ``category`` / ``is_worthy`` / ``description`` /
``notes`` attributes, so ORM rows and pydantic models both work.
"""
import calendar
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional

from dateutil.relativedelta import relativedelta

# category -> (display name, chart color)
CATEGORIES = OrderedDict(
    [
        ("food", ("Food & Dining", "hsl(38, 92%, 50%)")),
        ("transport", ("Transportation", "hsl(238, 84%, 67%)")),
        ("entertainment", ("Entertainment", "hsl(280, 84%, 60%)")),
        ("shopping", ("Shopping", "hsl(340, 82%, 52%)")),
        ("utilities", ("Utilities", "hsl(200, 98%, 39%)")),
        ("healthcare", ("Healthcare", "hsl(0, 84%, 60%)")),
        ("education", ("Education", "hsl(160, 84%, 39%)")),
        ("travel", ("Travel", "hsl(180, 70%, 45%)")),
        ("rent", ("Rent & Housing", "hsl(25, 95%, 53%)")),
        ("subscriptions", ("Subscriptions", "hsl(260, 67%, 55%)")),
        ("other", ("Other", "hsl(220, 9%, 46%)")),
    ]
)

WINDOW_DAYS = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}
TIME_FILTERS = tuple(WINDOW_DAYS) + ("this-month", "all")


def category_info(category: str):
    return CATEGORIES.get(category, CATEGORIES["other"])


def round_half_up(value: float, digits: int = 0) -> float:
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def _total(records: Iterable) -> float:
    return sum(r.amount for r in records)


def _in_month(record, month: int, year: int) -> bool:
    d = _as_date(record.date)
    return d.month == month and d.year == year


def percent_change(current: float, previous: float) -> float:
    # A 0 -> N increase is reported as no change.
    if previous > 0:
        return (current - previous) / previous * 100
    return 0.0


def category_totals(expenses: Iterable) -> Dict[str, float]:
    """Sum per category, keyed in first-encountered order."""
    totals: Dict[str, float] = {}
    for e in expenses:
        totals[e.category] = totals.get(e.category, 0.0) + e.amount
    return totals


# Dashboard


def dashboard_stats(expenses: List, incomes: List, now: datetime) -> dict:
    """Current calendar month against the previous one."""
    previous = date(now.year, now.month, 1) - relativedelta(months=1)

    current_expenses = [e for e in expenses if _in_month(e, now.month, now.year)]
    last_expenses = [e for e in expenses if _in_month(e, previous.month, previous.year)]
    current_income = [i for i in incomes if _in_month(i, now.month, now.year)]
    last_income = [i for i in incomes if _in_month(i, previous.month, previous.year)]

    total_expenses = _total(current_expenses)
    total_income = _total(current_income)
    savings = total_income - total_expenses
    savings_rate = savings / total_income * 100 if total_income > 0 else 0.0

    highest = {"category": "other", "amount": 0.0}
    for category, amount in category_totals(current_expenses).items():
        if amount > highest["amount"]:
            highest = {"category": category, "amount": amount}

    stats = {
        "total_expenses": total_expenses,
        "total_income": total_income,
        "savings": savings,
        "savings_rate": savings_rate,
        "expense_change": percent_change(total_expenses, _total(last_expenses)),
        "income_change": percent_change(total_income, _total(last_income)),
        "highest_category": highest,
        "transaction_count": len(current_expenses),
    }
    stats["insights"] = insights(stats)
    return stats


def insights(stats: dict) -> List[dict]:
    found = []
    if stats["savings_rate"] > 20:
        found.append(
            {
                "title": "Great savings rate!",
                "description": f"You're saving {stats['savings_rate']:.0f}% of your income this month.",
                "type": "positive",
            }
        )
    elif stats["savings_rate"] < 0:
        found.append(
            {
                "title": "Spending exceeds income",
                "description": f"You've spent {abs(stats['savings']):.2f} more than earned.",
                "type": "warning",
            }
        )

    if stats["expense_change"] > 10:
        found.append(
            {
                "title": "Spending increased",
                "description": f"Your expenses are up {stats['expense_change']:.1f}% from last month.",
                "type": "warning",
            }
        )
    elif stats["expense_change"] < -10:
        found.append(
            {
                "title": "Spending decreased",
                "description": f"Great job! Expenses are down {abs(stats['expense_change']):.1f}%.",
                "type": "positive",
            }
        )

    highest = stats["highest_category"]
    if highest["amount"] > 0:
        name = category_info(highest["category"])[0]
        found.append(
            {
                "title": f"Highest spending: {name}",
                "description": f"You've spent {highest['amount']:.2f} on {name.lower()}.",
                "type": "info",
            }
        )
    return found


# Trends and breakdowns


def monthly_trend(expenses: List, incomes: List, now: datetime, months: int = 6) -> List[dict]:
    """Trailing ``months`` calendar months, oldest first, ending with the current one."""
    expense_totals: Dict[tuple, float] = {}
    income_totals: Dict[tuple, float] = {}
    for e in expenses:
        d = _as_date(e.date)
        expense_totals[(d.year, d.month)] = expense_totals.get((d.year, d.month), 0.0) + e.amount
    for i in incomes:
        d = _as_date(i.date)
        income_totals[(d.year, d.month)] = income_totals.get((d.year, d.month), 0.0) + i.amount

    anchor = date(now.year, now.month, 1)
    series = []
    for offset in range(months - 1, -1, -1):
        first = anchor - relativedelta(months=offset)
        key = (first.year, first.month)
        series.append(
            {
                "month": calendar.month_abbr[first.month],
                "year": first.year,
                "expenses": int(round_half_up(expense_totals.get(key, 0.0))),
                "income": int(round_half_up(income_totals.get(key, 0.0))),
            }
        )
    return series


def category_breakdown(expenses: Iterable) -> List[dict]:
    totals = category_totals(expenses)
    grand_total = sum(totals.values())

    rows = []
    for category, amount in totals.items():
        name, color = category_info(category)
        rows.append(
            {
                "category": category,
                "name": name,
                "amount": round_half_up(amount, 2),
                "percentage": round_half_up(amount / grand_total * 100, 1) if grand_total > 0 else 0.0,
                "color": color,
            }
        )
    rows.sort(key=lambda row: row["amount"], reverse=True)
    return rows


def worthy_split(expenses: Iterable) -> dict:
    worthy_total = 0.0
    not_worthy_total = 0.0
    for e in expenses:
        # Unset counts as worthy.
        if e.is_worthy is False:
            not_worthy_total += e.amount
        else:
            worthy_total += e.amount
    total = worthy_total + not_worthy_total
    return {
        "worthy_total": worthy_total,
        "not_worthy_total": not_worthy_total,
        "worthy_percentage": worthy_total / total * 100 if total > 0 else 0.0,
        "not_worthy_percentage": not_worthy_total / total * 100 if total > 0 else 0.0,
    }


def income_split(incomes: Iterable) -> dict:
    recurring_total = 0.0
    one_time_total = 0.0
    for i in incomes:
        if i.is_recurring:
            recurring_total += i.amount
        else:
            one_time_total += i.amount
    return {"recurring_total": recurring_total, "one_time_total": one_time_total}


def daily_activity(expenses: Iterable, now: datetime, days: int = 30) -> List[dict]:
    today = _as_date(now)
    totals: Dict[date, float] = {}
    for e in expenses:
        d = _as_date(e.date)
        totals[d] = totals.get(d, 0.0) + e.amount
    return [
        {"date": day, "amount": totals.get(day, 0.0)}
        for day in (today - timedelta(days=offset) for offset in range(days - 1, -1, -1))
    ]


# Time windows


@dataclass
class Window:
    """
    A reporting window and the window it is compared against.

    Bounds are inclusive dates; None means unbounded. A window without
    ``previous_start`` has nothing to compare against.
    """

    start: Optional[date] = None
    end: Optional[date] = None
    previous_start: Optional[date] = None
    previous_end: Optional[date] = None

    def contains(self, record) -> bool:
        d = _as_date(record.date)
        if self.start is not None and d < self.start:
            return False
        if self.end is not None and d > self.end:
            return False
        return True

    def previous_contains(self, record) -> bool:
        d = _as_date(record.date)
        return self.previous_start <= d <= self.previous_end


def resolve_window(time_filter: str, now: datetime) -> Window:
    if time_filter in WINDOW_DAYS:
        length = timedelta(days=WINDOW_DAYS[time_filter])
        start = _as_date(now - length)
        return Window(
            start=start,
            previous_start=start - length,
            previous_end=start - timedelta(days=1),
        )
    if time_filter == "this-month":
        first = date(now.year, now.month, 1)
        last = first + relativedelta(months=1) - timedelta(days=1)
        previous_first = first - relativedelta(months=1)
        return Window(
            start=first,
            end=last,
            previous_start=previous_first,
            previous_end=first - timedelta(days=1),
        )
    if time_filter == "all":
        return Window()
    raise ValueError(f"Unknown time filter: {time_filter}")


def _window_length(time_filter: str, expenses: List, now: datetime) -> int:
    if time_filter in WINDOW_DAYS:
        return WINDOW_DAYS[time_filter]
    if time_filter == "this-month":
        return now.day
    if not expenses:
        return 0
    earliest = min(_as_date(e.date) for e in expenses)
    return max((_as_date(now) - earliest).days + 1, 1)


def window_summary(expenses: List, incomes: List, time_filter: str, now: datetime) -> dict:
    window = resolve_window(time_filter, now)
    window_expenses = [e for e in expenses if window.contains(e)]
    window_income = [i for i in incomes if window.contains(i)]

    total_expenses = _total(window_expenses)
    total_income = _total(window_income)
    savings = total_income - total_expenses

    expense_change = income_change = 0.0
    if window.previous_start is not None:
        expense_change = percent_change(
            total_expenses, _total(e for e in expenses if window.previous_contains(e))
        )
        income_change = percent_change(
            total_income, _total(i for i in incomes if window.previous_contains(i))
        )

    days = _window_length(time_filter, window_expenses, now)

    return {
        "range": time_filter,
        "start": window.start,
        "end": window.end,
        "total_expenses": total_expenses,
        "total_income": total_income,
        "savings": savings,
        "savings_rate": savings / total_income * 100 if total_income > 0 else 0.0,
        "expense_change": expense_change,
        "income_change": income_change,
        "avg_daily_spend": total_expenses / days if days else 0.0,
        "transaction_count": len(window_expenses),
        "largest_expense": max((e.amount for e in window_expenses), default=0.0),
        "worthy": worthy_split(window_expenses),
        "income_split": income_split(window_income),
        "categories": category_breakdown(window_expenses),
    }


def filter_expenses(
    expenses: Iterable,
    now: datetime,
    search: Optional[str] = None,
    category: Optional[str] = None,
    time_filter: str = "all",
) -> List:
    window = resolve_window(time_filter, now)
    query = search.lower() if search else None

    matched = []
    for e in expenses:
        if category and category != "all" and e.category != category:
            continue
        if query and not (
            query in (e.description or "").lower()
            or query in e.category.lower()
            or query in (e.notes or "").lower()
        ):
            continue
        if not window.contains(e):
            continue
        matched.append(e)
    return matched
