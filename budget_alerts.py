"""
Budget threshold alerts.

Spend for a budget period is always recomputed from the expense records, so
the ``spent`` figure can never drift from missed updates or deletes. Alerts
are keyed on (user, category, month, year, severity) and only one unread
alert per key exists at a time.
"""
import calendar
import logging
from datetime import date, datetime
from typing import Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from database import Budget, Expense, Notification

logger = logging.getLogger(__name__)

NEAR_LIMIT_RATIO = 0.9

OK = "ok"
NEAR_LIMIT = "near-limit"
EXCEEDED = "exceeded"

# status -> (notification type, title, message template)
ALERTS = {
    EXCEEDED: (
        "warning",
        "Budget Exceeded",
        "You have exceeded your {category} budget for {period}. Budget: {budget}, Spent: {spent}",
    ),
    NEAR_LIMIT: (
        "info",
        "Budget Alert",
        "You are close to your {category} budget for {period}. Budget: {budget}, Spent: {spent}",
    ),
}


def month_bounds(month: int, year: int) -> Tuple[date, date]:
    """First and last day of a budget period. ``month`` is 0-based."""
    last_day = calendar.monthrange(year, month + 1)[1]
    return date(year, month + 1, 1), date(year, month + 1, last_day)


def compute_spent(db: Session, user_id: str, category: str, month: int, year: int) -> float:
    start, end = month_bounds(month, year)
    total = (
        db.query(func.sum(Expense.amount))
        .filter(
            Expense.user_id == user_id,
            Expense.category == category,
            Expense.date >= start,
            Expense.date <= end,
        )
        .scalar()
    )
    return float(total or 0.0)


def classify(spent: float, limit: float) -> str:
    if spent > limit:
        return EXCEEDED
    if spent > limit * NEAR_LIMIT_RATIO:
        return NEAR_LIMIT
    return OK


def format_amount(value: float) -> str:
    return f"{value:.2f}"


def notify_once(
    db: Session,
    user_id: str,
    kind: str,
    category: str,
    month: int,
    year: int,
    message: str,
) -> bool:
    """
    Create a budget alert unless an unread one for the same period and
    severity already exists. Returns True when a notification was created.
    """
    notification_type, title, _ = ALERTS[kind]

    existing = (
        db.query(Notification)
        .filter(
            Notification.user_id == user_id,
            Notification.type == notification_type,
            Notification.category == category,
            Notification.month == month,
            Notification.year == year,
            Notification.is_read.is_(False),
        )
        .first()
    )
    if existing:
        logger.debug(
            "Skipping %s alert for %s %s %d/%d: unread notification %s exists",
            kind, user_id, category, month + 1, year, existing.id,
        )
        return False

    db.add(
        Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=notification_type,
            category=category,
            month=month,
            year=year,
        )
    )
    db.commit()
    logger.info("Created %s alert for %s %s %d/%d", kind, user_id, category, month + 1, year)
    return True


def evaluate_budget(
    db: Session, user_id: str, category: str, month: int, year: int
) -> Optional[str]:
    """
    Compare the period's spend against its budget and raise an alert when it
    is near or over the limit.

    Returns the budget status, or None when there is no budget for the period
    or the evaluation failed. Never raises: a failed evaluation must not undo
    the expense write that triggered it.
    """
    try:
        budget = (
            db.query(Budget)
            .filter(
                Budget.user_id == user_id,
                Budget.category == category,
                Budget.month == month,
                Budget.year == year,
            )
            .first()
        )
        if not budget:
            return None

        spent = compute_spent(db, user_id, category, month, year)
        status = classify(spent, budget.amount)

        if status in ALERTS:
            _, _, template = ALERTS[status]
            message = template.format(
                category=category,
                period=f"{month + 1}/{year}",
                budget=format_amount(budget.amount),
                spent=format_amount(spent),
            )
            notify_once(db, user_id, status, category, month, year, message)
        return status
    except Exception:
        logger.exception(
            "Budget evaluation failed for %s %s %d/%d", user_id, category, month + 1, year
        )
        db.rollback()
        return None


def evaluate_for_date(db: Session, user_id: str, category: str, when: date) -> Optional[str]:
    return evaluate_budget(db, user_id, category, when.month - 1, when.year)


def sweep_budgets(db: Session, now: datetime) -> int:
    """Re-evaluate every budget of the current calendar month."""
    month, year = now.month - 1, now.year
    periods = (
        db.query(Budget.user_id, Budget.category)
        .filter(Budget.month == month, Budget.year == year)
        .all()
    )
    alerting = 0
    for user_id, category in periods:
        status = evaluate_budget(db, user_id, category, month, year)
        if status in ALERTS:
            alerting += 1
    logger.info("Budget sweep for %d/%d: %d budgets, %d over threshold", month + 1, year, len(periods), alerting)
    return alerting
