from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session
from datetime import datetime
from typing import List, Optional
import logging

import analytics
import budget_alerts
from database import get_db, Expense, Income, Budget, Notification, User
from schemas import (
    ExpenseCreate,
    ExpenseUpdate,
    ExpenseResponse,
    ExpenseCategory,
    IncomeCreate,
    IncomeResponse,
    BudgetCreate,
    BudgetUpdate,
    BudgetResponse,
    NotificationCreate,
    NotificationResponse,
    DashboardStats,
    MonthlyData,
    CategoryData,
    DailyActivity,
    WindowSummary,
    TimeFilter,
)
from auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter()


def get_now() -> datetime:
    """Wall-clock time for month bucketing; overridden in tests."""
    return datetime.now()


def get_owned(db: Session, model, record_id: int, user: User, label: str):
    record = db.get(model, record_id)
    if not record:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    if record.user_id != user.username:
        logger.warning("User %s tried to access %s %s", user.username, label.lower(), record_id)
        raise HTTPException(status_code=401, detail="User not authorized")
    return record


def user_expenses(db: Session, user: User) -> List[Expense]:
    return (
        db.query(Expense)
        .filter(Expense.user_id == user.username)
        .order_by(Expense.date.desc(), Expense.id.desc())
        .all()
    )


def user_income(db: Session, user: User) -> List[Income]:
    return (
        db.query(Income)
        .filter(Income.user_id == user.username)
        .order_by(Income.date.desc(), Income.id.desc())
        .all()
    )


def budget_response(db: Session, budget: Budget) -> BudgetResponse:
    spent = budget_alerts.compute_spent(
        db, budget.user_id, budget.category, budget.month, budget.year
    )
    response = BudgetResponse.model_validate(budget)
    response.spent = spent
    return response


# Expenses


@router.get("/expenses", response_model=List[ExpenseResponse])
async def get_expenses(
    search: Optional[str] = None,
    category: Optional[ExpenseCategory] = None,
    time_filter: TimeFilter = Query("all", alias="range"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    expenses = user_expenses(db, current_user)
    if search or category or time_filter != "all":
        expenses = analytics.filter_expenses(
            expenses, now, search=search, category=category, time_filter=time_filter
        )
    return expenses


@router.post("/expenses", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED)
async def create_expense(
    expense: ExpenseCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    db_expense = Expense(user_id=current_user.username, **expense.model_dump())
    db.add(db_expense)
    db.commit()

    budget_alerts.evaluate_for_date(
        db, current_user.username, db_expense.category, db_expense.date
    )
    db.refresh(db_expense)
    return db_expense


@router.get("/expenses/{expense_id}", response_model=ExpenseResponse)
async def get_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return get_owned(db, Expense, expense_id, current_user, "Expense")


@router.put("/expenses/{expense_id}", response_model=ExpenseResponse)
async def update_expense(
    expense_id: int,
    changes: ExpenseUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    expense = get_owned(db, Expense, expense_id, current_user, "Expense")

    for field, value in changes.model_dump(exclude_unset=True).items():
        # Only notes may be cleared.
        if value is None and field != "notes":
            continue
        setattr(expense, field, value)
    db.commit()

    budget_alerts.evaluate_for_date(
        db, current_user.username, expense.category, expense.date
    )
    db.refresh(expense)
    return expense


@router.delete("/expenses/{expense_id}")
async def delete_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    expense = get_owned(db, Expense, expense_id, current_user, "Expense")
    db.delete(expense)
    db.commit()
    return {"id": expense_id}


# Income


@router.get("/income", response_model=List[IncomeResponse])
async def get_income(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return user_income(db, current_user)


@router.post("/income", response_model=IncomeResponse, status_code=status.HTTP_201_CREATED)
async def create_income(
    income: IncomeCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    db_income = Income(user_id=current_user.username, **income.model_dump())
    db.add(db_income)
    db.commit()
    db.refresh(db_income)
    return db_income


@router.get("/income/{income_id}", response_model=IncomeResponse)
async def get_income_record(
    income_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return get_owned(db, Income, income_id, current_user, "Income")


@router.delete("/income/{income_id}")
async def delete_income(
    income_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    income = get_owned(db, Income, income_id, current_user, "Income")
    db.delete(income)
    db.commit()
    return {"id": income_id}


# Budgets


@router.get("/budgets", response_model=List[BudgetResponse])
async def get_budgets(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    budgets = (
        db.query(Budget)
        .filter(Budget.user_id == current_user.username)
        .order_by(Budget.year.desc(), Budget.month.desc(), Budget.category)
        .all()
    )
    return [budget_response(db, b) for b in budgets]


@router.post("/budgets", response_model=BudgetResponse, status_code=status.HTTP_201_CREATED)
async def add_or_update_budget(
    budget: BudgetCreate,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    existing_budget = (
        db.query(Budget)
        .filter(
            Budget.user_id == current_user.username,
            Budget.category == budget.category,
            Budget.month == budget.month,
            Budget.year == budget.year,
        )
        .first()
    )

    if existing_budget:
        existing_budget.amount = budget.amount
        db_budget = existing_budget
        response.status_code = status.HTTP_200_OK
    else:
        db_budget = Budget(user_id=current_user.username, **budget.model_dump())
        db.add(db_budget)
    db.commit()
    db.refresh(db_budget)

    budget_alerts.evaluate_budget(
        db, current_user.username, db_budget.category, db_budget.month, db_budget.year
    )
    return budget_response(db, db_budget)


@router.put("/budgets/{budget_id}", response_model=BudgetResponse)
async def update_budget(
    budget_id: int,
    changes: BudgetUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    budget = get_owned(db, Budget, budget_id, current_user, "Budget")

    category = changes.category or budget.category
    month = changes.month if changes.month is not None else budget.month
    year = changes.year if changes.year is not None else budget.year

    if (category, month, year) != (budget.category, budget.month, budget.year):
        duplicate = (
            db.query(Budget)
            .filter(
                Budget.user_id == current_user.username,
                Budget.category == category,
                Budget.month == month,
                Budget.year == year,
                Budget.id != budget_id,
            )
            .first()
        )
        if duplicate:
            raise HTTPException(
                status_code=400,
                detail="Budget for this category and month already exists",
            )

    budget.category = category
    budget.month = month
    budget.year = year
    if changes.amount is not None:
        budget.amount = changes.amount
    db.commit()
    db.refresh(budget)

    budget_alerts.evaluate_budget(
        db, current_user.username, budget.category, budget.month, budget.year
    )
    return budget_response(db, budget)


@router.delete("/budgets/{budget_id}")
async def delete_budget(
    budget_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    budget = get_owned(db, Budget, budget_id, current_user, "Budget")
    db.delete(budget)
    db.commit()
    return {"id": budget_id}


# Notifications


@router.get("/notifications", response_model=List[NotificationResponse])
async def get_notifications(
    unread_only: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(Notification).filter(Notification.user_id == current_user.username)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()


@router.post(
    "/notifications",
    response_model=NotificationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_notification(
    notification: NotificationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    db_notification = Notification(user_id=current_user.username, **notification.model_dump())
    db.add(db_notification)
    db.commit()
    db.refresh(db_notification)
    return db_notification


@router.put("/notifications/read-all")
async def mark_all_notifications_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    updated = (
        db.query(Notification)
        .filter(
            Notification.user_id == current_user.username,
            Notification.is_read.is_(False),
        )
        .update({Notification.is_read: True}, synchronize_session=False)
    )
    db.commit()
    return {"updated": updated}


@router.put("/notifications/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    notification = get_owned(db, Notification, notification_id, current_user, "Notification")
    notification.is_read = True
    db.commit()
    db.refresh(notification)
    return notification


@router.delete("/notifications/{notification_id}")
async def delete_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    notification = get_owned(db, Notification, notification_id, current_user, "Notification")
    db.delete(notification)
    db.commit()
    return {"id": notification_id}


# Analytics


@router.get("/analytics/dashboard", response_model=DashboardStats)
async def get_dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    return analytics.dashboard_stats(
        user_expenses(db, current_user), user_income(db, current_user), now
    )


@router.get("/analytics/monthly", response_model=List[MonthlyData])
async def get_monthly_trend(
    months: int = Query(6, ge=1, le=24),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    return analytics.monthly_trend(
        user_expenses(db, current_user), user_income(db, current_user), now, months=months
    )


@router.get("/analytics/categories", response_model=List[CategoryData])
async def get_category_breakdown(
    time_filter: TimeFilter = Query("this-month", alias="range"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    window = analytics.resolve_window(time_filter, now)
    expenses = [e for e in user_expenses(db, current_user) if window.contains(e)]
    return analytics.category_breakdown(expenses)


@router.get("/analytics/summary", response_model=WindowSummary)
async def get_window_summary(
    time_filter: TimeFilter = Query("30d", alias="range"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    return analytics.window_summary(
        user_expenses(db, current_user), user_income(db, current_user), time_filter, now
    )


@router.get("/analytics/daily", response_model=List[DailyActivity])
async def get_daily_activity(
    days: int = Query(30, ge=1, le=365),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    return analytics.daily_activity(user_expenses(db, current_user), now, days=days)
