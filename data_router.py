from fastapi import APIRouter, Depends, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.orm import Session
from datetime import datetime
import csv
import logging
from io import StringIO

from database import get_db, Expense, Income, Budget, User
from schemas import (
    ExpenseResponse,
    IncomeResponse,
    BudgetResponse,
    ImportPayload,
    ImportResult,
)
from auth import get_current_user
from router import get_now, user_expenses, user_income, budget_response

logger = logging.getLogger(__name__)

data_router = APIRouter()


@data_router.get("/export")
async def export_data(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    """
    Exports every expense, income and budget record of the user as a JSON
    attachment. The file can be fed back to ``POST /api/data/import``.
    """
    budgets = db.query(Budget).filter(Budget.user_id == current_user.username).all()
    data = {
        "expenses": [
            ExpenseResponse.model_validate(e).model_dump(by_alias=True)
            for e in user_expenses(db, current_user)
        ],
        "income": [
            IncomeResponse.model_validate(i).model_dump(by_alias=True)
            for i in user_income(db, current_user)
        ],
        "budgets": [budget_response(db, b).model_dump(by_alias=True) for b in budgets],
        "exportDate": now,
    }
    return JSONResponse(
        content=jsonable_encoder(data),
        headers={
            "Content-Disposition": "attachment; filename=expense_tracker_data.json"
        },
    )


@data_router.get("/export-csv")
async def export_csv_report(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Exports a tabular report as CSV containing:
    - All expenses
    - All income
    """
    csv_data = StringIO()
    writer = csv.writer(csv_data)

    writer.writerow(["Expenses"])
    writer.writerow(["Date", "Category", "Description", "Amount"])
    for e in user_expenses(db, current_user):
        writer.writerow([e.date.isoformat(), e.category, e.description, f"{e.amount:.2f}"])

    writer.writerow([])
    writer.writerow(["Income"])
    writer.writerow(["Date", "Source", "Description", "Amount"])
    for i in user_income(db, current_user):
        writer.writerow([i.date.isoformat(), i.source, i.description, f"{i.amount:.2f}"])

    csv_data.seek(0)

    return StreamingResponse(
        iter([csv_data.getvalue()]),
        media_type="text/csv",
        headers={
            "Content-Disposition": "attachment; filename=expense_tracker_report.csv"
        },
    )


@data_router.post("/import", response_model=ImportResult)
async def import_data(
    payload: ImportPayload,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    # Identifiers and owners in the payload are dropped by the schemas;
    # every record is re-owned by the importing user.
    if payload.expenses is None and payload.income is None and payload.budgets is None:
        raise HTTPException(status_code=400, detail="No data provided to import")

    result = ImportResult(message="Data imported successfully")

    if payload.expenses:
        db.add_all(
            Expense(user_id=current_user.username, **e.model_dump()) for e in payload.expenses
        )
        result.expenses = len(payload.expenses)

    if payload.income:
        db.add_all(
            Income(user_id=current_user.username, **i.model_dump()) for i in payload.income
        )
        result.income = len(payload.income)

    for b in payload.budgets or []:
        exists = (
            db.query(Budget)
            .filter(
                Budget.user_id == current_user.username,
                Budget.category == b.category,
                Budget.month == b.month,
                Budget.year == b.year,
            )
            .first()
        )
        if exists:
            result.skipped_budgets += 1
            continue
        db.add(Budget(user_id=current_user.username, **b.model_dump()))
        db.flush()
        result.budgets += 1

    db.commit()
    logger.info(
        "Imported %d expenses, %d income, %d budgets for %s (%d budgets skipped)",
        result.expenses, result.income, result.budgets,
        current_user.username, result.skipped_budgets,
    )
    return result
