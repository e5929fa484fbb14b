from pydantic import BaseModel, ConfigDict, Field, constr, model_validator
from pydantic.alias_generators import to_camel
from datetime import date, datetime
from datetime import date as DateType
from typing import List, Literal, Optional

ExpenseCategory = Literal[
    "food",
    "transport",
    "entertainment",
    "shopping",
    "utilities",
    "healthcare",
    "education",
    "travel",
    "rent",
    "subscriptions",
    "other",
]
RecurringFrequency = Literal["weekly", "biweekly", "monthly", "yearly"]
NotificationType = Literal["info", "success", "warning", "error"]
TimeFilter = Literal["7d", "30d", "90d", "1y", "all", "this-month"]


class CamelModel(BaseModel):
    """Serializes as camelCase, accepts both camelCase and snake_case on input."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class UserBase(BaseModel):
    username: constr(min_length=3, max_length=50)


class UserCreate(UserBase):
    password: constr(min_length=6)


class UserLogin(UserBase):
    password: str


class Token(CamelModel):
    access_token: str
    token_type: str = "bearer"


# Expenses


class ExpenseCreate(CamelModel):
    amount: float = Field(gt=0)
    category: ExpenseCategory
    description: constr(min_length=1)
    date: date
    notes: Optional[str] = None
    is_worthy: bool = True
    tags: List[str] = []


class ExpenseUpdate(CamelModel):
    amount: Optional[float] = Field(default=None, gt=0)
    category: Optional[ExpenseCategory] = None
    description: Optional[constr(min_length=1)] = None
    date: Optional[DateType] = None
    notes: Optional[str] = None
    is_worthy: Optional[bool] = None
    tags: Optional[List[str]] = None


class ExpenseResponse(ExpenseCreate):
    id: int
    user_id: str
    is_worthy: Optional[bool] = True
    tags: Optional[List[str]] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Income


class IncomeCreate(CamelModel):
    amount: float = Field(gt=0)
    source: constr(min_length=1)
    description: constr(min_length=1)
    date: date
    is_recurring: bool = False
    recurring_frequency: Optional[RecurringFrequency] = None

    @model_validator(mode="after")
    def check_frequency(self):
        if self.is_recurring and self.recurring_frequency is None:
            raise ValueError("recurringFrequency is required for recurring income")
        if not self.is_recurring:
            self.recurring_frequency = None
        return self


class IncomeResponse(CamelModel):
    id: int
    user_id: str
    amount: float
    source: str
    description: str
    date: date
    is_recurring: bool = False
    recurring_frequency: Optional[RecurringFrequency] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Budgets


class BudgetCreate(CamelModel):
    category: ExpenseCategory
    amount: float = Field(ge=0)
    month: int = Field(ge=0, le=11)
    year: int = Field(ge=1970, le=9999)


class BudgetUpdate(CamelModel):
    category: Optional[ExpenseCategory] = None
    amount: Optional[float] = Field(default=None, ge=0)
    month: Optional[int] = Field(default=None, ge=0, le=11)
    year: Optional[int] = Field(default=None, ge=1970, le=9999)


class BudgetResponse(BudgetCreate):
    id: int
    user_id: str
    spent: float = 0.0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Notifications


class NotificationCreate(CamelModel):
    title: constr(min_length=1)
    message: constr(min_length=1)
    type: NotificationType = "info"


class NotificationResponse(NotificationCreate):
    id: int
    user_id: str
    is_read: bool = False
    created_at: Optional[datetime] = None


# Analytics


class CategoryAmount(CamelModel):
    category: str
    amount: float


class Insight(CamelModel):
    title: str
    description: str
    type: Literal["positive", "warning", "info"]


class DashboardStats(CamelModel):
    total_expenses: float
    total_income: float
    savings: float
    savings_rate: float
    expense_change: float
    income_change: float
    highest_category: CategoryAmount
    transaction_count: int
    insights: List[Insight] = []


class MonthlyData(CamelModel):
    month: str
    year: int
    expenses: int
    income: int


class CategoryData(CamelModel):
    category: str
    name: str
    amount: float
    percentage: float
    color: str


class DailyActivity(CamelModel):
    date: date
    amount: float


class WorthySplit(CamelModel):
    worthy_total: float
    not_worthy_total: float
    worthy_percentage: float
    not_worthy_percentage: float


class IncomeSplit(CamelModel):
    recurring_total: float
    one_time_total: float


class WindowSummary(CamelModel):
    range: TimeFilter
    start: Optional[date] = None
    end: Optional[date] = None
    total_expenses: float
    total_income: float
    savings: float
    savings_rate: float
    expense_change: float
    income_change: float
    avg_daily_spend: float
    transaction_count: int
    largest_expense: float
    worthy: WorthySplit
    income_split: IncomeSplit
    categories: List[CategoryData]


# Import / export


class ImportPayload(CamelModel):
    expenses: Optional[List[ExpenseCreate]] = None
    income: Optional[List[IncomeCreate]] = None
    budgets: Optional[List[BudgetCreate]] = None


class ImportResult(CamelModel):
    message: str
    expenses: int = 0
    income: int = 0
    budgets: int = 0
    skipped_budgets: int = 0
