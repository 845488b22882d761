import datetime as dt
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from models import (
    AssetCategory,
    AssetType,
    CategoryType,
    DebtType,
    FlowType,
    Frequency,
    TransactionType,
)


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    emoji: str = Field(default="💰", max_length=16)
    color: Optional[str] = Field(default=None, max_length=9)
    type: CategoryType


class TransactionIn(BaseModel):
    date: date
    type: TransactionType
    amount_cents: int = Field(..., gt=0)
    category_id: Optional[int] = None
    description: Optional[str] = Field(default=None, max_length=200)
    is_recurring: bool = False
    flow_type: Optional[FlowType] = None


class IncomeSourceIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    amount_cents: int = Field(..., gt=0)
    frequency: Frequency
    category: str = Field(default="other", min_length=1, max_length=50)
    is_primary: bool = False
    description: Optional[str] = None
    is_active: bool = True
    start_date: date
    end_date: Optional[dt.date] = None


class RecurringExpenseIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    amount_cents: int = Field(..., gt=0)
    frequency: Frequency
    category: str = Field(default="other", min_length=1, max_length=50)
    due_day: Optional[int] = Field(default=None, ge=1, le=31)
    description: Optional[str] = None
    is_active: bool = True
    is_essential: bool = False
    start_date: date
    end_date: Optional[dt.date] = None
    last_paid: Optional[dt.date] = None


class AssetIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    value_cents: int = Field(..., ge=0)
    type: AssetType
    category: AssetCategory = AssetCategory.other
    description: Optional[str] = None
    purchase_date: Optional[date] = None


class DebtIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    creditor: str = Field(..., min_length=1, max_length=120)
    total_amount_cents: int = Field(..., ge=0)
    remaining_amount_cents: int = Field(..., ge=0)
    monthly_payment_cents: int = Field(default=0, ge=0)
    annual_rate: float = Field(default=0.0, ge=0)
    type: DebtType
    description: Optional[str] = None
    start_date: date
    end_date: Optional[dt.date] = None

    @model_validator(mode="after")
    def _remaining_within_total(self) -> "DebtIn":
        if self.remaining_amount_cents > self.total_amount_cents:
            raise ValueError("Remaining amount cannot exceed total amount")
        return self


class AccountIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    current_balance_cents: int = 0
    is_active: bool = True
