"""
Pydantic schemas for API requests and response helpers
"""

from decimal import Decimal
from datetime import datetime
from typing import Optional, Any
from pydantic import BaseModel, Field


def money(value: Optional[Decimal]) -> Optional[float]:
    """Decimal amounts are returned to clients as JSON numbers"""
    if value is None:
        return None
    return float(value)


def timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def enum_value(value: Any) -> Any:
    return value.value if value is not None and hasattr(value, "value") else value


# User schemas
class CreateUserRequest(BaseModel):
    email: str
    password: str
    name: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class ForgotPasswordRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    token: str
    password: str


class UpdateProfileRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


# Account schemas
class CreateAccountRequest(BaseModel):
    name: str
    type: str = Field(..., description="Free text account type (checking, savings, wallet...)")
    balance: Optional[Decimal] = None


class UpdateAccountRequest(BaseModel):
    name: Optional[str] = None
    type: Optional[str] = None
    balance: Optional[Decimal] = None


# Category schemas
class CreateCategoryRequest(BaseModel):
    name: str
    color: Optional[str] = Field(None, description="Hex color, defaults to gray")


class UpdateCategoryRequest(BaseModel):
    name: Optional[str] = None
    color: Optional[str] = None


# Debtor schemas
class CreateDebtorRequest(BaseModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None


class UpdateDebtorRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


# Debt schemas
class CreateDebtRequest(BaseModel):
    debtor_id: str
    description: str
    total_amount: Decimal
    due_date: Optional[str] = None  # ISO date string
    category_id: Optional[str] = None
    account_id: Optional[str] = None


class UpdateDebtRequest(BaseModel):
    description: Optional[str] = None
    total_amount: Optional[Decimal] = None
    due_date: Optional[str] = None
    status: Optional[str] = Field(None, description="PENDING or PAID")
    category_id: Optional[str] = None
    account_id: Optional[str] = None


class CreatePaymentRequest(BaseModel):
    amount: Decimal
    payment_date: Optional[str] = None  # defaults to now
    notes: Optional[str] = None


# Transaction schemas
class CreateTransactionRequest(BaseModel):
    description: str
    amount: Decimal
    date: str
    type: str = Field(..., description="INCOME or EXPENSE")
    category_id: Optional[str] = None
    account_id: Optional[str] = None
    is_recurring: bool = False
    subscription_frequency: Optional[str] = Field(None, description="DAILY, WEEKLY, MONTHLY or YEARLY")
    debt_id: Optional[str] = None
    is_installment_plan: bool = False
    installment_count: Optional[int] = None
    installment_frequency: Optional[str] = Field(None, description="MONTHLY or WEEKLY")
    first_installment_date: Optional[str] = None


class UpdateTransactionRequest(BaseModel):
    description: Optional[str] = None
    amount: Optional[Decimal] = None
    date: Optional[str] = None
    type: Optional[str] = None
    category_id: Optional[str] = None
    account_id: Optional[str] = None


class PartialPaymentRequest(BaseModel):
    amount: Decimal


# Subscription schemas
class CreateSubscriptionRequest(BaseModel):
    name: str
    description: Optional[str] = None
    amount: Decimal
    type: str = Field(..., description="INCOME or EXPENSE")
    frequency: str = Field(..., description="DAILY, WEEKLY, MONTHLY or YEARLY")
    start_date: str
    end_date: Optional[str] = None
    category_id: Optional[str] = None
    account_id: Optional[str] = None


class UpdateSubscriptionRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[Decimal] = None
    type: Optional[str] = None
    frequency: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    is_active: Optional[bool] = None
    category_id: Optional[str] = None
    account_id: Optional[str] = None
