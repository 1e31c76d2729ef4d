"""
Transaction, installment and summary endpoints
"""

from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from .auth import FinanceSystem, get_finance_system, get_current_user
from .schemas import (
    CreateTransactionRequest, UpdateTransactionRequest, PartialPaymentRequest,
    money, timestamp, enum_value
)
from ..installments import TransactionInstallment
from ..transactions import Transaction
from ..summary import FinancialSummary
from ..users import User


router = APIRouter()


def installment_to_dict(installment: TransactionInstallment) -> dict:
    return {
        "id": installment.id,
        "installment_number": installment.installment_number,
        "amount": money(installment.amount),
        "due_date": timestamp(installment.due_date),
        "status": installment.status.value,
        "paid_date": timestamp(installment.paid_date)
    }


def transaction_to_dict(transaction, installments: Optional[List[TransactionInstallment]] = None) -> dict:
    """Serialize a stored or virtual transaction"""
    data = {
        "id": transaction.id,
        "description": transaction.description,
        "amount": money(transaction.amount),
        "date": timestamp(transaction.date),
        "type": transaction.type.value,
        "category_id": transaction.category_id,
        "account_id": transaction.account_id,
        "is_recurring": transaction.is_recurring,
        "subscription_id": transaction.subscription_id,
        "is_virtual": getattr(transaction, "is_virtual", False)
    }
    if isinstance(transaction, Transaction):
        data.update({
            "is_installment_plan": transaction.is_installment_plan,
            "installment_count": transaction.installment_count,
            "installment_frequency": enum_value(transaction.installment_frequency),
            "installment_amount": money(transaction.installment_amount),
            "first_installment_date": timestamp(transaction.first_installment_date),
            "created_at": timestamp(transaction.created_at)
        })
    if installments is not None:
        data["installments"] = [installment_to_dict(i) for i in installments]
    return data


def summary_to_dict(summary: FinancialSummary) -> dict:
    return {
        "total_income": money(summary.total_income),
        "total_expenses": money(summary.total_expenses),
        "balance": money(summary.balance),
        "transaction_count": summary.transaction_count
    }


def _with_installments(system: FinanceSystem, transaction) -> dict:
    if isinstance(transaction, Transaction) and transaction.is_installment_plan:
        return transaction_to_dict(transaction, system.transaction_manager.get_installments(transaction.id))
    return transaction_to_dict(transaction)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_transaction(
    request: CreateTransactionRequest,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    """Create a transaction, optionally as installment plan, recurring or debt payment"""
    transaction = system.transaction_manager.create_transaction(
        user_id=user.id,
        description=request.description,
        amount=request.amount,
        date=request.date,
        type=request.type,
        category_id=request.category_id,
        account_id=request.account_id,
        is_recurring=request.is_recurring,
        subscription_frequency=request.subscription_frequency,
        debt_id=request.debt_id,
        is_installment_plan=request.is_installment_plan,
        installment_count=request.installment_count,
        installment_frequency=request.installment_frequency,
        first_installment_date=request.first_installment_date
    )
    return _with_installments(system, transaction)


@router.get("")
async def list_transactions(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = None,
    account_id: Optional[str] = None,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    """List transactions, optionally for one month including projected subscriptions"""
    transactions = system.transaction_manager.list_transactions(
        user.id, month=month, year=year, account_id=account_id
    )
    return [_with_installments(system, t) for t in transactions]


@router.get("/summary")
async def get_summary(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = None,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    """Monthly summary when a month is given, otherwise the dashboard"""
    if month is not None:
        year = year or datetime.now(timezone.utc).year
        summary = system.summary_aggregator.summarize_month(user.id, year, month)
        return {"year": year, "month": month, **summary_to_dict(summary)}

    dashboard = system.summary_aggregator.dashboard(user.id)
    return {
        "year": dashboard.year,
        "month": dashboard.month,
        "all_time": summary_to_dict(dashboard.all_time),
        "current_month": summary_to_dict(dashboard.current_month),
        "recent_transactions": [transaction_to_dict(t) for t in dashboard.recent_transactions]
    }


@router.get("/{transaction_id}")
async def get_transaction(
    transaction_id: str,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    transaction = system.transaction_manager.require_transaction(user.id, transaction_id)
    return _with_installments(system, transaction)


@router.put("/{transaction_id}")
async def update_transaction(
    transaction_id: str,
    request: UpdateTransactionRequest,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    transaction = system.transaction_manager.update_transaction(
        user.id, transaction_id, **request.model_dump(exclude_unset=True)
    )
    return _with_installments(system, transaction)


@router.delete("/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_transaction(
    transaction_id: str,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    system.transaction_manager.delete_transaction(user.id, transaction_id)


@router.put("/{transaction_id}/pay")
async def mark_transaction_paid(
    transaction_id: str,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    """Pay all pending installments of a transaction"""
    transaction = system.transaction_manager.mark_transaction_paid(user.id, transaction_id)
    return _with_installments(system, transaction)


@router.put("/{transaction_id}/installments/{installment_id}/pay")
async def mark_installment_paid(
    transaction_id: str,
    installment_id: str,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    installment = system.transaction_manager.mark_installment_paid(user.id, transaction_id, installment_id)
    return installment_to_dict(installment)


@router.post("/{transaction_id}/partial-payment")
async def register_partial_payment(
    transaction_id: str,
    request: PartialPaymentRequest,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    """Pay the earliest pending installments the amount fully covers"""
    result = system.transaction_manager.register_partial_payment(user.id, transaction_id, request.amount)
    return {
        "transaction": transaction_to_dict(result.transaction, result.installments),
        "paid_amount": money(result.paid_amount),
        "remaining_amount": money(result.remaining_amount)
    }
