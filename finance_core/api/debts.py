"""
Debt and payment endpoints
"""

from fastapi import APIRouter, Depends, status

from .auth import FinanceSystem, get_finance_system, get_current_user
from .schemas import CreateDebtRequest, UpdateDebtRequest, CreatePaymentRequest, money, timestamp
from ..debts import DebtView, Payment
from ..users import User


router = APIRouter()


def debt_view_to_dict(view: DebtView) -> dict:
    debt = view.debt
    return {
        "id": debt.id,
        "debtor_id": debt.debtor_id,
        "debtor_name": view.debtor.name,
        "description": debt.description,
        "total_amount": money(debt.total_amount),
        "paid_amount": money(view.balance.paid_amount),
        "remaining_amount": money(view.balance.remaining_amount),
        "status": view.balance.status.value,
        "due_date": timestamp(debt.due_date),
        "category_id": debt.category_id,
        "account_id": debt.account_id,
        "created_at": timestamp(debt.created_at),
        "updated_at": timestamp(debt.updated_at)
    }


def payment_to_dict(payment: Payment) -> dict:
    return {
        "id": payment.id,
        "debt_id": payment.debt_id,
        "amount": money(payment.amount),
        "payment_date": timestamp(payment.payment_date),
        "notes": payment.notes,
        "created_at": timestamp(payment.created_at)
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_debt(
    request: CreateDebtRequest,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    """Record a debt owed by a debtor"""
    debt = system.debt_manager.create_debt(
        user_id=user.id,
        debtor_id=request.debtor_id,
        description=request.description,
        total_amount=request.total_amount,
        due_date=request.due_date,
        category_id=request.category_id,
        account_id=request.account_id
    )
    return debt_view_to_dict(system.debt_manager.get_debt_view(user.id, debt.id))


@router.get("")
async def list_debts(
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    return [debt_view_to_dict(v) for v in system.debt_manager.list_debts(user.id)]


@router.get("/status/{debt_status}")
async def list_debts_by_status(
    debt_status: str,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    """Debts whose reconciled status is PENDING or PAID"""
    return [debt_view_to_dict(v) for v in system.debt_manager.list_by_status(user.id, debt_status)]


@router.get("/{debt_id}")
async def get_debt(
    debt_id: str,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    return debt_view_to_dict(system.debt_manager.get_debt_view(user.id, debt_id))


@router.put("/{debt_id}")
async def update_debt(
    debt_id: str,
    request: UpdateDebtRequest,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    system.debt_manager.update_debt(user.id, debt_id, **request.model_dump(exclude_unset=True))
    return debt_view_to_dict(system.debt_manager.get_debt_view(user.id, debt_id))


@router.put("/{debt_id}/pay")
async def mark_debt_paid(
    debt_id: str,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    """Settle a debt regardless of payments received"""
    system.debt_manager.mark_as_paid(user.id, debt_id)
    return debt_view_to_dict(system.debt_manager.get_debt_view(user.id, debt_id))


@router.delete("/{debt_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_debt(
    debt_id: str,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    system.debt_manager.delete_debt(user.id, debt_id)


@router.post("/{debt_id}/payments", status_code=status.HTTP_201_CREATED)
async def create_payment(
    debt_id: str,
    request: CreatePaymentRequest,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    """Record a payment; the debt is settled once fully paid"""
    payment = system.debt_manager.create_payment(
        user_id=user.id,
        debt_id=debt_id,
        amount=request.amount,
        payment_date=request.payment_date,
        notes=request.notes
    )
    return {
        "payment": payment_to_dict(payment),
        "debt": debt_view_to_dict(system.debt_manager.get_debt_view(user.id, debt_id))
    }


@router.get("/{debt_id}/payments")
async def list_payments(
    debt_id: str,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    return [payment_to_dict(p) for p in system.debt_manager.list_payments(user.id, debt_id)]


@router.delete("/{debt_id}/payments/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_payment(
    debt_id: str,
    payment_id: str,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    system.debt_manager.delete_payment(user.id, debt_id, payment_id)
