"""
Debtor management endpoints
"""

from fastapi import APIRouter, Depends, status

from .auth import FinanceSystem, get_finance_system, get_current_user
from .schemas import CreateDebtorRequest, UpdateDebtorRequest, timestamp
from .debts import debt_view_to_dict
from ..debtors import Debtor
from ..users import User


router = APIRouter()


def debtor_to_dict(debtor: Debtor) -> dict:
    return {
        "id": debtor.id,
        "name": debtor.name,
        "email": debtor.email,
        "phone": debtor.phone,
        "created_at": timestamp(debtor.created_at)
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_debtor(
    request: CreateDebtorRequest,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    debtor = system.debtor_manager.create_debtor(user.id, request.name, request.email, request.phone)
    return debtor_to_dict(debtor)


@router.get("")
async def list_debtors(
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    return [debtor_to_dict(d) for d in system.debtor_manager.list_debtors(user.id)]


@router.get("/{debtor_id}")
async def get_debtor(
    debtor_id: str,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    return debtor_to_dict(system.debtor_manager.require_debtor(user.id, debtor_id))


@router.get("/{debtor_id}/debts")
async def list_debtor_debts(
    debtor_id: str,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    """Debts owed by one debtor with reconciled balances"""
    return [debt_view_to_dict(v) for v in system.debt_manager.list_debts(user.id, debtor_id=debtor_id)]


@router.put("/{debtor_id}")
async def update_debtor(
    debtor_id: str,
    request: UpdateDebtorRequest,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    debtor = system.debtor_manager.update_debtor(
        user.id, debtor_id, **request.model_dump(exclude_unset=True)
    )
    return debtor_to_dict(debtor)


@router.delete("/{debtor_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_debtor(
    debtor_id: str,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    """Delete a debtor with all of its debts and payments"""
    system.debtor_manager.delete_debtor(user.id, debtor_id)
