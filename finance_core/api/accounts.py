"""
Account management endpoints
"""

from fastapi import APIRouter, Depends, status

from .auth import FinanceSystem, get_finance_system, get_current_user
from .schemas import CreateAccountRequest, UpdateAccountRequest, money, timestamp
from ..accounts import Account
from ..users import User


router = APIRouter()


def account_to_dict(account: Account) -> dict:
    return {
        "id": account.id,
        "name": account.name,
        "type": account.type,
        "balance": money(account.balance),
        "created_at": timestamp(account.created_at),
        "updated_at": timestamp(account.updated_at)
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_account(
    request: CreateAccountRequest,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    """Create a new account"""
    account = system.account_manager.create_account(
        user_id=user.id,
        name=request.name,
        type=request.type,
        balance=request.balance
    )
    return account_to_dict(account)


@router.get("")
async def list_accounts(
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    return [account_to_dict(a) for a in system.account_manager.list_accounts(user.id)]


@router.get("/{account_id}")
async def get_account(
    account_id: str,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    """Get account details"""
    return account_to_dict(system.account_manager.require_account(user.id, account_id))


@router.put("/{account_id}")
async def update_account(
    account_id: str,
    request: UpdateAccountRequest,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    account = system.account_manager.update_account(
        user.id, account_id, **request.model_dump(exclude_unset=True)
    )
    return account_to_dict(account)


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account(
    account_id: str,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    """Delete an account; linked records keep their data"""
    system.account_manager.delete_account(user.id, account_id)
