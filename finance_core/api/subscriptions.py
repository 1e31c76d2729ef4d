"""
Subscription endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from .auth import FinanceSystem, get_finance_system, get_current_user
from .schemas import CreateSubscriptionRequest, UpdateSubscriptionRequest, money, timestamp
from .transactions import transaction_to_dict
from ..subscriptions import Subscription, SubscriptionView
from ..users import User


router = APIRouter()


def subscription_to_dict(subscription: Subscription, view: Optional[SubscriptionView] = None) -> dict:
    data = {
        "id": subscription.id,
        "name": subscription.name,
        "description": subscription.description,
        "amount": money(subscription.amount),
        "type": subscription.type.value,
        "frequency": subscription.frequency.value,
        "start_date": timestamp(subscription.start_date),
        "end_date": timestamp(subscription.end_date),
        "is_active": subscription.is_active,
        "next_payment_date": timestamp(subscription.next_payment_date),
        "last_processed_at": timestamp(subscription.last_processed_at),
        "category_id": subscription.category_id,
        "account_id": subscription.account_id,
        "created_at": timestamp(subscription.created_at)
    }
    if view is not None:
        data["is_overdue"] = view.is_overdue
        data["transaction_count"] = view.transaction_count
    return data


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_subscription(
    request: CreateSubscriptionRequest,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    subscription = system.subscription_manager.create_subscription(
        user_id=user.id,
        name=request.name,
        description=request.description,
        amount=request.amount,
        type=request.type,
        frequency=request.frequency,
        start_date=request.start_date,
        end_date=request.end_date,
        category_id=request.category_id,
        account_id=request.account_id
    )
    return subscription_to_dict(subscription)


@router.get("")
async def list_subscriptions(
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    """Subscriptions with overdue flag and generated transaction count"""
    return [subscription_to_dict(v.subscription, v) for v in system.subscription_manager.list_subscriptions(user.id)]


@router.get("/upcoming")
async def list_upcoming(
    days: Optional[int] = Query(None, ge=0),
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    """Active subscriptions due within the next days (default from configuration)"""
    return [subscription_to_dict(s) for s in system.subscription_manager.upcoming(user.id, days=days)]


@router.post("/process")
async def process_subscriptions(
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    """Materialize due occurrences of the user's subscriptions"""
    result = system.subscription_manager.process_due(user_id=user.id)
    return {
        "processed_count": result.processed_count,
        "errors": result.errors,
        "created_transactions": [transaction_to_dict(t) for t in result.created_transactions]
    }


@router.get("/{subscription_id}")
async def get_subscription(
    subscription_id: str,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    subscription = system.subscription_manager.require_subscription(user.id, subscription_id)
    return subscription_to_dict(subscription, system.subscription_manager.view(subscription))


@router.put("/{subscription_id}")
async def update_subscription(
    subscription_id: str,
    request: UpdateSubscriptionRequest,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    subscription = system.subscription_manager.update_subscription(
        user.id, subscription_id, **request.model_dump(exclude_unset=True)
    )
    return subscription_to_dict(subscription)


@router.patch("/{subscription_id}/toggle")
async def toggle_subscription(
    subscription_id: str,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    subscription = system.subscription_manager.toggle_subscription(user.id, subscription_id)
    return subscription_to_dict(subscription)


@router.delete("/{subscription_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_subscription(
    subscription_id: str,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    """Delete a subscription; its generated transactions are kept"""
    system.subscription_manager.delete_subscription(user.id, subscription_id)
