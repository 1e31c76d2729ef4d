"""
Category management endpoints
"""

from fastapi import APIRouter, Depends, status

from .auth import FinanceSystem, get_finance_system, get_current_user
from .schemas import CreateCategoryRequest, UpdateCategoryRequest, timestamp
from ..categories import Category
from ..users import User


router = APIRouter()


def category_to_dict(category: Category) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "color": category.color,
        "created_at": timestamp(category.created_at)
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_category(
    request: CreateCategoryRequest,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    category = system.category_manager.create_category(user.id, request.name, request.color)
    return category_to_dict(category)


@router.get("")
async def list_categories(
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    return [category_to_dict(c) for c in system.category_manager.list_categories(user.id)]


@router.get("/{category_id}")
async def get_category(
    category_id: str,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    return category_to_dict(system.category_manager.require_category(user.id, category_id))


@router.put("/{category_id}")
async def update_category(
    category_id: str,
    request: UpdateCategoryRequest,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    category = system.category_manager.update_category(
        user.id, category_id, **request.model_dump(exclude_unset=True)
    )
    return category_to_dict(category)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    category_id: str,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    system.category_manager.delete_category(user.id, category_id)
