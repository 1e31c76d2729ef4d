"""
Category Management Module

Colored labels for transactions, debts and subscriptions. Names are unique per
user ignoring case; deleting a category only clears the links to it.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import List, Optional
import logging
import uuid

from .storage import StorageInterface, StorageRecord
from .errors import ValidationError, ConflictError, NotFoundError
from .logging_config import get_logger, log_action


DEFAULT_COLOR = "#6B7280"


@dataclass
class Category(StorageRecord):
    """Named, colored label owned by a user"""
    user_id: str
    name: str
    color: str = DEFAULT_COLOR


class CategoryManager:
    """
    Manages categories
    """

    def __init__(self, storage: StorageInterface, logger: Optional[logging.Logger] = None):
        self.storage = storage
        self.logger = logger or get_logger(__name__)
        self.table_name = "categories"
        self.linked_tables = ("transactions", "debts", "subscriptions")

    def create_category(self, user_id: str, name: str, color: Optional[str] = None) -> Category:
        if not name or not name.strip():
            raise ValidationError("Category name is required")

        name = name.strip()
        self._check_unique_name(user_id, name)

        now = datetime.now(timezone.utc)
        category = Category(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            user_id=user_id,
            name=name,
            color=color or DEFAULT_COLOR
        )
        self._save_category(category)

        log_action(self.logger, "info", "Category created",
                   user_id=user_id, action="category_created", resource=category.id)
        return category

    def get_category(self, user_id: str, category_id: str) -> Optional[Category]:
        data = self.storage.load(self.table_name, category_id)
        if data and data.get('user_id') == user_id:
            return Category.from_dict(data)
        return None

    def require_category(self, user_id: str, category_id: str) -> Category:
        category = self.get_category(user_id, category_id)
        if not category:
            raise NotFoundError("Category not found")
        return category

    def list_categories(self, user_id: str) -> List[Category]:
        categories = [Category.from_dict(data) for data in self.storage.find(self.table_name, {"user_id": user_id})]
        categories.sort(key=lambda c: c.name.lower())
        return categories

    def update_category(self, user_id: str, category_id: str, name: Optional[str] = None,
                        color: Optional[str] = None) -> Category:
        category = self.require_category(user_id, category_id)

        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Category name cannot be empty")
            if name.lower() != category.name.lower():
                self._check_unique_name(user_id, name, exclude_id=category.id)
            category.name = name
        if color is not None:
            category.color = color

        category.updated_at = datetime.now(timezone.utc)
        self._save_category(category)
        return category

    def delete_category(self, user_id: str, category_id: str) -> None:
        category = self.require_category(user_id, category_id)

        with self.storage.atomic():
            for table in self.linked_tables:
                self.storage.update_where(table, {"category_id": category.id}, {"category_id": None})
            self.storage.delete(self.table_name, category.id)

        log_action(self.logger, "info", "Category deleted",
                   user_id=user_id, action="category_deleted", resource=category.id)

    def _check_unique_name(self, user_id: str, name: str, exclude_id: Optional[str] = None) -> None:
        for data in self.storage.find(self.table_name, {"user_id": user_id}):
            if data['id'] != exclude_id and data['name'].lower() == name.lower():
                raise ConflictError("A category with this name already exists")

    def _save_category(self, category: Category) -> None:
        self.storage.save(self.table_name, category.id, category.to_dict())
