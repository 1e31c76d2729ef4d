"""
Tests for accounts and categories
"""

import pytest
from decimal import Decimal

from finance_core.storage import InMemoryStorage
from finance_core.accounts import AccountManager
from finance_core.categories import CategoryManager, DEFAULT_COLOR
from finance_core.errors import ValidationError, ConflictError, NotFoundError


class TestAccountManager:
    """Test account management"""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.manager = AccountManager(self.storage)

    def test_create_account(self):
        account = self.manager.create_account("user_1", " Checking ", "checking", balance="150.25")

        assert account.name == "Checking"
        assert account.balance == Decimal("150.25")
        assert self.manager.get_account("user_1", account.id) == account

    def test_default_balance(self):
        account = self.manager.create_account("user_1", "Wallet", "cash")
        assert account.balance == Decimal("0")

    def test_name_and_type_required(self):
        with pytest.raises(ValidationError):
            self.manager.create_account("user_1", "  ", "checking")
        with pytest.raises(ValidationError):
            self.manager.create_account("user_1", "Checking", "")

    def test_invalid_balance(self):
        with pytest.raises(ValidationError):
            self.manager.create_account("user_1", "Checking", "checking", balance="lots")

    def test_names_unique_per_user_ignoring_case(self):
        self.manager.create_account("user_1", "Checking", "checking")

        with pytest.raises(ConflictError):
            self.manager.create_account("user_1", "CHECKING", "checking")

        # Another user may reuse the name
        self.manager.create_account("user_2", "Checking", "checking")

    def test_other_user_cannot_see_account(self):
        account = self.manager.create_account("user_1", "Checking", "checking")

        assert self.manager.get_account("user_2", account.id) is None
        with pytest.raises(NotFoundError):
            self.manager.update_account("user_2", account.id, name="Hijacked")
        with pytest.raises(NotFoundError):
            self.manager.delete_account("user_2", account.id)

    def test_list_sorted_by_name(self):
        self.manager.create_account("user_1", "savings", "savings")
        self.manager.create_account("user_1", "Checking", "checking")

        assert [a.name for a in self.manager.list_accounts("user_1")] == ["Checking", "savings"]

    def test_update_account(self):
        account = self.manager.create_account("user_1", "Checking", "checking")
        self.manager.create_account("user_1", "Savings", "savings")

        updated = self.manager.update_account("user_1", account.id, name="checking", balance=Decimal("10"))
        assert updated.name == "checking"
        assert updated.balance == Decimal("10")

        with pytest.raises(ConflictError):
            self.manager.update_account("user_1", account.id, name="savings")

    def test_delete_clears_links(self):
        account = self.manager.create_account("user_1", "Checking", "checking")
        self.storage.save("transactions", "t1", {"id": "t1", "account_id": account.id})
        self.storage.save("debts", "d1", {"id": "d1", "account_id": account.id})
        self.storage.save("subscriptions", "s1", {"id": "s1", "account_id": "other"})

        self.manager.delete_account("user_1", account.id)

        assert self.manager.get_account("user_1", account.id) is None
        assert self.storage.load("transactions", "t1")["account_id"] is None
        assert self.storage.load("debts", "d1")["account_id"] is None
        assert self.storage.load("subscriptions", "s1")["account_id"] == "other"


class TestCategoryManager:
    """Test category management"""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.manager = CategoryManager(self.storage)

    def test_create_with_default_color(self):
        category = self.manager.create_category("user_1", "Food")
        assert category.color == DEFAULT_COLOR

        colored = self.manager.create_category("user_1", "Rent", "#FF0000")
        assert colored.color == "#FF0000"

    def test_duplicate_name(self):
        self.manager.create_category("user_1", "Food")
        with pytest.raises(ConflictError):
            self.manager.create_category("user_1", "food")

    def test_update_and_ownership(self):
        category = self.manager.create_category("user_1", "Food")

        updated = self.manager.update_category("user_1", category.id, name="Groceries", color="#00FF00")
        assert updated.name == "Groceries"
        assert updated.color == "#00FF00"

        with pytest.raises(NotFoundError):
            self.manager.require_category("user_2", category.id)

    def test_delete_clears_links(self):
        category = self.manager.create_category("user_1", "Food")
        self.storage.save("transactions", "t1", {"id": "t1", "category_id": category.id})
        self.storage.save("subscriptions", "s1", {"id": "s1", "category_id": category.id})

        self.manager.delete_category("user_1", category.id)

        assert self.manager.list_categories("user_1") == []
        assert self.storage.load("transactions", "t1")["category_id"] is None
        assert self.storage.load("subscriptions", "s1")["category_id"] is None
