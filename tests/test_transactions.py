"""
Tests for transaction management, installment plans and debt-linked income
"""

import pytest
from decimal import Decimal
from datetime import datetime, timezone

from finance_core.storage import InMemoryStorage
from finance_core.config import FinanceConfig
from finance_core.system import FinanceSystem
from finance_core.transactions import TransactionType
from finance_core.installments import InstallmentStatus
from finance_core.subscriptions import SubscriptionFrequency
from finance_core.debts import DebtStatus
from finance_core.errors import (
    ValidationError, NotFoundError, AlreadyPaidError, InvalidInstallmentCountError
)


def utc(year, month, day):
    return datetime(year, month, day, tzinfo=timezone.utc)


class TestTransactionManager:
    """Test transaction lifecycle"""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.system = FinanceSystem(storage=self.storage, config=FinanceConfig())
        self.manager = self.system.transaction_manager
        self.user_id = "user_1"
        self.account = self.system.account_manager.create_account(self.user_id, "Checking", "checking")
        self.category = self.system.category_manager.create_category(self.user_id, "Food")

    def create_plan(self, amount="120", count=3, first="2024-01-15"):
        return self.manager.create_transaction(
            self.user_id, "Laptop", amount, first, "EXPENSE",
            is_installment_plan=True, installment_count=count,
            installment_frequency="MONTHLY", first_installment_date=first
        )

    def test_create_plain_transaction(self):
        transaction = self.manager.create_transaction(
            self.user_id, "Groceries", "85.40", "2024-03-02", "expense",
            category_id=self.category.id, account_id=self.account.id
        )

        assert transaction.type == TransactionType.EXPENSE
        assert transaction.amount == Decimal("85.40")
        assert transaction.date == utc(2024, 3, 2)
        assert not transaction.is_installment_plan
        assert self.manager.get_transaction(self.user_id, transaction.id) == transaction

    def test_required_fields(self):
        with pytest.raises(ValidationError):
            self.manager.create_transaction(self.user_id, "", "10", "2024-01-01", "EXPENSE")
        with pytest.raises(ValidationError):
            self.manager.create_transaction(self.user_id, "Coffee", "0", "2024-01-01", "EXPENSE")
        with pytest.raises(ValidationError):
            self.manager.create_transaction(self.user_id, "Coffee", "3", "yesterday", "EXPENSE")
        with pytest.raises(ValidationError):
            self.manager.create_transaction(self.user_id, "Coffee", "3", "2024-01-01", "PAID")

    def test_links_must_belong_to_user(self):
        foreign = self.system.category_manager.create_category("user_2", "Food")
        with pytest.raises(NotFoundError):
            self.manager.create_transaction(self.user_id, "Coffee", "3", "2024-01-01", "EXPENSE",
                                            category_id=foreign.id)

    def test_installment_plan_creation(self):
        transaction = self.create_plan()
        installments = self.manager.get_installments(transaction.id)

        assert transaction.is_installment_plan
        assert transaction.installment_count == 3
        assert transaction.installment_amount == Decimal("40")
        assert [i.due_date for i in installments] == [utc(2024, 1, 15), utc(2024, 2, 15), utc(2024, 3, 15)]
        assert sum(i.amount for i in installments) == transaction.amount

    def test_invalid_installment_count_writes_nothing(self):
        with pytest.raises(InvalidInstallmentCountError):
            self.create_plan(count=1)
        assert self.manager.list_all(self.user_id) == []
        assert self.storage.load_all("installments") == []

    def test_installment_bounds_ignore_environment(self, monkeypatch):
        monkeypatch.setenv("FINANCE_MIN_INSTALLMENTS", "1")
        monkeypatch.setenv("FINANCE_MAX_INSTALLMENTS", "60")
        system = FinanceSystem(storage=InMemoryStorage(), config=FinanceConfig())

        for count in (1, 49):
            with pytest.raises(InvalidInstallmentCountError):
                system.transaction_manager.create_transaction(
                    self.user_id, "Laptop", "100", "2024-01-01", "EXPENSE",
                    is_installment_plan=True, installment_count=count, installment_frequency="MONTHLY"
                )

    def test_plan_requires_count_and_frequency(self):
        with pytest.raises(ValidationError):
            self.manager.create_transaction(self.user_id, "Laptop", "100", "2024-01-01", "EXPENSE",
                                            is_installment_plan=True)

    def test_mark_installment_paid(self):
        transaction = self.create_plan()
        first = self.manager.get_installments(transaction.id)[0]
        now = utc(2024, 1, 16)

        paid = self.manager.mark_installment_paid(self.user_id, transaction.id, first.id, now=now)
        assert paid.status == InstallmentStatus.PAID
        assert paid.paid_date == now

        with pytest.raises(AlreadyPaidError):
            self.manager.mark_installment_paid(self.user_id, transaction.id, first.id)

    def test_mark_installment_of_other_transaction(self):
        plan = self.create_plan()
        other = self.create_plan(first="2024-05-01")
        installment = self.manager.get_installments(other.id)[0]

        with pytest.raises(NotFoundError):
            self.manager.mark_installment_paid(self.user_id, plan.id, installment.id)

    def test_mark_transaction_paid(self):
        transaction = self.create_plan()
        first = self.manager.get_installments(transaction.id)[0]
        self.manager.mark_installment_paid(self.user_id, transaction.id, first.id, now=utc(2024, 1, 16))

        paid = self.manager.mark_transaction_paid(self.user_id, transaction.id, now=utc(2024, 2, 1))

        assert paid.type == TransactionType.PAID
        assert all(i.status == InstallmentStatus.PAID for i in self.manager.get_installments(transaction.id))
        # The installment paid earlier keeps its own paid date
        assert self.manager.get_installments(transaction.id)[0].paid_date == utc(2024, 1, 16)
        assert self.manager.get_installments(transaction.id)[2].paid_date == utc(2024, 2, 1)

    def test_mark_income_plan_paid_keeps_type(self):
        transaction = self.manager.create_transaction(
            self.user_id, "Freelance", "300", "2024-01-10", "INCOME",
            is_installment_plan=True, installment_count=3, installment_frequency="WEEKLY"
        )
        paid = self.manager.mark_transaction_paid(self.user_id, transaction.id)
        assert paid.type == TransactionType.INCOME

    def test_partial_payment(self):
        transaction = self.create_plan()

        result = self.manager.register_partial_payment(self.user_id, transaction.id, "50")

        assert result.paid_amount == Decimal("40")
        assert result.remaining_amount == Decimal("10")
        statuses = [i.status for i in self.manager.get_installments(transaction.id)]
        assert statuses == [InstallmentStatus.PAID, InstallmentStatus.PENDING, InstallmentStatus.PENDING]

    def test_partial_payment_rules(self):
        plain = self.manager.create_transaction(self.user_id, "Coffee", "3", "2024-01-01", "EXPENSE")
        with pytest.raises(ValidationError):
            self.manager.register_partial_payment(self.user_id, plain.id, "1")

        plan = self.create_plan()
        with pytest.raises(ValidationError):
            self.manager.register_partial_payment(self.user_id, plan.id, "0")

        self.manager.mark_transaction_paid(self.user_id, plan.id)
        with pytest.raises(ValidationError):
            self.manager.register_partial_payment(self.user_id, plan.id, "40")

    def test_update_transaction(self):
        transaction = self.manager.create_transaction(self.user_id, "Coffee", "3", "2024-01-01", "EXPENSE",
                                                      account_id=self.account.id)

        updated = self.manager.update_transaction(self.user_id, transaction.id, description="Espresso",
                                                  amount="4.5", account_id=None)
        assert updated.description == "Espresso"
        assert updated.amount == Decimal("4.5")
        assert updated.account_id is None

        with pytest.raises(ValidationError):
            self.manager.update_transaction(self.user_id, transaction.id, is_installment_plan=True)

    def test_plan_amount_cannot_change(self):
        plan = self.create_plan()
        with pytest.raises(ValidationError):
            self.manager.update_transaction(self.user_id, plan.id, amount="150")

    def test_delete_removes_installments(self):
        plan = self.create_plan()
        self.manager.delete_transaction(self.user_id, plan.id)

        assert self.manager.get_transaction(self.user_id, plan.id) is None
        assert self.storage.find("installments", {"transaction_id": plan.id}) == []

    def test_other_user_cannot_touch_transaction(self):
        plan = self.create_plan()
        with pytest.raises(NotFoundError):
            self.manager.delete_transaction("user_2", plan.id)
        with pytest.raises(NotFoundError):
            self.manager.register_partial_payment("user_2", plan.id, "40")

    def test_list_for_month(self):
        self.create_plan(first="2024-01-15")
        self.manager.create_transaction(self.user_id, "Coffee", "3", "2024-02-03", "EXPENSE")
        self.manager.create_transaction(self.user_id, "Salary", "1000", "2024-03-05", "INCOME")

        february = self.manager.list_transactions(self.user_id, month=2, year=2024)
        assert sorted(t.description for t in february) == ["Coffee", "Laptop"]

        april = self.manager.list_transactions(self.user_id, month=4, year=2024)
        assert april == []

        everything = self.manager.list_transactions(self.user_id)
        assert [t.description for t in everything] == ["Salary", "Coffee", "Laptop"]

    def test_list_by_account(self):
        self.manager.create_transaction(self.user_id, "Coffee", "3", "2024-02-03", "EXPENSE",
                                        account_id=self.account.id)
        self.manager.create_transaction(self.user_id, "Tea", "2", "2024-02-04", "EXPENSE")

        listed = self.manager.list_transactions(self.user_id, account_id=self.account.id)
        assert [t.description for t in listed] == ["Coffee"]

    def test_recurring_transaction_creates_subscription(self):
        transaction = self.manager.create_transaction(
            self.user_id, "Gym", "50", "2024-01-10", "EXPENSE",
            is_recurring=True, subscription_frequency="MONTHLY"
        )

        subscription = self.system.subscription_manager.require_subscription(
            self.user_id, transaction.subscription_id
        )
        assert subscription.frequency == SubscriptionFrequency.MONTHLY
        assert subscription.next_payment_date == utc(2024, 2, 10)
        assert transaction.is_recurring

        # The transaction itself is the January occurrence; projection starts in February
        january = self.manager.list_transactions(self.user_id, month=1, year=2024)
        assert len(january) == 1
        february = self.manager.list_transactions(self.user_id, month=2, year=2024)
        assert len(february) == 1
        assert february[0].is_virtual

    def test_income_linked_to_debt_records_payment(self):
        debtor = self.system.debtor_manager.create_debtor(self.user_id, "Carlos")
        debt = self.system.debt_manager.create_debt(self.user_id, debtor.id, "Loan", "100")

        self.manager.create_transaction(self.user_id, "Carlos paid back", "100", "2024-01-05", "INCOME",
                                        debt_id=debt.id)

        view = self.system.debt_manager.get_debt_view(self.user_id, debt.id)
        assert view.balance.paid_amount == Decimal("100")
        assert view.debt.status == DebtStatus.PAID
        # The linked transaction is the only income recorded
        incomes = [t for t in self.manager.list_all(self.user_id) if t.type == TransactionType.INCOME]
        assert len(incomes) == 1

    def test_income_linked_to_foreign_debt(self):
        debtor = self.system.debtor_manager.create_debtor("user_2", "Carlos")
        debt = self.system.debt_manager.create_debt("user_2", debtor.id, "Loan", "100")

        with pytest.raises(NotFoundError):
            self.manager.create_transaction(self.user_id, "Sneaky", "100", "2024-01-05", "INCOME",
                                            debt_id=debt.id)
        assert self.manager.list_all(self.user_id) == []
