"""
Debt Reconciliation Module

Debts owed to a user by a debtor, the payments received against them and the
rules that derive paid/remaining amounts and settlement status. Settlement is
a one-way latch: once a debt is PAID, recomputation never reopens it.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Iterable, List, Optional
from enum import Enum
import logging
import uuid

from .storage import StorageInterface, StorageRecord
from .accounts import AccountManager
from .categories import CategoryManager
from .debtors import DebtorManager, Debtor
from .transactions import TransactionManager, TransactionType
from .amounts import to_decimal, positive_amount
from .dates import parse_optional_datetime
from .errors import ValidationError, NotFoundError, AlreadySettledError
from .logging_config import get_logger, log_action


class DebtStatus(Enum):
    """Settlement state of a debt"""
    PENDING = "PENDING"
    PAID = "PAID"


def parse_debt_status(value) -> DebtStatus:
    if isinstance(value, DebtStatus):
        return value
    try:
        return DebtStatus(str(value).upper())
    except ValueError:
        raise ValidationError("Status must be PENDING or PAID")


@dataclass
class Debt(StorageRecord):
    """Amount a debtor owes the user"""
    debtor_id: str
    description: str
    total_amount: Decimal
    status: DebtStatus = DebtStatus.PENDING
    due_date: Optional[datetime] = None
    category_id: Optional[str] = None
    account_id: Optional[str] = None


@dataclass
class Payment(StorageRecord):
    """Money received against a debt"""
    debt_id: str
    amount: Decimal
    payment_date: datetime
    notes: Optional[str] = None


@dataclass
class DebtBalance:
    """Derived view of a debt's payments"""
    paid_amount: Decimal
    remaining_amount: Decimal
    status: DebtStatus


def reconcile_debt(total_amount: Decimal, payments: Iterable[Decimal],
                   current_status: DebtStatus) -> DebtBalance:
    """
    Derive paid/remaining amounts and the effective status of a debt

    Args:
        total_amount: Amount owed
        payments: Amounts of every payment recorded against the debt
        current_status: Stored status

    Returns:
        DebtBalance; status is PAID when nothing remains or when the stored
        status is already PAID
    """
    paid_amount = sum((Decimal(amount) for amount in payments), Decimal('0'))
    remaining_amount = total_amount - paid_amount
    calculated = DebtStatus.PAID if remaining_amount <= 0 else DebtStatus.PENDING
    status = DebtStatus.PAID if current_status == DebtStatus.PAID else calculated
    return DebtBalance(paid_amount=paid_amount, remaining_amount=remaining_amount, status=status)


@dataclass
class DebtView:
    """Debt with its debtor and reconciled balance"""
    debt: Debt
    debtor: Debtor
    balance: DebtBalance


class DebtManager:
    """
    Manages debts, their payments and settlement
    """

    def __init__(
        self,
        storage: StorageInterface,
        debtor_manager: DebtorManager,
        account_manager: AccountManager,
        category_manager: CategoryManager,
        transaction_manager: TransactionManager,
        logger: Optional[logging.Logger] = None
    ):
        self.storage = storage
        self.debtor_manager = debtor_manager
        self.account_manager = account_manager
        self.category_manager = category_manager
        self.transaction_manager = transaction_manager
        self.logger = logger or get_logger(__name__)
        self.table_name = "debts"
        self.payments_table = "payments"

    def create_debt(
        self,
        user_id: str,
        debtor_id: str,
        description: str,
        total_amount,
        due_date=None,
        category_id: Optional[str] = None,
        account_id: Optional[str] = None
    ) -> Debt:
        """
        Record a new debt owed by one of the user's debtors

        Args:
            user_id: Owner of the debtor
            debtor_id: Debtor owing the money
            description: What the debt is for
            total_amount: Amount owed; zero is accepted, negative is not
            due_date: Optional due date
            category_id: Optional owned category
            account_id: Optional owned account

        Returns:
            Created Debt; a zero total is stored PAID right away
        """
        if not description or not description.strip():
            raise ValidationError("Description is required")
        total_amount = to_decimal(total_amount, "total_amount")
        if total_amount < 0:
            raise ValidationError("Total amount cannot be negative")
        due_date = parse_optional_datetime(due_date, "due_date")

        self.debtor_manager.require_debtor(user_id, debtor_id)
        self._check_links(user_id, category_id, account_id)

        now = datetime.now(timezone.utc)
        debt = Debt(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            debtor_id=debtor_id,
            description=description.strip(),
            total_amount=total_amount,
            due_date=due_date,
            category_id=category_id,
            account_id=account_id
        )
        with self.storage.atomic():
            self._save_debt(debt)
            self._settle_if_covered(user_id, debt, now, emit_income=True)

        log_action(self.logger, "info", "Debt created",
                   user_id=user_id, action="debt_created", resource=debt.id,
                   extra={"debtor_id": debtor_id, "total_amount": str(total_amount)})
        return debt

    def get_debt(self, user_id: str, debt_id: str) -> Optional[Debt]:
        """Get a debt if its debtor belongs to the user"""
        data = self.storage.load(self.table_name, debt_id)
        if not data:
            return None
        if not self.debtor_manager.get_debtor(user_id, data['debtor_id']):
            return None
        return Debt.from_dict(data)

    def require_debt(self, user_id: str, debt_id: str) -> Debt:
        debt = self.get_debt(user_id, debt_id)
        if not debt:
            raise NotFoundError("Debt not found")
        return debt

    def get_debt_view(self, user_id: str, debt_id: str) -> DebtView:
        debt = self.require_debt(user_id, debt_id)
        return self._view(debt, self.debtor_manager.require_debtor(user_id, debt.debtor_id))

    def list_debts(self, user_id: str, debtor_id: Optional[str] = None,
                   status=None) -> List[DebtView]:
        """
        Debts of the user, newest first, optionally for one debtor and/or
        one reconciled status
        """
        if debtor_id:
            debtors = [self.debtor_manager.require_debtor(user_id, debtor_id)]
        else:
            debtors = self.debtor_manager.list_debtors(user_id)
        wanted = parse_debt_status(status) if status is not None else None

        views = []
        for debtor in debtors:
            for data in self.storage.find(self.table_name, {"debtor_id": debtor.id}):
                view = self._view(Debt.from_dict(data), debtor)
                if wanted is None or view.balance.status == wanted:
                    views.append(view)

        views.sort(key=lambda v: v.debt.created_at, reverse=True)
        return views

    def list_by_status(self, user_id: str, status) -> List[DebtView]:
        return self.list_debts(user_id, status=parse_debt_status(status))

    def update_debt(self, user_id: str, debt_id: str, **changes) -> Debt:
        """
        Update description, total, due date, status, category or account

        Fields given as None are cleared where they are optional. status=PAID on
        an open debt settles it like mark_as_paid; status=PENDING reopens it,
        which needs the payments to be below the total. Lowering the total to
        or under the amount already paid settles the debt.
        """
        debt = self.require_debt(user_id, debt_id)

        allowed = {"description", "total_amount", "due_date", "status", "category_id", "account_id"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        if changes.get("description") is not None:
            if not changes["description"].strip():
                raise ValidationError("Description cannot be empty")
            debt.description = changes["description"].strip()
        if changes.get("total_amount") is not None:
            total_amount = to_decimal(changes["total_amount"], "total_amount")
            if total_amount < 0:
                raise ValidationError("Total amount cannot be negative")
            debt.total_amount = total_amount
        if "due_date" in changes:
            debt.due_date = parse_optional_datetime(changes["due_date"], "due_date")
        if "category_id" in changes:
            self._check_links(user_id, changes["category_id"], None)
            debt.category_id = changes["category_id"]
        if "account_id" in changes:
            self._check_links(user_id, None, changes["account_id"])
            debt.account_id = changes["account_id"]

        new_status = parse_debt_status(changes["status"]) if changes.get("status") is not None else None
        now = datetime.now(timezone.utc)

        with self.storage.atomic():
            if new_status == DebtStatus.PENDING and debt.status == DebtStatus.PAID:
                covered = reconcile_debt(debt.total_amount, self._payment_amounts(debt), DebtStatus.PENDING)
                if covered.status == DebtStatus.PAID:
                    raise ValidationError("Payments already cover the total; raise the total to reopen the debt")
                debt.status = DebtStatus.PENDING
                log_action(self.logger, "info", "Debt reopened",
                           user_id=user_id, action="debt_reopened", resource=debt.id)

            debt.updated_at = now
            self._save_debt(debt)
            self._settle_if_covered(user_id, debt, now, emit_income=True)

            if new_status == DebtStatus.PAID and debt.status != DebtStatus.PAID:
                debt = self.mark_as_paid(user_id, debt.id)

        return debt

    def delete_debt(self, user_id: str, debt_id: str) -> None:
        """Delete a debt and its payments"""
        debt = self.require_debt(user_id, debt_id)

        with self.storage.atomic():
            self.storage.delete_where(self.payments_table, {"debt_id": debt.id})
            self.storage.delete(self.table_name, debt.id)

        log_action(self.logger, "info", "Debt deleted",
                   user_id=user_id, action="debt_deleted", resource=debt.id)

    def create_payment(
        self,
        user_id: str,
        debt_id: str,
        amount,
        payment_date=None,
        notes: Optional[str] = None,
        emit_income: bool = True
    ) -> Payment:
        """
        Record a payment against a debt, settling the debt once fully paid

        Args:
            user_id: Owner of the debt's debtor
            debt_id: Debt being paid
            amount: Positive payment amount
            payment_date: Defaults to now
            notes: Optional free text
            emit_income: Record the settled total as an INCOME transaction

        Returns:
            Created Payment
        """
        amount = positive_amount(amount)
        now = datetime.now(timezone.utc)
        payment_date = parse_optional_datetime(payment_date, "payment_date") or now

        self.require_debt(user_id, debt_id)

        with self.storage.atomic():
            # Re-read inside the unit of work so concurrent payments serialize
            debt = self.require_debt(user_id, debt_id)

            payment = Payment(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                debt_id=debt.id,
                amount=amount,
                payment_date=payment_date,
                notes=notes
            )
            self.storage.save(self.payments_table, payment.id, payment.to_dict())

            self._settle_if_covered(user_id, debt, now, emit_income)

        log_action(self.logger, "info", "Payment recorded",
                   user_id=user_id, action="payment_created", resource=payment.id,
                   extra={"debt_id": debt_id, "amount": str(amount)})
        return payment

    def list_payments(self, user_id: str, debt_id: str) -> List[Payment]:
        """Payments of a debt, most recent first"""
        debt = self.require_debt(user_id, debt_id)
        payments = [Payment.from_dict(data) for data in self.storage.find(self.payments_table, {"debt_id": debt.id})]
        payments.sort(key=lambda p: (p.payment_date, p.created_at), reverse=True)
        return payments

    def delete_payment(self, user_id: str, debt_id: str, payment_id: str) -> None:
        """Remove a payment; a settled debt stays settled"""
        debt = self.require_debt(user_id, debt_id)
        data = self.storage.load(self.payments_table, payment_id)
        if not data or data.get('debt_id') != debt.id:
            raise NotFoundError("Payment not found")

        self.storage.delete(self.payments_table, payment_id)

        log_action(self.logger, "info", "Payment deleted",
                   user_id=user_id, action="payment_deleted", resource=payment_id,
                   extra={"debt_id": debt.id})

    def mark_as_paid(self, user_id: str, debt_id: str) -> Debt:
        """Settle a debt regardless of payments received"""
        with self.storage.atomic():
            debt = self.require_debt(user_id, debt_id)
            if self.reconcile(debt).status == DebtStatus.PAID:
                raise AlreadySettledError("Debt is already paid")
            self._settle(user_id, debt, datetime.now(timezone.utc), emit_income=True)
        return debt

    def reconcile(self, debt: Debt) -> DebtBalance:
        return reconcile_debt(debt.total_amount, self._payment_amounts(debt), debt.status)

    def _payment_amounts(self, debt: Debt) -> List[Decimal]:
        return [Decimal(p["amount"]) for p in self.storage.find(self.payments_table, {"debt_id": debt.id})]

    def _settle_if_covered(self, user_id: str, debt: Debt, now: datetime, emit_income: bool) -> None:
        """Latch a debt to PAID once its payments cover the total"""
        if debt.status != DebtStatus.PAID and self.reconcile(debt).status == DebtStatus.PAID:
            self._settle(user_id, debt, now, emit_income)

    def _settle(self, user_id: str, debt: Debt, now: datetime, emit_income: bool) -> None:
        """Set PAID and record the settled total as income; caller holds atomic()"""
        debt.status = DebtStatus.PAID
        debt.updated_at = now
        self._save_debt(debt)

        if emit_income and debt.total_amount > 0:
            debtor = self.debtor_manager.require_debtor(user_id, debt.debtor_id)
            self.transaction_manager.record_transaction(
                user_id=user_id,
                description=f"Debt payment received from {debtor.name}: {debt.description}",
                amount=debt.total_amount,
                date=now,
                type=TransactionType.INCOME,
                now=now
            )

        log_action(self.logger, "info", "Debt settled",
                   user_id=user_id, action="debt_settled", resource=debt.id,
                   extra={"total_amount": str(debt.total_amount), "income_recorded": emit_income})

    def _view(self, debt: Debt, debtor: Debtor) -> DebtView:
        return DebtView(debt=debt, debtor=debtor, balance=self.reconcile(debt))

    def _check_links(self, user_id: str, category_id: Optional[str], account_id: Optional[str]) -> None:
        if category_id:
            self.category_manager.require_category(user_id, category_id)
        if account_id:
            self.account_manager.require_account(user_id, account_id)

    def _save_debt(self, debt: Debt) -> None:
        self.storage.save(self.table_name, debt.id, debt.to_dict())
