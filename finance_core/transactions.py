"""
Transaction Processing Module

Income and expense records of a user. A transaction may be split into an
installment plan, may be generated by (or spawn) a recurring subscription,
and may carry a payment against a debt.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import List, Optional, Any
from enum import Enum
import logging
import uuid

from .storage import StorageInterface, StorageRecord
from .accounts import AccountManager
from .categories import CategoryManager
from .installments import (
    InstallmentFrequency, TransactionInstallment, InstallmentStatus,
    generate_installment_schedule, allocate_partial_payment, parse_installment_frequency
)
from .amounts import positive_amount
from .dates import parse_datetime, parse_optional_datetime, month_range
from .config import FinanceConfig, get_config
from .errors import ValidationError, NotFoundError, AlreadyPaidError
from .logging_config import get_logger, log_action


class TransactionType(Enum):
    """Direction of a transaction; PAID marks a settled expense"""
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    PAID = "PAID"


def parse_transaction_type(value, allow_paid: bool = True) -> TransactionType:
    if isinstance(value, TransactionType):
        tx_type = value
    else:
        try:
            tx_type = TransactionType(str(value).upper())
        except ValueError:
            raise ValidationError(f"Invalid transaction type: {value!r}")
    if tx_type == TransactionType.PAID and not allow_paid:
        raise ValidationError("Transaction type must be INCOME or EXPENSE")
    return tx_type


@dataclass
class Transaction(StorageRecord):
    """A dated money movement owned by one user"""
    user_id: str
    description: str
    amount: Decimal
    date: datetime
    type: TransactionType
    category_id: Optional[str] = None
    account_id: Optional[str] = None
    is_recurring: bool = False
    subscription_id: Optional[str] = None
    is_installment_plan: bool = False
    installment_count: Optional[int] = None
    installment_frequency: Optional[InstallmentFrequency] = None
    installment_amount: Optional[Decimal] = None
    first_installment_date: Optional[datetime] = None


@dataclass
class PartialPaymentResult:
    """Outcome of a partial payment against an installment plan"""
    transaction: Transaction
    installments: List[TransactionInstallment]
    paid_amount: Decimal
    remaining_amount: Decimal


class TransactionManager:
    """
    Manages transactions and their installment plans

    The debt and subscription managers are wired in after construction since
    both also write transactions through this manager.
    """

    def __init__(
        self,
        storage: StorageInterface,
        account_manager: AccountManager,
        category_manager: CategoryManager,
        config: Optional[FinanceConfig] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.storage = storage
        self.account_manager = account_manager
        self.category_manager = category_manager
        self.config = config or get_config()
        self.logger = logger or get_logger(__name__)
        self.table_name = "transactions"
        self.installments_table = "installments"
        self.debt_manager = None
        self.subscription_manager = None

    def record_transaction(
        self,
        user_id: str,
        description: str,
        amount: Decimal,
        date: datetime,
        type: TransactionType,
        category_id: Optional[str] = None,
        account_id: Optional[str] = None,
        is_recurring: bool = False,
        subscription_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Transaction:
        """
        Persist a plain, already-validated transaction.

        Used by settlement and subscription processing inside their own
        atomic units.
        """
        now = now or datetime.now(timezone.utc)
        transaction = Transaction(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            user_id=user_id,
            description=description,
            amount=amount,
            date=date,
            type=type,
            category_id=category_id,
            account_id=account_id,
            is_recurring=is_recurring,
            subscription_id=subscription_id
        )
        self._save_transaction(transaction)
        return transaction

    def create_transaction(
        self,
        user_id: str,
        description: str,
        amount,
        date,
        type,
        category_id: Optional[str] = None,
        account_id: Optional[str] = None,
        is_recurring: bool = False,
        subscription_frequency: Optional[str] = None,
        debt_id: Optional[str] = None,
        is_installment_plan: bool = False,
        installment_count: Optional[int] = None,
        installment_frequency: Optional[str] = None,
        first_installment_date=None
    ) -> Transaction:
        """
        Create a transaction

        Args:
            user_id: Owner
            description: Free text, required
            amount: Positive amount
            date: Transaction date
            type: INCOME or EXPENSE
            category_id: Optional owned category
            account_id: Optional owned account
            is_recurring: With subscription_frequency, also creates a
                subscription whose first occurrence is this transaction
            subscription_frequency: DAILY, WEEKLY, MONTHLY or YEARLY
            debt_id: For INCOME, also records a payment against this debt
            is_installment_plan: Split into installment_count installments
            installment_count: Number of installments (plan only)
            installment_frequency: MONTHLY or WEEKLY (plan only)
            first_installment_date: Defaults to the transaction date

        Returns:
            Created Transaction
        """
        if not description or not description.strip():
            raise ValidationError("Description is required")
        amount = positive_amount(amount)
        date = parse_datetime(date, "date")
        tx_type = parse_transaction_type(type, allow_paid=False)
        self._check_links(user_id, category_id, account_id)

        frequency = None
        first_date = None
        if is_installment_plan:
            if installment_count is None or installment_frequency is None:
                raise ValidationError("Installment count and frequency are required for installment plans")
            frequency = parse_installment_frequency(installment_frequency)
            first_date = parse_optional_datetime(first_installment_date, "first_installment_date") or date

        if debt_id and tx_type == TransactionType.INCOME:
            # Ownership check before anything is written
            self.debt_manager.require_debt(user_id, debt_id)

        now = datetime.now(timezone.utc)
        transaction = Transaction(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            user_id=user_id,
            description=description.strip(),
            amount=amount,
            date=date,
            type=tx_type,
            category_id=category_id,
            account_id=account_id,
            is_recurring=bool(is_recurring)
        )

        installments = []
        if is_installment_plan:
            installments = generate_installment_schedule(
                transaction.id, amount, installment_count, frequency, first_date,
                now=now
            )
            transaction.is_installment_plan = True
            transaction.installment_count = len(installments)
            transaction.installment_frequency = frequency
            transaction.installment_amount = installments[0].amount
            transaction.first_installment_date = first_date

        with self.storage.atomic():
            if is_recurring and subscription_frequency:
                subscription = self.subscription_manager.create_subscription(
                    user_id=user_id,
                    name=transaction.description,
                    description=f"Auto-generated from transaction: {transaction.description}",
                    amount=amount,
                    type=tx_type.value,
                    frequency=subscription_frequency,
                    start_date=date,
                    category_id=category_id,
                    account_id=account_id
                )
                transaction.subscription_id = subscription.id

            self._save_transaction(transaction)
            for installment in installments:
                self._save_installment(installment)

            if debt_id and tx_type == TransactionType.INCOME:
                # The transaction itself records the cash, so settlement adds no income
                self.debt_manager.create_payment(
                    user_id, debt_id, amount,
                    payment_date=date,
                    notes=f"Payment via transaction: {transaction.description}",
                    emit_income=False
                )

        log_action(self.logger, "info", "Transaction created",
                   user_id=user_id, action="transaction_created", resource=transaction.id,
                   extra={"type": tx_type.value, "installment_plan": transaction.is_installment_plan})
        return transaction

    def get_transaction(self, user_id: str, transaction_id: str) -> Optional[Transaction]:
        data = self.storage.load(self.table_name, transaction_id)
        if data and data.get('user_id') == user_id:
            return Transaction.from_dict(data)
        return None

    def require_transaction(self, user_id: str, transaction_id: str) -> Transaction:
        transaction = self.get_transaction(user_id, transaction_id)
        if not transaction:
            raise NotFoundError("Transaction not found")
        return transaction

    def get_installments(self, transaction_id: str) -> List[TransactionInstallment]:
        """Installments of a plan ordered by installment number"""
        installments = [
            TransactionInstallment.from_dict(data)
            for data in self.storage.find(self.installments_table, {"transaction_id": transaction_id})
        ]
        installments.sort(key=lambda i: i.installment_number)
        return installments

    def list_all(self, user_id: str) -> List[Transaction]:
        return [Transaction.from_dict(data) for data in self.storage.find(self.table_name, {"user_id": user_id})]

    def list_transactions(self, user_id: str, month: Optional[int] = None, year: Optional[int] = None,
                          account_id: Optional[str] = None) -> List[Any]:
        """
        List transactions newest first.

        With a month (and optional year, default current), the list holds the
        plan transactions having an installment due that month, the other
        transactions dated that month and the projected subscription
        occurrences of that month.
        """
        transactions = self.list_all(user_id)
        if account_id:
            transactions = [t for t in transactions if t.account_id == account_id]

        if month is None:
            transactions.sort(key=lambda t: t.date, reverse=True)
            return transactions

        year = year or datetime.now(timezone.utc).year
        start, end = month_range(year, month)

        result: List[Any] = []
        for transaction in transactions:
            if transaction.is_installment_plan:
                if any(start <= inst.due_date <= end for inst in self.get_installments(transaction.id)):
                    result.append(transaction)
            elif start <= transaction.date <= end:
                result.append(transaction)

        if self.subscription_manager:
            virtual = self.subscription_manager.virtual_transactions(user_id, start, end)
            if account_id:
                virtual = [v for v in virtual if v.account_id == account_id]
            result.extend(virtual)

        result.sort(key=lambda t: t.date, reverse=True)
        return result

    def recent_transactions(self, user_id: str, limit: Optional[int] = None) -> List[Transaction]:
        transactions = self.list_all(user_id)
        transactions.sort(key=lambda t: (t.date, t.created_at), reverse=True)
        return transactions[:limit or self.config.recent_transactions_limit]

    def update_transaction(self, user_id: str, transaction_id: str, **changes) -> Transaction:
        """Update description, amount, date, type, category or account"""
        transaction = self.require_transaction(user_id, transaction_id)

        allowed = {"description", "amount", "date", "type", "category_id", "account_id"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        if "description" in changes and changes["description"] is not None:
            if not changes["description"].strip():
                raise ValidationError("Description cannot be empty")
            transaction.description = changes["description"].strip()
        if "amount" in changes and changes["amount"] is not None:
            amount = positive_amount(changes["amount"])
            if transaction.is_installment_plan and amount != transaction.amount:
                raise ValidationError("The amount of an installment plan cannot be changed")
            transaction.amount = amount
        if "date" in changes and changes["date"] is not None:
            transaction.date = parse_datetime(changes["date"], "date")
        if "type" in changes and changes["type"] is not None:
            transaction.type = parse_transaction_type(changes["type"])
        if "category_id" in changes:
            self._check_links(user_id, changes["category_id"], None)
            transaction.category_id = changes["category_id"]
        if "account_id" in changes:
            self._check_links(user_id, None, changes["account_id"])
            transaction.account_id = changes["account_id"]

        transaction.updated_at = datetime.now(timezone.utc)
        self._save_transaction(transaction)
        return transaction

    def delete_transaction(self, user_id: str, transaction_id: str) -> None:
        """Delete a transaction and its installments"""
        transaction = self.require_transaction(user_id, transaction_id)

        with self.storage.atomic():
            self.storage.delete_where(self.installments_table, {"transaction_id": transaction.id})
            self.storage.delete(self.table_name, transaction.id)

        log_action(self.logger, "info", "Transaction deleted",
                   user_id=user_id, action="transaction_deleted", resource=transaction.id)

    def mark_installment_paid(self, user_id: str, transaction_id: str, installment_id: str,
                              now: Optional[datetime] = None) -> TransactionInstallment:
        """Settle one installment of a plan"""
        transaction = self.require_transaction(user_id, transaction_id)
        now = now or datetime.now(timezone.utc)

        with self.storage.atomic():
            data = self.storage.load(self.installments_table, installment_id)
            if not data or data.get('transaction_id') != transaction.id:
                raise NotFoundError("Installment not found")
            installment = TransactionInstallment.from_dict(data)
            if installment.is_paid:
                raise AlreadyPaidError("Installment is already paid")
            installment.mark_paid(now)
            self._save_installment(installment)

        log_action(self.logger, "info", "Installment paid",
                   user_id=user_id, action="installment_paid", resource=installment.id,
                   extra={"transaction_id": transaction.id, "number": installment.installment_number})
        return installment

    def mark_transaction_paid(self, user_id: str, transaction_id: str,
                              now: Optional[datetime] = None) -> Transaction:
        """Settle every pending installment; an EXPENSE becomes PAID"""
        transaction = self.require_transaction(user_id, transaction_id)
        now = now or datetime.now(timezone.utc)

        with self.storage.atomic():
            settled = 0
            for installment in self.get_installments(transaction.id):
                if installment.status == InstallmentStatus.PENDING:
                    installment.mark_paid(now)
                    self._save_installment(installment)
                    settled += 1

            if transaction.type == TransactionType.EXPENSE:
                transaction.type = TransactionType.PAID
                transaction.updated_at = now
                self._save_transaction(transaction)

        log_action(self.logger, "info", "Transaction paid",
                   user_id=user_id, action="transaction_paid", resource=transaction.id,
                   extra={"installments_settled": settled})
        return transaction

    def register_partial_payment(self, user_id: str, transaction_id: str, amount,
                                 now: Optional[datetime] = None) -> PartialPaymentResult:
        """
        Apply a payment to the earliest pending installments of a plan

        Returns:
            The transaction, its installments after the payment, the amount
            applied and the amount left unapplied
        """
        amount = positive_amount(amount)
        transaction = self.require_transaction(user_id, transaction_id)
        if not transaction.is_installment_plan:
            raise ValidationError("Partial payments are only allowed on installment plans")
        now = now or datetime.now(timezone.utc)

        with self.storage.atomic():
            installments = self.get_installments(transaction.id)
            if not any(not inst.is_paid for inst in installments):
                raise ValidationError("No pending installments left")

            allocation = allocate_partial_payment(installments, amount)
            for installment in allocation.settled:
                installment.mark_paid(now)
                self._save_installment(installment)

        log_action(self.logger, "info", "Partial payment registered",
                   user_id=user_id, action="partial_payment", resource=transaction.id,
                   extra={"paid_amount": str(allocation.paid_amount),
                          "installments_settled": len(allocation.settled)})

        return PartialPaymentResult(
            transaction=transaction,
            installments=installments,
            paid_amount=allocation.paid_amount,
            remaining_amount=allocation.remaining_amount
        )

    def count_for_subscription(self, subscription_id: str) -> int:
        return len(self.storage.find(self.table_name, {"subscription_id": subscription_id}))

    def _check_links(self, user_id: str, category_id: Optional[str], account_id: Optional[str]) -> None:
        if category_id:
            self.category_manager.require_category(user_id, category_id)
        if account_id:
            self.account_manager.require_account(user_id, account_id)

    def _save_transaction(self, transaction: Transaction) -> None:
        self.storage.save(self.table_name, transaction.id, transaction.to_dict())

    def _save_installment(self, installment: TransactionInstallment) -> None:
        self.storage.save(self.installments_table, installment.id, installment.to_dict())
