"""
Recurring Subscription Module

Subscriptions describe a repeating income or expense. Due occurrences are
materialized into real transactions by batch processing (one occurrence per
subscription per run); future occurrences are projected as virtual
transactions that are never persisted.
"""

from decimal import Decimal
from datetime import datetime, timezone, timedelta
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from enum import Enum
import logging
import threading
import uuid

from .storage import StorageInterface, StorageRecord
from .accounts import AccountManager
from .categories import CategoryManager
from .transactions import TransactionManager, TransactionType, Transaction, parse_transaction_type
from .amounts import positive_amount
from .dates import add_months, add_years, parse_datetime, parse_optional_datetime
from .config import FinanceConfig, get_config
from .errors import ValidationError, ConflictError, NotFoundError, InvalidFrequencyError
from .logging_config import get_logger, log_action


class SubscriptionFrequency(Enum):
    """Recurrence period of a subscription"""
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


def parse_subscription_frequency(value) -> SubscriptionFrequency:
    if isinstance(value, SubscriptionFrequency):
        return value
    try:
        return SubscriptionFrequency(str(value).upper())
    except ValueError:
        raise InvalidFrequencyError(f"Invalid subscription frequency: {value!r}")


def compute_next_date(base: datetime, frequency) -> datetime:
    """Advance a date by one subscription period, clamped to month end"""
    frequency = parse_subscription_frequency(frequency)
    if frequency == SubscriptionFrequency.DAILY:
        return base + timedelta(days=1)
    if frequency == SubscriptionFrequency.WEEKLY:
        return base + timedelta(days=7)
    if frequency == SubscriptionFrequency.MONTHLY:
        return add_months(base, 1)
    return add_years(base, 1)


@dataclass
class Subscription(StorageRecord):
    """Recurring income or expense of a user"""
    user_id: str
    name: str
    amount: Decimal
    type: TransactionType
    frequency: SubscriptionFrequency
    start_date: datetime
    next_payment_date: datetime
    description: Optional[str] = None
    end_date: Optional[datetime] = None
    is_active: bool = True
    last_processed_at: Optional[datetime] = None
    category_id: Optional[str] = None
    account_id: Optional[str] = None

    def is_due(self, now: datetime) -> bool:
        """Active, reached its next date and not past its end date"""
        if not self.is_active or self.next_payment_date > now:
            return False
        return self.end_date is None or self.end_date >= now


@dataclass
class VirtualTransaction:
    """Projected, unpersisted occurrence of a subscription"""
    id: str
    user_id: str
    subscription_id: str
    description: str
    amount: Decimal
    date: datetime
    type: TransactionType
    category_id: Optional[str] = None
    account_id: Optional[str] = None
    is_recurring: bool = True
    is_virtual: bool = True


def project_virtual_transactions(subscriptions: List[Subscription], start: datetime,
                                 end: datetime) -> List[VirtualTransaction]:
    """
    Project the occurrences of active subscriptions falling in [start, end]

    Walks each subscription from its next payment date, so occurrences that
    were already materialized are never projected again.
    """
    projected = []
    for subscription in subscriptions:
        if not subscription.is_active or subscription.start_date > end:
            continue

        current = subscription.next_payment_date
        while current <= end:
            if subscription.end_date is not None and current > subscription.end_date:
                break
            if current >= start:
                projected.append(VirtualTransaction(
                    id=f"virtual-{subscription.id}-{int(current.timestamp() * 1000)}",
                    user_id=subscription.user_id,
                    subscription_id=subscription.id,
                    description=subscription.name,
                    amount=subscription.amount,
                    date=current,
                    type=subscription.type,
                    category_id=subscription.category_id,
                    account_id=subscription.account_id
                ))
            current = compute_next_date(current, subscription.frequency)

    projected.sort(key=lambda v: v.date)
    return projected


@dataclass
class ProcessingResult:
    """Outcome of one batch processing run"""
    processed_count: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)
    created_transactions: List[Transaction] = field(default_factory=list)


@dataclass
class SubscriptionView:
    """Subscription with its derived list fields"""
    subscription: Subscription
    is_overdue: bool
    transaction_count: int


class SubscriptionManager:
    """
    Manages subscriptions, their batch processing and projection
    """

    def __init__(
        self,
        storage: StorageInterface,
        account_manager: AccountManager,
        category_manager: CategoryManager,
        transaction_manager: TransactionManager,
        config: Optional[FinanceConfig] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.storage = storage
        self.account_manager = account_manager
        self.category_manager = category_manager
        self.transaction_manager = transaction_manager
        self.config = config or get_config()
        self.logger = logger or get_logger(__name__)
        self.table_name = "subscriptions"

    def create_subscription(
        self,
        user_id: str,
        name: str,
        amount,
        type,
        frequency,
        start_date,
        description: Optional[str] = None,
        end_date=None,
        category_id: Optional[str] = None,
        account_id: Optional[str] = None
    ) -> Subscription:
        """
        Create a subscription

        The first payment is one period after start_date.
        """
        if not name or not name.strip():
            raise ValidationError("Subscription name is required")
        if frequency is None or start_date is None or type is None:
            raise ValidationError("Amount, type, frequency and start date are required")
        amount = positive_amount(amount)
        tx_type = parse_transaction_type(type, allow_paid=False)
        frequency = parse_subscription_frequency(frequency)
        start_date = parse_datetime(start_date, "start_date")
        end_date = parse_optional_datetime(end_date, "end_date")
        if end_date is not None and end_date < start_date:
            raise ValidationError("End date cannot be before start date")

        name = name.strip()
        self._check_unique_name(user_id, name)
        self._check_links(user_id, category_id, account_id)

        now = datetime.now(timezone.utc)
        subscription = Subscription(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            user_id=user_id,
            name=name,
            description=description,
            amount=amount,
            type=tx_type,
            frequency=frequency,
            start_date=start_date,
            end_date=end_date,
            next_payment_date=compute_next_date(start_date, frequency),
            category_id=category_id,
            account_id=account_id
        )
        self._save_subscription(subscription)

        log_action(self.logger, "info", "Subscription created",
                   user_id=user_id, action="subscription_created", resource=subscription.id,
                   extra={"frequency": frequency.value,
                          "next_payment_date": subscription.next_payment_date.isoformat()})
        return subscription

    def get_subscription(self, user_id: str, subscription_id: str) -> Optional[Subscription]:
        data = self.storage.load(self.table_name, subscription_id)
        if data and data.get('user_id') == user_id:
            return Subscription.from_dict(data)
        return None

    def require_subscription(self, user_id: str, subscription_id: str) -> Subscription:
        subscription = self.get_subscription(user_id, subscription_id)
        if not subscription:
            raise NotFoundError("Subscription not found")
        return subscription

    def list_subscriptions(self, user_id: str, now: Optional[datetime] = None) -> List[SubscriptionView]:
        """Subscriptions ordered by next payment date, with overdue flag and transaction count"""
        now = now or datetime.now(timezone.utc)
        subscriptions = self._load_for_user(user_id)
        subscriptions.sort(key=lambda s: s.next_payment_date)
        return [self.view(subscription, now) for subscription in subscriptions]

    def view(self, subscription: Subscription, now: Optional[datetime] = None) -> SubscriptionView:
        now = now or datetime.now(timezone.utc)
        return SubscriptionView(
            subscription=subscription,
            is_overdue=subscription.is_active and subscription.next_payment_date < now,
            transaction_count=self.transaction_manager.count_for_subscription(subscription.id)
        )

    def update_subscription(self, user_id: str, subscription_id: str, **changes) -> Subscription:
        """
        Update subscription fields

        Changing frequency or start date recomputes the next payment date from
        the last processed occurrence, or from the start date if none.
        """
        subscription = self.require_subscription(user_id, subscription_id)

        allowed = {"name", "description", "amount", "type", "frequency", "start_date",
                   "end_date", "is_active", "category_id", "account_id"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        reschedule = False
        if changes.get("name") is not None:
            name = changes["name"].strip()
            if not name:
                raise ValidationError("Subscription name cannot be empty")
            if name.lower() != subscription.name.lower():
                self._check_unique_name(user_id, name, exclude_id=subscription.id)
            subscription.name = name
        if "description" in changes:
            subscription.description = changes["description"]
        if changes.get("amount") is not None:
            subscription.amount = positive_amount(changes["amount"])
        if changes.get("type") is not None:
            subscription.type = parse_transaction_type(changes["type"], allow_paid=False)
        if changes.get("frequency") is not None:
            frequency = parse_subscription_frequency(changes["frequency"])
            reschedule = reschedule or frequency != subscription.frequency
            subscription.frequency = frequency
        if changes.get("start_date") is not None:
            start_date = parse_datetime(changes["start_date"], "start_date")
            reschedule = reschedule or start_date != subscription.start_date
            subscription.start_date = start_date
        if "end_date" in changes:
            subscription.end_date = parse_optional_datetime(changes["end_date"], "end_date")
        if changes.get("is_active") is not None:
            subscription.is_active = bool(changes["is_active"])
        if "category_id" in changes:
            self._check_links(user_id, changes["category_id"], None)
            subscription.category_id = changes["category_id"]
        if "account_id" in changes:
            self._check_links(user_id, None, changes["account_id"])
            subscription.account_id = changes["account_id"]

        if subscription.end_date is not None and subscription.end_date < subscription.start_date:
            raise ValidationError("End date cannot be before start date")

        if reschedule:
            base = subscription.last_processed_at or subscription.start_date
            subscription.next_payment_date = compute_next_date(base, subscription.frequency)

        subscription.updated_at = datetime.now(timezone.utc)
        self._save_subscription(subscription)
        return subscription

    def delete_subscription(self, user_id: str, subscription_id: str) -> None:
        """Delete a subscription; generated transactions are kept and unlinked"""
        subscription = self.require_subscription(user_id, subscription_id)

        with self.storage.atomic():
            self.storage.update_where("transactions", {"subscription_id": subscription.id},
                                      {"subscription_id": None})
            self.storage.delete(self.table_name, subscription.id)

        log_action(self.logger, "info", "Subscription deleted",
                   user_id=user_id, action="subscription_deleted", resource=subscription.id)

    def toggle_subscription(self, user_id: str, subscription_id: str) -> Subscription:
        subscription = self.require_subscription(user_id, subscription_id)
        subscription.is_active = not subscription.is_active
        subscription.updated_at = datetime.now(timezone.utc)
        self._save_subscription(subscription)

        log_action(self.logger, "info", "Subscription toggled",
                   user_id=user_id, action="subscription_toggled", resource=subscription.id,
                   extra={"is_active": subscription.is_active})
        return subscription

    def upcoming(self, user_id: str, days: Optional[int] = None,
                 now: Optional[datetime] = None) -> List[Subscription]:
        """Active subscriptions whose next payment falls within the next days"""
        now = now or datetime.now(timezone.utc)
        days = self.config.upcoming_subscription_days if days is None else days
        if days < 0:
            raise ValidationError("Days cannot be negative")
        horizon = now + timedelta(days=days)

        upcoming = [
            s for s in self._load_for_user(user_id)
            if s.is_active and now <= s.next_payment_date <= horizon
        ]
        upcoming.sort(key=lambda s: s.next_payment_date)
        return upcoming

    def virtual_transactions(self, user_id: str, start: datetime, end: datetime) -> List[VirtualTransaction]:
        return project_virtual_transactions(self._load_for_user(user_id), start, end)

    def process_due(self, now: Optional[datetime] = None, user_id: Optional[str] = None) -> ProcessingResult:
        """
        Materialize one occurrence of every due subscription

        Args:
            now: Reference time, defaults to the current time
            user_id: Restrict processing to one user's subscriptions

        Returns:
            ProcessingResult; failures of single subscriptions are collected
            and do not stop the run
        """
        now = now or datetime.now(timezone.utc)
        filters = {"is_active": True}
        if user_id:
            filters["user_id"] = user_id

        candidates = [Subscription.from_dict(data) for data in self.storage.find(self.table_name, filters)]
        due = [s for s in candidates if s.is_due(now)]

        result = ProcessingResult()
        for subscription in due:
            try:
                transaction = self._process_one(subscription.id, now)
            except Exception as e:
                self.logger.error(f"Failed to process subscription {subscription.id}: {e}")
                result.errors.append({"subscription_id": subscription.id, "error": str(e)})
                continue
            if transaction is not None:
                result.processed_count += 1
                result.created_transactions.append(transaction)

        log_action(self.logger, "info", "Subscription processing finished",
                   user_id=user_id, action="subscriptions_processed", resource="subscriptions",
                   extra={"processed": result.processed_count, "errors": len(result.errors)})
        return result

    def _process_one(self, subscription_id: str, now: datetime) -> Optional[Transaction]:
        with self.storage.atomic():
            data = self.storage.load(self.table_name, subscription_id)
            if not data:
                return None
            subscription = Subscription.from_dict(data)
            # Another run may have handled it since selection
            if not subscription.is_due(now):
                return None

            occurrence = subscription.next_payment_date
            transaction = self.transaction_manager.record_transaction(
                user_id=subscription.user_id,
                description=subscription.name,
                amount=subscription.amount,
                date=occurrence,
                type=subscription.type,
                category_id=subscription.category_id,
                account_id=subscription.account_id,
                is_recurring=True,
                subscription_id=subscription.id,
                now=now
            )

            subscription.last_processed_at = occurrence
            subscription.next_payment_date = compute_next_date(occurrence, subscription.frequency)
            subscription.updated_at = now
            self._save_subscription(subscription)

        self.logger.debug(f"Processed subscription {subscription.id} for {occurrence.isoformat()}")
        return transaction

    def _load_for_user(self, user_id: str) -> List[Subscription]:
        return [Subscription.from_dict(data) for data in self.storage.find(self.table_name, {"user_id": user_id})]

    def _check_unique_name(self, user_id: str, name: str, exclude_id: Optional[str] = None) -> None:
        for data in self.storage.find(self.table_name, {"user_id": user_id}):
            if data['id'] != exclude_id and data['name'].lower() == name.lower():
                raise ConflictError("A subscription with this name already exists")

    def _check_links(self, user_id: str, category_id: Optional[str], account_id: Optional[str]) -> None:
        if category_id:
            self.category_manager.require_category(user_id, category_id)
        if account_id:
            self.account_manager.require_account(user_id, account_id)

    def _save_subscription(self, subscription: Subscription) -> None:
        self.storage.save(self.table_name, subscription.id, subscription.to_dict())


class SubscriptionProcessor:
    """
    Background thread running subscription processing on a fixed interval

    Only one run executes at a time; a firing that overlaps a running batch
    is skipped.
    """

    def __init__(self, manager: SubscriptionManager, interval_seconds: Optional[float] = None,
                 logger: Optional[logging.Logger] = None):
        self.manager = manager
        self.interval_seconds = interval_seconds or manager.config.subscription_processing_interval_seconds
        self.logger = logger or get_logger(__name__)
        self._run_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="subscription-processor")
        self._thread.daemon = True
        self._thread.start()
        self.logger.info(f"Subscription processor started (interval {self.interval_seconds}s)")

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None
        self.logger.info("Subscription processor stopped")

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self, now: Optional[datetime] = None) -> Optional[ProcessingResult]:
        """Run one batch; returns None when a batch is already running"""
        if not self._run_lock.acquire(blocking=False):
            self.logger.warning("Subscription processing already running, skipping")
            return None
        try:
            return self.manager.process_due(now=now)
        finally:
            self._run_lock.release()

    def _loop(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.run_once()
            except Exception as e:
                self.logger.error(f"Subscription processing run failed: {e}")
