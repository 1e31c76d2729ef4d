"""
Installment Plan Module

Splits a transaction into N equal, dated installments and settles them one
at a time, all at once, or greedily from a partial payment. Installments are
atomic units: they are either PENDING or fully PAID.
"""

from decimal import Decimal
from datetime import datetime, timezone, timedelta
from dataclasses import dataclass, field
from typing import List, Optional
from enum import Enum
import uuid

from .storage import StorageRecord
from .dates import add_months
from .errors import InvalidInstallmentCountError, InvalidFrequencyError


MIN_INSTALLMENTS = 2
MAX_INSTALLMENTS = 48


class InstallmentFrequency(Enum):
    """Spacing between installments"""
    MONTHLY = "MONTHLY"
    WEEKLY = "WEEKLY"


class InstallmentStatus(Enum):
    """Payment state of a single installment"""
    PENDING = "PENDING"
    PAID = "PAID"


@dataclass
class TransactionInstallment(StorageRecord):
    """One scheduled slice of an installment-plan transaction"""
    transaction_id: str
    installment_number: int
    amount: Decimal
    due_date: datetime
    status: InstallmentStatus = InstallmentStatus.PENDING
    paid_date: Optional[datetime] = None

    @property
    def is_paid(self) -> bool:
        return self.status == InstallmentStatus.PAID

    def mark_paid(self, now: datetime) -> None:
        self.status = InstallmentStatus.PAID
        self.paid_date = now
        self.updated_at = now


@dataclass
class PartialPaymentAllocation:
    """Result of spreading a payment over pending installments"""
    settled: List[TransactionInstallment] = field(default_factory=list)
    paid_amount: Decimal = Decimal('0')
    remaining_amount: Decimal = Decimal('0')


def parse_installment_frequency(value) -> InstallmentFrequency:
    """Accept an enum member or its case-insensitive name"""
    if isinstance(value, InstallmentFrequency):
        return value
    try:
        return InstallmentFrequency(str(value).upper())
    except ValueError:
        raise InvalidFrequencyError("Installment frequency must be MONTHLY or WEEKLY")


def validate_installment_count(count) -> int:
    try:
        count = int(count)
    except (TypeError, ValueError):
        raise InvalidInstallmentCountError(f"Invalid installment count: {count!r}")
    if count < MIN_INSTALLMENTS or count > MAX_INSTALLMENTS:
        raise InvalidInstallmentCountError(
            f"Installment count must be between {MIN_INSTALLMENTS} and {MAX_INSTALLMENTS}"
        )
    return count


def next_installment_date(previous: datetime, frequency: InstallmentFrequency,
                          anchor_day: Optional[int] = None) -> datetime:
    if frequency == InstallmentFrequency.MONTHLY:
        return add_months(previous, 1, anchor_day=anchor_day)
    return previous + timedelta(days=7)


def generate_installment_schedule(
    transaction_id: str,
    amount: Decimal,
    count,
    frequency,
    first_installment_date: datetime,
    now: Optional[datetime] = None
) -> List[TransactionInstallment]:
    """
    Generate the installments of a plan

    Args:
        transaction_id: Parent transaction
        amount: Total amount of the plan
        count: Number of installments
        frequency: MONTHLY or WEEKLY
        first_installment_date: Due date of installment #1
        now: Creation timestamp

    Returns:
        Installments 1..count, all PENDING. Each installment is amount / count;
        the remainder of the division is not redistributed.
    """
    count = validate_installment_count(count)
    frequency = parse_installment_frequency(frequency)
    now = now or datetime.now(timezone.utc)

    installment_amount = Decimal(amount) / Decimal(count)
    anchor_day = first_installment_date.day

    schedule = []
    due_date = first_installment_date
    for number in range(1, count + 1):
        schedule.append(TransactionInstallment(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            transaction_id=transaction_id,
            installment_number=number,
            amount=installment_amount,
            due_date=due_date
        ))
        # Walk from the previous due date, pinned to the first date's day of month
        due_date = next_installment_date(due_date, frequency, anchor_day)

    return schedule


def allocate_partial_payment(installments: List[TransactionInstallment],
                             amount: Decimal) -> PartialPaymentAllocation:
    """
    Pay the earliest pending installments in full while the amount covers them.

    Stops at the first installment the remaining amount cannot cover; whatever
    is left over is returned as remaining_amount, never applied partially.
    """
    pending = sorted(
        (inst for inst in installments if not inst.is_paid),
        key=lambda inst: inst.installment_number
    )

    allocation = PartialPaymentAllocation(remaining_amount=amount)
    for installment in pending:
        if allocation.remaining_amount <= 0 or allocation.remaining_amount < installment.amount:
            break
        allocation.settled.append(installment)
        allocation.remaining_amount -= installment.amount

    allocation.paid_amount = amount - allocation.remaining_amount
    return allocation
