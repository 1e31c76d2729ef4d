"""
Financial Summary Module

Income, expense and balance totals over all time or over a period. Installment
plans contribute through their installments and subscriptions contribute
their projected occurrences within a period. Settled (PAID) transactions are
not counted.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import List, Optional
import logging

from .transactions import TransactionManager, TransactionType, Transaction
from .subscriptions import SubscriptionManager
from .dates import month_range
from .errors import ValidationError
from .logging_config import get_logger


@dataclass
class FinancialSummary:
    """Totals for a user over a period"""
    total_income: Decimal = Decimal('0')
    total_expenses: Decimal = Decimal('0')
    transaction_count: int = 0

    @property
    def balance(self) -> Decimal:
        return self.total_income - self.total_expenses

    def add(self, type: TransactionType, amount: Decimal) -> None:
        if type == TransactionType.INCOME:
            self.total_income += amount
        elif type == TransactionType.EXPENSE:
            self.total_expenses += amount
        else:
            return
        self.transaction_count += 1


@dataclass
class Dashboard:
    """All-time and current-month totals with the latest transactions"""
    year: int
    month: int
    all_time: FinancialSummary
    current_month: FinancialSummary
    recent_transactions: List[Transaction] = field(default_factory=list)


class SummaryAggregator:
    """
    Aggregates transactions, installments and projected subscription
    occurrences into financial summaries
    """

    def __init__(self, transaction_manager: TransactionManager, subscription_manager: SubscriptionManager,
                 logger: Optional[logging.Logger] = None):
        self.transaction_manager = transaction_manager
        self.subscription_manager = subscription_manager
        self.logger = logger or get_logger(__name__)

    def summarize(self, user_id: str, start: Optional[datetime] = None,
                  end: Optional[datetime] = None) -> FinancialSummary:
        """
        Summarize a user's finances

        Args:
            user_id: Owner
            start: Period start (inclusive); omit with end for all time
            end: Period end (inclusive)

        Returns:
            FinancialSummary with totals, balance and contributing item count
        """
        if (start is None) != (end is None):
            raise ValidationError("Both start and end are required for a period summary")
        if start is not None and end < start:
            raise ValidationError("Period end cannot be before its start")

        summary = FinancialSummary()
        transactions = self.transaction_manager.list_all(user_id)

        if start is None:
            for transaction in transactions:
                if transaction.is_installment_plan:
                    installments = self.transaction_manager.get_installments(transaction.id)
                    total = sum((inst.amount for inst in installments), Decimal('0'))
                    summary.add(transaction.type, total)
                else:
                    summary.add(transaction.type, transaction.amount)
            return summary

        for transaction in transactions:
            if transaction.is_installment_plan:
                for installment in self.transaction_manager.get_installments(transaction.id):
                    if start <= installment.due_date <= end:
                        summary.add(transaction.type, installment.amount)
            elif start <= transaction.date <= end:
                summary.add(transaction.type, transaction.amount)

        for occurrence in self.subscription_manager.virtual_transactions(user_id, start, end):
            summary.add(occurrence.type, occurrence.amount)

        return summary

    def summarize_month(self, user_id: str, year: int, month: int) -> FinancialSummary:
        start, end = month_range(year, month)
        return self.summarize(user_id, start, end)

    def dashboard(self, user_id: str, now: Optional[datetime] = None) -> Dashboard:
        now = now or datetime.now(timezone.utc)
        return Dashboard(
            year=now.year,
            month=now.month,
            all_time=self.summarize(user_id),
            current_month=self.summarize_month(user_id, now.year, now.month),
            recent_transactions=self.transaction_manager.recent_transactions(user_id)
        )
