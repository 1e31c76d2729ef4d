"""
Personal Finance Ledger

Bookkeeping core for personal finances: accounts, categorized transactions,
installment plans, recurring subscriptions and debts owed by third parties,
with all monetary math done in Decimal.
"""

__version__ = "1.0.0"
