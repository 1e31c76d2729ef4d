"""
Account Management Module

Named money containers (checking, savings, wallet...) owned by a user.
Account names are unique per user, ignoring case. Deleting an account keeps
its transactions, debts and subscriptions and clears their account link.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import List, Optional
import logging
import uuid

from .storage import StorageInterface, StorageRecord
from .amounts import to_decimal
from .errors import ValidationError, ConflictError, NotFoundError
from .logging_config import get_logger, log_action


@dataclass
class Account(StorageRecord):
    """Money container belonging to one user"""
    user_id: str
    name: str
    type: str
    balance: Decimal = Decimal('0')


class AccountManager:
    """
    Manages accounts and their uniqueness and set-null rules
    """

    def __init__(self, storage: StorageInterface, logger: Optional[logging.Logger] = None):
        self.storage = storage
        self.logger = logger or get_logger(__name__)
        self.table_name = "accounts"
        # Tables holding an optional account_id link
        self.linked_tables = ("transactions", "debts", "subscriptions")

    def create_account(self, user_id: str, name: str, type: str, balance=None) -> Account:
        """Create a new account for a user"""
        if not name or not name.strip() or not type:
            raise ValidationError("Account name and type are required")

        name = name.strip()
        self._check_unique_name(user_id, name)

        now = datetime.now(timezone.utc)
        account = Account(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            user_id=user_id,
            name=name,
            type=type,
            balance=to_decimal(balance, "balance") if balance is not None else Decimal('0')
        )
        self._save_account(account)

        log_action(self.logger, "info", "Account created",
                   user_id=user_id, action="account_created", resource=account.id)
        return account

    def get_account(self, user_id: str, account_id: str) -> Optional[Account]:
        """Get an account if it belongs to the user"""
        data = self.storage.load(self.table_name, account_id)
        if data and data.get('user_id') == user_id:
            return Account.from_dict(data)
        return None

    def require_account(self, user_id: str, account_id: str) -> Account:
        account = self.get_account(user_id, account_id)
        if not account:
            raise NotFoundError("Account not found")
        return account

    def list_accounts(self, user_id: str) -> List[Account]:
        """All accounts of a user, ordered by name"""
        accounts = [Account.from_dict(data) for data in self.storage.find(self.table_name, {"user_id": user_id})]
        accounts.sort(key=lambda a: a.name.lower())
        return accounts

    def update_account(self, user_id: str, account_id: str, name: Optional[str] = None,
                       type: Optional[str] = None, balance=None) -> Account:
        """Update account fields that were provided"""
        account = self.require_account(user_id, account_id)

        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Account name cannot be empty")
            if name.lower() != account.name.lower():
                self._check_unique_name(user_id, name, exclude_id=account.id)
            account.name = name
        if type is not None:
            account.type = type
        if balance is not None:
            account.balance = to_decimal(balance, "balance")

        account.updated_at = datetime.now(timezone.utc)
        self._save_account(account)
        return account

    def delete_account(self, user_id: str, account_id: str) -> None:
        """Delete an account, clearing the link on dependent records"""
        account = self.require_account(user_id, account_id)

        with self.storage.atomic():
            for table in self.linked_tables:
                self.storage.update_where(table, {"account_id": account.id}, {"account_id": None})
            self.storage.delete(self.table_name, account.id)

        log_action(self.logger, "info", "Account deleted",
                   user_id=user_id, action="account_deleted", resource=account.id)

    def _check_unique_name(self, user_id: str, name: str, exclude_id: Optional[str] = None) -> None:
        for data in self.storage.find(self.table_name, {"user_id": user_id}):
            if data['id'] != exclude_id and data['name'].lower() == name.lower():
                raise ConflictError("An account with this name already exists")

    def _save_account(self, account: Account) -> None:
        self.storage.save(self.table_name, account.id, account.to_dict())
