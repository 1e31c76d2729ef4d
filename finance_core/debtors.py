"""
Debtor Management Module

Third parties who owe the user money. A debtor owns its debts; deleting a
debtor removes the debts and their payments with it.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import List, Optional
import logging
import uuid

from .storage import StorageInterface, StorageRecord
from .errors import ValidationError, NotFoundError
from .logging_config import get_logger, log_action


@dataclass
class Debtor(StorageRecord):
    """Person or entity owing money to a user"""
    user_id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None


class DebtorManager:
    """
    Manages debtors and the debt cascade on delete
    """

    def __init__(self, storage: StorageInterface, logger: Optional[logging.Logger] = None):
        self.storage = storage
        self.logger = logger or get_logger(__name__)
        self.table_name = "debtors"

    def create_debtor(self, user_id: str, name: str, email: Optional[str] = None,
                      phone: Optional[str] = None) -> Debtor:
        if not name or not name.strip():
            raise ValidationError("Debtor name is required")

        now = datetime.now(timezone.utc)
        debtor = Debtor(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            user_id=user_id,
            name=name.strip(),
            email=email,
            phone=phone
        )
        self._save_debtor(debtor)

        log_action(self.logger, "info", "Debtor created",
                   user_id=user_id, action="debtor_created", resource=debtor.id)
        return debtor

    def get_debtor(self, user_id: str, debtor_id: str) -> Optional[Debtor]:
        data = self.storage.load(self.table_name, debtor_id)
        if data and data.get('user_id') == user_id:
            return Debtor.from_dict(data)
        return None

    def require_debtor(self, user_id: str, debtor_id: str) -> Debtor:
        debtor = self.get_debtor(user_id, debtor_id)
        if not debtor:
            raise NotFoundError("Debtor not found")
        return debtor

    def list_debtors(self, user_id: str) -> List[Debtor]:
        debtors = [Debtor.from_dict(data) for data in self.storage.find(self.table_name, {"user_id": user_id})]
        debtors.sort(key=lambda d: d.name.lower())
        return debtors

    def update_debtor(self, user_id: str, debtor_id: str, name: Optional[str] = None,
                      email: Optional[str] = None, phone: Optional[str] = None) -> Debtor:
        debtor = self.require_debtor(user_id, debtor_id)

        if name is not None:
            if not name.strip():
                raise ValidationError("Debtor name cannot be empty")
            debtor.name = name.strip()
        if email is not None:
            debtor.email = email or None
        if phone is not None:
            debtor.phone = phone or None

        debtor.updated_at = datetime.now(timezone.utc)
        self._save_debtor(debtor)
        return debtor

    def delete_debtor(self, user_id: str, debtor_id: str) -> None:
        """Delete a debtor together with its debts and their payments"""
        debtor = self.require_debtor(user_id, debtor_id)

        with self.storage.atomic():
            for debt in self.storage.find("debts", {"debtor_id": debtor.id}):
                self.storage.delete_where("payments", {"debt_id": debt['id']})
                self.storage.delete("debts", debt['id'])
            self.storage.delete(self.table_name, debtor.id)

        log_action(self.logger, "info", "Debtor deleted",
                   user_id=user_id, action="debtor_deleted", resource=debtor.id)

    def _save_debtor(self, debtor: Debtor) -> None:
        self.storage.save(self.table_name, debtor.id, debtor.to_dict())
