"""
User Management Module

Manages ledger users: signup, credential checks and the password reset flow.
Every other entity in the ledger is owned, directly or transitively, by a user.
"""

from datetime import datetime, timezone, timedelta
from dataclasses import dataclass
from typing import Optional
import hashlib
import logging
import re
import secrets
import uuid

from .storage import StorageInterface, StorageRecord
from .config import FinanceConfig, get_config
from .errors import ValidationError, ConflictError, UnauthorizedError
from .logging_config import get_logger, log_action


EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'


@dataclass
class User(StorageRecord):
    """Ledger user with salted password hash"""
    email: str
    name: Optional[str]
    password_hash: str
    password_salt: str
    password_reset_token: Optional[str] = None
    password_reset_expires_at: Optional[datetime] = None

    def public_dict(self) -> dict:
        """User fields safe to return to clients"""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "created_at": self.created_at.isoformat()
        }


class UserManager:
    """
    Manages user lifecycle and credentials
    """

    def __init__(self, storage: StorageInterface, config: Optional[FinanceConfig] = None,
                 logger: Optional[logging.Logger] = None):
        self.storage = storage
        self.config = config or get_config()
        self.logger = logger or get_logger(__name__)
        self.table_name = "users"

    def create_user(self, email: str, password: str, name: Optional[str] = None) -> User:
        """
        Register a new user

        Args:
            email: Login email, unique across the ledger
            password: Plain text password, hashed before storage
            name: Optional display name

        Returns:
            Created User object
        """
        email = (email or "").strip().lower()
        if not re.match(EMAIL_PATTERN, email):
            raise ValidationError("Invalid email format")
        self._validate_password(password)

        if self.get_user_by_email(email):
            raise ConflictError("Email already in use")

        now = datetime.now(timezone.utc)
        salt = self._generate_salt()
        user = User(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            email=email,
            name=name,
            password_hash=self._hash_password(password, salt),
            password_salt=salt
        )
        self._save_user(user)

        log_action(self.logger, "info", "User registered",
                   user_id=user.id, action="user_created", resource="user")
        return user

    def authenticate(self, email: str, password: str) -> User:
        """Return the user for valid credentials; generic error otherwise"""
        user = self.get_user_by_email(email or "")
        if not user or not self._verify_password(user, password or ""):
            raise UnauthorizedError("Invalid credentials")
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        """Get user by ID"""
        data = self.storage.load(self.table_name, user_id)
        if data:
            return User.from_dict(data)
        return None

    def get_user_by_email(self, email: str) -> Optional[User]:
        """Get user by email address"""
        users = self.storage.find(self.table_name, {"email": email.strip().lower()})
        if users:
            return User.from_dict(users[0])
        return None

    def issue_password_reset(self, email: str, now: Optional[datetime] = None) -> Optional[str]:
        """
        Create a single-use password reset token for a user

        Returns:
            The reset token to deliver to the user out of band, or None when
            no user has this email
        """
        user = self.get_user_by_email(email or "")
        if not user:
            return None

        now = now or datetime.now(timezone.utc)
        user.password_reset_token = secrets.token_urlsafe(32)
        user.password_reset_expires_at = now + timedelta(minutes=self.config.password_reset_expiry_minutes)
        user.updated_at = now
        self._save_user(user)

        log_action(self.logger, "info", "Password reset requested",
                   user_id=user.id, action="password_reset_requested", resource="user")
        return user.password_reset_token

    def reset_password(self, token: str, new_password: str, now: Optional[datetime] = None) -> User:
        """Set a new password using a valid, unexpired reset token"""
        now = now or datetime.now(timezone.utc)
        matches = self.storage.find(self.table_name, {"password_reset_token": token}) if token else []
        if not matches:
            raise UnauthorizedError("Invalid or expired reset token")

        user = User.from_dict(matches[0])
        if not user.password_reset_expires_at or user.password_reset_expires_at < now:
            raise UnauthorizedError("Invalid or expired reset token")

        self._validate_password(new_password)
        user.password_salt = self._generate_salt()
        user.password_hash = self._hash_password(new_password, user.password_salt)
        user.password_reset_token = None
        user.password_reset_expires_at = None
        user.updated_at = now
        self._save_user(user)

        log_action(self.logger, "info", "Password reset completed",
                   user_id=user.id, action="password_reset", resource="user")
        return user

    def update_profile(self, user_id: str, name: Optional[str] = None, email: Optional[str] = None) -> User:
        """Change display name and/or email of a user"""
        user = self.get_user(user_id)
        if not user:
            raise UnauthorizedError("User not found")

        if email is not None:
            email = email.strip().lower()
            if not re.match(EMAIL_PATTERN, email):
                raise ValidationError("Invalid email format")
            existing = self.get_user_by_email(email)
            if existing and existing.id != user.id:
                raise ConflictError("Email already in use")
            user.email = email
        if name is not None:
            user.name = name

        user.updated_at = datetime.now(timezone.utc)
        self._save_user(user)
        return user

    def change_password(self, user_id: str, current_password: str, new_password: str) -> User:
        """Replace the password after checking the current one"""
        user = self.get_user(user_id)
        if not user or not self._verify_password(user, current_password or ""):
            raise ValidationError("Current password is incorrect")

        self._validate_password(new_password)
        user.password_salt = self._generate_salt()
        user.password_hash = self._hash_password(new_password, user.password_salt)
        user.updated_at = datetime.now(timezone.utc)
        self._save_user(user)

        log_action(self.logger, "info", "Password changed",
                   user_id=user.id, action="password_changed", resource="user")
        return user

    def _validate_password(self, password: str) -> None:
        if not password:
            raise ValidationError("Password is required")
        if len(password) < self.config.password_min_length:
            raise ValidationError(
                f"Password must be at least {self.config.password_min_length} characters"
            )

    def _generate_salt(self) -> str:
        return secrets.token_hex(16)

    def _hash_password(self, password: str, salt: str) -> str:
        return hashlib.scrypt(
            password.encode(),
            salt=salt.encode(),
            n=16384, r=8, p=1
        ).hex()

    def _verify_password(self, user: User, password: str) -> bool:
        expected = self._hash_password(password, user.password_salt)
        return secrets.compare_digest(expected, user.password_hash)

    def _save_user(self, user: User) -> None:
        self.storage.save(self.table_name, user.id, user.to_dict())
