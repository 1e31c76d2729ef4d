"""
Tests for user registration, authentication and password reset
"""

import pytest
from datetime import datetime, timezone, timedelta

from finance_core.storage import InMemoryStorage
from finance_core.config import FinanceConfig
from finance_core.users import UserManager
from finance_core.errors import ValidationError, ConflictError, UnauthorizedError


class TestUserManager:
    """Test user lifecycle"""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.config = FinanceConfig(password_min_length=6, password_reset_expiry_minutes=30)
        self.manager = UserManager(self.storage, self.config)

    def test_create_user(self):
        user = self.manager.create_user("Ana@Example.com", "secret1", "Ana")

        assert user.email == "ana@example.com"
        assert user.name == "Ana"
        assert user.password_hash != "secret1"
        assert len(user.password_salt) == 32
        assert self.manager.get_user(user.id).email == "ana@example.com"

    def test_public_dict_hides_credentials(self):
        user = self.manager.create_user("ana@example.com", "secret1")
        public = user.public_dict()

        assert set(public) == {"id", "email", "name", "created_at"}

    @pytest.mark.parametrize("email", ["", "not-an-email", "a@b", "@example.com"])
    def test_invalid_email(self, email):
        with pytest.raises(ValidationError):
            self.manager.create_user(email, "secret1")

    def test_short_password(self):
        with pytest.raises(ValidationError):
            self.manager.create_user("ana@example.com", "12345")

    def test_duplicate_email(self):
        self.manager.create_user("ana@example.com", "secret1")
        with pytest.raises(ConflictError):
            self.manager.create_user("ANA@example.com", "secret2")

    def test_authenticate(self):
        created = self.manager.create_user("ana@example.com", "secret1")

        assert self.manager.authenticate("ana@example.com", "secret1").id == created.id
        with pytest.raises(UnauthorizedError):
            self.manager.authenticate("ana@example.com", "wrong-password")
        with pytest.raises(UnauthorizedError):
            self.manager.authenticate("nobody@example.com", "secret1")

    def test_password_reset_flow(self):
        self.manager.create_user("ana@example.com", "secret1")
        now = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)

        token = self.manager.issue_password_reset("ana@example.com", now=now)
        assert token

        self.manager.reset_password(token, "new-secret", now=now + timedelta(minutes=10))
        assert self.manager.authenticate("ana@example.com", "new-secret")
        with pytest.raises(UnauthorizedError):
            self.manager.authenticate("ana@example.com", "secret1")

        # Tokens are single use
        with pytest.raises(UnauthorizedError):
            self.manager.reset_password(token, "another-secret", now=now + timedelta(minutes=11))

    def test_expired_reset_token(self):
        self.manager.create_user("ana@example.com", "secret1")
        now = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
        token = self.manager.issue_password_reset("ana@example.com", now=now)

        with pytest.raises(UnauthorizedError):
            self.manager.reset_password(token, "new-secret", now=now + timedelta(minutes=31))

    def test_reset_for_unknown_email(self):
        assert self.manager.issue_password_reset("nobody@example.com") is None

    def test_update_profile_and_change_password(self):
        user = self.manager.create_user("ana@example.com", "secret1")
        other = self.manager.create_user("bia@example.com", "secret1")

        updated = self.manager.update_profile(user.id, name="Ana Maria", email="ana.maria@example.com")
        assert updated.name == "Ana Maria"
        assert self.manager.get_user_by_email("ana.maria@example.com").id == user.id

        with pytest.raises(ConflictError):
            self.manager.update_profile(user.id, email=other.email)

        with pytest.raises(ValidationError):
            self.manager.change_password(user.id, "wrong", "new-secret")
        self.manager.change_password(user.id, "secret1", "new-secret")
        assert self.manager.authenticate("ana.maria@example.com", "new-secret")
