"""
Authentication dependencies and token issuance
"""

from datetime import datetime, timezone, timedelta
from typing import Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ..system import FinanceSystem
from ..users import User
from ..config import FinanceConfig
from ..errors import UnauthorizedError


security = HTTPBearer(auto_error=False)


def get_finance_system(request: Request) -> FinanceSystem:
    """Dependency returning the finance system attached to the app"""
    return request.app.state.system


def create_access_token(user: User, config: FinanceConfig, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    token_payload = {
        "sub": user.id,
        "email": user.email,
        "exp": now + timedelta(hours=config.jwt_expiry_hours),
        "iat": now
    }
    return jwt.encode(token_payload, config.jwt_secret, algorithm=config.jwt_algorithm)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    system: FinanceSystem = Depends(get_finance_system)
) -> User:
    """Dependency that validates the bearer JWT and returns the user"""
    if not credentials:
        raise UnauthorizedError("Not authenticated")
    try:
        payload = jwt.decode(
            credentials.credentials,
            system.config.jwt_secret,
            algorithms=[system.config.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token expired")
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid token")

    user_id = payload.get("sub")
    user = system.user_manager.get_user(user_id) if user_id else None
    if not user:
        raise UnauthorizedError("Invalid token")
    return user
