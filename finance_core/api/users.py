"""
User signup, login and password management endpoints
"""

from fastapi import APIRouter, Depends, status

from .auth import FinanceSystem, get_finance_system, get_current_user, create_access_token
from .schemas import (
    CreateUserRequest, LoginRequest, ForgotPasswordRequest, ResetPasswordRequest,
    UpdateProfileRequest, ChangePasswordRequest
)
from ..users import User
from ..logging_config import get_logger, log_action


router = APIRouter()
logger = get_logger("finance_core.api")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    request: CreateUserRequest,
    system: FinanceSystem = Depends(get_finance_system)
):
    """Register a new user"""
    user = system.user_manager.create_user(
        email=request.email,
        password=request.password,
        name=request.name
    )
    return user.public_dict()


@router.post("/login")
async def login(
    request: LoginRequest,
    system: FinanceSystem = Depends(get_finance_system)
):
    """Authenticate user and return JWT token"""
    try:
        user = system.user_manager.authenticate(request.email, request.password)
    except Exception:
        log_action(logger, "warning", "Authentication failed",
                   action="login_failed", resource="auth")
        raise

    log_action(logger, "info", "User authenticated successfully",
               user_id=user.id, action="login", resource="auth")

    return {
        "access_token": create_access_token(user, system.config),
        "token_type": "bearer",
        "user": user.public_dict()
    }


@router.get("/me")
async def get_me(user: User = Depends(get_current_user)):
    """Get the authenticated user"""
    return user.public_dict()


@router.put("/profile")
async def update_profile(
    request: UpdateProfileRequest,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    updated = system.user_manager.update_profile(user.id, name=request.name, email=request.email)
    return updated.public_dict()


@router.put("/change-password")
async def change_password(
    request: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    system: FinanceSystem = Depends(get_finance_system)
):
    system.user_manager.change_password(user.id, request.current_password, request.new_password)
    return {"message": "Password changed successfully"}


@router.post("/forgot-password")
async def forgot_password(
    request: ForgotPasswordRequest,
    system: FinanceSystem = Depends(get_finance_system)
):
    """Request a password reset; the answer does not reveal whether the email exists"""
    system.user_manager.issue_password_reset(request.email)
    return {"message": "If the email is registered, password reset instructions have been sent"}


@router.post("/reset-password")
async def reset_password(
    request: ResetPasswordRequest,
    system: FinanceSystem = Depends(get_finance_system)
):
    """Set a new password with a reset token"""
    system.user_manager.reset_password(request.token, request.password)
    return {"message": "Password reset successfully"}
