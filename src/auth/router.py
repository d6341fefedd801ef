# src/auth/router.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import schemas
from src.auth.dependencies import (
    AuthenticatedUser,
    get_auth_service,
    get_current_user,
    get_refresh_user,
)
from src.auth.service import AuthService
from src.database import get_async_session
from src.profile.schemas import ProfileView

router = APIRouter()


@router.post(
    "/signup", response_model=schemas.AuthResponse, status_code=status.HTTP_201_CREATED
)
async def signup(
    payload: schemas.SignupRequest,
    service: AuthService = Depends(get_auth_service),
    db: AsyncSession = Depends(get_async_session),
):
    return await service.signup(
        payload.name,
        payload.user_type,
        payload.email,
        payload.password,
        payload.ref_code,
        db,
    )


@router.post("/login", response_model=schemas.AuthResponse)
async def login(
    payload: schemas.LoginRequest,
    service: AuthService = Depends(get_auth_service),
    db: AsyncSession = Depends(get_async_session),
):
    return await service.login(payload.email, payload.password, db)


@router.post(
    "/google-signup",
    response_model=schemas.AuthResponse,
    status_code=status.HTTP_201_CREATED,
)
async def google_signup(
    payload: schemas.GoogleSignupRequest,
    service: AuthService = Depends(get_auth_service),
    db: AsyncSession = Depends(get_async_session),
):
    return await service.google_signup(
        payload.auth_token, payload.user_type, payload.ref_code, db
    )


@router.post("/google-login", response_model=schemas.AuthResponse)
async def google_login(
    payload: schemas.GoogleLoginRequest,
    service: AuthService = Depends(get_auth_service),
    db: AsyncSession = Depends(get_async_session),
):
    return await service.google_login(payload.auth_token, db)


@router.post("/resend-otp", response_model=schemas.MessageResponse)
async def resend_otp(
    payload: schemas.EmailRequest,
    service: AuthService = Depends(get_auth_service),
    db: AsyncSession = Depends(get_async_session),
):
    return await service.resend_activation_code(payload.email, db)


@router.post("/verify-account", response_model=schemas.AuthResponse)
async def verify_account(
    payload: schemas.VerifyAccountRequest,
    service: AuthService = Depends(get_auth_service),
    db: AsyncSession = Depends(get_async_session),
):
    return await service.activate_account(payload.email, payload.otp, db)


@router.post("/forgot-password", response_model=schemas.MessageResponse)
async def forgot_password(
    payload: schemas.EmailRequest,
    service: AuthService = Depends(get_auth_service),
    db: AsyncSession = Depends(get_async_session),
):
    return await service.request_password_reset(payload.email, db)


@router.post(
    "/verify-otp",
    response_model=schemas.ResetTokenResponse | schemas.OtpVerificationResponse,
)
async def verify_otp(
    payload: schemas.VerifyOtpRequest,
    service: AuthService = Depends(get_auth_service),
    db: AsyncSession = Depends(get_async_session),
):
    return await service.verify_otp(payload.email, payload.otp, payload.type, db)


@router.post("/reset-password", response_model=schemas.MessageResponse)
async def reset_password(
    payload: schemas.ResetPasswordRequest,
    service: AuthService = Depends(get_auth_service),
    db: AsyncSession = Depends(get_async_session),
):
    return await service.reset_password(payload.token, payload.new_password, db)


@router.post("/change-password", response_model=schemas.MessageResponse)
async def change_password(
    payload: schemas.ChangePasswordRequest,
    current: AuthenticatedUser = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
    db: AsyncSession = Depends(get_async_session),
):
    return await service.change_password(
        current.user.id, payload.old_password, payload.new_password, db
    )


@router.post("/refresh-token", response_model=schemas.Token)
async def refresh_token(
    current: AuthenticatedUser = Depends(get_refresh_user),
    service: AuthService = Depends(get_auth_service),
    db: AsyncSession = Depends(get_async_session),
):
    return await service.refresh_session(current.session, current.token, db)


@router.post("/logout", response_model=schemas.LogoutResponse)
async def logout(
    current: AuthenticatedUser = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
    db: AsyncSession = Depends(get_async_session),
):
    return await service.logout(current.user.id, current.jti, db)


@router.get("/me", response_model=ProfileView)
async def get_me(
    current: AuthenticatedUser = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
    db: AsyncSession = Depends(get_async_session),
):
    return await service.get_me(current.user, db)
