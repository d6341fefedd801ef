# src/auth/schemas.py


from pydantic import BaseModel, EmailStr, Field

from src.auth.config import auth_settings
from src.auth.models import UserType
from src.otp.models import OtpType
from src.profile.schemas import ProfileView


class SignupRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    user_type: UserType
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    ref_code: str | None = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class GoogleSignupRequest(BaseModel):
    auth_token: str = Field(..., min_length=1)
    user_type: UserType
    ref_code: str | None = None


class GoogleLoginRequest(BaseModel):
    auth_token: str = Field(..., min_length=1)


class EmailRequest(BaseModel):
    email: EmailStr


class VerifyAccountRequest(BaseModel):
    email: EmailStr
    otp: str = Field(
        ..., min_length=6, max_length=6, description="The 6-digit code from the email."
    )


class VerifyOtpRequest(VerifyAccountRequest):
    type: OtpType = OtpType.PASSWORD_RESET


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(
        ..., min_length=8, max_length=128, description="The new password for the account."
    )


class ChangePasswordRequest(BaseModel):
    old_password: str | None = None
    new_password: str | None = Field(None, max_length=128)


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = auth_settings.TOKEN_TYPE


class AuthResponse(Token):
    user: ProfileView


class MessageResponse(BaseModel):
    message: str


class ResetTokenResponse(BaseModel):
    reset_token: str


class OtpVerificationResponse(BaseModel):
    email: str
    user_id: int | None = None
    affiliate_id: int | None = None


class LogoutResponse(MessageResponse):
    sessions_revoked: int
