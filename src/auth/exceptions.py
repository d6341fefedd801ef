# src/auth/exceptions.py
from src.exception import (
    AuthenticationError,
    ConflictError,
    IntegrityFault,
    OperationFailed,
    ValidationError,
)


# Token verification
class TokenExpired(AuthenticationError):
    code = "TOKEN_EXPIRED"
    message = "Token has expired"


class InvalidToken(AuthenticationError):
    code = "INVALID_TOKEN"
    message = "Could not validate token"


class MissingToken(AuthenticationError):
    code = "MISSING_TOKEN"
    message = "Authorization header with Bearer token is required"


class AccountInactive(AuthenticationError):
    code = "ACCOUNT_INACTIVE"
    message = "Account is not active"


# Credentials
class InvalidCredentials(AuthenticationError):
    code = "INVALID_CREDENTIALS"
    message = "Invalid email or password"


class UseFederatedAuth(AuthenticationError):
    code = "USE_GOOGLE_SIGN_IN"
    message = "This account uses Google Sign-In"


class InvalidFederatedToken(AuthenticationError):
    code = "INVALID_FEDERATED_TOKEN"
    message = "Invalid Google token"


class UserNotFound(AuthenticationError):
    code = "USER_NOT_FOUND"
    message = "User not found"


# Session rotation
class TokenInvalidatedByPasswordChange(AuthenticationError):
    code = "PASSWORD_CHANGED"
    message = "This token is no longer valid due to a password change"


class InvalidOrRevokedToken(AuthenticationError):
    code = "TOKEN_REVOKED"
    message = "Invalid or revoked refresh token"


class SessionMismatch(AuthenticationError):
    code = "SESSION_MISMATCH"
    message = "Session mismatch detected"


# Password recovery
class InvalidOtp(AuthenticationError):
    code = "INVALID_OTP"
    message = "Invalid or expired OTP"


class ResetTokenExpired(AuthenticationError):
    code = "RESET_TOKEN_EXPIRED"
    message = "Password reset token has expired"


class ResetTokenUsed(AuthenticationError):
    code = "RESET_TOKEN_USED"
    message = "Password reset token has expired or been used"


class GoogleAccountCannotReset(ValidationError):
    code = "GOOGLE_ACCOUNT"
    message = "Google account cannot reset password"


# Signup
class EmailAlreadyRegistered(ConflictError):
    code = "DUPLICATE_VALUE"
    message = "An account with this email already exists"


class ProfileNotFound(IntegrityFault):
    code = "PROFILE_NOT_FOUND"
    message = "Club profile not found for invited user"


class ProfileCreationFailed(IntegrityFault):
    code = "PROFILE_CREATION_FAILED"
    message = "Failed to create user profile"


# Operation faults
class SignupFailed(OperationFailed):
    message = "Failed to create account. Please try again later."


class LoginFailed(OperationFailed):
    message = "Login failed. Please try again later."


class ActivationFailed(OperationFailed):
    message = "Failed to verify account. Please try again later."


class OtpDeliveryFailed(OperationFailed):
    message = "Failed to send verification code. Please try again later."


class OtpVerificationFailed(OperationFailed):
    message = "An unexpected error occurred during OTP verification."


class PasswordResetFailed(OperationFailed):
    message = "Failed to reset password. Please try again later."


class PasswordChangeFailed(OperationFailed):
    message = "Failed to change password. Please try again later."


class RefreshFailed(OperationFailed):
    message = "Failed to refresh token. Please try again later."


class LogoutFailed(OperationFailed):
    message = "Logout failed"
