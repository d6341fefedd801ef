# src/auth/service.py
import functools

from fastapi import HTTPException
from prometheus_client import Counter
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.affiliate.service import propagate_club_membership, upsert_affiliate, validate_ref_code
from src.auth.config import AuthSettings, auth_settings
from src.auth.exceptions import (
    ActivationFailed,
    EmailAlreadyRegistered,
    GoogleAccountCannotReset,
    InvalidCredentials,
    InvalidOtp,
    InvalidToken,
    LoginFailed,
    LogoutFailed,
    OtpDeliveryFailed,
    OtpVerificationFailed,
    PasswordChangeFailed,
    PasswordResetFailed,
    ProfileCreationFailed,
    ProfileNotFound,
    RefreshFailed,
    ResetTokenExpired,
    ResetTokenUsed,
    SignupFailed,
    TokenExpired,
    UseFederatedAuth,
    UserNotFound,
)
from src.auth.models import User, UserStatus, UserType
from src.auth.oauth import IdentityTokenVerifier
from src.auth.schemas import (
    AuthResponse,
    LogoutResponse,
    MessageResponse,
    OtpVerificationResponse,
    ResetTokenResponse,
    Token,
)
from src.auth.sessions import SessionContext, SessionRotator, cleanup_user_tokens, revoke_sessions
from src.auth.tokens import TokenIssuer, TokenPair
from src.auth.utils import (
    PASSWORD_RESET_PURPOSE,
    create_reset_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from src.database import AsyncSessionLocal
from src.email.service import Mailer
from src.exception import AppException, AuthenticationError, ValidationError
from src.logging import get_logger
from src.notifications.service import create_login_notification
from src.otp.models import OtpCode, OtpStatus, OtpType
from src.otp.service import OtpValidator
from src.profile.models import Club
from src.profile.provisioning import create_profile
from src.profile.schemas import ProfileView
from src.profile.service import build_profile_view, get_profile
from src.tasks import BackgroundTaskRunner, task_runner
from src.utils import utcnow

logger = get_logger(__name__)

AUTH_EVENTS = Counter(
    "auth_events_total",
    "Outcomes of account lifecycle operations",
    ["operation", "outcome"],
)


def tracked(operation: str):
    """Count each call of an auth operation by its outcome code."""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                result = await func(*args, **kwargs)
            except AppException as e:
                AUTH_EVENTS.labels(operation=operation, outcome=e.code).inc()
                raise
            AUTH_EVENTS.labels(operation=operation, outcome="success").inc()
            return result

        return wrapper

    return decorator


class AuthService:
    """Account lifecycle: signup, login, activation, recovery and sessions.

    Every public operation commits its own transaction. Emails, login
    notifications and refresh-token retention run on the background runner
    after the commit, so their failures never reach the caller.
    """

    def __init__(
        self,
        otp: OtpValidator,
        mailer: Mailer,
        identity_verifier: IdentityTokenVerifier,
        *,
        settings: AuthSettings = auth_settings,
        issuer: TokenIssuer | None = None,
        tasks: BackgroundTaskRunner = task_runner,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
    ):
        self.otp = otp
        self.mailer = mailer
        self.identity_verifier = identity_verifier
        self.settings = settings
        self.issuer = issuer or TokenIssuer(settings)
        self.tasks = tasks
        self.session_factory = session_factory
        self.rotator = SessionRotator(
            self.issuer, tasks, session_factory, settings.MAX_REFRESH_TOKENS_PER_USER
        )

    # Helpers

    async def _get_user_by_email(self, db: AsyncSession, email: str) -> User | None:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalars().first()

    async def _validate_signup(
        self, db: AsyncSession, email: str, user_type: UserType, ref_code: str | None
    ) -> tuple[User | None, Club | None]:
        if not ref_code:
            raise ValidationError("Reference code is required", code="REQUIRED_FIELD")

        existing = await self._get_user_by_email(db, email)
        if existing is not None:
            # Only an invited club may complete signup on an existing row
            invited_club = (
                existing.user_type == UserType.CLUB
                and existing.status == UserStatus.PENDING
            )
            if not invited_club or user_type != UserType.CLUB:
                raise EmailAlreadyRegistered()
        elif user_type == UserType.CLUB:
            raise ValidationError(
                "Club invitation not found. Use invitation email",
                code="CLUB_INVITATION_NOT_FOUND",
            )

        club = await validate_ref_code(db, ref_code, user_type, email)
        return existing, club

    async def _claim_club_profile(self, db: AsyncSession, user: User) -> Club:
        result = await db.execute(select(Club).where(Club.user_id == user.id))
        club = result.scalars().first()
        if club is None:
            logger.error("club_profile_missing", user_id=user.id)
            raise ProfileNotFound()
        return club

    def _schedule_cleanup(self, user_id: int) -> None:
        self.tasks.submit(
            cleanup_user_tokens,
            self.session_factory,
            user_id,
            self.settings.MAX_REFRESH_TOKENS_PER_USER,
            name=f"token-cleanup-{user_id}",
        )

    def _schedule_login_notification(self, user_id: int) -> None:
        self.tasks.submit(
            create_login_notification,
            self.session_factory,
            user_id,
            name=f"login-notification-{user_id}",
        )

    @staticmethod
    def _auth_response(view: ProfileView, pair: TokenPair) -> AuthResponse:
        return AuthResponse(
            user=view, access_token=pair.access_token, refresh_token=pair.refresh_token
        )

    # Signup

    @tracked("signup")
    async def signup(
        self,
        name: str,
        user_type: UserType,
        email: str,
        password: str,
        ref_code: str | None,
        db: AsyncSession,
    ) -> AuthResponse:
        logger.info("signup_started", email=email, user_type=user_type.value)
        try:
            existing, club = await self._validate_signup(db, email, user_type, ref_code)
            password_hash = hash_password(password, self.settings.BCRYPT_ROUNDS)

            if user_type == UserType.CLUB:
                user = existing
                user.name = name
                user.password_hash = password_hash
                user.status = UserStatus.ACTIVE
                profile = await self._claim_club_profile(db, user)
            else:
                user = User(
                    email=email,
                    name=name,
                    password_hash=password_hash,
                    user_type=user_type,
                    status=UserStatus.PENDING,
                    uses_federated_auth=False,
                )
                db.add(user)
                await db.flush()
                profile = await create_profile(db, user)
                if profile is None:
                    raise ProfileCreationFailed()

            otp = await self.otp.generate_and_save(
                db, email, OtpType.EMAIL_VERIFICATION, user_id=user.id
            )
            if club is not None:
                await upsert_affiliate(db, email, club.id, user.id, user_type, ref_code)

            pair = await self.issuer.issue(db, user.id, profile.id)
            await db.commit()
        except HTTPException:
            await db.rollback()
            raise
        except IntegrityError:
            await db.rollback()
            raise EmailAlreadyRegistered() from None
        except Exception as e:
            await db.rollback()
            logger.error("signup_failed", email=email, error=str(e))
            raise SignupFailed() from e

        view = await build_profile_view(db, user, profile)
        self.tasks.submit(
            self.mailer.send_activation, email, otp, name=f"activation-email-{user.id}"
        )
        self._schedule_cleanup(user.id)
        logger.info("signup_completed", user_id=user.id, user_type=user_type.value)
        return self._auth_response(view, pair)

    @tracked("google_signup")
    async def google_signup(
        self,
        auth_token: str,
        user_type: UserType,
        ref_code: str | None,
        db: AsyncSession,
    ) -> AuthResponse:
        identity = await self.identity_verifier.verify_identity_token(
            auth_token, self.settings.GOOGLE_CLIENT_ID
        )
        email = identity.email
        logger.info("google_signup_started", email=email, user_type=user_type.value)
        try:
            existing, club = await self._validate_signup(db, email, user_type, ref_code)

            if user_type == UserType.CLUB:
                user = existing
                user.name = identity.name
                user.status = UserStatus.ACTIVE
                user.uses_federated_auth = True
                profile = await self._claim_club_profile(db, user)
                if identity.picture and identity.picture.strip():
                    profile.avatar = identity.picture
            else:
                user = User(
                    email=email,
                    name=identity.name,
                    password_hash=None,
                    user_type=user_type,
                    status=UserStatus.ACTIVE,
                    uses_federated_auth=True,
                )
                db.add(user)
                await db.flush()
                profile = await create_profile(db, user, avatar=identity.picture)
                if profile is None:
                    raise ProfileCreationFailed()

            if club is not None:
                await upsert_affiliate(db, email, club.id, user.id, user_type, ref_code)

            pair = await self.issuer.issue(db, user.id, profile.id)
            await db.commit()
        except HTTPException:
            await db.rollback()
            raise
        except IntegrityError:
            await db.rollback()
            raise EmailAlreadyRegistered() from None
        except Exception as e:
            await db.rollback()
            logger.error("google_signup_failed", email=email, error=str(e))
            raise SignupFailed() from e

        view = await build_profile_view(db, user, profile)
        self._schedule_cleanup(user.id)
        logger.info("google_signup_completed", user_id=user.id)
        return self._auth_response(view, pair)

    # Login

    async def _login_user(self, user: User, db: AsyncSession) -> AuthResponse:
        profile = await get_profile(db, user)
        pair = await self.issuer.issue(db, user.id, profile.id)
        await db.commit()
        view = await build_profile_view(db, user, profile)
        self._schedule_cleanup(user.id)
        self._schedule_login_notification(user.id)
        return self._auth_response(view, pair)

    @tracked("login")
    async def login(self, email: str, password: str, db: AsyncSession) -> AuthResponse:
        try:
            user = await self._get_user_by_email(db, email)
            if user is None:
                logger.warning("login_unknown_email", email=email)
                raise InvalidCredentials()
            if user.is_federated_only:
                raise UseFederatedAuth()
            if not verify_password(password, user.password_hash):
                logger.warning("login_bad_password", user_id=user.id)
                raise InvalidCredentials()

            response = await self._login_user(user, db)
        except HTTPException:
            await db.rollback()
            raise
        except Exception as e:
            await db.rollback()
            logger.error("login_failed", email=email, error=str(e))
            raise LoginFailed() from e

        logger.info("login_succeeded", user_id=user.id)
        return response

    @tracked("google_login")
    async def google_login(self, auth_token: str, db: AsyncSession) -> AuthResponse:
        identity = await self.identity_verifier.verify_identity_token(
            auth_token, self.settings.GOOGLE_CLIENT_ID
        )
        try:
            user = await self._get_user_by_email(db, identity.email)
            if user is None:
                logger.warning("google_login_unknown_email", email=identity.email)
                raise InvalidCredentials("No account found for this Google user")

            response = await self._login_user(user, db)
        except HTTPException:
            await db.rollback()
            raise
        except Exception as e:
            await db.rollback()
            logger.error("google_login_failed", email=identity.email, error=str(e))
            raise LoginFailed() from e

        logger.info("google_login_succeeded", user_id=user.id)
        return response

    # Activation

    @tracked("resend_activation_code")
    async def resend_activation_code(self, email: str, db: AsyncSession) -> MessageResponse:
        try:
            user = await self._get_user_by_email(db, email)
            if user is None:
                raise ValidationError(
                    "No account found with this email", code="EMAIL_NOT_FOUND"
                )
            if user.status == UserStatus.ACTIVE:
                raise ValidationError(
                    "Account is already verified", code="ALREADY_VERIFIED"
                )

            otp = await self.otp.generate_and_save(
                db, email, OtpType.EMAIL_VERIFICATION, user_id=user.id
            )
            await db.commit()
        except HTTPException:
            await db.rollback()
            raise
        except Exception as e:
            await db.rollback()
            logger.error("activation_code_resend_failed", email=email, error=str(e))
            raise OtpDeliveryFailed() from e

        self.tasks.submit(
            self.mailer.send_activation, email, otp, name=f"activation-email-{user.id}"
        )
        logger.info("activation_code_resent", user_id=user.id)
        return MessageResponse(message="A new verification code has been sent")

    @tracked("activate_account")
    async def activate_account(self, email: str, otp: str, db: AsyncSession) -> AuthResponse:
        """Consume an activation code and sign the user in.

        Activating an already ACTIVE account only issues a fresh pair.
        """
        try:
            record = await self.otp.verify(db, email, otp, OtpType.EMAIL_VERIFICATION)
            user = record.user or await self._get_user_by_email(db, email)
            if user is None:
                raise UserNotFound()

            already_active = user.status == UserStatus.ACTIVE
            if not already_active:
                user.status = UserStatus.ACTIVE
                await propagate_club_membership(db, user)

            profile = await get_profile(db, user)
            pair = await self.issuer.issue(db, user.id, profile.id)
            await db.commit()
        except HTTPException:
            await db.rollback()
            raise
        except Exception as e:
            await db.rollback()
            logger.error("activation_failed", email=email, error=str(e))
            raise ActivationFailed() from e

        view = await build_profile_view(db, user, profile)
        self._schedule_cleanup(user.id)
        logger.info("account_activated", user_id=user.id, already_active=already_active)
        return self._auth_response(view, pair)

    # Password recovery

    @tracked("request_password_reset")
    async def request_password_reset(self, email: str, db: AsyncSession) -> MessageResponse:
        try:
            user = await self._get_user_by_email(db, email)
            if user is None:
                raise UserNotFound("No account found with this email")
            if user.is_federated_only:
                raise GoogleAccountCannotReset()

            otp = await self.otp.generate_and_save(
                db, email, OtpType.PASSWORD_RESET, user_id=user.id
            )
            await db.commit()
        except HTTPException:
            await db.rollback()
            raise
        except Exception as e:
            await db.rollback()
            logger.error("password_reset_request_failed", email=email, error=str(e))
            raise OtpDeliveryFailed() from e

        self.tasks.submit(
            self.mailer.send_password_reset, email, otp, name=f"reset-email-{user.id}"
        )
        logger.info("password_reset_requested", user_id=user.id)
        return MessageResponse(message="A password reset code has been sent")

    @tracked("verify_otp")
    async def verify_otp(
        self, email: str, otp: str, otp_type: OtpType, db: AsyncSession
    ) -> ResetTokenResponse | OtpVerificationResponse:
        try:
            try:
                record = await self.otp.verify(db, email, otp, otp_type)
            except InvalidOtp as e:
                raise InvalidOtp(code=e.code) from None

            if otp_type == OtpType.PASSWORD_RESET and record.user_id is None:
                raise AuthenticationError("Invalid OTP or user association")
            await db.commit()
        except HTTPException:
            await db.rollback()
            raise
        except Exception as e:
            await db.rollback()
            logger.error("otp_verification_failed", email=email, error=str(e))
            raise OtpVerificationFailed() from e

        if otp_type == OtpType.PASSWORD_RESET:
            reset_token = create_reset_token(record.user_id, record.id)
            logger.info("reset_token_issued", user_id=record.user_id)
            return ResetTokenResponse(reset_token=reset_token)

        return OtpVerificationResponse(
            email=record.email,
            user_id=record.user_id,
            affiliate_id=record.affiliate_id,
        )

    @tracked("reset_password")
    async def reset_password(
        self, token: str, new_password: str, db: AsyncSession
    ) -> MessageResponse:
        try:
            try:
                payload = decode_access_token(token)
            except TokenExpired:
                raise ResetTokenExpired() from None
            except InvalidToken:
                raise AuthenticationError("Invalid reset token") from None

            if payload.get("purpose") != PASSWORD_RESET_PURPOSE:
                raise AuthenticationError("Invalid token purpose")
            try:
                user_id = int(payload.get("sub"))
            except (TypeError, ValueError):
                raise AuthenticationError("Invalid reset token") from None

            result = await db.execute(
                select(OtpCode).where(
                    OtpCode.id == payload.get("otp_id"),
                    OtpCode.user_id == user_id,
                    OtpCode.status == OtpStatus.USED,
                )
            )
            record = result.scalars().first()
            if record is None:
                logger.warning("reset_token_replayed", user_id=user_id)
                raise ResetTokenUsed()

            user = await db.get(User, user_id)
            if user is None:
                raise UserNotFound()

            user.password_hash = hash_password(new_password, self.settings.BCRYPT_ROUNDS)
            user.password_changed_at = utcnow()
            record.status = OtpStatus.REVOKED
            await db.commit()
        except HTTPException:
            await db.rollback()
            raise
        except Exception as e:
            await db.rollback()
            logger.error("password_reset_failed", error=str(e))
            raise PasswordResetFailed() from e

        self.tasks.submit(
            self.mailer.send_password_reset_confirmation,
            user.email,
            name=f"reset-confirmation-{user.id}",
        )
        logger.info("password_reset_completed", user_id=user.id)
        return MessageResponse(
            message="Password has been reset successfully. "
            "You can now log in with your new password."
        )

    @tracked("change_password")
    async def change_password(
        self,
        user_id: int,
        old_password: str | None,
        new_password: str | None,
        db: AsyncSession,
    ) -> MessageResponse:
        if not old_password or not new_password:
            raise ValidationError(
                "Old password and new password are required", code="REQUIRED_FIELD"
            )
        try:
            user = await db.get(User, user_id)
            if user is None:
                raise ValidationError("User not found", code="USER_NOT_FOUND")
            if user.is_federated_only or not user.password_hash:
                raise ValidationError(
                    "This account has no password to change", code="NO_PASSWORD_SET"
                )
            if not verify_password(old_password, user.password_hash):
                raise ValidationError(
                    "Current password is incorrect", code="INCORRECT_PASSWORD"
                )

            user.password_hash = hash_password(new_password, self.settings.BCRYPT_ROUNDS)
            await db.commit()
        except HTTPException:
            await db.rollback()
            raise
        except Exception as e:
            await db.rollback()
            logger.error("password_change_failed", user_id=user_id, error=str(e))
            raise PasswordChangeFailed() from e

        logger.info("password_changed", user_id=user_id)
        return MessageResponse(message="Password changed successfully")

    # Sessions

    @tracked("refresh_session")
    async def refresh_session(
        self, context: SessionContext, raw_token: str, db: AsyncSession
    ) -> Token:
        try:
            pair = await self.rotator.rotate(context, raw_token, db)
        except HTTPException:
            raise
        except Exception as e:
            logger.error("refresh_failed", user_id=context.user_id, error=str(e))
            raise RefreshFailed() from e
        return Token(access_token=pair.access_token, refresh_token=pair.refresh_token)

    @tracked("logout")
    async def logout(
        self, user_id: int, jti: str | None, db: AsyncSession
    ) -> LogoutResponse:
        try:
            count = await revoke_sessions(db, user_id, jti)
        except Exception as e:
            await db.rollback()
            logger.error("logout_failed", user_id=user_id, jti=jti, error=str(e))
            raise LogoutFailed() from e

        logger.info("logged_out", user_id=user_id, jti=jti, sessions_revoked=count)
        return LogoutResponse(message="Logged out successfully", sessions_revoked=count)

    async def get_me(self, user: User, db: AsyncSession) -> ProfileView:
        return await build_profile_view(db, user)
