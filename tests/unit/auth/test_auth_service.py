# tests/unit/auth/test_auth_service.py
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select

from src.affiliate.models import Affiliate, AffiliateStatus
from src.auth.config import auth_settings
from src.auth.exceptions import (
    EmailAlreadyRegistered,
    InvalidCredentials,
    InvalidFederatedToken,
    InvalidOtp,
    ProfileCreationFailed,
    SignupFailed,
    UseFederatedAuth,
)
from src.auth.models import RefreshToken, User, UserStatus, UserType
from src.auth.utils import decode_access_token, decode_refresh_token, verify_password
from src.exception import IntegrityFault, ValidationError
from src.notifications.models import Notification
from src.otp.models import OtpCode, OtpStatus, OtpType
from src.otp.service import OtpService
from src.profile.models import Club, Company, Player


async def fetch_user(session_factory, email: str) -> User | None:
    async with session_factory() as session:
        result = await session.execute(select(User).where(User.email == email))
        return result.scalars().first()


async def fetch_player(session_factory, user_id: int) -> Player | None:
    async with session_factory() as session:
        result = await session.execute(select(Player).where(Player.user_id == user_id))
        return result.scalars().first()


async def count_rows(session_factory, model, *criteria) -> int:
    async with session_factory() as session:
        result = await session.execute(
            select(func.count()).select_from(model).where(*criteria)
        )
        return result.scalar_one()


async def sent_activation_code(runner, mailer) -> str:
    await runner.drain()
    return mailer.send_activation.await_args.args[1]


# --- Test ID: UTC-01 ---

@pytest.mark.asyncio
async def test_signup_invited_player(signup_player, session_factory, runner, mailer):
    """
    UTC-01-TC-01: An invited player signs up as PENDING with profile, affiliate and tokens.
    """
    response, club = await signup_player()

    assert response.user.user_type == "player"
    assert response.user.status == "pending"
    assert response.user.onboarding_steps == [1, 2, 3]
    assert decode_access_token(response.access_token)["profile_id"] == response.user.id

    user = await fetch_user(session_factory, "player@test.com")
    assert user.status == UserStatus.PENDING
    assert user.password_hash != "Password123!"
    assert verify_password("Password123!", user.password_hash)

    async with session_factory() as session:
        affiliate = (
            await session.execute(
                select(Affiliate).where(Affiliate.email == "player@test.com")
            )
        ).scalars().one()
    assert affiliate.status == AffiliateStatus.ACTIVE
    assert affiliate.user_id == user.id
    assert affiliate.club_id == club.id

    assert await count_rows(session_factory, RefreshToken, RefreshToken.user_id == user.id) == 1
    assert (
        await count_rows(
            session_factory,
            OtpCode,
            OtpCode.email == "player@test.com",
            OtpCode.status == OtpStatus.ACTIVE,
        )
        == 1
    )

    code = await sent_activation_code(runner, mailer)
    mailer.send_activation.assert_awaited_once_with("player@test.com", code)
    assert len(code) == 6 and code.isdigit()


@pytest.mark.asyncio
async def test_signup_requires_ref_code(auth_service, db_session):
    """
    UTC-01-TC-02: Signup without a reference code is rejected.
    """
    with pytest.raises(ValidationError) as exc_info:
        await auth_service.signup(
            "No Ref", UserType.COMPANY, "noref@test.com", "Password123!", None, db_session
        )

    assert exc_info.value.status_code == 400
    assert exc_info.value.code == "REQUIRED_FIELD"


@pytest.mark.asyncio
async def test_signup_duplicate_email(signup_player, auth_service, db_session):
    """
    UTC-01-TC-03: Signing up with a registered email conflicts.
    """
    _, club = await signup_player()

    with pytest.raises(EmailAlreadyRegistered) as exc_info:
        await auth_service.signup(
            "Again", UserType.SUPPORTER, "player@test.com", "Password123!", club.ref_code, db_session
        )

    assert exc_info.value.status_code == 409
    assert exc_info.value.code == "DUPLICATE_VALUE"


@pytest.mark.asyncio
async def test_signup_club_without_invitation(auth_service, db_session):
    """
    UTC-01-TC-04: A CLUB signup needs a pre-created pending club user.
    """
    with pytest.raises(ValidationError) as exc_info:
        await auth_service.signup(
            "Club", UserType.CLUB, "new-club@test.com", "Password123!", "CLUB-404", db_session
        )

    assert exc_info.value.code == "CLUB_INVITATION_NOT_FOUND"


@pytest.mark.asyncio
async def test_signup_unknown_ref_code(auth_service, db_session, make_club):
    """
    UTC-01-TC-05: A ref code that matches no club is rejected.
    """
    await make_club()

    with pytest.raises(ValidationError) as exc_info:
        await auth_service.signup(
            "Fan", UserType.SUPPORTER, "fan@test.com", "Password123!", "NOPE", db_session
        )

    assert exc_info.value.code == "INVALID_REF_CODE"


@pytest.mark.asyncio
async def test_signup_player_without_invitation(auth_service, db_session, make_club):
    """
    UTC-01-TC-06: Players must hold a pending invitation from the club.
    """
    _, club = await make_club()

    with pytest.raises(ValidationError) as exc_info:
        await auth_service.signup(
            "Walk In", UserType.PLAYER, "walkin@test.com", "Password123!", club.ref_code, db_session
        )

    assert exc_info.value.code == "NO_INVITATION_FOUND"


@pytest.mark.asyncio
async def test_signup_supporter_self_affiliates(auth_service, db_session, make_club, session_factory):
    """
    UTC-01-TC-07: Supporters need no invitation and get a new ACTIVE affiliate.
    """
    _, club = await make_club()

    response = await auth_service.signup(
        "Fan", UserType.SUPPORTER, "fan@test.com", "Password123!", club.ref_code, db_session
    )

    assert response.user.user_type == "supporter"
    assert response.user.is_approved is False
    async with session_factory() as session:
        affiliate = (
            await session.execute(select(Affiliate).where(Affiliate.email == "fan@test.com"))
        ).scalars().one()
    assert affiliate.purpose == "To join"
    assert affiliate.status == AffiliateStatus.ACTIVE
    assert affiliate.type == UserType.SUPPORTER


@pytest.mark.asyncio
async def test_signup_company_profile(auth_service, db_session, make_club, session_factory):
    """
    UTC-01-TC-08: Company profiles start with a single onboarding step.
    """
    _, club = await make_club()

    response = await auth_service.signup(
        "Acme", UserType.COMPANY, "acme@test.com", "Password123!", club.ref_code, db_session
    )

    assert response.user.onboarding_steps == [1]
    assert await count_rows(session_factory, Company, Company.id == response.user.id) == 1


@pytest.mark.asyncio
async def test_signup_invited_club(auth_service, db_session, make_club, session_factory):
    """
    UTC-01-TC-09: An invited club claims its profile and becomes ACTIVE at once.
    """
    club_user, club = await make_club()

    response = await auth_service.signup(
        "Harbour FC", UserType.CLUB, "club@test.com", "Password123!", club.ref_code, db_session
    )

    assert response.user.id == club.id
    assert response.user.ref_code == "CLUB-001"
    assert response.user.status == "active"
    user = await fetch_user(session_factory, "club@test.com")
    assert user.id == club_user.id
    assert user.name == "Harbour FC"
    assert user.status == UserStatus.ACTIVE
    # Clubs never affiliate with themselves
    assert await count_rows(session_factory, Affiliate) == 0


@pytest.mark.asyncio
async def test_signup_club_wrong_ref_code(auth_service, db_session, make_club):
    """
    UTC-01-TC-10: A club must use the ref code of its own invitation.
    """
    await make_club()
    await make_club(email="other-club@test.com", ref_code="CLUB-002")

    with pytest.raises(ValidationError) as exc_info:
        await auth_service.signup(
            "Harbour FC", UserType.CLUB, "club@test.com", "Password123!", "CLUB-002", db_session
        )

    assert exc_info.value.code == "INVALID_CLUB_REF_CODE"


@pytest.mark.asyncio
async def test_signup_rolls_back_when_profile_missing(
    auth_service, db_session, make_club, session_factory, runner, mailer
):
    """
    UTC-01-TC-11: A failed profile creation leaves no user, OTP or token behind.
    """
    _, club = await make_club()

    with patch("src.auth.service.create_profile", new=AsyncMock(return_value=None)):
        with pytest.raises(ProfileCreationFailed) as exc_info:
            await auth_service.signup(
                "Ghost", UserType.SUPPORTER, "ghost@test.com", "Password123!", club.ref_code, db_session
            )

    assert exc_info.value.status_code == 500
    assert await fetch_user(session_factory, "ghost@test.com") is None
    assert await count_rows(session_factory, OtpCode) == 0
    assert await count_rows(session_factory, RefreshToken) == 0
    await runner.drain()
    mailer.send_activation.assert_not_awaited()


@pytest.mark.asyncio
async def test_signup_unexpected_error(auth_service, db_session, make_club, session_factory):
    """
    UTC-01-TC-12: Unexpected failures surface as a generic signup fault.
    """
    _, club = await make_club()

    with patch(
        "src.auth.service.create_profile",
        new=AsyncMock(side_effect=RuntimeError("DB connection lost")),
    ):
        with pytest.raises(SignupFailed) as exc_info:
            await auth_service.signup(
                "Ghost", UserType.SUPPORTER, "ghost@test.com", "Password123!", club.ref_code, db_session
            )

    assert exc_info.value.status_code == 500
    assert exc_info.value.detail == "Failed to create account. Please try again later."
    assert await fetch_user(session_factory, "ghost@test.com") is None


# --- Test ID: UTC-02 ---

@pytest.mark.asyncio
async def test_pending_player_can_login(signup_player, auth_service, db_session, session_factory, runner):
    """
    UTC-02-TC-01: A freshly signed up PENDING player logs in and gets a new session.
    """
    signup, _ = await signup_player()

    response = await auth_service.login("player@test.com", "Password123!", db_session)
    await runner.drain()

    assert response.user.status == "pending"
    access = decode_access_token(response.access_token)
    refresh = decode_refresh_token(response.refresh_token)
    assert access["jti"] == refresh["jti"]
    assert access["jti"] != decode_access_token(signup.access_token)["jti"]
    user_id = int(access["sub"])
    assert await count_rows(session_factory, RefreshToken, RefreshToken.user_id == user_id) == 2
    async with session_factory() as session:
        notification = (
            await session.execute(select(Notification).where(Notification.user_id == user_id))
        ).scalars().one()
    assert notification.title == "New login"
    assert notification.message == "You just successfully logged in"


@pytest.mark.asyncio
async def test_login_wrong_password(signup_player, auth_service, db_session):
    """
    UTC-02-TC-02: A wrong password is rejected with the generic message.
    """
    await signup_player()

    with pytest.raises(InvalidCredentials) as exc_info:
        await auth_service.login("player@test.com", "WrongPassword1", db_session)

    assert exc_info.value.status_code == 401
    assert exc_info.value.detail == "Invalid email or password"


@pytest.mark.asyncio
async def test_login_unknown_email(auth_service, db_session):
    """
    UTC-02-TC-03: An unknown email gets the same message as a wrong password.
    """
    with pytest.raises(InvalidCredentials) as exc_info:
        await auth_service.login("nobody@test.com", "Password123!", db_session)

    assert exc_info.value.detail == "Invalid email or password"


@pytest.mark.asyncio
async def test_login_federated_only_account(auth_service, db_session, make_club):
    """
    UTC-02-TC-04: Google-only accounts are told to use Google sign-in.
    """
    _, club = await make_club()
    await auth_service.google_signup("google-token", UserType.SUPPORTER, club.ref_code, db_session)

    with pytest.raises(UseFederatedAuth) as exc_info:
        await auth_service.login("google.user@test.com", "Password123!", db_session)

    assert exc_info.value.code == "USE_GOOGLE_SIGN_IN"


# --- Test ID: UTC-03 ---

@pytest.mark.asyncio
async def test_google_signup_supporter(
    auth_service, db_session, make_club, session_factory, identity_verifier, runner, mailer
):
    """
    UTC-03-TC-01: Google signup creates an ACTIVE passwordless account with the picture as avatar.
    """
    _, club = await make_club()

    response = await auth_service.google_signup(
        "google-token", UserType.SUPPORTER, club.ref_code, db_session
    )
    await runner.drain()

    identity_verifier.verify_identity_token.assert_awaited_once_with(
        "google-token", auth_settings.GOOGLE_CLIENT_ID
    )
    assert response.user.status == "active"
    assert response.user.avatar == "https://lh3.googleusercontent.com/a/photo.jpg"
    user = await fetch_user(session_factory, "google.user@test.com")
    assert user.password_hash is None
    assert user.uses_federated_auth is True
    assert user.status == UserStatus.ACTIVE
    assert await count_rows(session_factory, OtpCode) == 0
    mailer.send_activation.assert_not_awaited()


@pytest.mark.asyncio
async def test_google_signup_club_sets_avatar(auth_service, db_session, make_club, session_factory):
    """
    UTC-03-TC-02: An invited club signing up with Google gets the picture as club avatar.
    """
    _, club = await make_club(email="google.user@test.com")

    response = await auth_service.google_signup(
        "google-token", UserType.CLUB, club.ref_code, db_session
    )

    assert response.user.avatar == "https://lh3.googleusercontent.com/a/photo.jpg"
    user = await fetch_user(session_factory, "google.user@test.com")
    assert user.name == "Google User"
    assert user.uses_federated_auth is True
    assert user.status == UserStatus.ACTIVE


@pytest.mark.asyncio
async def test_google_login(auth_service, db_session, make_club, runner):
    """
    UTC-03-TC-03: A registered Google user logs in with an identity token.
    """
    _, club = await make_club()
    await auth_service.google_signup("google-token", UserType.SUPPORTER, club.ref_code, db_session)

    response = await auth_service.google_login("google-token", db_session)
    await runner.drain()

    assert response.user.email == "google.user@test.com"
    assert decode_refresh_token(response.refresh_token)["sub"] == str(response.user.user_id)


@pytest.mark.asyncio
async def test_google_login_unknown_user(auth_service, db_session):
    """
    UTC-03-TC-04: A verified Google identity without an account cannot log in.
    """
    with pytest.raises(InvalidCredentials):
        await auth_service.google_login("google-token", db_session)


@pytest.mark.asyncio
async def test_google_invalid_token(auth_service, db_session, identity_verifier, session_factory):
    """
    UTC-03-TC-05: Verifier rejections propagate without touching the database.
    """
    identity_verifier.verify_identity_token.side_effect = InvalidFederatedToken()

    with pytest.raises(InvalidFederatedToken):
        await auth_service.google_signup("bad", UserType.SUPPORTER, "CLUB-001", db_session)

    assert await count_rows(session_factory, User) == 0


# --- Test ID: UTC-04 ---

@pytest.mark.asyncio
async def test_activate_player_propagates_club(
    signup_player, auth_service, db_session, session_factory, runner, mailer
):
    """
    UTC-04-TC-01: Activating a player sets ACTIVE and copies the club onto the profile.
    """
    _, club = await signup_player()
    code = await sent_activation_code(runner, mailer)

    response = await auth_service.activate_account("player@test.com", code, db_session)

    assert response.user.status == "active"
    assert response.user.club.id == club.id
    user = await fetch_user(session_factory, "player@test.com")
    assert user.status == UserStatus.ACTIVE
    player = await fetch_player(session_factory, user.id)
    assert player.club_id == club.id


@pytest.mark.asyncio
async def test_activate_supporter_keeps_profile_clubless(
    auth_service, db_session, make_club, session_factory, runner, mailer
):
    """
    UTC-04-TC-02: Supporters are activated without a club on their profile.
    """
    _, club = await make_club()
    await auth_service.signup(
        "Fan", UserType.SUPPORTER, "fan@test.com", "Password123!", club.ref_code, db_session
    )
    code = await sent_activation_code(runner, mailer)

    response = await auth_service.activate_account("fan@test.com", code, db_session)

    assert response.user.status == "active"
    assert response.user.club is None
    user = await fetch_user(session_factory, "fan@test.com")
    assert (await fetch_player(session_factory, user.id)).club_id is None


@pytest.mark.asyncio
async def test_activate_is_idempotent(
    signup_player, auth_service, db_session, session_factory, runner, mailer
):
    """
    UTC-04-TC-03: Activating an ACTIVE account issues tokens without changing state.
    """
    _, club = await signup_player()
    code = await sent_activation_code(runner, mailer)
    await auth_service.activate_account("player@test.com", code, db_session)
    user = await fetch_user(session_factory, "player@test.com")

    second_code = await OtpService().generate_and_save(
        db_session, "player@test.com", OtpType.EMAIL_VERIFICATION, user_id=user.id
    )
    await db_session.commit()
    response = await auth_service.activate_account("player@test.com", second_code, db_session)

    assert response.user.status == "active"
    assert response.access_token
    again = await fetch_user(session_factory, "player@test.com")
    assert again.status == UserStatus.ACTIVE
    assert (await fetch_player(session_factory, user.id)).club_id == club.id


@pytest.mark.asyncio
async def test_activate_wrong_code(signup_player, auth_service, db_session, session_factory, runner, mailer):
    """
    UTC-04-TC-04: A wrong activation code leaves the account PENDING.
    """
    await signup_player()
    code = await sent_activation_code(runner, mailer)
    wrong = "000000" if code != "000000" else "111111"

    with pytest.raises(InvalidOtp):
        await auth_service.activate_account("player@test.com", wrong, db_session)

    user = await fetch_user(session_factory, "player@test.com")
    assert user.status == UserStatus.PENDING


@pytest.mark.asyncio
async def test_activate_failure_keeps_code_usable(
    signup_player, auth_service, db_session, session_factory, runner, mailer
):
    """
    UTC-04-TC-07: A failed activation rolls back the code's consumption so it can be retried.
    """
    await signup_player()
    code = await sent_activation_code(runner, mailer)

    with patch(
        "src.auth.service.get_profile",
        AsyncMock(side_effect=IntegrityFault("Profile missing", code="PROFILE_NOT_FOUND")),
    ):
        with pytest.raises(IntegrityFault):
            await auth_service.activate_account("player@test.com", code, db_session)

    user = await fetch_user(session_factory, "player@test.com")
    assert user.status == UserStatus.PENDING
    assert await count_rows(
        session_factory, OtpCode, OtpCode.email == "player@test.com", OtpCode.status == OtpStatus.ACTIVE
    ) == 1

    async with session_factory() as session:
        response = await auth_service.activate_account("player@test.com", code, session)
    assert response.user.status == "active"
    assert await count_rows(
        session_factory, OtpCode, OtpCode.email == "player@test.com", OtpCode.status == OtpStatus.USED
    ) == 1


@pytest.mark.asyncio
async def test_resend_activation_code_revokes_previous(
    signup_player, auth_service, db_session, runner, mailer
):
    """
    UTC-04-TC-05: Resending replaces the previous code.
    """
    await signup_player()
    first = await sent_activation_code(runner, mailer)

    result = await auth_service.resend_activation_code("player@test.com", db_session)
    second = await sent_activation_code(runner, mailer)

    assert result.message == "A new verification code has been sent"
    assert mailer.send_activation.await_count == 2
    if first != second:
        with pytest.raises(InvalidOtp):
            await auth_service.activate_account("player@test.com", first, db_session)
    response = await auth_service.activate_account("player@test.com", second, db_session)
    assert response.user.status == "active"


@pytest.mark.asyncio
async def test_resend_activation_code_rejections(signup_player, auth_service, db_session, runner, mailer):
    """
    UTC-04-TC-06: Resend refuses unknown emails and verified accounts.
    """
    with pytest.raises(ValidationError) as unknown:
        await auth_service.resend_activation_code("nobody@test.com", db_session)
    assert unknown.value.code == "EMAIL_NOT_FOUND"

    await signup_player()
    code = await sent_activation_code(runner, mailer)
    await auth_service.activate_account("player@test.com", code, db_session)

    with pytest.raises(ValidationError) as verified:
        await auth_service.resend_activation_code("player@test.com", db_session)
    assert verified.value.code == "ALREADY_VERIFIED"


# --- Test ID: UTC-08 ---

@pytest.mark.asyncio
async def test_change_password(signup_player, auth_service, db_session, session_factory):
    """
    UTC-08-TC-01: Changing the password keeps existing sessions alive.
    """
    signup, _ = await signup_player()
    user_id = signup.user.user_id

    result = await auth_service.change_password(
        user_id, "Password123!", "NewPassword456!", db_session
    )

    assert result.message == "Password changed successfully"
    user = await fetch_user(session_factory, "player@test.com")
    assert verify_password("NewPassword456!", user.password_hash)
    assert user.password_changed_at is None
    assert (
        await count_rows(
            session_factory,
            RefreshToken,
            RefreshToken.user_id == user_id,
            RefreshToken.revoked.is_(False),
        )
        == 1
    )


@pytest.mark.asyncio
async def test_change_password_incorrect_old(signup_player, auth_service, db_session):
    """
    UTC-08-TC-02: The current password must match.
    """
    signup, _ = await signup_player()

    with pytest.raises(ValidationError) as exc_info:
        await auth_service.change_password(
            signup.user.user_id, "NotMyPassword", "NewPassword456!", db_session
        )

    assert exc_info.value.code == "INCORRECT_PASSWORD"


@pytest.mark.asyncio
async def test_change_password_requires_both(auth_service, db_session):
    """
    UTC-08-TC-03: Both passwords are required.
    """
    with pytest.raises(ValidationError) as exc_info:
        await auth_service.change_password(1, "", "NewPassword456!", db_session)

    assert exc_info.value.code == "REQUIRED_FIELD"


@pytest.mark.asyncio
async def test_change_password_federated_account(auth_service, db_session, make_club):
    """
    UTC-08-TC-04: Google-only accounts have no password to change.
    """
    _, club = await make_club()
    response = await auth_service.google_signup(
        "google-token", UserType.SUPPORTER, club.ref_code, db_session
    )

    with pytest.raises(ValidationError) as exc_info:
        await auth_service.change_password(
            response.user.user_id, "anything", "NewPassword456!", db_session
        )

    assert exc_info.value.code == "NO_PASSWORD_SET"


# --- Test ID: UTC-09 ---

@pytest.mark.asyncio
async def test_logout_single_session(signup_player, auth_service, db_session, session_factory):
    """
    UTC-09-TC-01: Logging out with a jti only ends that session.
    """
    signup, _ = await signup_player()
    login = await auth_service.login("player@test.com", "Password123!", db_session)
    user_id = signup.user.user_id
    jti = decode_access_token(login.access_token)["jti"]

    result = await auth_service.logout(user_id, jti, db_session)

    assert result.sessions_revoked == 1
    assert await count_rows(session_factory, RefreshToken, RefreshToken.jti == jti) == 0
    assert await count_rows(session_factory, RefreshToken, RefreshToken.user_id == user_id) == 1


@pytest.mark.asyncio
async def test_logout_all_sessions(signup_player, auth_service, db_session, session_factory):
    """
    UTC-09-TC-02: Logging out without a jti ends every session of the user.
    """
    signup, _ = await signup_player()
    await auth_service.login("player@test.com", "Password123!", db_session)

    result = await auth_service.logout(signup.user.user_id, None, db_session)

    assert result.sessions_revoked == 2
    assert await count_rows(session_factory, RefreshToken) == 0
