# src/email/service.py
from typing import Protocol

from azure.communication.email import EmailClient
from fastapi.concurrency import run_in_threadpool

from src.config import EmailSettings, email_settings
from src.exception import OperationFailed
from src.logging import get_logger

logger = get_logger(__name__)


class Mailer(Protocol):
    async def send_activation(self, email: str, code: str) -> None: ...

    async def send_password_reset(self, email: str, code: str) -> None: ...

    async def send_password_reset_confirmation(self, email: str) -> None: ...


def _code_block(code: str) -> str:
    return f"""
        <div style="background-color: #f5f5f5;
         padding: 20px; text-align: center; margin: 20px 0;">
            <h3>Your verification code is:</h3>
            <div style="font-size: 32px; font-weight: bold;
             letter-spacing: 5px; color: #2c3e50;">
                <strong>{code}</strong>
            </div>
        </div>
    """


def _footer(project: str) -> str:
    return f"""
        <hr style="border: none; border-top: 1px solid #eee; margin: 20px 0;">
        <p style="color: #999; font-size: 12px;">
            This is an automated message from {project}.
             Please do not reply to this email.
        </p>
    """


class AzureEmailSender:
    """Sends transactional mail through Azure Communication Services."""

    def __init__(self, settings: EmailSettings = email_settings, project: str = "Clubline"):
        self.settings = settings
        self.project = project

    async def send_activation(self, email: str, code: str) -> None:
        html_content = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2 style="color: #333;">Verify your account</h2>
        <p>Welcome to {self.project}! Use the code below to activate your account.</p>
        {_code_block(code)}
        <p><strong>This code will expire in {self.settings.OTP_EXPIRE_MINUTES}
         minutes.</strong></p>
        {_footer(self.project)}
    </div>
    """
        await self._send(
            email,
            f"{self.project} - Account Verification Code",
            html_content,
            f"Your verification code is: {code}",
        )

    async def send_password_reset(self, email: str, code: str) -> None:
        html_content = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2 style="color: #333;">Password Reset Request</h2>
        <p>You have requested to reset your password for your {self.project} account.</p>
        {_code_block(code)}
        <p><strong>This code will expire in {self.settings.OTP_EXPIRE_MINUTES}
         minutes.</strong></p>
        <p style="color: #666; font-size: 14px;">
            If you didn't request this password reset,
             please ignore this email.
              Your password will remain unchanged.
        </p>
        {_footer(self.project)}
    </div>
    """
        await self._send(
            email,
            f"{self.project} - Password Reset Verification Code",
            html_content,
            f"Your verification code is: {code}",
        )

    async def send_password_reset_confirmation(self, email: str) -> None:
        html_content = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2 style="color: #333;">Your password was changed</h2>
        <p>The password for your {self.project} account has been reset.</p>
        <p style="color: #666; font-size: 14px;">
            If you did not make this change, contact support immediately.
        </p>
        {_footer(self.project)}
    </div>
    """
        await self._send(
            email,
            f"{self.project} - Password Reset Successful",
            html_content,
            "Your password has been reset successfully.",
        )

    async def _send(
        self, to_email: str, subject: str, html_content: str, plain_text: str
    ) -> None:
        if not self.settings.COMMUNICATION_SERVICES_CONNECTION_STRING:
            logger.critical("email_not_configured", to=to_email)
            raise OperationFailed("Email service temporarily unavailable")

        message = {
            "content": {
                "subject": subject,
                "html": html_content,
                "plainText": plain_text,
            },
            "recipients": {"to": [{"address": to_email}]},
            "senderAddress": self.settings.SENDER_ADDRESS,
        }

        try:
            email_client = EmailClient.from_connection_string(
                self.settings.COMMUNICATION_SERVICES_CONNECTION_STRING
            )
            poller = await run_in_threadpool(email_client.begin_send, message)
            result = await run_in_threadpool(poller.result)
        except Exception as e:
            logger.error("email_send_failed", to=to_email, subject=subject, error=str(e))
            raise OperationFailed("Failed to send email") from e

        if result["status"] == "Succeeded":
            logger.info("email_sent", to=to_email, message_id=result["id"])
        else:
            logger.warning("email_send_status", to=to_email, status=result["status"])
