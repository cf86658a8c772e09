"""
Email Service for PetConnect
============================
Sends transactional emails over SMTP:
- Password reset links
- Signing key change notices for clinics and vets
- Pet lifecycle notifications (activation, certificates)
"""

import html

import aiosmtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional
from datetime import datetime, timezone

from app.core.config import settings
from app.core.logging_config import logger


class EmailService:
    """Async email service using SMTP"""

    def __init__(self):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.from_email = settings.EMAIL_FROM
        self.from_name = settings.EMAIL_FROM_NAME
        self.frontend_url = settings.FRONTEND_URL

    @property
    def is_configured(self) -> bool:
        """SMTP host set and notifications not switched off"""
        return settings.EMAIL_NOTIFICATIONS_ENABLED and bool(self.smtp_host)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """
        Send an email asynchronously.

        Returns True if successful, False otherwise.
        """
        if not self.is_configured:
            logger.warning(f"[Email] Email service not configured, skipping '{subject}' to {to_email}")
            return False

        try:
            message = MIMEMultipart("alternative")
            message["From"] = f"{self.from_name} <{self.from_email}>"
            message["To"] = to_email
            message["Subject"] = subject

            if text_content:
                message.attach(MIMEText(text_content, "plain"))
            message.attach(MIMEText(html_content, "html"))

            await aiosmtplib.send(
                message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user or None,
                password=self.smtp_password or None,
                start_tls=bool(self.smtp_user),
            )

            logger.info(f"[Email/SMTP] Successfully sent email to {to_email}: {subject}")
            return True

        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(f"[Email/SMTP] Failed to send email to {to_email}: {e}")
            return False

    def _render(self, title: str, greeting_name: Optional[str], paragraphs: list,
                link: Optional[str] = None, link_label: Optional[str] = None) -> str:
        """HTML body; every interpolated value is escaped"""
        title = html.escape(title)
        greeting = html.escape(greeting_name or "there")
        body = "".join(f"<p>{html.escape(p)}</p>" for p in paragraphs)
        button = (
            f'<p style="text-align: center;"><a href="{html.escape(link)}" class="button">'
            f'{html.escape(link_label or link)}</a></p>'
            if link else ""
        )
        return f"""
        <!DOCTYPE html>
        <html>
        <head>
            <style>
                body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; }}
                .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
                .header {{ background: #0f766e; color: white; padding: 24px; text-align: center; border-radius: 10px 10px 0 0; }}
                .content {{ background: #f9fafb; padding: 30px; border-radius: 0 0 10px 10px; }}
                .button {{ display: inline-block; background: #0f766e; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; font-weight: 600; margin: 20px 0; }}
                .footer {{ text-align: center; margin-top: 30px; font-size: 12px; color: #6b7280; }}
            </style>
        </head>
        <body>
            <div class="container">
                <div class="header"><h1>{title}</h1></div>
                <div class="content">
                    <p>Hi {greeting},</p>
                    {body}
                    {button}
                </div>
                <div class="footer">
                    <p>&copy; {datetime.now(timezone.utc).year} PetConnect</p>
                </div>
            </div>
        </body>
        </html>
        """

    async def send_password_reset_email(
        self,
        to_email: str,
        user_name: str,
        reset_token: str
    ) -> bool:
        """Send password reset link"""
        reset_link = settings.get_password_reset_url(reset_token)
        hours = settings.PASSWORD_RESET_EXPIRE_HOURS
        subject = "Reset your password - PetConnect"

        html_content = self._render(
            "Password Reset Request",
            user_name,
            [
                "We received a request to reset your password. Use the button below to choose a new one.",
                f"This link expires in {hours} hour(s). If you didn't request a reset, ignore this email.",
            ],
            link=reset_link,
            link_label="Reset Password",
        )

        text_content = f"""
        Password Reset Request

        Hi {user_name or 'there'},

        Open the link below to choose a new password:

        {reset_link}

        This link expires in {hours} hour(s).

        - The PetConnect Team
        """

        return await self.send_email(to_email, subject, html_content, text_content)

    async def send_clinic_keys_changed_notification(
        self,
        to_email: str,
        admin_name: str,
        clinic_name: str
    ) -> bool:
        """Tell a clinic administrator that the clinic signing keys were replaced"""
        subject = f"Signing keys updated for {clinic_name} - PetConnect"
        html_content = self._render(
            "Clinic Keys Updated",
            admin_name,
            [
                f"The digital signing keys of {clinic_name} were just replaced.",
                "Certificates issued from now on are signed with the new clinic key. "
                "If you did not make this change, contact support immediately.",
            ],
        )
        text_content = (
            f"Hi {admin_name or 'there'},\n\nThe digital signing keys of {clinic_name} were just replaced.\n"
            "If you did not make this change, contact support immediately.\n\n- The PetConnect Team"
        )
        return await self.send_email(to_email, subject, html_content, text_content)

    async def send_vet_keys_changed_notification(
        self,
        to_email: str,
        vet_name: str
    ) -> bool:
        """Tell a vet that their personal signing keys were replaced by an administrator"""
        subject = "Your signing keys were updated - PetConnect"
        html_content = self._render(
            "Signing Keys Updated",
            vet_name,
            [
                "Your clinic administrator replaced your digital signing keys.",
                "Use the password of the new private key when signing records and certificates.",
            ],
        )
        text_content = (
            f"Hi {vet_name or 'there'},\n\nYour clinic administrator replaced your digital signing keys.\n"
            "Use the password of the new private key from now on.\n\n- The PetConnect Team"
        )
        return await self.send_email(to_email, subject, html_content, text_content)

    async def send_notification(
        self,
        to_email: str,
        user_name: str,
        subject: str,
        message: str,
        link_path: Optional[str] = None
    ) -> bool:
        """Generic single-paragraph notification with an optional link into the app"""
        link = f"{self.frontend_url}{link_path}" if link_path else None
        html_content = self._render(subject, user_name, [message], link=link, link_label="Open PetConnect")
        text_content = f"Hi {user_name or 'there'},\n\n{message}\n" + (f"\n{link}\n" if link else "") + "\n- The PetConnect Team"
        return await self.send_email(to_email, f"{subject} - PetConnect", html_content, text_content)


# Singleton instance
email_service = EmailService()
