import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from classmate.core.config import settings
import logging
from typing import Optional, Dict, Any
import time
import random

logger = logging.getLogger(__name__)


class EmailService:
    def __init__(self):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_username = settings.SMTP_USERNAME
        self.smtp_password = settings.SMTP_PASSWORD
        self.is_configured = bool(self.smtp_host and self.smtp_username and self.smtp_password)

    def _build_message(self, to_email: str, subject: str, body: str, html_body: Optional[str]) -> MIMEMultipart:
        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = self.smtp_username
        msg['To'] = to_email
        msg.attach(MIMEText(body, 'plain'))
        if html_body:
            msg.attach(MIMEText(html_body, 'html'))
        return msg

    def _deliver(self, to_email: str, msg: MIMEMultipart):
        if self.smtp_port == 465:
            # Use SSL for port 465
            with smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, timeout=30) as server:
                server.login(self.smtp_username, self.smtp_password)
                server.sendmail(self.smtp_username, [to_email], msg.as_string())
        else:
            # Use TLS for other ports (like 587)
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
                server.starttls()
                server.login(self.smtp_username, self.smtp_password)
                server.sendmail(self.smtp_username, [to_email], msg.as_string())

    def send_email(self, to_email: str, subject: str, body: str, html_body: Optional[str] = None,
                   max_retries: int = 3) -> Dict[str, Any]:
        """
        Send email with retries and exponential backoff
        Returns: {"success": bool, "message": str, "error": Optional[str], "attempts": int}
        """
        max_retries = min(max(int(max_retries), 1), 3)
        if not self.is_configured:
            logger.info(f"Email to {to_email} skipped: SMTP settings not configured")
            return {
                "success": False,
                "message": "Email service not configured",
                "error": "SMTP settings not configured",
                "attempts": 0
            }

        msg = self._build_message(to_email, subject, body, html_body)
        last_error = None
        attempts = 0

        for attempt in range(1, max_retries + 1):
            attempts = attempt
            try:
                logger.info(f"Attempting to send email to {to_email} (attempt {attempt}/{max_retries})")
                self._deliver(to_email, msg)
                logger.info(f"Email sent successfully to {to_email} on attempt {attempt}")
                return {
                    "success": True,
                    "message": f"Email sent successfully to {to_email}",
                    "error": None,
                    "attempts": attempt
                }
            except (smtplib.SMTPAuthenticationError, smtplib.SMTPRecipientsRefused) as e:
                # Not retryable
                last_error = f"SMTP error: {e}"
                logger.error(f"Attempt {attempt} failed - {last_error}")
                break
            except (smtplib.SMTPException, OSError) as e:
                last_error = f"SMTP error: {e}"
                logger.error(f"Attempt {attempt} failed - {last_error}")
                if attempt < max_retries:
                    wait_time = (2 ** attempt) + random.uniform(0, 1)
                    logger.info(f"Waiting {wait_time:.2f} seconds before retry...")
                    time.sleep(wait_time)

        logger.error(f"Failed to send email to {to_email} after {attempts} attempts. Last error: {last_error}")
        return {
            "success": False,
            "message": f"Email sending failed after {attempts} attempts",
            "error": last_error,
            "attempts": attempts
        }

    def send_invite_email(self, email: str, name: str, company_name: str, token: str) -> Dict[str, Any]:
        """Send the link a staff member uses to set their password"""
        accept_url = f"{settings.FRONTEND_URL.rstrip('/')}/accept-invite?token={token}"
        subject = f"You have been invited to {company_name}"
        text_body = f"""
Hello {name},

You have been invited to join {company_name} on Classmate Central.

Set your password and sign in using the link below:
{accept_url}

If you did not expect this invitation, you can ignore this email.
"""
        html_body = f"""
<p>Hello {name},</p>
<p>You have been invited to join <strong>{company_name}</strong> on Classmate Central.</p>
<p><a href="{accept_url}">Accept the invitation</a></p>
<p>If you did not expect this invitation, you can ignore this email.</p>
"""
        return self.send_email(email, subject, text_body, html_body)

    def send_payment_notification(self, email: str, student_name: str, amount: str,
                                  transaction_type: str, balance: str) -> Dict[str, Any]:
        if transaction_type == "refund":
            subject = "Refund issued"
            headline = f"A refund of {amount} has been issued."
        else:
            subject = "Payment received"
            headline = f"We have received your payment of {amount}."
        text_body = f"""
Hello {student_name},

{headline}
Your current balance is {balance}.

Thank you!
"""
        return self.send_email(email, subject, text_body)


email_service = EmailService()
