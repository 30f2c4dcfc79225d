"""
Email Delivery Module

Sends account and audit notification emails via Resend.

Every template renders a subject, an HTML body and a plain-text body.
Without RESEND_API_KEY nothing is sent and each call returns
EmailResult(success=False) instead of raising.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

import resend

from src.utils.config import get_settings

logger = logging.getLogger(__name__)


@dataclass
class EmailResult:
    """Result of email delivery."""
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class EmailTemplate:
    subject: str
    html: str
    text: str


# =============================================================================
# TEMPLATES
# =============================================================================

_BASE_STYLE = """
    body { font-family: 'Helvetica Neue', Arial, sans-serif; line-height: 1.6; color: #333; margin: 0; padding: 0; }
    .container { max-width: 600px; margin: 0 auto; }
    .header { background: linear-gradient(135deg, #4361ee, #3f37c9); color: white; padding: 32px 20px; text-align: center; }
    .header h1 { margin: 0; font-size: 24px; }
    .content { padding: 32px 30px; }
    .highlight { background: #f8f9fa; padding: 20px; border-radius: 8px; margin: 20px 0; }
    .cta { display: inline-block; background: #4361ee; color: white; padding: 14px 28px; text-decoration: none; border-radius: 5px; margin: 20px 0; }
    .footer { background: #f5f5f5; padding: 24px; text-align: center; font-size: 12px; color: #666; }
    .metric { display: inline-block; text-align: center; margin: 0 16px; }
    .metric-value { font-size: 28px; font-weight: bold; color: #4361ee; }
    .metric-label { font-size: 12px; color: #666; }
"""


def _layout(app_name: str, heading: str, body: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>{_BASE_STYLE}</style>
    </head>
    <body>
        <div class="container">
            <div class="header">
                <h1>{heading}</h1>
            </div>
            <div class="content">
                {body}
                <p>Best regards,<br><strong>The {app_name} Team</strong></p>
            </div>
            <div class="footer">
                <p>&copy; {datetime.now().year} {app_name}. All rights reserved.</p>
            </div>
        </div>
    </body>
    </html>
    """


def _greeting(name: Optional[str]) -> str:
    return f"Hi {name}," if name else "Hi,"


def welcome_template(app_name: str, name: Optional[str], verify_url: str) -> EmailTemplate:
    body = f"""
        <p>{_greeting(name)}</p>
        <p>Welcome to {app_name}! Please confirm your email address to start auditing your websites.</p>
        <p><a class="cta" href="{verify_url}">Verify email</a></p>
        <p>This link expires in 24 hours. If you did not create an account, you can ignore this email.</p>
    """
    text = (
        f"{_greeting(name)}\n\n"
        f"Welcome to {app_name}! Please confirm your email address:\n{verify_url}\n\n"
        "This link expires in 24 hours. If you did not create an account, you can ignore this email.\n"
    )
    return EmailTemplate(
        subject=f"Welcome to {app_name}! Please verify your email",
        html=_layout(app_name, f"Welcome to {app_name}", body),
        text=text,
    )


def password_reset_template(app_name: str, name: Optional[str], reset_url: str) -> EmailTemplate:
    body = f"""
        <p>{_greeting(name)}</p>
        <p>We received a request to reset your password.</p>
        <p><a class="cta" href="{reset_url}">Reset password</a></p>
        <p>This link expires in 1 hour. If you did not request a reset, your password stays unchanged.</p>
    """
    text = (
        f"{_greeting(name)}\n\n"
        f"Reset your password here:\n{reset_url}\n\n"
        "This link expires in 1 hour. If you did not request a reset, your password stays unchanged.\n"
    )
    return EmailTemplate(
        subject=f"Reset your {app_name} password",
        html=_layout(app_name, "Password reset", body),
        text=text,
    )


def password_changed_template(app_name: str, name: Optional[str]) -> EmailTemplate:
    body = f"""
        <p>{_greeting(name)}</p>
        <p>Your {app_name} password was just changed.</p>
        <p>If this was not you, reset your password immediately and contact support.</p>
    """
    text = (
        f"{_greeting(name)}\n\n"
        f"Your {app_name} password was just changed.\n"
        "If this was not you, reset your password immediately and contact support.\n"
    )
    return EmailTemplate(
        subject=f"Your {app_name} password has been changed",
        html=_layout(app_name, "Password changed", body),
        text=text,
    )


def email_change_template(app_name: str, name: Optional[str], confirm_url: str) -> EmailTemplate:
    body = f"""
        <p>{_greeting(name)}</p>
        <p>Please confirm this address as the new email for your {app_name} account.</p>
        <p><a class="cta" href="{confirm_url}">Confirm new email</a></p>
        <p>This link expires in 24 hours.</p>
    """
    text = (
        f"{_greeting(name)}\n\n"
        f"Confirm your new {app_name} email address:\n{confirm_url}\n\n"
        "This link expires in 24 hours.\n"
    )
    return EmailTemplate(
        subject=f"Verify your new email address for {app_name}",
        html=_layout(app_name, "Confirm your new email", body),
        text=text,
    )


def analysis_complete_template(
    app_name: str,
    project_name: str,
    url: str,
    overall_score: int,
    score_change: Optional[int],
    issue_counts: Dict[str, int],
    top_issues: List[str],
    report_url: str,
) -> EmailTemplate:
    if score_change is None:
        change_text = "First audit"
    elif score_change >= 0:
        change_text = f"+{score_change} since last audit"
    else:
        change_text = f"{score_change} since last audit"

    metrics = "".join(
        f'<div class="metric"><div class="metric-value">{issue_counts.get(severity, 0)}</div>'
        f'<div class="metric-label">{severity.title()}</div></div>'
        for severity in ("critical", "high", "medium", "low")
    )
    issues_html = "".join(f"<li>{title}</li>" for title in top_issues)

    body = f"""
        <p>Hi,</p>
        <p>The SEO audit of <strong>{project_name}</strong> ({url}) is complete.</p>
        <div class="highlight" style="text-align: center;">
            <div class="metric"><div class="metric-value">{overall_score}</div>
            <div class="metric-label">Overall score ({change_text})</div></div>
        </div>
        <div style="text-align: center;">{metrics}</div>
        {f"<h3>Top issues</h3><ul>{issues_html}</ul>" if top_issues else ""}
        <p><a class="cta" href="{report_url}">View full report</a></p>
    """
    text_issues = "".join(f"- {title}\n" for title in top_issues)
    text = (
        f"The SEO audit of {project_name} ({url}) is complete.\n\n"
        f"Overall score: {overall_score} ({change_text})\n"
        + ", ".join(f"{severity}: {issue_counts.get(severity, 0)}" for severity in ("critical", "high", "medium", "low"))
        + "\n\n"
        + (f"Top issues:\n{text_issues}\n" if top_issues else "")
        + f"View the full report: {report_url}\n"
    )
    return EmailTemplate(
        subject=f"SEO audit complete for {project_name}: score {overall_score}",
        html=_layout(app_name, "Your SEO audit is ready", body),
        text=text,
    )


# =============================================================================
# DELIVERY
# =============================================================================

class EmailDelivery:
    """
    Email delivery service using Resend.

    Handles:
    - Welcome and email verification
    - Password reset and password changed notices
    - Email change confirmation
    - Analysis complete notifications
    """

    DEFAULT_FROM_NAME = "SEO Audit Engine"

    def __init__(
        self,
        api_key: Optional[str] = None,
        from_email: Optional[str] = None,
    ):
        """
        Initialize email delivery.

        Args:
            api_key: Resend API key (defaults to RESEND_API_KEY)
            from_email: Sender email address (defaults to FROM_EMAIL)
        """
        settings = get_settings()
        self.api_key = api_key or settings.RESEND_API_KEY
        if not self.api_key:
            logger.warning("RESEND_API_KEY not set - email delivery disabled")

        self.app_name = settings.APP_NAME
        self.frontend_url = settings.FRONTEND_URL.rstrip("/")
        self.from_email = from_email or settings.FROM_EMAIL

        if self.api_key:
            resend.api_key = self.api_key

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def send(self, to_email: str, template: EmailTemplate) -> EmailResult:
        if not self.api_key:
            return EmailResult(
                success=False,
                error="Email delivery not configured (missing API key)"
            )

        params: Dict[str, Any] = {
            "from": f"{self.app_name} <{self.from_email}>",
            "to": [to_email],
            "subject": template.subject,
            "html": template.html,
            "text": template.text,
        }

        try:
            response = resend.Emails.send(params)
        except Exception as e:
            logger.error(f"Email delivery to {to_email} failed: {e}")
            return EmailResult(success=False, error=str(e))

        message_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
        logger.info(f"Email '{template.subject}' sent to {to_email}: {message_id or 'unknown'}")
        return EmailResult(success=True, message_id=message_id)

    async def send_welcome(self, to_email: str, name: Optional[str], token: str) -> EmailResult:
        url = f"{self.frontend_url}/verify-email?token={token}"
        return await self.send(to_email, welcome_template(self.app_name, name, url))

    async def send_password_reset(self, to_email: str, name: Optional[str], token: str) -> EmailResult:
        url = f"{self.frontend_url}/reset-password?token={token}"
        return await self.send(to_email, password_reset_template(self.app_name, name, url))

    async def send_password_changed(self, to_email: str, name: Optional[str]) -> EmailResult:
        return await self.send(to_email, password_changed_template(self.app_name, name))

    async def send_email_change(self, to_email: str, name: Optional[str], token: str) -> EmailResult:
        url = f"{self.frontend_url}/confirm-email-change?token={token}"
        return await self.send(to_email, email_change_template(self.app_name, name, url))

    async def send_analysis_complete(
        self,
        to_email: str,
        project_name: str,
        url: str,
        analysis_id: str,
        overall_score: int,
        score_change: Optional[int],
        issue_counts: Dict[str, int],
        top_issues: List[str],
    ) -> EmailResult:
        report_url = f"{self.frontend_url}/analyses/{analysis_id}"
        template = analysis_complete_template(
            self.app_name, project_name, url, overall_score, score_change,
            issue_counts, top_issues[:5], report_url,
        )
        return await self.send(to_email, template)
