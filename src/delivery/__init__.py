"""Email delivery via Resend."""

from .email import EmailDelivery, EmailResult, EmailTemplate

__all__ = ["EmailDelivery", "EmailResult", "EmailTemplate"]
