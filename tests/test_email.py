"""
Tests for email templates and Resend delivery.
"""

from unittest.mock import patch

from src.delivery.email import (
    EmailDelivery,
    analysis_complete_template,
    password_reset_template,
    welcome_template,
)


class TestTemplates:

    def test_welcome(self):
        template = welcome_template("SEO Audit Engine", "Ann", "https://app.example/verify-email?token=abc")

        assert template.subject == "Welcome to SEO Audit Engine! Please verify your email"
        assert "Hi Ann," in template.text
        assert 'href="https://app.example/verify-email?token=abc"' in template.html
        assert template.html.strip().startswith("<!DOCTYPE html>")

    def test_greeting_without_name(self):
        template = password_reset_template("SEO Audit Engine", None, "https://app.example/reset")
        assert template.text.startswith("Hi,\n")

    def test_analysis_complete(self):
        template = analysis_complete_template(
            "SEO Audit Engine",
            "Example Gardens",
            "https://example.com/",
            72,
            -4,
            {"critical": 1, "high": 3},
            ["Missing title tag", "Missing H1"],
            "https://app.example/analyses/a1",
        )

        assert template.subject == "SEO audit complete for Example Gardens: score 72"
        assert "Overall score: 72 (-4 since last audit)" in template.text
        assert "critical: 1, high: 3, medium: 0, low: 0" in template.text
        assert "- Missing title tag\n" in template.text
        assert "<li>Missing H1</li>" in template.html

    def test_first_audit_without_issues(self):
        template = analysis_complete_template(
            "SEO Audit Engine", "Example", "https://example.com/", 90, None, {}, [], "https://app.example/a",
        )

        assert "(First audit)" in template.text
        assert "Top issues" not in template.html


class TestEmailDelivery:

    async def test_disabled_without_api_key(self):
        delivery = EmailDelivery()
        result = await delivery.send_welcome("ann@example.com", "Ann", "abc")

        assert not delivery.enabled
        assert not result.success
        assert "missing API key" in result.error

    async def test_send(self, sent_emails):
        delivery = EmailDelivery(from_email="audits@example.com")
        result = await delivery.send_password_reset("ann@example.com", "Ann", "tok-123")

        assert result.success
        assert result.message_id == "email_1"
        [params] = sent_emails
        assert params["from"] == "SEO Audit Engine <audits@example.com>"
        assert params["to"] == ["ann@example.com"]
        assert "http://localhost:3000/reset-password?token=tok-123" in params["text"]

    async def test_analysis_complete_link_and_issue_cap(self, sent_emails):
        delivery = EmailDelivery()
        await delivery.send_analysis_complete(
            "ann@example.com", "Example", "https://example.com/", "a1", 80, 5,
            {"high": 2}, [f"Issue {i}" for i in range(8)],
        )

        text = sent_emails[0]["text"]
        assert "http://localhost:3000/analyses/a1" in text
        assert "- Issue 4\n" in text
        assert "Issue 5" not in text

    async def test_provider_error_is_reported(self):
        delivery = EmailDelivery(api_key="re_test_key")
        with patch("resend.Emails.send", side_effect=RuntimeError("rate limited")):
            result = await delivery.send_password_changed("ann@example.com", "Ann")

        assert not result.success
        assert result.error == "rate limited"
