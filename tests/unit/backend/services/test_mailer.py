"""
Unit Tests for the email service.

SMTP delivery itself is patched out; these cover the templates, the MIME
message and the checks done before anything is sent.
"""

from datetime import datetime
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from crm.backend.core.exceptions import ValidationError
from crm.backend.models.billing import Invoice, Quote
from crm.backend.models.client import Client
from crm.backend.services.mailer import (
    EmailContent,
    EmailService,
    document_url,
    invitation_email,
    invoice_email,
    password_reset_email,
    sample_emails,
    signature_request_email,
)
from crm.backend.services.settings import TenantSettings


def _smtp_settings(**overrides) -> TenantSettings:
    values = {
        "smtp_host": "smtp.example.com",
        "smtp_username": "crm@example.com",
        "smtp_password": "secret",
        "smtp_from_address": "factures@example.com",
        "smtp_from_name": "Acme",
    }
    values.update(overrides)
    return TenantSettings(**values)


class TestTemplates:
    def test_password_reset_contains_link(self):
        content = password_reset_email("Jean", "https://crm.example.com/reset?t=1", "Acme")

        assert content.subject == "Réinitialisation de votre mot de passe"
        assert "https://crm.example.com/reset?t=1" in content.text
        assert content.text.startswith("Bonjour Jean,")
        assert content.text.endswith("Cordialement,\nAcme")

    def test_invitation_lists_credentials(self):
        content = invitation_email("Jean", "https://crm.example.com/login", "jean@example.com", "Temp-1", "Acme")

        assert "Acme" in content.subject
        assert "Identifiant : jean@example.com" in content.text
        assert "Mot de passe temporaire : Temp-1" in content.text

    def test_signature_request_names_contract(self):
        content = signature_request_email("Jean", "Maintenance", "https://sign.example.com/x", "Acme")

        assert content.subject == "Signature du contrat : Maintenance"
        assert "https://sign.example.com/x" in content.text

    def test_samples_cover_account_templates(self):
        subjects = [content.subject for content in sample_emails("Acme")]

        assert len(subjects) == 3
        assert subjects[0] == "Réinitialisation de votre mot de passe"


class TestHtmlRendering:
    def test_text_is_escaped(self):
        content = EmailContent(subject="s", text="<b>Total</b> & co")

        assert "&lt;b&gt;Total&lt;/b&gt; &amp; co" in content.html()

    def test_paragraphs_and_line_breaks(self):
        content = EmailContent(subject="s", text="ligne 1\nligne 2\n\nsuite")

        rendered = content.html()
        assert "<p>ligne 1<br>ligne 2</p>" in rendered
        assert "<p>suite</p>" in rendered


class TestBuildMessage:
    def test_headers(self):
        msg = EmailService(_smtp_settings()).build_message("client@example.com", EmailContent("Objet", "Corps"))

        assert msg["To"] == "client@example.com"
        assert msg["Subject"] == "Objet"
        assert msg["From"] == "Acme <factures@example.com>"
        assert msg["Message-ID"].endswith("@example.com>")

    def test_text_and_html_alternatives(self):
        msg = EmailService(_smtp_settings()).build_message("client@example.com", EmailContent("Objet", "Corps"))

        types = [part.get_content_type() for part in msg.walk()]
        assert "text/plain" in types
        assert "text/html" in types

    def test_attachment(self):
        msg = EmailService(_smtp_settings()).build_message(
            "client@example.com",
            EmailContent("Objet", "Corps"),
            attachments=[("facture.pdf", b"%PDF-1.4", "application/pdf")],
        )

        attachments = list(msg.iter_attachments())
        assert len(attachments) == 1
        assert attachments[0].get_filename() == "facture.pdf"

    def test_from_falls_back_to_username(self):
        msg = EmailService(_smtp_settings(smtp_from_address="")).build_message(
            "client@example.com", EmailContent("Objet", "Corps"),
        )

        assert "crm@example.com" in msg["From"]


class TestSend:
    @pytest.mark.asyncio
    async def test_smtp_not_configured(self):
        with pytest.raises(ValidationError):
            await EmailService(TenantSettings()).send_test("client@example.com")

    @pytest.mark.asyncio
    async def test_missing_recipient(self):
        with pytest.raises(ValidationError):
            await EmailService(_smtp_settings()).send("", EmailContent("Objet", "Corps"))

    @pytest.mark.asyncio
    async def test_delivery_runs_off_loop(self):
        with patch("crm.backend.services.mailer.run_blocking", new=AsyncMock()) as run_blocking:
            await EmailService(_smtp_settings()).send_test("client@example.com")

        run_blocking.assert_awaited_once()
        msg = run_blocking.await_args.args[1]
        assert msg["Subject"] == "Test de configuration SMTP"

    @pytest.mark.asyncio
    async def test_send_all_tests(self):
        with patch("crm.backend.services.mailer.run_blocking", new=AsyncMock()) as run_blocking:
            count = await EmailService(_smtp_settings()).send_all_tests("client@example.com")

        assert count == 4
        assert run_blocking.await_count == 4
        subjects = [call.args[1]["Subject"] for call in run_blocking.await_args_list]
        assert all(subject.startswith("[Test] ") for subject in subjects[1:])


def _invoice() -> Invoice:
    return Invoice(
        id=12,
        invoice_number="FAC-2026-00001",
        total_ttc=Decimal("960.00"),
        due_date=datetime(2026, 4, 1),
        client=Client(id=3, company_name="Dupont SARL", email="compta@dupont.test"),
    )


def _body(msg) -> str:
    return msg.get_body(preferencelist=("plain",)).get_content()


class TestDocumentEmails:
    def test_document_url(self):
        assert document_url("https://crm.example.com/", "invoices", 12) == "https://crm.example.com/client/invoices/12"

    def test_invoice_links_to_portal_page(self):
        content = invoice_email(_invoice(), "Acme", "https://crm.example.com/client/invoices/12")

        assert "Voir ma facture : https://crm.example.com/client/invoices/12" in content.text
        assert "960,00 €" in content.text
        assert "01/04/2026" in content.text
        assert "ci-joint" not in content.text

    @pytest.mark.asyncio
    async def test_send_invoice_body_has_view_link(self):
        service = EmailService(_smtp_settings(), app_url="https://crm.example.com")

        with patch("crm.backend.services.mailer.run_blocking", new=AsyncMock()) as run_blocking:
            recipient = await service.send_invoice(_invoice())

        assert recipient == "compta@dupont.test"
        msg = run_blocking.await_args.args[1]
        assert msg["To"] == "compta@dupont.test"
        assert "https://crm.example.com/client/invoices/12" in _body(msg)

    @pytest.mark.asyncio
    async def test_send_quote_body_has_view_link(self):
        quote = Quote(
            id=7,
            quote_number="DEV-2026-00002",
            total_ttc=Decimal("120.00"),
            valid_until=datetime(2026, 4, 1),
            client=Client(id=3, company_name="Dupont SARL", email="compta@dupont.test"),
        )
        service = EmailService(_smtp_settings(), app_url="https://crm.example.com")

        with patch("crm.backend.services.mailer.run_blocking", new=AsyncMock()) as run_blocking:
            await service.send_quote(quote, to="autre@dupont.test")

        msg = run_blocking.await_args.args[1]
        assert msg["To"] == "autre@dupont.test"
        assert "Voir mon devis : https://crm.example.com/client/quotes/7" in _body(msg)

    @pytest.mark.asyncio
    async def test_send_reminder_body_has_view_link(self):
        service = EmailService(_smtp_settings(), app_url="https://crm.example.com")

        with patch("crm.backend.services.mailer.run_blocking", new=AsyncMock()) as run_blocking:
            await service.send_reminder(_invoice())

        assert "Voir et payer : https://crm.example.com/client/invoices/12" in _body(run_blocking.await_args.args[1])
