"""
Email Service.

Composes the transactional emails (password reset, client invitation,
signature request, invoice, quote, payment reminder) and sends them over
the tenant's SMTP server. smtplib is blocking, so delivery runs on the
shared I/O thread pool.
"""

import html
import smtplib
import ssl
from dataclasses import dataclass
from datetime import datetime
from email.message import EmailMessage
from email.utils import formataddr, format_datetime, make_msgid

from crm.backend.core.concurrency import run_blocking
from crm.backend.core.config import get_app_config
from crm.backend.core.exceptions import ExternalServiceError, ValidationError
from crm.backend.core.logging import get_logger
from crm.backend.core.utils import format_currency, utc_now
from crm.backend.models.billing import Invoice, Quote
from crm.backend.services.settings import TenantSettings

logger = get_logger(__name__)

SMTP_TIMEOUT_SECONDS = 20


@dataclass(frozen=True)
class EmailContent:
    subject: str
    text: str

    def html(self) -> str:
        paragraphs = "".join(
            f"<p>{html.escape(block).replace(chr(10), '<br>')}</p>"
            for block in self.text.split("\n\n")
        )
        return f'<div style="font-family:sans-serif;line-height:1.5">{paragraphs}</div>'


def _date(value: datetime | None) -> str:
    return value.strftime("%d/%m/%Y") if value else ""


def _signature(company: str) -> str:
    return f"Cordialement,\n{company}"


def password_reset_email(name: str, reset_url: str, company: str) -> EmailContent:
    return EmailContent(
        subject="Réinitialisation de votre mot de passe",
        text=(
            f"Bonjour {name},\n\n"
            "Une demande de réinitialisation de mot de passe a été faite pour votre compte.\n"
            f"Cliquez sur le lien suivant pour choisir un nouveau mot de passe :\n{reset_url}\n\n"
            "Si vous n'êtes pas à l'origine de cette demande, ignorez ce message.\n\n"
            f"{_signature(company)}"
        ),
    )


def invitation_email(name: str, login_url: str, email: str, password: str, company: str) -> EmailContent:
    return EmailContent(
        subject=f"Votre accès à l'espace client {company}",
        text=(
            f"Bonjour {name},\n\n"
            f"Un espace client a été créé pour vous.\n"
            f"Adresse : {login_url}\nIdentifiant : {email}\nMot de passe temporaire : {password}\n\n"
            "Pensez à changer ce mot de passe à votre première connexion.\n\n"
            f"{_signature(company)}"
        ),
    )


def signature_request_email(name: str, contract_title: str, signing_url: str, company: str) -> EmailContent:
    return EmailContent(
        subject=f"Signature du contrat : {contract_title}",
        text=(
            f"Bonjour {name},\n\n"
            f"Le contrat « {contract_title} » est prêt à être signé :\n{signing_url}\n\n"
            f"{_signature(company)}"
        ),
    )


def document_url(app_url: str, kind: str, document_id: int) -> str:
    """Client portal page of an invoice or quote (``kind`` is invoices or quotes)."""
    return f"{app_url.rstrip('/')}/client/{kind}/{document_id}"


def invoice_email(invoice: Invoice, company: str, view_url: str, footer: str = "") -> EmailContent:
    text = (
        f"Bonjour {invoice.client.display_name},\n\n"
        f"Votre facture {invoice.invoice_number} d'un montant de "
        f"{format_currency(invoice.total_ttc)} TTC est disponible, "
        f"payable avant le {_date(invoice.due_date)}.\n"
        f"Voir ma facture : {view_url}\n\n"
        f"{_signature(company)}"
    )
    if footer:
        text += f"\n\n{footer}"
    return EmailContent(subject=f"Facture {invoice.invoice_number} - {company}", text=text)


def quote_email(quote: Quote, company: str, view_url: str, footer: str = "") -> EmailContent:
    text = (
        f"Bonjour {quote.client.display_name},\n\n"
        f"Votre devis {quote.quote_number} d'un montant de "
        f"{format_currency(quote.total_ttc)} TTC est disponible, "
        f"valable jusqu'au {_date(quote.valid_until)}.\n"
        f"Voir mon devis : {view_url}\n\n"
        f"{_signature(company)}"
    )
    if footer:
        text += f"\n\n{footer}"
    return EmailContent(subject=f"Devis {quote.quote_number} - {company}", text=text)


def reminder_email(invoice: Invoice, company: str, view_url: str, now: datetime | None = None) -> EmailContent:
    days_late = max(((now or utc_now()) - invoice.due_date).days, 0)
    lateness = f"depuis {days_late} jour(s)" if days_late else "aujourd'hui"
    return EmailContent(
        subject=f"Relance : facture {invoice.invoice_number}",
        text=(
            f"Bonjour {invoice.client.display_name},\n\n"
            f"Sauf erreur de notre part, la facture {invoice.invoice_number} "
            f"de {format_currency(invoice.total_ttc)} TTC est arrivée à échéance {lateness} "
            f"(échéance du {_date(invoice.due_date)}).\n"
            "Merci de procéder à son règlement dans les meilleurs délais.\n"
            f"Voir et payer : {view_url}\n\n"
            f"{_signature(company)}"
        ),
    )


def sample_emails(company: str, base_url: str = "https://crm.example.com") -> list[EmailContent]:
    """One filled-in copy of each account template, for checking the rendering."""
    return [
        password_reset_email("Jean Dupont", f"{base_url}/reset-password?token=exemple", company),
        invitation_email("Jean Dupont", f"{base_url}/login", "jean.dupont@example.com", "Temp-1234", company),
        signature_request_email("Jean Dupont", "Contrat de maintenance", f"{base_url}/sign/exemple", company),
    ]


class EmailService:
    """SMTP delivery with the credentials of one tenant."""

    def __init__(self, settings: TenantSettings, company_name: str = "", app_url: str | None = None) -> None:
        self.settings = settings
        self.company_name = company_name or settings.smtp_from_name or "CRM"
        self.app_url = app_url or get_app_config().application.app_url

    def _require_smtp(self) -> None:
        if not self.settings.smtp_configured:
            raise ValidationError("SMTP non configuré")

    def build_message(
        self,
        to: str,
        content: EmailContent,
        attachments: list[tuple[str, bytes, str]] | None = None,
    ) -> EmailMessage:
        sender = self.settings.smtp_from_address or self.settings.smtp_username
        msg = EmailMessage()
        msg["From"] = formataddr((self.settings.smtp_from_name or self.company_name, sender))
        msg["To"] = to
        msg["Subject"] = content.subject
        msg["Message-ID"] = make_msgid(domain=sender.rpartition("@")[2] or None)
        msg["Date"] = format_datetime(datetime.now().astimezone())
        msg.set_content(content.text)
        msg.add_alternative(content.html(), subtype="html")
        for filename, data, mime_type in attachments or []:
            maintype, _, subtype = mime_type.partition("/")
            msg.add_attachment(data, maintype=maintype, subtype=subtype, filename=filename)
        return msg

    def _deliver(self, msg: EmailMessage) -> None:
        s = self.settings
        context = ssl.create_default_context()
        if s.smtp_encryption == "ssl":
            with smtplib.SMTP_SSL(s.smtp_host, s.smtp_port, timeout=SMTP_TIMEOUT_SECONDS, context=context) as smtp:
                smtp.login(s.smtp_username, s.smtp_password)
                smtp.send_message(msg)
        else:
            with smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=SMTP_TIMEOUT_SECONDS) as smtp:
                smtp.ehlo()
                if s.smtp_encryption == "tls":
                    smtp.starttls(context=context)
                    smtp.ehlo()
                smtp.login(s.smtp_username, s.smtp_password)
                smtp.send_message(msg)

    async def send(
        self,
        to: str,
        content: EmailContent,
        attachments: list[tuple[str, bytes, str]] | None = None,
    ) -> None:
        """
        Send one email.

        Raises:
            ValidationError: If SMTP is not configured or ``to`` is empty
            ExternalServiceError: If the SMTP server rejects the message
        """
        self._require_smtp()
        if not to:
            raise ValidationError("Adresse email du destinataire manquante")
        msg = self.build_message(to, content, attachments)
        try:
            await run_blocking(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(
                "SMTP delivery failed",
                extra={"host": self.settings.smtp_host, "to": to, "error": str(e)},
            )
            raise ExternalServiceError(f"Échec de l'envoi de l'email: {e}") from e
        logger.info("Email sent", extra={"to": to, "subject": content.subject})

    async def send_test(self, to: str) -> None:
        await self.send(to, EmailContent(
            subject="Test de configuration SMTP",
            text=f"Ce message confirme que l'envoi d'emails fonctionne.\n\n{_signature(self.company_name)}",
        ))

    async def send_all_tests(self, to: str) -> int:
        """Send the SMTP test message followed by one sample of each account template."""
        await self.send_test(to)
        samples = sample_emails(self.company_name)
        for content in samples:
            await self.send(to, EmailContent(subject=f"[Test] {content.subject}", text=content.text))
        return len(samples) + 1

    async def send_invoice(self, invoice: Invoice, to: str | None = None) -> str:
        recipient = to or invoice.client.email
        await self.send(recipient, invoice_email(
            invoice,
            self.company_name,
            document_url(self.app_url, "invoices", invoice.id),
            self.settings.invoice_footer,
        ))
        return recipient

    async def send_quote(self, quote: Quote, to: str | None = None) -> str:
        recipient = to or quote.client.email
        await self.send(recipient, quote_email(
            quote,
            self.company_name,
            document_url(self.app_url, "quotes", quote.id),
            self.settings.quote_footer,
        ))
        return recipient

    async def send_reminder(self, invoice: Invoice, to: str | None = None) -> str:
        recipient = to or invoice.client.email
        await self.send(recipient, reminder_email(
            invoice, self.company_name, document_url(self.app_url, "invoices", invoice.id),
        ))
        return recipient
