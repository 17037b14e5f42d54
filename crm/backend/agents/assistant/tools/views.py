"""Compact dictionaries describing records to the model."""

from datetime import datetime
from typing import Any

from crm.backend.agents.assistant.tools.base import ToolCall
from crm.backend.models.billing import Invoice, Quote, Service
from crm.backend.models.client import Client
from crm.backend.models.note import Note
from crm.backend.models.portfolio import Contract, Domain, Subscription
from crm.backend.models.project import Project, ProjectCard
from crm.backend.models.ticket import Ticket
from crm.backend.models.treasury import BankAccount, BankTransaction


def _day(call: ToolCall, value: datetime | None) -> str | None:
    local = call.to_local(value)
    return local.strftime("%d/%m/%Y") if local else None


def _moment(call: ToolCall, value: datetime | None) -> str | None:
    local = call.to_local(value)
    return local.strftime("%d/%m/%Y %H:%M") if local else None


def client_view(client: Client) -> dict[str, Any]:
    return {
        "id": client.id,
        "name": client.display_name,
        "companyName": client.company_name,
        "contact": " ".join(p for p in (client.first_name, client.last_name) if p) or None,
        "email": client.email,
        "phone": client.phone,
        "city": client.city,
        "status": client.status,
    }


def line_views(items: list[Any]) -> list[dict[str, Any]]:
    return [
        {
            "description": item.description,
            "quantity": item.quantity,
            "unitPrice": item.unit_price_ht,
            "vatRate": item.vat_rate,
            "totalHt": item.total_ht,
        }
        for item in items
    ]


def invoice_view(call: ToolCall, invoice: Invoice, with_lines: bool = False) -> dict[str, Any]:
    view = {
        "id": invoice.id,
        "number": invoice.invoice_number,
        "client": invoice.client.display_name,
        "status": invoice.status,
        "issueDate": _day(call, invoice.issue_date),
        "dueDate": _day(call, invoice.due_date),
        "subtotalHt": invoice.subtotal_ht,
        "taxAmount": invoice.tax_amount,
        "totalTtc": invoice.total_ttc,
        "paymentDate": _day(call, invoice.payment_date),
    }
    if with_lines:
        view["items"] = line_views(invoice.items)
    return view


def quote_view(call: ToolCall, quote: Quote, with_lines: bool = False) -> dict[str, Any]:
    view = {
        "id": quote.id,
        "number": quote.quote_number,
        "client": quote.client.display_name,
        "status": quote.status,
        "issueDate": _day(call, quote.issue_date),
        "validUntil": _day(call, quote.valid_until),
        "subtotalHt": quote.subtotal_ht,
        "taxAmount": quote.tax_amount,
        "totalTtc": quote.total_ttc,
        "invoiceId": quote.invoice_id,
    }
    if with_lines:
        view["items"] = line_views(quote.items)
    return view


def note_view(call: ToolCall, note: Note) -> dict[str, Any]:
    return {
        "id": note.id,
        "type": note.type,
        "content": note.content,
        "reminderAt": _moment(call, note.reminder_at),
        "completed": note.is_completed,
        "createdAt": _day(call, note.created_at),
    }


def task_view(call: ToolCall, card: ProjectCard) -> dict[str, Any]:
    return {
        "id": card.id,
        "title": card.title,
        "priority": card.priority,
        "dueDate": _moment(call, card.due_date),
        "completed": card.is_completed,
        "project": card.project.name,
        "client": card.client.display_name if card.client else None,
    }


def project_view(project: Project) -> dict[str, Any]:
    return {
        "id": project.id,
        "name": project.name,
        "status": project.status,
        "client": project.client.display_name if project.client else None,
        "columns": [column.name for column in project.columns],
    }


def ticket_view(call: ToolCall, ticket: Ticket) -> dict[str, Any]:
    return {
        "id": ticket.id,
        "number": ticket.ticket_number,
        "subject": ticket.subject,
        "status": ticket.status,
        "priority": ticket.priority,
        "client": ticket.client.display_name if ticket.client else None,
        "messages": len(ticket.messages),
        "createdAt": _day(call, ticket.created_at),
    }


def subscription_view(call: ToolCall, subscription: Subscription) -> dict[str, Any]:
    return {
        "id": subscription.id,
        "client": subscription.client.display_name,
        "name": subscription.name,
        "amountHt": subscription.amount_ht,
        "billingCycle": subscription.billing_cycle,
        "nextBillingDate": _day(call, subscription.next_billing_date),
    }


def domain_view(call: ToolCall, domain: Domain) -> dict[str, Any]:
    return {
        "id": domain.id,
        "name": domain.name,
        "client": domain.client.display_name if domain.client else None,
        "registrar": domain.registrar,
        "expiresAt": _day(call, domain.expires_at),
        "autoRenew": domain.auto_renew,
    }


def contract_view(call: ToolCall, contract: Contract) -> dict[str, Any]:
    return {
        "id": contract.id,
        "title": contract.title,
        "client": contract.client.display_name,
        "status": contract.status,
        "amount": contract.amount,
        "startDate": _day(call, contract.start_date),
        "endDate": _day(call, contract.end_date),
        "signedAt": _day(call, contract.signed_at),
    }


def service_view(service: Service) -> dict[str, Any]:
    return {
        "id": service.id,
        "name": service.name,
        "unitPrice": service.unit_price_ht,
        "vatRate": service.vat_rate,
        "unit": service.unit,
    }


def account_view(account: BankAccount) -> dict[str, Any]:
    return {
        "id": account.id,
        "name": account.name,
        "bank": account.bank_name,
        "balance": account.balance,
        "currency": account.currency,
        "provider": account.provider,
    }


def transaction_view(call: ToolCall, transaction: BankTransaction) -> dict[str, Any]:
    return {
        "id": transaction.id,
        "date": _day(call, transaction.transaction_date),
        "amount": transaction.amount,
        "label": transaction.label,
        "counterparty": transaction.counterparty,
        "account": transaction.account.name,
        "reconciled": transaction.is_reconciled,
        "invoiceId": transaction.invoice_id,
    }
