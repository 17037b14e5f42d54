"""
Query Filters.

Typed filter objects for list queries. Each filter turns its populated
fields into SQLAlchemy clauses; unset fields add nothing.

Usage:
    clauses = InvoiceFilter(status="pending", client_id=4).clauses()
    invoices = await invoice_repo.find(*clauses, order_by=Invoice.issue_date.desc())
"""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import or_, select
from sqlalchemy.sql import ColumnElement

from crm.backend.models.billing import UNPAID_INVOICE_STATUSES, Invoice, Quote
from crm.backend.models.client import Client
from crm.backend.models.project import ProjectCard
from crm.backend.models.tenant import ADMIN_ROLES, ROLE_CLIENT, User
from crm.backend.models.ticket import Ticket
from crm.backend.models.treasury import BankTransaction

Clauses = list[ColumnElement[bool]]

# Status aliases accepted by list endpoints and assistant tools.
STATUS_GROUPS: dict[str, tuple[str, ...]] = {
    "pending": UNPAID_INVOICE_STATUSES,
    "unpaid": UNPAID_INVOICE_STATUSES,
}


def _like(term: str) -> str:
    return f"%{term.strip()}%"


def client_search_clause(term: str) -> ColumnElement[bool]:
    """Match a client on company name, contact name or email."""
    pattern = _like(term)
    return or_(
        Client.company_name.ilike(pattern),
        Client.first_name.ilike(pattern),
        Client.last_name.ilike(pattern),
        Client.email.ilike(pattern),
    )


def _expand_status(status: str | None) -> tuple[str, ...] | None:
    if not status or status == "all":
        return None
    return STATUS_GROUPS.get(status, (status,))


@dataclass
class ClientFilter:
    search: str | None = None
    status: str | None = None

    def clauses(self) -> Clauses:
        result: Clauses = []
        if self.search:
            result.append(client_search_clause(self.search))
        if self.status and self.status != "all":
            result.append(Client.status == self.status)
        return result


@dataclass
class InvoiceFilter:
    search: str | None = None
    status: str | None = None
    client_id: int | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None

    def clauses(self) -> Clauses:
        result: Clauses = []
        statuses = _expand_status(self.status)
        if statuses:
            result.append(Invoice.status.in_(statuses))
        if self.client_id is not None:
            result.append(Invoice.client_id == self.client_id)
        if self.search:
            result.append(or_(
                Invoice.invoice_number.ilike(_like(self.search)),
                Invoice.client_id.in_(
                    select(Client.id).where(client_search_clause(self.search))
                ),
            ))
        if self.date_from is not None:
            result.append(Invoice.issue_date >= self.date_from)
        if self.date_to is not None:
            result.append(Invoice.issue_date < self.date_to)
        return result


@dataclass
class QuoteFilter:
    search: str | None = None
    status: str | None = None
    client_id: int | None = None

    def clauses(self) -> Clauses:
        result: Clauses = []
        if self.status and self.status != "all":
            result.append(Quote.status == self.status)
        if self.client_id is not None:
            result.append(Quote.client_id == self.client_id)
        if self.search:
            result.append(or_(
                Quote.quote_number.ilike(_like(self.search)),
                Quote.client_id.in_(
                    select(Client.id).where(client_search_clause(self.search))
                ),
            ))
        return result


@dataclass
class TransactionFilter:
    account_id: int | None = None
    reconciled: bool | None = None
    direction: str | None = None
    search: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None

    def clauses(self) -> Clauses:
        result: Clauses = []
        if self.account_id is not None:
            result.append(BankTransaction.account_id == self.account_id)
        if self.reconciled is not None:
            result.append(BankTransaction.is_reconciled == self.reconciled)
        if self.direction == "credit":
            result.append(BankTransaction.amount > 0)
        elif self.direction == "debit":
            result.append(BankTransaction.amount < 0)
        if self.search:
            pattern = _like(self.search)
            result.append(or_(
                BankTransaction.label.ilike(pattern),
                BankTransaction.counterparty.ilike(pattern),
            ))
        if self.date_from is not None:
            result.append(BankTransaction.transaction_date >= self.date_from)
        if self.date_to is not None:
            result.append(BankTransaction.transaction_date < self.date_to)
        return result


@dataclass
class UserFilter:
    """Staff users only; client-portal accounts are listed with their client."""

    search: str | None = None
    role: str | None = None
    status: str | None = None

    def clauses(self) -> Clauses:
        result: Clauses = [User.role != ROLE_CLIENT]
        if self.role == "admin":
            result.append(User.role.in_(ADMIN_ROLES))
        elif self.role and self.role != "all":
            result.append(User.role == self.role)
        if self.status == "active":
            result.append(User.is_active.is_(True))
        elif self.status == "inactive":
            result.append(User.is_active.is_(False))
        if self.search:
            pattern = _like(self.search)
            result.append(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
        return result


@dataclass
class TaskFilter:
    completed: bool | None = False
    priority: str | None = None
    client_id: int | None = None
    due_before: datetime | None = None
    project_id: int | None = None

    def clauses(self) -> Clauses:
        result: Clauses = []
        if self.completed is not None:
            result.append(ProjectCard.is_completed == self.completed)
        if self.priority:
            result.append(ProjectCard.priority == self.priority)
        if self.client_id is not None:
            result.append(ProjectCard.client_id == self.client_id)
        if self.due_before is not None:
            result.append(ProjectCard.due_date < self.due_before)
        if self.project_id is not None:
            result.append(ProjectCard.project_id == self.project_id)
        return result


@dataclass
class TicketFilter:
    status: str | None = None
    priority: str | None = None
    client_id: int | None = None

    def clauses(self) -> Clauses:
        result: Clauses = []
        if self.status == "active":
            result.append(Ticket.status.in_(("open", "pending")))
        elif self.status and self.status != "all":
            result.append(Ticket.status == self.status)
        if self.priority:
            result.append(Ticket.priority == self.priority)
        if self.client_id is not None:
            result.append(Ticket.client_id == self.client_id)
        return result
