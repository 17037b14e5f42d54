"""
Database models.

Importing this package registers every table on ``Base.metadata``.
"""

from crm.backend.models.base import Base
from crm.backend.models.billing import Invoice, InvoiceItem, Quote, QuoteItem, Service
from crm.backend.models.client import Client
from crm.backend.models.conversation import TelegramConversation
from crm.backend.models.note import Note, NoteEntityLink
from crm.backend.models.portfolio import Contract, Domain, Subscription
from crm.backend.models.project import Project, ProjectCard, ProjectColumn
from crm.backend.models.tenant import Tenant, User
from crm.backend.models.ticket import Ticket, TicketMessage
from crm.backend.models.treasury import BankAccount, BankConnection, BankTransaction

__all__ = [
    "Base",
    "BankAccount",
    "BankConnection",
    "BankTransaction",
    "Client",
    "Contract",
    "Domain",
    "Invoice",
    "InvoiceItem",
    "Note",
    "NoteEntityLink",
    "Project",
    "ProjectCard",
    "ProjectColumn",
    "Quote",
    "QuoteItem",
    "Service",
    "Subscription",
    "TelegramConversation",
    "Tenant",
    "Ticket",
    "TicketMessage",
    "User",
]
