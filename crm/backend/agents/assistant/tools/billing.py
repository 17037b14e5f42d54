"""Quote, invoice and catalogue tools."""

from crm.backend.agents.assistant.tools.base import (
    CLIENT_REF,
    LINE_ITEMS,
    ToolCall,
    enum,
    integer,
    number,
    string,
    tool,
)
from crm.backend.agents.assistant.tools.views import invoice_view, quote_view, service_view
from crm.backend.core.exceptions import ValidationError
from crm.backend.models.billing import INVOICE_STATUSES, QUOTE_STATUSES
from crm.backend.repositories.filters import InvoiceFilter, QuoteFilter
from crm.backend.services.invoice import InvoiceService
from crm.backend.services.mailer import EmailService
from crm.backend.services.portfolio import CatalogService
from crm.backend.services.quote import QuoteService

INVOICE_REF = {
    "invoiceId": integer("Identifiant de la facture"),
    "invoiceNumber": string("Numéro de facture, ex. FAC-2026-00012"),
}

QUOTE_REF = {
    "quoteId": integer("Identifiant du devis"),
    "quoteNumber": string("Numéro de devis, ex. DEV-2026-00003"),
}

DISCOUNT = {
    "discountType": enum(("percentage", "fixed"), "Type de remise"),
    "discountValue": number("Valeur de la remise (% ou euros HT)"),
}


def _items(call: ToolCall) -> list:
    items = call.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError("Au moins une ligne (items) est requise")
    return items


def _invoices(call: ToolCall) -> InvoiceService:
    return InvoiceService(call.session, call.tenant_id, call.ctx.settings)


def _quotes(call: ToolCall) -> QuoteService:
    return QuoteService(call.session, call.tenant_id, call.ctx.settings)


async def _invoice(call: ToolCall):
    return await _invoices(call).resolve(call.int_arg("invoiceId"), call.get("invoiceNumber"))


async def _quote(call: ToolCall):
    return await _quotes(call).resolve(call.int_arg("quoteId"), call.get("quoteNumber"))


# =============================================================================
# Quotes
# =============================================================================


@tool(
    "create_quote",
    "Créer un devis pour un client. Les montants sont HT, la TVA est calculée ligne par ligne.",
    {**CLIENT_REF, "items": LINE_ITEMS, "notes": string("Conditions ou remarques"), **DISCOUNT},
    required=("items",),
)
async def create_quote(call: ToolCall):
    quote = await _quotes(call).create(
        await call.client(),
        _items(call),
        notes=call.get("notes"),
        discount_type=call.get("discountType"),
        discount_value=call.get("discountValue"),
    )
    return {"created": True, **quote_view(call, quote, with_lines=True)}


@tool(
    "list_quotes",
    "Lister les devis",
    {"status": enum(QUOTE_STATUSES, "Filtrer par statut"), **CLIENT_REF, "limit": integer("Maximum")},
)
async def list_quotes(call: ToolCall):
    client = await call.client(required=False)
    quotes, total = await _quotes(call).list_quotes(
        QuoteFilter(status=call.get("status"), client_id=client.id if client else None),
        limit=call.int_arg("limit") or 10,
    )
    return {"total": total, "quotes": [quote_view(call, q) for q in quotes]}


@tool("get_quote", "Détail d'un devis avec ses lignes", QUOTE_REF)
async def get_quote(call: ToolCall):
    return quote_view(call, await _quote(call), with_lines=True)


@tool(
    "update_quote_status",
    "Changer le statut d'un devis (envoyé, accepté, refusé...)",
    {**QUOTE_REF, "status": enum(QUOTE_STATUSES, "Nouveau statut")},
    required=("status",),
)
async def update_quote_status(call: ToolCall):
    quote = await _quotes(call).update_status(await _quote(call), call.require("status"))
    return {"updated": True, **quote_view(call, quote)}


@tool(
    "convert_quote_to_invoice",
    "Transformer un devis en facture. Un devis ne peut être converti qu'une seule fois.",
    QUOTE_REF,
)
async def convert_quote_to_invoice(call: ToolCall):
    quote = await _quote(call)
    invoice = await _quotes(call).convert_to_invoice(quote, _invoices(call))
    return {"converted": True, "quote": quote.quote_number, **invoice_view(call, invoice)}


@tool(
    "send_quote",
    "Envoyer un devis par email au client",
    {**QUOTE_REF, "email": string("Destinataire, email du client par défaut")},
)
async def send_quote(call: ToolCall):
    quote = await _quote(call)
    recipient = await EmailService(call.ctx.settings).send_quote(quote, call.get("email"))
    if quote.status == "draft":
        await _quotes(call).update_status(quote, "sent")
    return {"sent": True, "to": recipient, "number": quote.quote_number}


# =============================================================================
# Invoices
# =============================================================================


@tool(
    "create_invoice",
    "Créer une facture pour un client. Les montants sont HT.",
    {
        **CLIENT_REF,
        "items": LINE_ITEMS,
        "dueDate": string("Échéance, délai de paiement du compte par défaut"),
        "notes": string("Remarques"),
        **DISCOUNT,
    },
    required=("items",),
)
async def create_invoice(call: ToolCall):
    invoice = await _invoices(call).create(
        await call.client(),
        _items(call),
        due_date=call.datetime_arg("dueDate"),
        notes=call.get("notes"),
        discount_type=call.get("discountType"),
        discount_value=call.get("discountValue"),
    )
    return {"created": True, **invoice_view(call, invoice, with_lines=True)}


@tool(
    "list_invoices",
    "Lister les factures",
    {
        "status": enum((*INVOICE_STATUSES, "unpaid"), "Filtrer par statut"),
        **CLIENT_REF,
        "limit": integer("Maximum"),
    },
)
async def list_invoices(call: ToolCall):
    client = await call.client(required=False)
    invoices, total = await _invoices(call).list_invoices(
        InvoiceFilter(status=call.get("status"), client_id=client.id if client else None),
        limit=call.int_arg("limit") or 10,
    )
    return {"total": total, "invoices": [invoice_view(call, i) for i in invoices]}


@tool("get_invoice", "Détail d'une facture avec ses lignes", INVOICE_REF)
async def get_invoice(call: ToolCall):
    return invoice_view(call, await _invoice(call), with_lines=True)


@tool(
    "list_unpaid_invoices",
    "Factures envoyées et non payées (statut envoyée ou en retard)",
    CLIENT_REF,
)
async def list_unpaid_invoices(call: ToolCall):
    client = await call.client(required=False)
    invoices = await _invoices(call).list_unpaid(client.id if client else None)
    return {
        "count": len(invoices),
        "totalTtc": sum(i.total_ttc for i in invoices),
        "invoices": [invoice_view(call, i) for i in invoices],
    }


@tool("list_overdue_invoices", "Factures dont l'échéance est dépassée")
async def list_overdue_invoices(call: ToolCall):
    now = call.now_utc()
    invoices = await _invoices(call).list_overdue(now)
    return [{**invoice_view(call, i), "daysLate": (now - i.due_date).days} for i in invoices]


@tool(
    "mark_invoice_paid",
    "Enregistrer le paiement d'une facture",
    {
        **INVOICE_REF,
        "paymentMethod": enum(("virement", "cheque", "especes", "carte", "prelevement"), "Moyen de paiement"),
        "paymentDate": string("Date du paiement, aujourd'hui par défaut"),
    },
)
async def mark_invoice_paid(call: ToolCall):
    payment_date = call.datetime_arg("paymentDate") or call.now_utc()
    invoice = await _invoices(call).mark_paid(
        await _invoice(call),
        payment_date=payment_date,
        payment_method=call.get("paymentMethod"),
    )
    return {"paid": True, **invoice_view(call, invoice)}


@tool("mark_invoice_sent", "Marquer une facture comme envoyée", INVOICE_REF)
async def mark_invoice_sent(call: ToolCall):
    invoice = await _invoices(call).mark_sent(await _invoice(call))
    return {"sent": True, **invoice_view(call, invoice)}


@tool(
    "send_invoice",
    "Envoyer une facture par email au client et la marquer envoyée",
    {**INVOICE_REF, "email": string("Destinataire, email du client par défaut")},
)
async def send_invoice(call: ToolCall):
    invoices = _invoices(call)
    invoice = await _invoice(call)
    recipient = await EmailService(call.ctx.settings).send_invoice(invoice, call.get("email"))
    await invoices.mark_sent(invoice)
    return {"sent": True, "to": recipient, "number": invoice.invoice_number}


@tool(
    "send_invoice_reminder",
    "Envoyer une relance de paiement pour une facture impayée",
    {**INVOICE_REF, "email": string("Destinataire, email du client par défaut")},
)
async def send_invoice_reminder(call: ToolCall):
    invoice = await _invoice(call)
    if invoice.status not in ("sent", "overdue"):
        raise ValidationError("Seule une facture envoyée et impayée peut être relancée")
    recipient = await EmailService(call.ctx.settings).send_reminder(invoice, call.get("email"))
    return {"sent": True, "to": recipient, "number": invoice.invoice_number}


@tool(
    "update_invoice_due_date",
    "Reporter l'échéance d'une facture",
    {**INVOICE_REF, "dueDate": string("Nouvelle échéance")},
    required=("dueDate",),
)
async def update_invoice_due_date(call: ToolCall):
    invoice = await _invoices(call).update_due_date(
        await _invoice(call), call.datetime_arg("dueDate", required=True),
    )
    return {"updated": True, **invoice_view(call, invoice)}


@tool("duplicate_invoice", "Dupliquer une facture en brouillon daté du jour", INVOICE_REF)
async def duplicate_invoice(call: ToolCall):
    copy = await _invoices(call).duplicate(await _invoice(call))
    return {"created": True, **invoice_view(call, copy, with_lines=True)}


# =============================================================================
# Catalogue
# =============================================================================


@tool("list_services", "Catalogue des prestations actives avec leur prix HT")
async def list_services(call: ToolCall):
    services = await CatalogService(call.session, call.tenant_id).list_active()
    return [service_view(s) for s in services]


@tool(
    "create_service",
    "Ajouter une prestation au catalogue",
    {
        "name": string("Nom de la prestation"),
        "unitPrice": number("Prix unitaire HT"),
        "vatRate": number("Taux de TVA en %"),
        "unit": string("Unité"),
        "description": string("Description"),
    },
    required=("name", "unitPrice"),
)
async def create_service(call: ToolCall):
    service = await CatalogService(call.session, call.tenant_id).create(
        call.require("name"),
        call.require("unitPrice"),
        vat_rate=call.get("vatRate", call.ctx.settings.default_vat_rate),
        unit=call.get("unit", "unité"),
        description=call.get("description"),
    )
    return {"created": True, **service_view(service)}
