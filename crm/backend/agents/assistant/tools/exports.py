"""CSV export tools. Files are sent as Telegram documents after the reply."""

import csv
import io
from collections.abc import Iterable

from crm.backend.agents.assistant.tools.base import Attachment, ToolCall, enum, integer, tool
from crm.backend.models.billing import INVOICE_STATUSES
from crm.backend.models.client import CLIENT_STATUSES
from crm.backend.repositories.filters import ClientFilter, InvoiceFilter
from crm.backend.services.client import ClientService
from crm.backend.services.invoice import InvoiceService

EXPORT_LIMIT = 5000


def to_csv(header: list[str], rows: Iterable[list]) -> bytes:
    """Semicolon separated, UTF-8 with BOM so spreadsheet tools detect the encoding."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=";")
    writer.writerow(header)
    for row in rows:
        writer.writerow(["" if value is None else value for value in row])
    return buffer.getvalue().encode("utf-8-sig")


def _amount(value) -> str:
    return f"{value:.2f}".replace(".", ",")


@tool(
    "export_invoices_csv",
    "Exporter les factures en CSV (fichier envoyé dans la conversation)",
    {"status": enum((*INVOICE_STATUSES, "unpaid"), "Filtrer par statut"), "year": integer("Année d'émission")},
)
async def export_invoices_csv(call: ToolCall):
    filters = InvoiceFilter(status=call.get("status"))
    year = call.int_arg("year")
    invoices, _ = await InvoiceService(call.session, call.tenant_id).list_invoices(filters, limit=EXPORT_LIMIT)
    if year:
        invoices = [i for i in invoices if call.to_local(i.issue_date).year == year]

    content = to_csv(
        ["Numéro", "Client", "Statut", "Émission", "Échéance", "HT", "TVA", "TTC", "Paiement"],
        (
            [
                i.invoice_number,
                i.client.display_name,
                i.status,
                call.to_local(i.issue_date).strftime("%d/%m/%Y"),
                call.to_local(i.due_date).strftime("%d/%m/%Y"),
                _amount(i.subtotal_ht),
                _amount(i.tax_amount),
                _amount(i.total_ttc),
                call.to_local(i.payment_date).strftime("%d/%m/%Y") if i.payment_date else None,
            ]
            for i in invoices
        ),
    )
    filename = f"factures-{year or call.ctx.now().strftime('%Y%m%d')}.csv"
    call.ctx.attachments.append(Attachment(filename, content, caption=f"{len(invoices)} facture(s)"))
    return {"exported": len(invoices), "filename": filename}


@tool(
    "export_clients_csv",
    "Exporter les clients en CSV (fichier envoyé dans la conversation)",
    {"status": enum(CLIENT_STATUSES, "Filtrer par statut")},
)
async def export_clients_csv(call: ToolCall):
    clients, _ = await ClientService(call.session, call.tenant_id).list_clients(
        ClientFilter(status=call.get("status")), limit=EXPORT_LIMIT,
    )
    content = to_csv(
        ["Société", "Prénom", "Nom", "Email", "Téléphone", "Adresse", "Code postal", "Ville", "SIRET", "Statut"],
        (
            [
                c.company_name, c.first_name, c.last_name, c.email, c.phone,
                c.address, c.postal_code, c.city, c.siret, c.status,
            ]
            for c in clients
        ),
    )
    filename = f"clients-{call.ctx.now().strftime('%Y%m%d')}.csv"
    call.ctx.attachments.append(Attachment(filename, content, caption=f"{len(clients)} client(s)"))
    return {"exported": len(clients), "filename": filename}
