"""Client tools."""

from crm.backend.agents.assistant.tools.base import CLIENT_REF, ToolCall, enum, integer, string, tool
from crm.backend.agents.assistant.tools.views import client_view, invoice_view, quote_view
from crm.backend.models.client import CLIENT_STATUSES
from crm.backend.repositories.filters import ClientFilter, InvoiceFilter, QuoteFilter
from crm.backend.services.client import ClientService
from crm.backend.services.invoice import InvoiceService
from crm.backend.services.quote import QuoteService

CLIENT_FIELDS = {
    "companyName": string("Nom de la société"),
    "firstName": string("Prénom du contact"),
    "lastName": string("Nom du contact"),
    "email": string("Adresse email"),
    "phone": string("Téléphone"),
    "address": string("Adresse postale"),
    "postalCode": string("Code postal"),
    "city": string("Ville"),
    "siret": string("Numéro SIRET"),
    "notes": string("Remarques"),
}

_FIELD_NAMES = {
    "companyName": "company_name",
    "firstName": "first_name",
    "lastName": "last_name",
    "email": "email",
    "phone": "phone",
    "address": "address",
    "postalCode": "postal_code",
    "city": "city",
    "siret": "siret",
    "notes": "notes",
    "status": "status",
}


def _client_data(call: ToolCall) -> dict:
    return {
        column: call.get(arg)
        for arg, column in _FIELD_NAMES.items()
        if call.get(arg) is not None
    }


@tool(
    "search_clients",
    "Rechercher des clients par nom, contact ou email",
    {"query": string("Texte recherché"), "limit": integer("Nombre maximum de résultats")},
    required=("query",),
)
async def search_clients(call: ToolCall):
    clients = await ClientService(call.session, call.tenant_id).search(
        call.require("query"), limit=call.int_arg("limit") or 10,
    )
    return [client_view(c) for c in clients]


@tool(
    "list_clients",
    "Lister les clients, éventuellement filtrés par statut",
    {"status": enum(CLIENT_STATUSES, "Statut"), "limit": integer("Nombre maximum de résultats")},
)
async def list_clients(call: ToolCall):
    clients, total = await ClientService(call.session, call.tenant_id).list_clients(
        ClientFilter(status=call.get("status")), limit=call.int_arg("limit") or 20,
    )
    return {"total": total, "clients": [client_view(c) for c in clients]}


@tool(
    "get_client",
    "Fiche d'un client avec ses dernières factures et devis",
    CLIENT_REF,
)
async def get_client(call: ToolCall):
    client = await call.client()
    invoices, invoice_count = await InvoiceService(call.session, call.tenant_id).list_invoices(
        InvoiceFilter(client_id=client.id), limit=5,
    )
    quotes, quote_count = await QuoteService(call.session, call.tenant_id).list_quotes(
        QuoteFilter(client_id=client.id), limit=5,
    )
    return {
        **client_view(client),
        "address": client.address,
        "postalCode": client.postal_code,
        "siret": client.siret,
        "notes": client.notes,
        "invoiceCount": invoice_count,
        "recentInvoices": [invoice_view(call, i) for i in invoices],
        "quoteCount": quote_count,
        "recentQuotes": [quote_view(call, q) for q in quotes],
    }


@tool(
    "create_client",
    "Créer un client (prospect par défaut). Société ou nom du contact requis.",
    {**CLIENT_FIELDS, "status": enum(CLIENT_STATUSES, "Statut initial")},
)
async def create_client(call: ToolCall):
    client = await ClientService(call.session, call.tenant_id).create(_client_data(call))
    return {"created": True, **client_view(client)}


@tool(
    "update_client",
    "Modifier les informations d'un client",
    {**CLIENT_REF, **CLIENT_FIELDS, "status": enum(CLIENT_STATUSES, "Nouveau statut")},
)
async def update_client(call: ToolCall):
    client = await call.client()
    client = await ClientService(call.session, call.tenant_id).update(client.id, _client_data(call))
    return {"updated": True, **client_view(client)}
