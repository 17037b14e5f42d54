"""Subscription, domain and contract tools."""

from crm.backend.agents.assistant.tools.base import CLIENT_REF, ToolCall, enum, integer, number, string, tool
from crm.backend.agents.assistant.tools.views import contract_view, domain_view, subscription_view
from crm.backend.services.portfolio import (
    CONTRACT_STATUSES,
    ContractService,
    DomainService,
    SubscriptionService,
)


@tool("list_subscriptions", "Abonnements actifs, éventuellement pour un client", CLIENT_REF)
async def list_subscriptions(call: ToolCall):
    client = await call.client(required=False)
    subscriptions = await SubscriptionService(call.session, call.tenant_id).list_active(
        client.id if client else None,
    )
    return [subscription_view(call, s) for s in subscriptions]


@tool("get_mrr", "Revenu mensuel récurrent (MRR) des abonnements actifs, HT")
async def get_mrr(call: ToolCall):
    service = SubscriptionService(call.session, call.tenant_id)
    return {
        "mrr": await service.monthly_recurring_revenue(),
        "activeSubscriptions": len(await service.list_active()),
    }


@tool("list_domains", "Noms de domaine gérés", CLIENT_REF)
async def list_domains(call: ToolCall):
    client = await call.client(required=False)
    domains = await DomainService(call.session, call.tenant_id).list_domains(client.id if client else None)
    return [domain_view(call, d) for d in domains]


@tool(
    "list_expiring_domains",
    "Domaines qui expirent prochainement",
    {"days": integer("Horizon en jours, 30 par défaut")},
)
async def list_expiring_domains(call: ToolCall):
    domains = await DomainService(call.session, call.tenant_id).list_expiring(
        days=call.int_arg("days") or 30, now=call.now_utc(),
    )
    return [domain_view(call, d) for d in domains]


@tool(
    "list_contracts",
    "Lister les contrats",
    {**CLIENT_REF, "status": enum(CONTRACT_STATUSES, "Filtrer par statut")},
)
async def list_contracts(call: ToolCall):
    client = await call.client(required=False)
    contracts = await ContractService(call.session, call.tenant_id).list_contracts(
        client_id=client.id if client else None, status=call.get("status"),
    )
    return [contract_view(call, c) for c in contracts]


@tool(
    "create_contract",
    "Créer un contrat en brouillon pour un client",
    {
        **CLIENT_REF,
        "title": string("Intitulé du contrat"),
        "content": string("Objet ou clauses principales"),
        "amount": number("Montant HT"),
        "startDate": string("Date de début"),
        "endDate": string("Date de fin"),
    },
    required=("title",),
)
async def create_contract(call: ToolCall):
    contract = await ContractService(call.session, call.tenant_id).create(
        await call.client(),
        call.require("title"),
        content=call.get("content"),
        amount=call.get("amount"),
        start_date=call.datetime_arg("startDate"),
        end_date=call.datetime_arg("endDate"),
    )
    return {"created": True, **contract_view(call, contract)}
