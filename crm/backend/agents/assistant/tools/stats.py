"""Reporting tools."""

from crm.backend.agents.assistant.tools.base import ToolCall, enum, integer, tool
from crm.backend.services.stats import PERIODS, StatsService

MONTHS = (
    "janvier", "février", "mars", "avril", "mai", "juin",
    "juillet", "août", "septembre", "octobre", "novembre", "décembre",
)


@tool(
    "get_stats",
    "Activité sur une période: nouveaux clients, factures, devis, encaissements",
    {"period": enum(PERIODS, "Période, month par défaut")},
)
async def get_stats(call: ToolCall):
    return await StatsService(call.session, call.tenant_id).period_summary(
        call.get("period", "month"), now=call.now_utc(),
    )


@tool("get_dashboard", "Tableau de bord: CA du mois, impayés, retards, trésorerie, MRR")
async def get_dashboard(call: ToolCall):
    return await StatsService(call.session, call.tenant_id).dashboard(now=call.now_utc())


@tool(
    "revenue_by_month",
    "Chiffre d'affaires encaissé (TTC) mois par mois",
    {"year": integer("Année, l'année en cours par défaut")},
)
async def revenue_by_month(call: ToolCall):
    year = call.int_arg("year") or call.ctx.now().year
    months = await StatsService(call.session, call.tenant_id).revenue_by_month(year)
    return {
        "year": year,
        "total": sum(m["revenue"] for m in months),
        "months": [{"month": MONTHS[m["month"] - 1], "revenue": m["revenue"]} for m in months],
    }


@tool(
    "top_clients",
    "Meilleurs clients par chiffre d'affaires encaissé",
    {"limit": integer("Nombre de clients, 5 par défaut"), "year": integer("Limiter à une année")},
)
async def top_clients(call: ToolCall):
    return await StatsService(call.session, call.tenant_id).top_clients(
        limit=call.int_arg("limit") or 5, year=call.int_arg("year"),
    )


@tool("monthly_goal_progress", "Avancement de l'objectif de chiffre d'affaires du mois")
async def monthly_goal_progress(call: ToolCall):
    progress = await StatsService(call.session, call.tenant_id).goal_progress(
        call.ctx.settings.monthly_goal, now=call.now_utc(),
    )
    if progress is None:
        return {"error": "Aucun objectif mensuel configuré"}
    return progress
