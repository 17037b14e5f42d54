"""
Morning Report.

Plain-text daily briefing sent on Telegram: treasury, revenue of the
month, alerts, today's agenda, open quotes, receivables and upcoming
renewals.
"""

from collections.abc import Sequence
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.agents.assistant.prompts import WEEKDAY_NAMES
from crm.backend.core.utils import format_currency, local_to_utc
from crm.backend.integrations.graph import CalendarEvent
from crm.backend.repositories.filters import TaskFilter, TicketFilter
from crm.backend.services.invoice import InvoiceService
from crm.backend.services.note import NoteService
from crm.backend.services.portfolio import ContractService, DomainService, SubscriptionService
from crm.backend.services.project import TaskService
from crm.backend.services.stats import StatsService
from crm.backend.services.ticket import TicketService

MONTH_NAMES = (
    "janvier", "février", "mars", "avril", "mai", "juin",
    "juillet", "août", "septembre", "octobre", "novembre", "décembre",
)


def _preview(text: str, length: int = 40) -> str:
    return text if len(text) <= length else text[:length] + "..."


def _agenda_lines(events: Sequence[CalendarEvent]) -> list[str]:
    lines = []
    for event in events:
        if event.is_all_day:
            lines.append(f"  - Journée: {event.subject}")
        else:
            lines.append(f"  - {event.start:%H:%M} - {event.end:%H:%M}: {event.subject}")
        if event.location:
            lines.append(f"    {event.location}")
    return lines


async def build_morning_report(
    session: AsyncSession,
    tenant_id: int,
    now: datetime,
    timezone: str,
    events: Sequence[CalendarEvent] = (),
) -> str:
    """
    Render the briefing for wall-clock ``now`` in ``timezone``.

    ``events`` are today's calendar events, already in local time.
    """
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    start_utc = local_to_utc(today, timezone)
    end_utc = local_to_utc(today + timedelta(days=1), timezone)
    now_utc = local_to_utc(now, timezone)

    dashboard = await StatsService(session, tenant_id).dashboard(now=now_utc)
    overdue = await InvoiceService(session, tenant_id).list_overdue(now_utc)
    tasks = TaskService(session, tenant_id)
    overdue_tasks = await tasks.list_tasks(TaskFilter(due_before=start_utc), limit=100)
    due_today = [
        t for t in await tasks.list_tasks(TaskFilter(due_before=end_utc), limit=100)
        if t.due_date and t.due_date >= start_utc
    ]
    reminders = await NoteService(session, tenant_id).list_reminders(
        days=1, now=start_utc,
    )
    reminders = [r for r in reminders if r.reminder_at < end_utc]
    open_tickets = await TicketService(session, tenant_id).list_tickets(TicketFilter(status="active"), limit=500)
    expiring_domains = await DomainService(session, tenant_id).list_expiring(days=30, now=now_utc)
    awaiting_signature = await ContractService(session, tenant_id).list_contracts(status="sent")
    renewals = [
        s for s in await SubscriptionService(session, tenant_id).list_active()
        if s.next_billing_date and start_utc <= s.next_billing_date < start_utc + timedelta(days=7)
    ]

    lines = [
        f"Bonjour ! Voici ton briefing du {WEEKDAY_NAMES[now.weekday()]} "
        f"{now.day} {MONTH_NAMES[now.month - 1]} {now.year}",
        "",
        f"Trésorerie: {format_currency(dashboard['treasury'])}",
        f"CA encaissé ce mois: {format_currency(dashboard['revenueThisMonth'])}",
        "",
    ]

    alerts = []
    if overdue:
        total = sum(i.total_ttc for i in overdue)
        alerts.append(f"{len(overdue)} facture(s) en retard ({format_currency(total)})")
    if overdue_tasks:
        alerts.append(f"{len(overdue_tasks)} tâche(s) en retard")
    if open_tickets:
        alerts.append(f"{len(open_tickets)} ticket(s) ouvert(s)")
    if expiring_domains:
        alerts.append(f"{len(expiring_domains)} domaine(s) expire(nt) bientôt")
    if awaiting_signature:
        alerts.append(f"{len(awaiting_signature)} contrat(s) en attente de signature")
    if alerts:
        lines.append("Alertes:")
        lines.extend(f"  - {alert}" for alert in alerts)
        lines.append("")

    lines.append("Aujourd'hui:")
    if events:
        lines.append("  Agenda:")
        lines.extend(_agenda_lines(events))
    if due_today:
        lines.append(f"  - {len(due_today)} tâche(s) à faire")
    if reminders:
        lines.append(f"  - {len(reminders)} rappel(s) programmé(s)")
        lines.extend(f"    - {_preview(r.content)}" for r in reminders)
    if not (events or due_today or reminders):
        lines.append("  - Rien de prévu")
    lines.append("")

    if dashboard["pendingQuotes"]:
        lines.append(f"Devis en attente: {dashboard['pendingQuotes']}")
    if dashboard["pendingAmount"]:
        lines.append(f"À encaisser: {format_currency(dashboard['pendingAmount'])}")
    if renewals:
        lines.append("Renouvellements cette semaine:")
        lines.extend(
            f"  - {s.client.display_name}: {s.name} ({format_currency(s.amount_ht)} HT)"
            for s in renewals
        )

    return "\n".join(lines).rstrip() + "\n\nBonne journée !"
