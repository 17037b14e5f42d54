"""
Statistics Service.

Aggregates for the dashboard, the assistant's stats tools and the morning
briefing. Queries run one after the other on the caller's session.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import extract, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.core.exceptions import ValidationError
from crm.backend.core.utils import utc_now
from crm.backend.models.billing import UNPAID_INVOICE_STATUSES, Invoice, Quote
from crm.backend.models.client import Client
from crm.backend.models.project import ProjectCard
from crm.backend.repositories.billing import InvoiceRepository, QuoteRepository
from crm.backend.repositories.client import ClientRepository
from crm.backend.repositories.project import ProjectCardRepository
from crm.backend.services.base import BaseService
from crm.backend.services.billing import CENT
from crm.backend.services.portfolio import SubscriptionService
from crm.backend.services.treasury import TreasuryService

PERIODS = ("today", "week", "month", "year")


def period_start(period: str, now: datetime) -> datetime:
    """First instant of ``period`` relative to ``now`` (week = last 7 days)."""
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "today":
        return today
    if period == "week":
        return today - timedelta(days=7)
    if period == "month":
        return today.replace(day=1)
    if period == "year":
        return today.replace(month=1, day=1)
    raise ValidationError(f"Période inconnue: {period} (today, week, month, year)")


class StatsService(BaseService):
    def __init__(self, session: AsyncSession, tenant_id: int) -> None:
        super().__init__(session, tenant_id)
        self.invoices = InvoiceRepository(session, tenant_id)
        self.quotes = QuoteRepository(session, tenant_id)
        self.clients = ClientRepository(session, tenant_id)
        self.cards = ProjectCardRepository(session, tenant_id)

    async def period_summary(self, period: str = "month", now: datetime | None = None) -> dict[str, Any]:
        """Activity created since the start of ``period``."""
        now = now or utc_now()
        start = period_start(period, now)
        return {
            "period": period,
            "since": start,
            "newClients": await self.clients.count(Client.created_at >= start),
            "invoices": await self.invoices.count(Invoice.created_at >= start),
            "invoicedTtc": await self.invoices.sum(Invoice.total_ttc, Invoice.created_at >= start),
            "quotes": await self.quotes.count(Quote.created_at >= start),
            "quotedTtc": await self.quotes.sum(Quote.total_ttc, Quote.created_at >= start),
            "paidTtc": await self.invoices.sum(
                Invoice.total_ttc, Invoice.status == "paid", Invoice.payment_date >= start,
            ),
            "tasksCompleted": await self.cards.count(
                ProjectCard.is_completed.is_(True), ProjectCard.completed_at >= start,
            ),
        }

    async def dashboard(self, now: datetime | None = None) -> dict[str, Any]:
        now = now or utc_now()
        month_start = period_start("month", now)
        unpaid = Invoice.status.in_(UNPAID_INVOICE_STATUSES)
        return {
            "revenueThisMonth": await self.invoices.sum(
                Invoice.total_ttc, Invoice.status == "paid", Invoice.payment_date >= month_start,
            ),
            "pendingAmount": await self.invoices.sum(Invoice.total_ttc, unpaid),
            "overdueAmount": await self.invoices.sum(Invoice.total_ttc, unpaid, Invoice.due_date < now),
            "overdueCount": await self.invoices.count(unpaid, Invoice.due_date < now),
            "pendingQuotes": await self.quotes.count(Quote.status == "sent"),
            "treasury": await TreasuryService(self.session, self.tenant_id).total_balance(),
            "mrr": await SubscriptionService(self.session, self.tenant_id).monthly_recurring_revenue(),
            "activeClients": await self.clients.count(Client.status == "active"),
        }

    async def revenue_by_month(self, year: int) -> list[dict[str, Any]]:
        """Paid revenue (TTC) per month of ``year``, January to December."""
        month = extract("month", Invoice.payment_date)
        result = await self.session.execute(
            select(month, func.sum(Invoice.total_ttc))
            .where(
                Invoice.tenant_id == self.tenant_id,
                Invoice.status == "paid",
                extract("year", Invoice.payment_date) == year,
            )
            .group_by(month)
        )
        totals = {int(m): Decimal(str(total)).quantize(CENT) for m, total in result.all()}
        return [
            {"month": m, "revenue": totals.get(m, Decimal("0.00"))}
            for m in range(1, 13)
        ]

    async def top_clients(self, limit: int = 5, year: int | None = None) -> list[dict[str, Any]]:
        """Clients ranked by paid revenue, optionally within one year."""
        revenue = func.sum(Invoice.total_ttc).label("revenue")
        stmt = (
            select(Invoice.client_id, revenue, func.count(Invoice.id))
            .where(Invoice.tenant_id == self.tenant_id, Invoice.status == "paid")
            .group_by(Invoice.client_id)
            .order_by(revenue.desc())
            .limit(limit)
        )
        if year is not None:
            stmt = stmt.where(extract("year", Invoice.payment_date) == year)
        rows = (await self.session.execute(stmt)).all()
        ranking = []
        for client_id, total, count in rows:
            client = await self.clients.get_by_id(client_id)
            ranking.append({
                "clientId": client_id,
                "client": client.display_name,
                "revenue": Decimal(str(total)).quantize(CENT),
                "invoices": count,
            })
        return ranking

    async def goal_progress(self, monthly_goal: float | None, now: datetime | None = None) -> dict[str, Any] | None:
        """Paid revenue this month against the tenant's monthly goal."""
        if not monthly_goal:
            return None
        now = now or utc_now()
        paid = await self.invoices.sum(
            Invoice.total_ttc, Invoice.status == "paid", Invoice.payment_date >= period_start("month", now),
        )
        goal = Decimal(str(monthly_goal))
        return {
            "goal": goal,
            "paid": paid,
            "percent": round(float(paid / goal * 100), 1) if goal else 0.0,
        }
