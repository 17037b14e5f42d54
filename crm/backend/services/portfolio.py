"""
Portfolio Services.

Recurring revenue (subscriptions), domain names, contracts and the
catalogue of billable services.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.core.exceptions import ValidationError
from crm.backend.core.utils import utc_now
from crm.backend.models.billing import Service
from crm.backend.models.client import Client
from crm.backend.models.portfolio import BILLING_CYCLES, Contract, Domain, Subscription
from crm.backend.repositories.billing import ServiceRepository
from crm.backend.repositories.portfolio import (
    ContractRepository,
    DomainRepository,
    SubscriptionRepository,
)
from crm.backend.services.base import BaseService
from crm.backend.services.billing import round_money, to_decimal

CONTRACT_STATUSES = ("draft", "sent", "signed", "expired", "cancelled")


class SubscriptionService(BaseService):
    def __init__(self, session: AsyncSession, tenant_id: int) -> None:
        super().__init__(session, tenant_id)
        self.repo = SubscriptionRepository(session, tenant_id)

    async def list_active(self, client_id: int | None = None) -> list[Subscription]:
        return await self.repo.list_active(client_id)

    async def monthly_recurring_revenue(self) -> Decimal:
        """Sum of active subscriptions normalised to one month (HT)."""
        subscriptions = await self.repo.list_active()
        return round_money(sum((s.monthly_amount for s in subscriptions), Decimal("0")))

    async def create(
        self,
        client: Client,
        name: str,
        amount_ht: Any,
        billing_cycle: str = "monthly",
        next_billing_date: datetime | None = None,
    ) -> Subscription:
        if billing_cycle not in BILLING_CYCLES:
            raise ValidationError(f"Périodicité invalide: {billing_cycle}")
        subscription = await self._execute_db_operation(
            "create_subscription",
            self.repo.create(
                client=client,
                name=name,
                amount_ht=to_decimal(amount_ht),
                billing_cycle=billing_cycle,
                next_billing_date=next_billing_date,
            ),
        )
        self._log_operation("Subscription created", subscription_id=subscription.id)
        return subscription


class DomainService(BaseService):
    def __init__(self, session: AsyncSession, tenant_id: int) -> None:
        super().__init__(session, tenant_id)
        self.repo = DomainRepository(session, tenant_id)

    async def list_domains(self, client_id: int | None = None) -> list[Domain]:
        clauses = [Domain.client_id == client_id] if client_id is not None else []
        return await self.repo.find(*clauses, order_by=Domain.name)

    async def list_expiring(self, days: int = 30, now: datetime | None = None) -> list[Domain]:
        return await self.repo.list_expiring((now or utc_now()) + timedelta(days=days))


class ContractService(BaseService):
    def __init__(self, session: AsyncSession, tenant_id: int) -> None:
        super().__init__(session, tenant_id)
        self.repo = ContractRepository(session, tenant_id)

    async def list_contracts(
        self,
        client_id: int | None = None,
        status: str | None = None,
    ) -> list[Contract]:
        clauses = []
        if client_id is not None:
            clauses.append(Contract.client_id == client_id)
        if status:
            clauses.append(Contract.status == status)
        return await self.repo.find(*clauses, order_by=Contract.created_at.desc())

    async def create(
        self,
        client: Client,
        title: str,
        content: str | None = None,
        amount: Any = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> Contract:
        if not title or not title.strip():
            raise ValidationError("Le titre du contrat est requis")
        if start_date and end_date and end_date < start_date:
            raise ValidationError("La date de fin précède la date de début")
        contract = await self._execute_db_operation(
            "create_contract",
            self.repo.create(
                client=client,
                title=title.strip(),
                content=content,
                amount=to_decimal(amount) if amount not in (None, "") else None,
                start_date=start_date,
                end_date=end_date,
            ),
        )
        self._log_operation("Contract created", contract_id=contract.id)
        return contract

    async def update_status(self, contract: Contract, status: str) -> Contract:
        if status not in CONTRACT_STATUSES:
            raise ValidationError(f"Statut de contrat invalide: {status}")
        contract.status = status
        if status == "signed" and contract.signed_at is None:
            contract.signed_at = utc_now()
        await self.session.flush()
        self._log_operation("Contract status updated", contract_id=contract.id, status=status)
        return contract


class CatalogService(BaseService):
    def __init__(self, session: AsyncSession, tenant_id: int) -> None:
        super().__init__(session, tenant_id)
        self.repo = ServiceRepository(session, tenant_id)

    async def list_active(self) -> list[Service]:
        return await self.repo.list_active()

    async def create(
        self,
        name: str,
        unit_price_ht: Any,
        vat_rate: Any = 20,
        unit: str = "unité",
        description: str | None = None,
    ) -> Service:
        if not name or not name.strip():
            raise ValidationError("Le nom du service est requis")
        service = await self._execute_db_operation(
            "create_service",
            self.repo.create(
                name=name.strip(),
                unit_price_ht=to_decimal(unit_price_ht, "prix unitaire"),
                vat_rate=to_decimal(vat_rate, "taux de TVA"),
                unit=unit,
                description=description,
            ),
        )
        self._log_operation("Service created", service_id=service.id)
        return service
