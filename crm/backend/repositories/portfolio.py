"""
Portfolio Repositories.

Subscriptions, domains and contracts.
"""

from datetime import datetime

from crm.backend.models.portfolio import Contract, Domain, Subscription
from crm.backend.repositories.base import TenantScopedRepository


class SubscriptionRepository(TenantScopedRepository[Subscription]):
    model = Subscription
    not_found_message = "Abonnement non trouvé"

    async def list_active(self, client_id: int | None = None) -> list[Subscription]:
        clauses = [Subscription.status == "active"]
        if client_id is not None:
            clauses.append(Subscription.client_id == client_id)
        return await self.find(*clauses, order_by=Subscription.next_billing_date)


class DomainRepository(TenantScopedRepository[Domain]):
    model = Domain
    not_found_message = "Domaine non trouvé"

    async def list_expiring(self, before: datetime) -> list[Domain]:
        return await self.find(
            Domain.expires_at.is_not(None),
            Domain.expires_at <= before,
            Domain.status == "active",
            order_by=Domain.expires_at,
        )


class ContractRepository(TenantScopedRepository[Contract]):
    model = Contract
    not_found_message = "Contrat non trouvé"
