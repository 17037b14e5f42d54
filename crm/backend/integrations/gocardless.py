"""
GoCardless Bank Account Data client.

Token exchange, institution lookup, requisitions (bank authorisation
links) and account balances/transactions.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

import httpx

from crm.backend.core.config import get_app_config
from crm.backend.core.exceptions import ExternalServiceError
from crm.backend.integrations.http import ExternalAPIClient

BALANCE_PRIORITY = ("interimAvailable", "closingBooked", "expected")


@dataclass(frozen=True)
class GoCardlessTransaction:
    external_id: str
    booking_date: date
    amount: Decimal
    currency: str
    label: str
    counterparty: str | None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "GoCardlessTransaction | None":
        """Build from an API transaction, or None when it has no usable id."""
        external_id = data.get("transactionId") or data.get("internalTransactionId")
        raw_date = data.get("bookingDate") or data.get("valueDate")
        if not external_id or not raw_date:
            return None
        amount_info = data.get("transactionAmount") or {}
        amount = Decimal(str(amount_info.get("amount", "0")))
        counterparty = data.get("debtorName") if amount >= 0 else data.get("creditorName")
        unstructured = data.get("remittanceInformationUnstructuredArray") or []
        label = (
            data.get("remittanceInformationUnstructured")
            or " ".join(unstructured)
            or counterparty
            or "Transaction"
        )
        return cls(
            external_id=str(external_id),
            booking_date=date.fromisoformat(raw_date[:10]),
            amount=amount,
            currency=amount_info.get("currency") or "EUR",
            label=label,
            counterparty=counterparty,
        )


def pick_balance(balances: list[dict[str, Any]]) -> Decimal | None:
    """Most relevant current balance from a balances payload."""
    by_type = {b.get("balanceType"): b for b in balances}
    for balance_type in BALANCE_PRIORITY:
        if balance_type in by_type:
            return Decimal(str(by_type[balance_type]["balanceAmount"]["amount"]))
    return None


class GoCardlessClient:
    def __init__(
        self,
        secret_id: str,
        secret_key: str,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ) -> None:
        if not secret_id or not secret_key:
            raise ExternalServiceError("GoCardless non configuré")
        self.secret_id = secret_id
        self.secret_key = secret_key
        self.api = ExternalAPIClient(
            "gocardless",
            base_url or get_app_config().integrations.gocardless.base_url,
            timeout=timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )
        self._access_token: str | None = None

    async def __aenter__(self) -> "GoCardlessClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.api.close()

    async def _auth_headers(self) -> dict[str, str]:
        if self._access_token is None:
            data = await self.api.post_json(
                "/token/new/",
                json={"secret_id": self.secret_id, "secret_key": self.secret_key},
            )
            self._access_token = data["access"]
        return {"Authorization": f"Bearer {self._access_token}"}

    async def _get(self, path: str, **params: Any) -> Any:
        return await self.api.get_json(path, params=params or None, headers=await self._auth_headers())

    async def list_institutions(self, country: str) -> list[dict[str, Any]]:
        return await self._get("/institutions/", country=country.upper())

    async def create_requisition(
        self,
        institution_id: str,
        redirect_url: str,
        reference: str,
    ) -> dict[str, Any]:
        return await self.api.post_json(
            "/requisitions/",
            json={
                "institution_id": institution_id,
                "redirect": redirect_url,
                "reference": reference,
                "user_language": "FR",
            },
            headers=await self._auth_headers(),
        )

    async def get_requisition(self, requisition_id: str) -> dict[str, Any]:
        return await self._get(f"/requisitions/{requisition_id}/")

    async def delete_requisition(self, requisition_id: str) -> None:
        await self.api.request("DELETE", f"/requisitions/{requisition_id}/", headers=await self._auth_headers())

    async def get_account_details(self, account_id: str) -> dict[str, Any]:
        data = await self._get(f"/accounts/{account_id}/details/")
        return data.get("account", {})

    async def get_balance(self, account_id: str) -> Decimal | None:
        data = await self._get(f"/accounts/{account_id}/balances/")
        return pick_balance(data.get("balances", []))

    async def get_transactions(
        self,
        account_id: str,
        date_from: date,
        date_to: date,
    ) -> list[GoCardlessTransaction]:
        """Booked then pending transactions in the window."""
        data = await self._get(
            f"/accounts/{account_id}/transactions/",
            date_from=date_from.isoformat(),
            date_to=date_to.isoformat(),
        )
        groups = data.get("transactions", {})
        parsed = (
            GoCardlessTransaction.from_api(item)
            for item in [*groups.get("booked", []), *groups.get("pending", [])]
        )
        return [tx for tx in parsed if tx is not None]
