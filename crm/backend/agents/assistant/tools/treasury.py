"""Treasury tools."""

from crm.backend.agents.assistant.tools.base import ToolCall, boolean, enum, integer, string, tool
from crm.backend.agents.assistant.tools.views import account_view, invoice_view, transaction_view
from crm.backend.core.utils import local_to_utc
from crm.backend.repositories.filters import TransactionFilter
from crm.backend.services.invoice import InvoiceService
from crm.backend.services.treasury import BankSyncService, TreasuryService


def _treasury(call: ToolCall) -> TreasuryService:
    return TreasuryService(call.session, call.tenant_id, call.ctx.settings)


@tool("get_treasury", "Soldes des comptes bancaires et flux du mois en cours")
async def get_treasury(call: ToolCall):
    treasury = _treasury(call)
    now = call.ctx.now()
    month_start = local_to_utc(
        now.replace(day=1, hour=0, minute=0, second=0, microsecond=0), call.ctx.timezone,
    )
    _, unreconciled = await treasury.list_transactions(
        TransactionFilter(reconciled=False, direction="credit"), limit=1,
    )
    return {
        "totalBalance": await treasury.total_balance(),
        "accounts": [account_view(a) for a in await treasury.list_accounts()],
        "thisMonth": await treasury.cash_flow(month_start, call.now_utc()),
        "unreconciledCredits": unreconciled,
    }


@tool(
    "list_transactions",
    "Dernières transactions bancaires",
    {
        "direction": enum(("credit", "debit"), "Encaissements ou décaissements"),
        "reconciled": boolean("Filtrer sur l'état de rapprochement"),
        "search": string("Libellé ou contrepartie"),
        "accountId": integer("Compte bancaire"),
        "limit": integer("Maximum, 20 par défaut"),
    },
)
async def list_transactions(call: ToolCall):
    reconciled = call.get("reconciled")
    transactions, total = await _treasury(call).list_transactions(
        TransactionFilter(
            account_id=call.int_arg("accountId"),
            reconciled=bool(reconciled) if reconciled is not None else None,
            direction=call.get("direction"),
            search=call.get("search"),
        ),
        limit=call.int_arg("limit") or 20,
    )
    return {"total": total, "transactions": [transaction_view(call, t) for t in transactions]}


@tool(
    "reconcile_transaction",
    "Rapprocher un crédit bancaire d'une facture, qui est alors marquée payée. "
    "Sans facture indiquée, renvoie les factures candidates.",
    {
        "transactionId": integer("Identifiant de la transaction"),
        "invoiceId": integer("Identifiant de la facture"),
        "invoiceNumber": string("Numéro de facture"),
    },
    required=("transactionId",),
)
async def reconcile_transaction(call: ToolCall):
    treasury = _treasury(call)
    invoices = InvoiceService(call.session, call.tenant_id, call.ctx.settings)
    transaction = await treasury.transactions.get_by_id(call.int_arg("transactionId"))

    if call.get("invoiceId") is None and call.get("invoiceNumber") is None:
        unpaid = await invoices.list_unpaid()
        matching = [i for i in unpaid if abs(i.total_ttc - transaction.amount) < 1]
        return {
            "transaction": transaction_view(call, transaction),
            "candidates": [invoice_view(call, i) for i in matching],
        }

    invoice = await invoices.resolve(call.int_arg("invoiceId"), call.get("invoiceNumber"))
    transaction = await treasury.reconcile(transaction, invoice)
    return {
        "reconciled": True,
        "transaction": transaction_view(call, transaction),
        "invoice": invoice_view(call, invoice),
    }


@tool(
    "sync_bank_accounts",
    "Synchroniser les comptes bancaires connectés (soldes et nouvelles transactions)",
    {"days": integer("Profondeur en jours, 7 par défaut")},
)
async def sync_bank_accounts(call: ToolCall):
    sync = BankSyncService(call.session, call.tenant_id, call.ctx.settings)
    try:
        results = await sync.sync(days=call.int_arg("days") or 7)
    finally:
        await sync.close()
    return [
        {
            "account": r.account_name,
            "balance": r.balance,
            "newTransactions": [transaction_view(call, t) for t in r.new_transactions],
            "error": r.error,
        }
        for r in results
    ]
