"""
Billing Arithmetic.

Pure functions shared by every path that prices a quote or an invoice
(REST endpoints and assistant tools). Amounts are Decimal, each line is
rounded half-up to the cent, and document totals are the sums of the
rounded lines.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from crm.backend.core.exceptions import ValidationError

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
DEFAULT_VAT_RATE = Decimal("20")
DEFAULT_NUMBER_FORMAT = "{PREFIX}-{YEAR}-{NUMBER}"
NUMBER_PADDING = 5


def to_decimal(value: Any, field: str = "montant") -> Decimal:
    """Parse ints, floats and strings ("12,50") into a Decimal."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"Valeur numérique invalide pour {field}")
    if isinstance(value, float):
        return Decimal(str(value))
    try:
        return Decimal(str(value).replace(",", ".").replace(" ", "").strip())
    except InvalidOperation as e:
        raise ValidationError(f"Valeur numérique invalide pour {field}: {value}") from e


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None and value != "":
            return value
    return None


@dataclass(frozen=True)
class LineItemInput:
    """One document line as entered by a user or the assistant."""

    description: str
    quantity: Decimal
    unit_price_ht: Decimal
    vat_rate: Decimal = DEFAULT_VAT_RATE
    unit: str | None = None
    service_id: int | None = None

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        default_vat_rate: Decimal = DEFAULT_VAT_RATE,
    ) -> "LineItemInput":
        """Accept camelCase (dashboard, assistant) or snake_case keys."""
        description = str(data.get("description") or "").strip()
        if not description:
            raise ValidationError("Chaque ligne doit avoir une description")

        raw_quantity = _first(data, "quantity", "qty")
        quantity = to_decimal(raw_quantity if raw_quantity is not None else 1, "quantité")
        if quantity <= 0:
            raise ValidationError(f"Quantité invalide pour « {description} »")

        raw_price = _first(data, "unitPrice", "unitPriceHt", "unit_price_ht", "unit_price", "price")
        if raw_price is None:
            raise ValidationError(f"Prix unitaire manquant pour « {description} »")
        unit_price = to_decimal(raw_price, "prix unitaire")

        raw_vat = _first(data, "vatRate", "vat_rate", "tva")
        vat_rate = to_decimal(raw_vat, "taux de TVA") if raw_vat is not None else default_vat_rate
        if vat_rate < 0:
            raise ValidationError("Le taux de TVA ne peut pas être négatif")

        service_id = _first(data, "serviceId", "service_id")
        return cls(
            description=description,
            quantity=quantity,
            unit_price_ht=unit_price,
            vat_rate=vat_rate,
            unit=data.get("unit") or None,
            service_id=int(service_id) if service_id is not None else None,
        )


@dataclass(frozen=True)
class LineTotal:
    item: LineItemInput
    total_ht: Decimal
    tax_amount: Decimal
    total_ttc: Decimal


@dataclass(frozen=True)
class LineTotals:
    lines: list[LineTotal]
    subtotal_ht: Decimal
    tax_amount: Decimal
    total_ttc: Decimal


@dataclass(frozen=True)
class DocumentTotals:
    subtotal_ht: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_ttc: Decimal


def compute_line_totals(
    items: Iterable[LineItemInput | Mapping[str, Any]],
    default_vat_rate: Decimal = DEFAULT_VAT_RATE,
) -> LineTotals:
    """Price every line and sum the document."""
    lines: list[LineTotal] = []
    for raw in items:
        item = raw if isinstance(raw, LineItemInput) else LineItemInput.from_mapping(raw, default_vat_rate)
        total_ht = round_money(item.quantity * item.unit_price_ht)
        tax = round_money(total_ht * item.vat_rate / HUNDRED)
        lines.append(LineTotal(item=item, total_ht=total_ht, tax_amount=tax, total_ttc=total_ht + tax))

    subtotal = sum((line.total_ht for line in lines), Decimal("0.00"))
    tax_total = sum((line.tax_amount for line in lines), Decimal("0.00"))
    return LineTotals(
        lines=lines,
        subtotal_ht=subtotal,
        tax_amount=tax_total,
        total_ttc=subtotal + tax_total,
    )


def apply_discount(
    totals: LineTotals,
    discount_type: str | None,
    discount_value: Decimal | None,
) -> DocumentTotals:
    """
    Apply a document-level discount.

    ``percentage`` takes a share of the subtotal, ``fixed`` an amount capped
    at the subtotal. Tax is reduced in the same proportion as the subtotal.
    """
    subtotal = totals.subtotal_ht
    value = discount_value or Decimal("0")
    if not discount_type or value <= 0 or subtotal <= 0:
        return DocumentTotals(subtotal, Decimal("0.00"), totals.tax_amount, totals.total_ttc)

    if discount_type == "percentage":
        discount = round_money(subtotal * min(value, HUNDRED) / HUNDRED)
    elif discount_type == "fixed":
        discount = round_money(min(value, subtotal))
    else:
        raise ValidationError(f"Type de remise inconnu: {discount_type}")

    tax_after = round_money(totals.tax_amount * (subtotal - discount) / subtotal)
    return DocumentTotals(
        subtotal_ht=subtotal,
        discount_amount=discount,
        tax_amount=tax_after,
        total_ttc=subtotal - discount + tax_after,
    )


def document_number_stem(
    prefix: str,
    year: int,
    number_format: str = DEFAULT_NUMBER_FORMAT,
) -> tuple[str, str]:
    """Split a number format into the text before and after {NUMBER}."""
    rendered = number_format.replace("{PREFIX}", prefix).replace("{YEAR}", str(year))
    head, marker, tail = rendered.partition("{NUMBER}")
    if not marker:
        return f"{rendered}-", ""
    return head, tail


def next_document_number(
    last_number: str | None,
    prefix: str,
    year: int,
    number_format: str = DEFAULT_NUMBER_FORMAT,
    padding: int = NUMBER_PADDING,
    minimum: int = 1,
) -> str:
    """
    Next sequential number, e.g. FAC-2026-00042 after FAC-2026-00041.

    The sequence restarts every year. ``minimum`` lets a tenant start
    numbering above 1 (nextInvoiceNumber setting).
    """
    head, tail = document_number_stem(prefix, year, number_format)
    sequence = minimum
    if last_number and last_number.startswith(head) and last_number.endswith(tail):
        middle = last_number[len(head):len(last_number) - len(tail)] if tail else last_number[len(head):]
        if middle.isdigit():
            sequence = max(int(middle) + 1, minimum)
    return f"{head}{str(sequence).zfill(padding)}{tail}"


def build_line_rows(totals: LineTotals, row_cls: type) -> list[Any]:
    """Instantiate InvoiceItem / QuoteItem rows from priced lines."""
    return [
        row_cls(
            description=line.item.description,
            quantity=line.item.quantity,
            unit=line.item.unit,
            unit_price_ht=line.item.unit_price_ht,
            vat_rate=line.item.vat_rate,
            tax_amount=line.tax_amount,
            total_ht=line.total_ht,
            total_ttc=line.total_ttc,
            sort_order=position,
            service_id=line.item.service_id,
        )
        for position, line in enumerate(totals.lines)
    ]


def items_from_rows(rows: Iterable[Any]) -> list[LineItemInput]:
    """Rebuild inputs from stored rows (duplication, quote conversion)."""
    return [
        LineItemInput(
            description=row.description,
            quantity=Decimal(row.quantity),
            unit_price_ht=Decimal(row.unit_price_ht),
            vat_rate=Decimal(row.vat_rate),
            unit=row.unit,
            service_id=row.service_id,
        )
        for row in rows
    ]
