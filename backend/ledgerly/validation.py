# Overview: Request payload parsing into typed invoice, payment, refund and estimate requests.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from ledgerly.errors import ValidationError
from ledgerly.services.lifecycle import InvoiceStatus, parse_status
from ledgerly.services.pricing import DISCOUNT_FIXED, DISCOUNT_TYPES
from ledgerly.time_utils import parse_iso_date


# Maximum price: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999
MAX_TAX_RATE_BPS = 100_000

HEADER_TEXT_FIELDS = ("head_note", "memo", "terms", "billing_address", "shipping_address")


@dataclass(frozen=True)
class LineRequest:
    product_id: int
    quantity: int
    id: int | None = None
    unit_price_cents: int | None = None  # None -> product's current price
    tax_rate_bps: int | None = None      # None -> product's tax rate
    description: str | None = None


@dataclass
class InvoiceRequest:
    company_id: int
    customer_id: int | None
    status: InvoiceStatus | None
    items: list[LineRequest]
    # Only the header keys the caller actually sent, already coerced
    header: dict[str, Any] = field(default_factory=dict)
    editor: str | None = None


@dataclass(frozen=True)
class PaymentAllocation:
    invoice_id: int
    amount_cents: int


@dataclass
class PaymentRequest:
    company_id: int
    customer_id: int
    amount_cents: int
    payment_date: date | None
    payment_method: str
    allocations: list[PaymentAllocation]
    deposit_to: str | None = None
    reference: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class RefundLineRequest:
    invoice_item_id: int
    quantity: int
    unit_price_cents: int | None = None  # None -> the line's original unit price


@dataclass
class RefundRequest:
    company_id: int
    lines: list[RefundLineRequest]
    refund_date: date | None = None
    reason: str | None = None
    payment_method: str = "Refund"


def _coerce_int(key: str, value: Any) -> int:
    # Integers - strict validation to reject floats and scientific notation
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer") from None
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def require_int(data: dict, key: str, *, minimum: int | None = None, maximum: int | None = None) -> int:
    if key not in data or data[key] is None:
        raise ValidationError(f"Missing required field: {key}")
    return optional_int(data, key, minimum=minimum, maximum=maximum)


def optional_int(data: dict, key: str, *, minimum: int | None = None, maximum: int | None = None) -> int | None:
    raw = data.get(key)
    if raw is None:
        return None
    value = _coerce_int(key, raw)
    if minimum is not None and value < minimum:
        raise ValidationError(f"{key} must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise ValidationError(f"{key} cannot exceed {maximum}")
    return value


def optional_str(data: dict, key: str, *, max_length: int | None = None) -> str | None:
    raw = data.get(key)
    if raw is None:
        return None
    value = str(raw).strip()
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f"{key} exceeds max length {max_length}")
    return value or None


def optional_date(data: dict, key: str) -> date | None:
    raw = data.get(key)
    if raw is None or raw == "":
        return None
    if isinstance(raw, date):
        return raw
    if not isinstance(raw, str):
        raise ValidationError(f"{key} must be an ISO-8601 date")
    try:
        return parse_iso_date(raw)
    except ValueError:
        raise ValidationError(f"{key} must be an ISO-8601 date") from None


def _require_dict(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def _require_list(data: dict, key: str) -> list:
    raw = data.get(key)
    if not isinstance(raw, list) or not raw:
        raise ValidationError(f"{key} must be a non-empty list")
    return raw


def parse_line(raw: Any, *, index: int, allow_id: bool, allow_zero: bool = False) -> LineRequest:
    if not isinstance(raw, dict):
        raise ValidationError(f"items[{index}] must be an object")
    try:
        return LineRequest(
            id=optional_int(raw, "id", minimum=1) if allow_id else None,
            product_id=require_int(raw, "product_id", minimum=1),
            quantity=require_int(raw, "quantity", minimum=0 if allow_zero else 1),
            unit_price_cents=optional_int(raw, "unit_price_cents", minimum=0, maximum=MAX_PRICE_CENTS),
            tax_rate_bps=optional_int(raw, "tax_rate_bps", minimum=0, maximum=MAX_TAX_RATE_BPS),
            description=optional_str(raw, "description"),
        )
    except ValidationError as exc:
        raise ValidationError(f"items[{index}]: {exc.message}", details={"index": index}) from None


def _parse_header(data: dict) -> dict[str, Any]:
    header: dict[str, Any] = {}
    for key in ("invoice_date", "due_date", "estimate_date", "expiry_date"):
        if key in data:
            header[key] = optional_date(data, key)
    for key in HEADER_TEXT_FIELDS:
        if key in data:
            header[key] = optional_str(data, key)
    if "discount_type" in data:
        discount_type = optional_str(data, "discount_type") or DISCOUNT_FIXED
        if discount_type not in DISCOUNT_TYPES:
            raise ValidationError(f"discount_type must be one of: {', '.join(sorted(DISCOUNT_TYPES))}")
        header["discount_type"] = discount_type
    if "discount_value" in data:
        header["discount_value"] = optional_int(data, "discount_value", minimum=0) or 0
    if "shipping_cents" in data:
        header["shipping_cents"] = optional_int(data, "shipping_cents", minimum=0, maximum=MAX_PRICE_CENTS) or 0
    return header


def parse_invoice_create(payload: Any) -> InvoiceRequest:
    data = _require_dict(payload)
    items = [parse_line(raw, index=i, allow_id=False) for i, raw in enumerate(_require_list(data, "items"))]
    status = parse_status(data["status"]) if data.get("status") else InvoiceStatus.OPENED
    return InvoiceRequest(
        company_id=require_int(data, "company_id", minimum=1),
        customer_id=require_int(data, "customer_id", minimum=1),
        status=status,
        items=items,
        header=_parse_header(data),
        editor=optional_str(data, "editor"),
    )


def parse_invoice_update(payload: Any) -> InvoiceRequest:
    """
    Update semantics: header keys are patched only when present; `items`
    is the complete new line set (lines with an id are edits, lines
    without one are additions, missing ids are removals). A quantity of
    0 on an existing line removes it.
    """
    data = _require_dict(payload)
    status = parse_status(data["status"]) if data.get("status") else None
    items: list[LineRequest] = []
    if status is not InvoiceStatus.CANCELLED:
        items = [
            parse_line(raw, index=i, allow_id=True, allow_zero=True)
            for i, raw in enumerate(_require_list(data, "items"))
        ]
        for i, line in enumerate(items):
            if line.id is None and line.quantity == 0:
                raise ValidationError(f"items[{i}]: quantity must be >= 1", details={"index": i})
    return InvoiceRequest(
        company_id=require_int(data, "company_id", minimum=1),
        customer_id=optional_int(data, "customer_id", minimum=1),
        status=status,
        items=items,
        header=_parse_header(data),
        editor=optional_str(data, "editor"),
    )


def parse_payment(payload: Any) -> PaymentRequest:
    data = _require_dict(payload)
    allocations = []
    seen: set[int] = set()
    for i, raw in enumerate(_require_list(data, "invoice_payments")):
        if not isinstance(raw, dict):
            raise ValidationError(f"invoice_payments[{i}] must be an object")
        invoice_id = require_int(raw, "invoice_id", minimum=1)
        if invoice_id in seen:
            raise ValidationError(f"invoice_payments[{i}]: invoice {invoice_id} listed twice")
        seen.add(invoice_id)
        allocations.append(PaymentAllocation(
            invoice_id=invoice_id,
            amount_cents=require_int(raw, "amount_cents", minimum=1, maximum=MAX_PRICE_CENTS),
        ))

    amount = require_int(data, "amount_cents", minimum=1, maximum=MAX_PRICE_CENTS)
    allocated = sum(a.amount_cents for a in allocations)
    if allocated != amount:
        raise ValidationError(
            "Sum of invoice payments does not match the payment amount",
            details={"amount_cents": amount, "allocated_cents": allocated},
        )

    method = optional_str(data, "payment_method", max_length=32)
    if not method:
        raise ValidationError("Missing required field: payment_method")

    return PaymentRequest(
        company_id=require_int(data, "company_id", minimum=1),
        customer_id=require_int(data, "customer_id", minimum=1),
        amount_cents=amount,
        payment_date=optional_date(data, "payment_date"),
        payment_method=method,
        allocations=allocations,
        deposit_to=optional_str(data, "deposit_to", max_length=64),
        reference=optional_str(data, "reference", max_length=64),
        notes=optional_str(data, "notes"),
    )


def parse_refund(payload: Any) -> RefundRequest:
    data = _require_dict(payload)
    lines = []
    seen: set[int] = set()
    for i, raw in enumerate(_require_list(data, "items")):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{i}] must be an object")
        item_id = require_int(raw, "invoice_item_id", minimum=1)
        if item_id in seen:
            raise ValidationError(f"items[{i}]: invoice item {item_id} listed twice")
        seen.add(item_id)
        lines.append(RefundLineRequest(
            invoice_item_id=item_id,
            quantity=require_int(raw, "quantity", minimum=1),
            unit_price_cents=optional_int(raw, "unit_price_cents", minimum=0, maximum=MAX_PRICE_CENTS),
        ))
    return RefundRequest(
        company_id=require_int(data, "company_id", minimum=1),
        lines=lines,
        refund_date=optional_date(data, "refund_date"),
        reason=optional_str(data, "reason"),
    )


def parse_estimate_create(payload: Any) -> InvoiceRequest:
    data = _require_dict(payload)
    items = [parse_line(raw, index=i, allow_id=False) for i, raw in enumerate(_require_list(data, "items"))]
    return InvoiceRequest(
        company_id=require_int(data, "company_id", minimum=1),
        customer_id=require_int(data, "customer_id", minimum=1),
        status=None,
        items=items,
        header=_parse_header(data),
    )
