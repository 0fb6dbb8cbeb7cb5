"""Reconciliation engine: compares the internal ledger with the gateway's settlements.

Both sides are grouped by payment reference, sorted, and walked in a single
merge pass. Amounts compare as exact decimals together with their currency.
A reference that appears more than once on either side is always reported,
with the amounts on that side summed. The result depends only on the set
of entries on each side, never on the order they arrived in.

Discrepancies are reported, never corrected.
"""

import json
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

from protean.utils.globals import current_domain

from storefront.errors import InvalidInput
from storefront.gateway import get_gateway
from storefront.gateway.port import PaymentGateway, PaymentStatus, SettlementEntry
from storefront.order.order import Order, OrderStatus, to_decimal
from storefront.reconciliation.record import (
    DiscrepancyKind,
    ReconciliationRecord,
    RecordReconciliationRun,
)
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

# What the gateway should be reporting for an order in each internal state
_EXPECTED_GATEWAY_STATUS = {
    OrderStatus.AWAITING_PAYMENT: PaymentStatus.PENDING,
    OrderStatus.PAID: PaymentStatus.APPROVED,
    OrderStatus.FULFILLMENT_PENDING: PaymentStatus.APPROVED,
    OrderStatus.SHIPPED: PaymentStatus.APPROVED,
    OrderStatus.DELIVERED: PaymentStatus.APPROVED,
    OrderStatus.PAYMENT_FAILED: PaymentStatus.REJECTED,
    OrderStatus.CANCELLED: PaymentStatus.REJECTED,
    OrderStatus.REFUNDED: PaymentStatus.REFUNDED,
}


@dataclass(frozen=True)
class LedgerEntry:
    """An internal order, frozen at snapshot time, as the gateway should see it."""

    reference: str
    order_id: str
    amount: Decimal
    status: PaymentStatus
    currency: str


@dataclass(frozen=True)
class Comparison:
    reference: str
    kind: DiscrepancyKind
    order_id: str | None = None
    internal_amount: Decimal | None = None
    internal_status: PaymentStatus | None = None
    gateway_amount: Decimal | None = None
    gateway_status: PaymentStatus | None = None
    currency: str | None = None
    internal_count: int = 0
    gateway_count: int = 0

    def to_row(self) -> dict:
        return {
            "reference": self.reference,
            "kind": self.kind.value,
            "order_id": self.order_id,
            "internal_amount": str(self.internal_amount) if self.internal_amount is not None else None,
            "internal_status": self.internal_status.value if self.internal_status else None,
            "gateway_amount": str(self.gateway_amount) if self.gateway_amount is not None else None,
            "gateway_status": self.gateway_status.value if self.gateway_status else None,
            "currency": self.currency,
            "internal_count": self.internal_count,
            "gateway_count": self.gateway_count,
        }


@dataclass(frozen=True)
class ReferenceTimeline:
    reference: str
    records: list
    first_detected_at: datetime | None
    resolved_at: datetime | None

    @property
    def open(self) -> bool:
        return bool(self.records) and self.records[-1].is_discrepancy


@dataclass(frozen=True)
class _Group:
    """All entries one side holds for a reference."""

    reference: str
    amount: Decimal
    status: PaymentStatus
    currencies: tuple[str, ...]
    count: int
    order_id: str | None = None


def _entry_key(entry):
    return (entry.status.value, entry.amount, entry.currency, getattr(entry, "order_id", "") or "")


def _grouped(entries) -> list[_Group]:
    """Group entries by reference, sorted by reference; amounts are summed."""
    by_reference: dict[str, list] = {}
    for entry in entries:
        by_reference.setdefault(entry.reference, []).append(entry)

    groups = []
    for reference in sorted(by_reference):
        items = sorted(by_reference[reference], key=_entry_key)
        groups.append(
            _Group(
                reference=reference,
                amount=sum((e.amount for e in items), Decimal("0")),
                status=items[0].status,
                currencies=tuple(sorted({e.currency for e in items})),
                count=len(items),
                order_id=getattr(items[0], "order_id", None),
            )
        )
    return groups


def _compare_pair(internal: _Group, settled: _Group) -> DiscrepancyKind:
    # Exactly one payment per reference on each side
    if internal.count > 1 or settled.count > 1:
        return DiscrepancyKind.AMOUNT_MISMATCH
    if internal.currencies != settled.currencies or internal.amount != settled.amount:
        return DiscrepancyKind.AMOUNT_MISMATCH
    if internal.status != settled.status:
        return DiscrepancyKind.STATUS_MISMATCH
    return DiscrepancyKind.NONE


def compare(internal: Iterable[LedgerEntry], gateway: Iterable[SettlementEntry]) -> list[Comparison]:
    """Merge-compare two ledgers keyed by payment reference."""
    left = _grouped(internal)
    right = _grouped(gateway)

    results: list[Comparison] = []
    i = j = 0
    while i < len(left) or j < len(right):
        if j >= len(right) or (i < len(left) and left[i].reference < right[j].reference):
            entry = left[i]
            results.append(
                Comparison(
                    reference=entry.reference,
                    kind=DiscrepancyKind.MISSING_ON_GATEWAY,
                    order_id=entry.order_id,
                    internal_amount=entry.amount,
                    internal_status=entry.status,
                    currency=entry.currencies[0],
                    internal_count=entry.count,
                )
            )
            i += 1
        elif i >= len(left) or right[j].reference < left[i].reference:
            settled = right[j]
            results.append(
                Comparison(
                    reference=settled.reference,
                    kind=DiscrepancyKind.MISSING_INTERNALLY,
                    gateway_amount=settled.amount,
                    gateway_status=settled.status,
                    currency=settled.currencies[0],
                    gateway_count=settled.count,
                )
            )
            j += 1
        else:
            entry, settled = left[i], right[j]
            results.append(
                Comparison(
                    reference=entry.reference,
                    kind=_compare_pair(entry, settled),
                    order_id=entry.order_id,
                    internal_amount=entry.amount,
                    internal_status=entry.status,
                    gateway_amount=settled.amount,
                    gateway_status=settled.status,
                    currency=entry.currencies[0],
                    internal_count=entry.count,
                    gateway_count=settled.count,
                )
            )
            i += 1
            j += 1
    return results


def internal_ledger(start: date, end: date) -> list[LedgerEntry]:
    """Snapshot of orders with payment activity in the window.

    Orders are read in one query and frozen immediately; later writes to
    the live ledger do not affect the comparison.
    """
    orders = current_domain.repository_for(Order)._dao.query.all().items
    entries = []
    for order in orders:
        if not order.payment_reference or order.payment_activity_at is None:
            continue
        if not (start <= order.payment_activity_at.date() <= end):
            continue
        expected = _EXPECTED_GATEWAY_STATUS.get(OrderStatus(order.status))
        if expected is None:
            continue
        entries.append(
            LedgerEntry(
                reference=order.payment_reference,
                order_id=str(order.id),
                amount=to_decimal(order.total_amount),
                status=expected,
                currency=order.currency,
            )
        )
    return entries


@dataclass(frozen=True)
class ReconciliationRun:
    run_id: str
    records: list

    @property
    def discrepancies(self) -> list:
        return [r for r in self.records if r.is_discrepancy]


def reconcile(start: date, end: date, gateway: PaymentGateway | None = None) -> list[ReconciliationRecord]:
    """Reconcile ``start``..``end`` (inclusive); returns the records this run stored."""
    return run_reconciliation(start, end, gateway).records


def run_reconciliation(start: date, end: date, gateway: PaymentGateway | None = None) -> ReconciliationRun:
    """Run one reconciliation over ``start``..``end`` (inclusive) and store its records."""
    if start is None or end is None:
        raise InvalidInput("Both start and end dates are required")
    if start > end:
        raise InvalidInput("start must not be after end", start=start.isoformat(), end=end.isoformat())

    gateway = gateway or get_gateway()
    internal = internal_ledger(start, end)
    settlements = gateway.settlement_report(start, end)
    comparisons = compare(internal, settlements)

    run_id = str(uuid4())
    current_domain.process(
        RecordReconciliationRun(
            run_id=run_id,
            window_start=start,
            window_end=end,
            results=json.dumps([c.to_row() for c in comparisons]),
        ),
        asynchronous=False,
    )

    discrepancies = [c for c in comparisons if c.kind != DiscrepancyKind.NONE]
    for comparison in discrepancies:
        logger.warning(
            "reconciliation_discrepancy",
            run_id=run_id,
            reference=comparison.reference,
            kind=comparison.kind.value,
            order_id=comparison.order_id,
        )
    logger.info(
        "reconciliation_completed",
        run_id=run_id,
        window_start=start.isoformat(),
        window_end=end.isoformat(),
        compared=len(comparisons),
        discrepancies=len(discrepancies),
    )
    return ReconciliationRun(run_id=run_id, records=list_records(run_id=run_id))


def list_records(
    start: date | None = None,
    end: date | None = None,
    run_id: str | None = None,
    latest_only: bool = False,
) -> list[ReconciliationRecord]:
    """Stored records, optionally limited to runs overlapping a window."""
    query = current_domain.repository_for(ReconciliationRecord)._dao.query
    if run_id:
        query = query.filter(run_id=run_id)
    records = query.all().items
    if start is not None and end is not None:
        records = [r for r in records if r.window_start <= end and r.window_end >= start]
    records.sort(key=lambda r: (r.detected_at, r.reference))
    if latest_only:
        latest = {}
        for record in records:
            latest[record.reference] = record
        records = sorted(latest.values(), key=lambda r: r.reference)
    return records


def timeline(reference: str) -> ReferenceTimeline:
    """Every record for one reference, with when a discrepancy first appeared and when it cleared."""
    records = current_domain.repository_for(ReconciliationRecord)._dao.query.filter(reference=reference).all().items
    records = sorted(records, key=lambda r: r.detected_at)

    first_detected_at = next((r.detected_at for r in records if r.is_discrepancy), None)
    resolved_at = None
    last_discrepancy = max((i for i, r in enumerate(records) if r.is_discrepancy), default=None)
    if last_discrepancy is not None and last_discrepancy + 1 < len(records):
        resolved_at = records[last_discrepancy + 1].detected_at

    return ReferenceTimeline(
        reference=reference,
        records=records,
        first_detected_at=first_detected_at,
        resolved_at=resolved_at,
    )
