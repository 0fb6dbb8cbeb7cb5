"""ReconciliationRecord aggregate: one comparison result per reference per run.

Records are never updated. A later run writes new records for the same
references; together they form the audit history an operator reads.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import handle
from protean.fields import Date, DateTime, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront


class DiscrepancyKind(Enum):
    NONE = "none"
    AMOUNT_MISMATCH = "amount_mismatch"
    STATUS_MISMATCH = "status_mismatch"
    MISSING_INTERNALLY = "missing_internally"
    MISSING_ON_GATEWAY = "missing_on_gateway"


@storefront.aggregate
class ReconciliationRecord:
    run_id = Identifier(required=True)
    reference = String(required=True, max_length=255)
    order_id = Identifier()
    internal_amount = String(max_length=50)  # exact decimal text
    internal_status = String(max_length=50)
    gateway_amount = String(max_length=50)
    gateway_status = String(max_length=50)
    currency = String(max_length=3)
    internal_count = Integer(default=0)
    gateway_count = Integer(default=0)
    kind = String(required=True, choices=DiscrepancyKind)
    window_start = Date(required=True)
    window_end = Date(required=True)
    detected_at = DateTime(required=True)

    @property
    def is_discrepancy(self) -> bool:
        return self.kind != DiscrepancyKind.NONE.value


@storefront.command(part_of="ReconciliationRecord")
class RecordReconciliationRun:
    run_id = Identifier(required=True)
    window_start = Date(required=True)
    window_end = Date(required=True)
    results = Text(required=True)  # JSON list of comparison dicts


@storefront.command_handler(part_of=ReconciliationRecord)
class ReconciliationRecordHandler:
    @handle(RecordReconciliationRun)
    def record_run(self, command):
        repo = current_domain.repository_for(ReconciliationRecord)
        results = json.loads(command.results) if isinstance(command.results, str) else command.results
        now = datetime.now(UTC)
        for row in results:
            repo.add(
                ReconciliationRecord(
                    run_id=command.run_id,
                    window_start=command.window_start,
                    window_end=command.window_end,
                    detected_at=now,
                    **row,
                )
            )
        return len(results)

