"""
Invoice Status Machine - every status change goes through here
"""
import logging
from typing import Dict, FrozenSet, Iterable, Optional, Union

from invoice_tracker.exceptions import (
    IllegalTransition, InvoiceTrackerError, NotFound, ValidationFailed
)
from invoice_tracker.models.schemas import AuditLogCreate, BulkTransitionResult, Invoice
from invoice_tracker.models.state import InvoiceStatus
from invoice_tracker.storage import Storage

logger = logging.getLogger(__name__)

S = InvoiceStatus

# Target status -> attribution field stamped with the acting user
ATTRIBUTION_FIELDS: Dict[InvoiceStatus, str] = {
    S.PENDING_REVIEW: "entered_by",
    S.APPROVED: "approved_by",
    S.FINALIZED: "finalized_by",
}

# Only enforced in strict mode
ALLOWED_TRANSITIONS: Dict[InvoiceStatus, FrozenSet[InvoiceStatus]] = {
    S.PENDING_ENTRY: frozenset({S.PENDING_REVIEW}),
    S.PENDING_REVIEW: frozenset({S.PENDING_ENTRY, S.ADMIN_REVIEW, S.APPROVED}),
    S.ADMIN_REVIEW: frozenset({S.APPROVED}),
    S.APPROVED: frozenset({S.FINALIZED}),
    S.FINALIZED: frozenset({S.PAID, S.APPROVED}),
    S.PAID: frozenset(),
}


def parse_status(value: Union[str, InvoiceStatus]) -> InvoiceStatus:
    try:
        return InvoiceStatus(value)
    except ValueError:
        valid = ", ".join(s.value for s in InvoiceStatus)
        raise ValidationFailed(f"Unknown status {value!r}; expected one of: {valid}")


def status_action(status: InvoiceStatus) -> str:
    return f"status_changed_to_{status.value}"


class InvoiceStatusMachine:
    """
    Mediates status changes.

    Permissive by default: any status may follow any other. With
    `strict=True` only the pairs in ALLOWED_TRANSITIONS are accepted and
    anything else raises IllegalTransition. Either way the write and its
    audit entry land together.
    """

    def __init__(self, storage: Storage, strict: bool = False):
        self.storage = storage
        self.strict = strict

    def is_allowed(self, old: InvoiceStatus, new: InvoiceStatus) -> bool:
        if not self.strict:
            return True
        return new in ALLOWED_TRANSITIONS[old]

    def transition(
        self,
        invoice_id: int,
        new_status: Union[str, InvoiceStatus],
        acting_user_id: int,
        action: Optional[str] = None,
        extra_new_values: Optional[Dict] = None
    ) -> Invoice:
        """
        Move an invoice to `new_status` on behalf of `acting_user_id`.

        Stamps the attribution field for the target status the first time
        it is reached (an already-set field is never overwritten) and
        appends exactly one audit entry.
        """
        new_status = parse_status(new_status)

        invoice = self.storage.get_invoice(invoice_id)
        if invoice is None:
            raise NotFound(f"Invoice {invoice_id} not found")

        old_status = invoice.status
        if not self.is_allowed(old_status, new_status):
            logger.warning(
                f"Rejected transition for invoice {invoice_id}: {old_status.value} -> {new_status.value}"
            )
            raise IllegalTransition(invoice_id, old_status.value, new_status.value)

        updates = {"status": new_status}
        field = ATTRIBUTION_FIELDS.get(new_status)
        if field is not None:
            if getattr(invoice, field) is None:
                updates[field] = acting_user_id
            else:
                logger.info(f"Invoice {invoice_id}: {field} already set, keeping {getattr(invoice, field)}")

        new_values = {"status": new_status.value}
        if extra_new_values:
            new_values.update(extra_new_values)

        audit = AuditLogCreate(
            invoice_id=invoice_id,
            user_id=acting_user_id,
            action=action or status_action(new_status),
            old_values={"status": old_status.value},
            new_values=new_values,
        )
        updated = self.storage.update_invoice(invoice_id, updates, audit=audit)

        logger.info(
            f"Invoice {invoice_id}: {old_status.value} -> {new_status.value} by user {acting_user_id}"
        )
        return updated

    def bulk_transition(
        self,
        invoice_ids: Iterable[int],
        new_status: Union[str, InvoiceStatus],
        acting_user_id: int
    ) -> BulkTransitionResult:
        """
        Independent sequential transitions, not atomic as a unit.

        A failure on one id is recorded and the remaining ids are still
        processed; transitions already applied stay applied.
        """
        new_status = parse_status(new_status)
        result = BulkTransitionResult(status=new_status)

        for invoice_id in invoice_ids:
            try:
                self.transition(invoice_id, new_status, acting_user_id)
            except InvoiceTrackerError as e:
                logger.warning(f"Bulk {new_status.value}: invoice {invoice_id} failed: {e.message}")
                result.failed[invoice_id] = e.message
            else:
                result.succeeded.append(invoice_id)

        logger.info(
            f"Bulk {new_status.value}: {len(result.succeeded)} succeeded, {len(result.failed)} failed"
        )
        return result
