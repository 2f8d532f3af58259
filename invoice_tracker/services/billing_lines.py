"""
Billing lines - per-vehicle itemization of an invoice
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from invoice_tracker.config import DEFAULT_INVENTORY_GL_CODE
from invoice_tracker.exceptions import LookupUnavailable, NotFound, ValidationFailed
from invoice_tracker.models.schemas import BillingLine, BillingLineCreate, BillingLineUpdate, CENTS
from invoice_tracker.storage import Storage
from .gl_policy import assign_gl_code, lookup_key
from .invoice_store import validation_message
from .vin_lookup import VinLookupResolver

logger = logging.getLogger(__name__)

REQUIRED_LINE_FIELDS = ("line_number", "description", "quantity", "unit_price")


def line_total(quantity: Decimal, unit_price: Decimal) -> Decimal:
    return (quantity * unit_price).quantize(CENTS)


class BillingLineService:

    def __init__(
        self,
        storage: Storage,
        resolver: VinLookupResolver,
        inventory_gl_code: str = DEFAULT_INVENTORY_GL_CODE
    ):
        self.storage = storage
        self.resolver = resolver
        self.inventory_gl_code = inventory_gl_code

    def _resolve(self, vin: Optional[str], gl_code: Optional[str]) -> Dict[str, Any]:
        """VIN snapshot and GL code for a line; an explicit code wins"""
        if not vin:
            return {"vin_lookup_result": None}
        try:
            result = self.resolver.lookup(lookup_key(vin))
        except LookupUnavailable as e:
            # Saved unresolved, an admin assigns the code later
            logger.warning(f"Billing line VIN {vin} left unresolved: {e.message}")
            return {"vin_lookup_result": None}

        resolved = {"vin_lookup_result": result}
        if gl_code is None:
            # Only the inventory rule yields a code; a manual one is kept otherwise
            assigned = assign_gl_code(result, self.inventory_gl_code).gl_code
            if assigned is not None:
                resolved["gl_code"] = assigned
        return resolved

    def create(self, payload: Union[BillingLineCreate, Dict[str, Any]]) -> BillingLine:
        if not isinstance(payload, BillingLineCreate):
            try:
                payload = BillingLineCreate.model_validate(payload)
            except ValidationError as e:
                raise ValidationFailed(f"Invalid billing line: {validation_message(e)}") from e

        if self.storage.get_invoice(payload.invoice_id) is None:
            raise NotFound(f"Invoice {payload.invoice_id} not found")

        line_number = payload.line_number
        if line_number is None:
            line_number = len(self.storage.list_billing_lines(payload.invoice_id)) + 1

        fields = payload.model_dump()
        fields.update(
            line_number=line_number,
            total_amount=line_total(payload.quantity, payload.unit_price),
        )
        fields.update(self._resolve(payload.vin, payload.gl_code))

        line = self.storage.create_billing_line(fields)
        logger.info(f"Invoice {line.invoice_id}: added billing line {line.line_number} ({line.total_amount})")
        return line

    def get(self, line_id: int) -> BillingLine:
        line = self.storage.get_billing_line(line_id)
        if line is None:
            raise NotFound(f"Billing line {line_id} not found")
        return line

    def list_for_invoice(self, invoice_id: int) -> List[BillingLine]:
        return self.storage.list_billing_lines(invoice_id)

    def update(self, line_id: int, payload: Union[BillingLineUpdate, Dict[str, Any]]) -> BillingLine:
        if not isinstance(payload, BillingLineUpdate):
            try:
                payload = BillingLineUpdate.model_validate(payload)
            except ValidationError as e:
                raise ValidationFailed(f"Invalid billing line: {validation_message(e)}") from e

        line = self.get(line_id)
        changes = {name: getattr(payload, name) for name in payload.model_fields_set}

        cleared = [name for name in REQUIRED_LINE_FIELDS if name in changes and changes[name] is None]
        if cleared:
            raise ValidationFailed(f"Billing line fields cannot be cleared: {', '.join(cleared)}")

        quantity = changes.get("quantity", line.quantity)
        unit_price = changes.get("unit_price", line.unit_price)
        changes["total_amount"] = line_total(quantity, unit_price)

        if "vin" in changes and changes["vin"] != line.vin:
            changes.update(self._resolve(changes["vin"], changes.get("gl_code")))

        return self.storage.update_billing_line(line_id, changes)

    def delete(self, line_id: int) -> None:
        self.storage.delete_billing_line(line_id)
