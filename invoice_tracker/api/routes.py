"""
FastAPI Routes for the invoice workflow
"""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import JSONResponse

from invoice_tracker.exceptions import NothingToExport
from invoice_tracker.models.schemas import (
    ActingUser, AuditLogEntry, BulkStatusChange, BulkTransitionResult, CsvExportBatch,
    DashboardStats, Invoice, InvoiceCreate, InvoiceUpdate, ReturnToApproved,
    StatusChange, VinLookupApplied, VinLookupReport
)
from invoice_tracker.services import Services, parse_filters
from .dependencies import get_services

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/dashboard/stats", response_model=DashboardStats)
async def dashboard_stats(services: Services = Depends(get_services)):
    """Counts for the dashboard cards"""
    return services.invoices.dashboard_stats()


# ============================================================================
# INVOICES
# ============================================================================

@router.get("/invoices", response_model=List[Invoice])
async def list_invoices(
    status: Optional[str] = Query(None, description="Comma-separated statuses"),
    user_id: Optional[int] = Query(None, alias="userId"),
    vendor_name: Optional[str] = Query(None, alias="vendorName"),
    invoice_number: Optional[str] = Query(None, alias="invoiceNumber"),
    vin: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    services: Services = Depends(get_services)
):
    """
    List invoices, newest first

    All filters are optional and AND-combined. Vendor name and invoice
    number and VIN match case-insensitive substrings,
    and the date bounds are inclusive on the creation timestamp.
    """
    filters = parse_filters(
        status=status,
        user_id=user_id,
        vendor_name=vendor_name,
        invoice_number=invoice_number,
        vin=vin,
        start_date=start_date,
        end_date=end_date,
    )
    return services.invoices.list(filters)


@router.post("/invoices", response_model=Invoice)
async def create_invoice(invoice: InvoiceCreate, services: Services = Depends(get_services)):
    """Create an invoice from keyed-in data or an upload placeholder"""
    logger.info(f"Creating invoice {invoice.invoice_number} for {invoice.vendor_name}")
    return services.invoices.create(invoice)


@router.post("/invoices/bulk-status", response_model=BulkTransitionResult)
async def bulk_update_status(change: BulkStatusChange, services: Services = Depends(get_services)):
    """
    Apply one status to many invoices

    Each invoice is transitioned independently; failures are reported per
    id and do not undo the ones already applied.
    """
    return services.status_machine.bulk_transition(change.invoice_ids, change.status, change.user_id)


@router.get("/invoices/{invoice_id}", response_model=Invoice)
async def get_invoice(invoice_id: int, services: Services = Depends(get_services)):
    return services.invoices.get(invoice_id)


@router.patch("/invoices/{invoice_id}/status", response_model=Invoice)
async def update_invoice_status(
    invoice_id: int,
    change: StatusChange,
    services: Services = Depends(get_services)
):
    """Move an invoice through the workflow"""
    return services.invoices.update_status(invoice_id, change.status, change.user_id)


@router.patch("/invoices/{invoice_id}", response_model=Invoice)
async def update_invoice(
    invoice_id: int,
    updates: InvoiceUpdate,
    services: Services = Depends(get_services)
):
    """Edit invoice fields; status is unaffected"""
    return services.invoices.update(invoice_id, updates)


@router.delete("/invoices/{invoice_id}")
async def delete_invoice(invoice_id: int, services: Services = Depends(get_services)):
    services.invoices.delete(invoice_id)
    return {"message": f"Invoice {invoice_id} deleted"}


@router.post("/invoices/{invoice_id}/return-to-approved", response_model=Invoice)
async def return_to_approved(
    invoice_id: int,
    body: ReturnToApproved,
    services: Services = Depends(get_services)
):
    """Put a finalized invoice back in the export queue after an import failure"""
    return services.invoices.return_to_approved(invoice_id, body.user_id, body.correction_notes)


@router.post("/invoices/{invoice_id}/vin-lookup", response_model=VinLookupApplied)
async def apply_vin_lookup(
    invoice_id: int,
    body: ActingUser,
    services: Services = Depends(get_services)
):
    """Resolve the invoice VIN and assign the GL code when the match allows it"""
    return services.invoices.apply_vin_lookup(invoice_id, body.user_id)


@router.get("/invoices/{invoice_id}/audit", response_model=List[AuditLogEntry])
async def get_audit_log(invoice_id: int, services: Services = Depends(get_services)):
    """Audit history for an invoice, newest first"""
    return services.invoices.audit_history(invoice_id)


# ============================================================================
# VIN LOOKUP
# ============================================================================

@router.get("/vin-lookup/{vin}")
async def vin_lookup(vin: str, services: Services = Depends(get_services)):
    """
    First-match lookup across wholesale, retail, sold and current-account

    Returns `{"found": false}` when no source knows the VIN.
    """
    result = services.resolver.lookup(vin)
    return JSONResponse(result.to_json())


@router.get("/vin-lookup/{vin}/sources", response_model=VinLookupReport)
async def vin_lookup_sources(vin: str, services: Services = Depends(get_services)):
    """Per-source outcome of a lookup, including unavailable sources"""
    return services.resolver.report(vin)


# ============================================================================
# CSV EXPORT
# ============================================================================

@router.post("/export/csv")
async def export_csv(body: ActingUser, services: Services = Depends(get_services)):
    """
    Export every approved invoice and mark them finalized
    """
    result = services.exports.export_approved(body.user_id)
    return Response(
        content=result.content,
        media_type=result.media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{result.filename}"',
            "X-Export-Batch-Id": str(result.batch.id),
        }
    )


@router.get("/export/preview")
async def export_preview(services: Services = Depends(get_services)):
    """CSV the next export would produce; nothing is changed"""
    content = services.exports.preview()
    if content is None:
        raise NothingToExport("No approved invoices to export")
    return Response(content=content, media_type="text/csv")


@router.get("/exports", response_model=List[CsvExportBatch])
async def export_history(services: Services = Depends(get_services)):
    return services.exports.history()
