"""
FastAPI Routes for billing lines, uploaded files, vendors and login
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from invoice_tracker.models.schemas import (
    AttachFile, BillingLine, BillingLineCreate, BillingLineUpdate, LoginRequest,
    UploadedFile, UploadedFileCreate, Vendor, VendorCreate, VendorImport, VendorImportResult,
    VendorUpdate
)
from invoice_tracker.services import Services
from .dependencies import get_services

logger = logging.getLogger(__name__)
router = APIRouter()


# ============================================================================
# BILLING LINES
# ============================================================================

@router.get("/invoices/{invoice_id}/billing-lines", response_model=List[BillingLine])
async def list_billing_lines(invoice_id: int, services: Services = Depends(get_services)):
    return services.billing_lines.list_for_invoice(invoice_id)


@router.post("/billing-lines", response_model=BillingLine)
async def create_billing_line(line: BillingLineCreate, services: Services = Depends(get_services)):
    """Add a line item; a line VIN gets its own lookup and GL code"""
    return services.billing_lines.create(line)


@router.patch("/billing-lines/{line_id}", response_model=BillingLine)
async def update_billing_line(
    line_id: int,
    updates: BillingLineUpdate,
    services: Services = Depends(get_services)
):
    return services.billing_lines.update(line_id, updates)


@router.delete("/billing-lines/{line_id}")
async def delete_billing_line(line_id: int, services: Services = Depends(get_services)):
    services.billing_lines.delete(line_id)
    return {"success": True}


# ============================================================================
# UPLOADED FILES
# ============================================================================

@router.post("/files", response_model=UploadedFile)
async def register_file(file: UploadedFileCreate, services: Services = Depends(get_services)):
    """Record metadata for a document already stored by the upload provider"""
    return services.files.register(file)


@router.get("/files/{file_id}", response_model=UploadedFile)
async def get_file(file_id: int, services: Services = Depends(get_services)):
    return services.files.get(file_id)


@router.get("/invoices/{invoice_id}/files", response_model=List[UploadedFile])
async def list_invoice_files(invoice_id: int, services: Services = Depends(get_services)):
    return services.files.list_for_invoice(invoice_id)


@router.patch("/files/{file_id}/invoice", response_model=UploadedFile)
async def attach_file(file_id: int, body: AttachFile, services: Services = Depends(get_services)):
    """Link an uploaded document to the invoice keyed in from it"""
    return services.files.attach(file_id, body.invoice_id)


# ============================================================================
# VENDORS
# ============================================================================

@router.get("/vendors", response_model=List[Vendor])
async def list_vendors(
    search: Optional[str] = Query(None, description="Name or vendor number substring"),
    active: Optional[bool] = Query(None),
    services: Services = Depends(get_services)
):
    return services.vendors.list(search=search, active=active)


@router.get("/vendors/{vendor_id}", response_model=Vendor)
async def get_vendor(vendor_id: int, services: Services = Depends(get_services)):
    return services.vendors.get(vendor_id)


@router.post("/vendors", response_model=Vendor, status_code=201)
async def create_vendor(vendor: VendorCreate, services: Services = Depends(get_services)):
    return services.vendors.create(vendor)


@router.patch("/vendors/{vendor_id}", response_model=Vendor)
async def update_vendor(
    vendor_id: int,
    updates: VendorUpdate,
    services: Services = Depends(get_services)
):
    return services.vendors.update(vendor_id, updates)


@router.post("/vendors/import", response_model=VendorImportResult)
async def import_vendors(body: VendorImport, services: Services = Depends(get_services)):
    """Bulk-load the vendor list; existing vendor numbers are skipped"""
    return services.vendors.import_vendors(body.vendors)


# ============================================================================
# AUTH (placeholder)
# ============================================================================

@router.post("/auth/login")
async def login(credentials: LoginRequest, services: Services = Depends(get_services)):
    user = services.users.login(credentials.username, credentials.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return {"user": user.model_dump(mode="json", by_alias=True)}
