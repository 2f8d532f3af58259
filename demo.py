"""
Demo Script - Walk invoices through entry, review, approval and export
"""
import logging
from datetime import date, timedelta
from decimal import Decimal

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger("DEMO")

DEMO_USER_ID = 1

# Sample invoice payloads (VINs match the seeded reference data)
SAMPLE_INVOICE_INVENTORY = {
    "invoiceNumber": "INV-2024-001",
    "vendorName": "ABC Auto Parts",
    "vendorNumber": "V1001",
    "invoiceDate": date.today().isoformat(),
    "invoiceAmount": "1250.00",
    "dueDate": (date.today() + timedelta(days=30)).isoformat(),
    "vin": "1HGCM82633A12345678",
    "invoiceType": "Charge",
    "description": "Brake service",
    "uploadedBy": DEMO_USER_ID,
}

SAMPLE_INVOICE_SOLD = {
    "invoiceNumber": "INV-2024-002",
    "vendorName": "XYZ Detailing",
    "vendorNumber": "V2002",
    "invoiceDate": date.today().isoformat(),
    "invoiceAmount": "300.00",
    "dueDate": (date.today() + timedelta(days=15)).isoformat(),
    "vin": "99887766",
    "invoiceType": "Charge",
    "uploadedBy": DEMO_USER_ID,
}


def run_demo():
    """Run the demo workflow"""
    from dotenv import load_dotenv
    load_dotenv()

    from invoice_tracker.config import Settings
    from invoice_tracker.services import build_services
    from invoice_tracker.storage import MemoryStorage, seed_sample_data

    storage = MemoryStorage()
    seed_sample_data(storage)
    services = build_services(storage, Settings(storage_backend="memory"))

    print("\n" + "=" * 70)
    print("🧾 INVOICE TRACKER - DEMO")
    print("=" * 70)

    # Demo 1: inventory vehicle, GL code assigned automatically
    print("\n" + "-" * 70)
    print("📋 DEMO 1: Invoice for an inventory vehicle")
    print("-" * 70)
    invoice = services.invoices.create(SAMPLE_INVOICE_INVENTORY)
    print(f"Created invoice {invoice.id}: status={invoice.status.value}")

    applied = services.invoices.apply_vin_lookup(invoice.id, DEMO_USER_ID)
    print(f"VIN lookup: {applied.result.to_json()}")
    print(f"GL code: {applied.gl_code}  admin review needed: {applied.needs_admin_review}")

    invoice = services.invoices.update_status(invoice.id, "approved", DEMO_USER_ID)
    print(f"Approved by user {invoice.approved_by}")

    # Demo 2: sold vehicle, routed to admin review
    print("\n" + "-" * 70)
    print("📋 DEMO 2: Invoice for a sold vehicle")
    print("-" * 70)
    invoice = services.invoices.create(SAMPLE_INVOICE_SOLD)
    applied = services.invoices.apply_vin_lookup(invoice.id, DEMO_USER_ID)
    print(f"VIN lookup: {applied.result.to_json()}")
    print(f"Status after lookup: {applied.invoice.status.value}")

    services.invoices.update(invoice.id, {"glCode": "2200", "userId": DEMO_USER_ID})
    invoice = services.invoices.update_status(invoice.id, "approved", DEMO_USER_ID)
    print(f"Admin assigned GL 2200 and approved: status={invoice.status.value}")

    # Demo 3: daily export
    print("\n" + "-" * 70)
    print("📤 DEMO 3: Daily CSV export")
    print("-" * 70)
    result = services.exports.export_approved(DEMO_USER_ID)
    print(f"File: {result.filename}  ({len(result.invoice_ids)} invoices)")
    print(result.content.decode("utf-8"))

    stats = services.invoices.dashboard_stats()
    print("\n📊 Dashboard:", stats.model_dump(by_alias=True))

    total = sum((inv.invoice_amount for inv in services.invoices.list()), Decimal("0"))
    print(f"💰 Total invoiced: ${total:,.2f}")

    print("\n" + "=" * 70)
    print("✅ DEMO COMPLETE")
    print("=" * 70)


if __name__ == "__main__":
    run_demo()
