"""
VIN lookup, GL policy, status machine and line-item workflow
"""
from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import invoice_payload
from invoice_tracker.config import Settings
from invoice_tracker.exceptions import (
    IllegalTransition, LookupUnavailable, NotFound, ValidationFailed
)
from invoice_tracker.models.schemas import VinLookupResult
from invoice_tracker.models.state import InvoiceStatus, VinSource
from invoice_tracker.services import (
    ALLOWED_TRANSITIONS, InvoiceStatusMachine, VinLookupResolver, assign_gl_code, build_services
)
from invoice_tracker.services.gl_policy import lookup_key
from invoice_tracker.storage import MemoryStorage, seed_sample_data


class FlakyStorage(MemoryStorage):
    """Memory backend whose chosen VIN sources raise on every query"""

    def __init__(self, clock, broken):
        super().__init__(clock)
        self.broken = set(broken)

    def find_vin_reference(self, source, vin):
        if source in self.broken:
            raise LookupUnavailable(f"VIN source {source.value} could not be queried")
        return super().find_vin_reference(source, vin)


# ============================================================================
# 1. VIN LOOKUP RESOLVER
# ============================================================================

class TestVinLookupResolver:

    def test_wholesale_hit(self, storage, clock):
        storage.add_vin_reference(VinSource.WHOLESALE_INVENTORY, "12345678", clock() - timedelta(days=3))

        result = VinLookupResolver(storage).lookup("12345678")

        assert result.to_json() == {
            "found": True,
            "database": "wholesale_inventory",
            "daysSinceUpdate": 3,
        }
        print("✅ Wholesale VIN lookup: PASSED")

    def test_sold_age_comes_from_sale_date(self, storage, clock):
        storage.add_vin_reference(VinSource.SOLD, "99887766", clock() - timedelta(days=45))

        result = VinLookupResolver(storage).lookup("99887766")

        assert result.found is True
        assert result.database == VinSource.SOLD
        assert result.days_since_update == 45

    def test_first_source_in_priority_order_wins(self, storage, clock):
        storage.add_vin_reference(VinSource.CURRENT_ACCOUNT, "44556677", clock() - timedelta(days=1))
        storage.add_vin_reference(VinSource.RETAIL_INVENTORY, "44556677", clock() - timedelta(days=10))

        result = VinLookupResolver(storage).lookup("44556677")

        assert result.database == VinSource.RETAIL_INVENTORY
        assert result.days_since_update == 10

    def test_miss_carries_only_found(self, storage):
        result = VinLookupResolver(storage).lookup("00000000")
        assert result.to_json() == {"found": False}

    def test_partial_days_are_floored(self, storage, clock):
        storage.add_vin_reference(VinSource.WHOLESALE_INVENTORY, "12345678", clock() - timedelta(days=2, hours=23))
        assert VinLookupResolver(storage).lookup("12345678").days_since_update == 2

    def test_lookup_is_idempotent(self, storage, clock):
        storage.add_vin_reference(VinSource.RETAIL_INVENTORY, "87654321", clock() - timedelta(days=5))
        resolver = VinLookupResolver(storage)

        assert resolver.lookup("87654321") == resolver.lookup("87654321")

    def test_empty_vin_rejected(self, storage):
        with pytest.raises(ValidationFailed):
            VinLookupResolver(storage).lookup("   ")

    def test_report_lists_consulted_sources(self, storage, clock):
        storage.add_vin_reference(VinSource.SOLD, "99887766", clock() - timedelta(days=45))

        report = VinLookupResolver(storage).report("99887766")

        assert [s.source for s in report.sources] == [
            VinSource.WHOLESALE_INVENTORY, VinSource.RETAIL_INVENTORY, VinSource.SOLD
        ]
        assert [s.matched for s in report.sources] == [False, False, True]
        assert report.conclusive

    def test_unavailable_source_is_not_a_miss(self, clock):
        storage = FlakyStorage(clock, broken=[VinSource.WHOLESALE_INVENTORY])
        storage.add_vin_reference(VinSource.RETAIL_INVENTORY, "87654321", clock())
        resolver = VinLookupResolver(storage)

        report = resolver.report("87654321")
        assert report.failed_sources == [VinSource.WHOLESALE_INVENTORY]
        assert report.result.database == VinSource.RETAIL_INVENTORY

        with pytest.raises(LookupUnavailable):
            resolver.lookup("87654321")

    def test_unavailable_source_after_match_is_ignored(self, clock):
        storage = FlakyStorage(clock, broken=[VinSource.CURRENT_ACCOUNT])
        storage.add_vin_reference(VinSource.WHOLESALE_INVENTORY, "12345678", clock())

        result = VinLookupResolver(storage).lookup("12345678")
        assert result.database == VinSource.WHOLESALE_INVENTORY


# ============================================================================
# 2. GL POLICY
# ============================================================================

@pytest.mark.parametrize("source", [VinSource.WHOLESALE_INVENTORY, VinSource.RETAIL_INVENTORY])
def test_inventory_vehicles_book_to_inventory_code(source):
    assignment = assign_gl_code(VinLookupResult(found=True, database=source, days_since_update=0))
    assert assignment.gl_code == "1400"
    assert assignment.needs_admin_review is False


@pytest.mark.parametrize("result", [
    VinLookupResult(found=True, database=VinSource.SOLD, days_since_update=45),
    VinLookupResult(found=True, database=VinSource.CURRENT_ACCOUNT, days_since_update=0),
    VinLookupResult(found=False),
])
def test_other_vehicles_need_admin_review(result):
    assignment = assign_gl_code(result)
    assert assignment.gl_code is None
    assert assignment.needs_admin_review is True


def test_lookup_key_uses_last_eight_characters():
    assert lookup_key("1HGCM82633A12345678") == "12345678"
    assert lookup_key("1234") == "1234"


# ============================================================================
# 3. STATUS MACHINE
# ============================================================================

class TestStatusMachine:

    def test_transition_stamps_attribution_and_audits(self, services):
        invoice = services.invoices.create(invoice_payload(status="pending_entry"))

        updated = services.status_machine.transition(invoice.id, "pending_review", 3)
        assert updated.status == InvoiceStatus.PENDING_REVIEW
        assert updated.entered_by == 3

        updated = services.status_machine.transition(invoice.id, "approved", 4)
        assert updated.approved_by == 4
        assert updated.entered_by == 3

        logs = services.invoices.audit_history(invoice.id)
        assert [log.action for log in logs] == [
            "status_changed_to_approved",
            "status_changed_to_pending_review",
            "created",
        ]
        assert logs[0].old_values == {"status": "pending_review"}
        assert logs[0].new_values == {"status": "approved"}
        assert logs[0].user_id == 4
        print("✅ Status transitions: PASSED")

    def test_admin_review_has_no_attribution(self, services):
        invoice = services.invoices.create(invoice_payload())
        updated = services.status_machine.transition(invoice.id, "admin_review", 9)

        assert updated.status == InvoiceStatus.ADMIN_REVIEW
        assert (updated.entered_by, updated.approved_by, updated.finalized_by) == (None, None, None)

    def test_attribution_is_never_overwritten(self, services):
        invoice = services.invoices.create(invoice_payload())
        services.status_machine.transition(invoice.id, "approved", 4)
        services.status_machine.transition(invoice.id, "admin_review", 5)

        updated = services.status_machine.transition(invoice.id, "approved", 6)
        assert updated.approved_by == 4

    def test_unknown_invoice(self, services):
        with pytest.raises(NotFound):
            services.status_machine.transition(12345, "approved", 1)

    def test_unknown_status(self, services):
        invoice = services.invoices.create(invoice_payload())
        with pytest.raises(ValidationFailed):
            services.status_machine.transition(invoice.id, "archived", 1)

    def test_permissive_by_default(self, services):
        invoice = services.invoices.create(invoice_payload(status="paid"))
        updated = services.status_machine.transition(invoice.id, "pending_entry", 1)
        assert updated.status == InvoiceStatus.PENDING_ENTRY

    def test_strict_mode_rejects_unlisted_pairs(self, storage):
        services = build_services(storage, Settings(storage_backend="memory", strict_transitions=True))
        invoice = services.invoices.create(invoice_payload(status="pending_entry"))

        with pytest.raises(IllegalTransition) as exc_info:
            services.status_machine.transition(invoice.id, "finalized", 1)
        assert exc_info.value.status_code == 409

        # Nothing written on rejection
        assert services.invoices.get(invoice.id).status == InvoiceStatus.PENDING_ENTRY
        assert len(services.invoices.audit_history(invoice.id)) == 1

        services.status_machine.transition(invoice.id, "pending_review", 1)
        services.status_machine.transition(invoice.id, "approved", 1)
        assert services.invoices.get(invoice.id).status == InvoiceStatus.APPROVED

    def test_allowed_table_covers_every_status(self):
        assert set(ALLOWED_TRANSITIONS) == set(InvoiceStatus)
        assert ALLOWED_TRANSITIONS[InvoiceStatus.PAID] == frozenset()
        assert InvoiceStatus.APPROVED in ALLOWED_TRANSITIONS[InvoiceStatus.FINALIZED]

    def test_strict_flag_on_machine(self, storage):
        machine = InvoiceStatusMachine(storage, strict=True)
        assert machine.is_allowed(InvoiceStatus.APPROVED, InvoiceStatus.FINALIZED)
        assert not machine.is_allowed(InvoiceStatus.PAID, InvoiceStatus.APPROVED)

    def test_bulk_transition_continues_past_failures(self, services):
        first = services.invoices.create(invoice_payload(invoiceNumber="B-1"))
        second = services.invoices.create(invoice_payload(invoiceNumber="B-2"))

        result = services.status_machine.bulk_transition([first.id, 999, second.id], "approved", 2)

        assert result.succeeded == [first.id, second.id]
        assert list(result.failed) == [999]
        assert services.invoices.get(first.id).approved_by == 2
        assert services.invoices.get(second.id).status == InvoiceStatus.APPROVED


# ============================================================================
# 4. INVOICE SERVICE WORKFLOW
# ============================================================================

class TestInvoiceWorkflow:

    def test_return_to_approved_from_finalized(self, services):
        invoice = services.invoices.create(invoice_payload())
        services.invoices.update_status(invoice.id, "approved", 2)
        services.invoices.update_status(invoice.id, "finalized", 3)

        returned = services.invoices.return_to_approved(invoice.id, 4, "Wrong GL code")

        assert returned.status == InvoiceStatus.APPROVED
        assert returned.approved_by == 2
        assert returned.finalized_by == 3
        latest = services.invoices.audit_history(invoice.id)[0]
        assert latest.action == "returned_to_approved"
        assert latest.new_values["correctionNotes"] == "Wrong GL code"

    def test_return_to_approved_requires_finalized(self, services):
        invoice = services.invoices.create(invoice_payload())
        with pytest.raises(ValidationFailed):
            services.invoices.return_to_approved(invoice.id, 4)

    def test_apply_vin_lookup_for_inventory_vehicle(self, services, clock):
        services.storage.add_vin_reference(VinSource.WHOLESALE_INVENTORY, "12345678", clock() - timedelta(days=2))
        invoice = services.invoices.create(invoice_payload(vin="1HGCM82633A12345678"))

        applied = services.invoices.apply_vin_lookup(invoice.id, 5)

        assert applied.gl_code == "1400"
        assert applied.needs_admin_review is False
        assert applied.invoice.gl_code == "1400"
        assert applied.invoice.status == InvoiceStatus.PENDING_REVIEW
        assert applied.invoice.vin_lookup_result.days_since_update == 2
        assert services.invoices.audit_history(invoice.id)[0].action == "vin_lookup_applied"

    def test_apply_vin_lookup_routes_sold_vehicle_to_admin(self, services, clock):
        services.storage.add_vin_reference(VinSource.SOLD, "99887766", clock() - timedelta(days=45))
        invoice = services.invoices.create(invoice_payload(vin="99887766"))

        applied = services.invoices.apply_vin_lookup(invoice.id, 5)

        assert applied.gl_code is None
        assert applied.needs_admin_review is True
        assert applied.invoice.status == InvoiceStatus.ADMIN_REVIEW
        assert applied.invoice.gl_code is None

    def test_apply_vin_lookup_leaves_other_statuses(self, services):
        invoice = services.invoices.create(invoice_payload(vin="00000000", status="approved"))
        applied = services.invoices.apply_vin_lookup(invoice.id, 5)
        assert applied.invoice.status == InvoiceStatus.APPROVED

    def test_seeded_reference_data(self, clock):
        storage = MemoryStorage(clock)
        seed_sample_data(storage)
        seed_sample_data(storage)

        resolver = VinLookupResolver(storage)
        assert resolver.lookup("55443322").database == VinSource.CURRENT_ACCOUNT
        assert resolver.lookup("99887766").days_since_update == 45
        assert storage.get_user_by_username("admin").role == "admin"


# ============================================================================
# 5. BILLING LINES / FILES / USERS
# ============================================================================

class TestBillingLines:

    def test_create_computes_total_and_numbers_lines(self, services):
        invoice = services.invoices.create(invoice_payload())

        first = services.billing_lines.create({
            "invoiceId": invoice.id, "description": "Tires", "quantity": "4", "unitPrice": "120.25"
        })
        second = services.billing_lines.create({
            "invoiceId": invoice.id, "description": "Alignment", "quantity": "1", "unitPrice": "89.99"
        })

        assert first.line_number == 1
        assert second.line_number == 2
        assert first.total_amount == Decimal("481.00")
        assert [l.id for l in services.billing_lines.list_for_invoice(invoice.id)] == [first.id, second.id]

    def test_line_vin_gets_its_own_gl_code(self, services, clock):
        services.storage.add_vin_reference(VinSource.RETAIL_INVENTORY, "87654321", clock())
        invoice = services.invoices.create(invoice_payload())

        line = services.billing_lines.create({
            "invoiceId": invoice.id, "description": "Detail", "quantity": "1",
            "unitPrice": "150.00", "vin": "2T1BURHE0JC87654321"
        })

        assert line.gl_code == "1400"
        assert line.vin_lookup_result.database == VinSource.RETAIL_INVENTORY

    def test_explicit_gl_code_wins(self, services, clock):
        services.storage.add_vin_reference(VinSource.RETAIL_INVENTORY, "87654321", clock())
        invoice = services.invoices.create(invoice_payload())

        line = services.billing_lines.create({
            "invoiceId": invoice.id, "description": "Detail", "quantity": "1",
            "unitPrice": "150.00", "vin": "87654321", "glCode": "6100"
        })
        assert line.gl_code == "6100"

    def test_vin_change_keeps_manual_gl_code(self, services, clock):
        services.storage.add_vin_reference(VinSource.SOLD, "99887766", clock())
        invoice = services.invoices.create(invoice_payload())
        line = services.billing_lines.create({
            "invoiceId": invoice.id, "description": "Detail", "quantity": "1",
            "unitPrice": "150.00", "glCode": "6100"
        })

        updated = services.billing_lines.update(line.id, {"vin": "99887766"})

        assert updated.gl_code == "6100"
        assert updated.vin_lookup_result.database == VinSource.SOLD

    def test_line_for_missing_invoice(self, services):
        with pytest.raises(NotFound):
            services.billing_lines.create({
                "invoiceId": 77, "description": "Tires", "quantity": "1", "unitPrice": "10.00"
            })

    def test_update_recomputes_total(self, services):
        invoice = services.invoices.create(invoice_payload())
        line = services.billing_lines.create({
            "invoiceId": invoice.id, "description": "Tires", "quantity": "4", "unitPrice": "100.00"
        })

        updated = services.billing_lines.update(line.id, {"quantity": "2"})
        assert updated.total_amount == Decimal("200.00")

        with pytest.raises(ValidationFailed):
            services.billing_lines.update(line.id, {"description": None})

    def test_delete_line(self, services):
        invoice = services.invoices.create(invoice_payload())
        line = services.billing_lines.create({
            "invoiceId": invoice.id, "description": "Tires", "quantity": "1", "unitPrice": "10.00"
        })

        services.billing_lines.delete(line.id)
        with pytest.raises(NotFound):
            services.billing_lines.get(line.id)


class TestFilesAndUsers:

    @staticmethod
    def file_payload(**overrides):
        payload = {
            "filename": "a1b2c3.pdf",
            "originalName": "invoice.pdf",
            "mimeType": "application/pdf",
            "fileSize": 2048,
            "filePath": "uploads/a1b2c3.pdf",
            "uploadedBy": 1,
        }
        payload.update(overrides)
        return payload

    def test_register_and_attach(self, services):
        uploaded = services.files.register(self.file_payload())
        invoice = services.invoices.create(invoice_payload(vin="PENDING", vendorName="Pending Entry"))

        attached = services.files.attach(uploaded.id, invoice.id)

        assert attached.invoice_id == invoice.id
        assert [f.id for f in services.files.list_for_invoice(invoice.id)] == [uploaded.id]

    @pytest.mark.parametrize("overrides", [
        {"mimeType": "text/plain"},
        {"fileSize": 10 * 1024 * 1024 + 1},
    ])
    def test_register_rejects_bad_files(self, services, overrides):
        with pytest.raises(ValidationFailed):
            services.files.register(self.file_payload(**overrides))

    def test_attach_to_missing_invoice(self, services):
        uploaded = services.files.register(self.file_payload())
        with pytest.raises(NotFound):
            services.files.attach(uploaded.id, 404)

    def test_login(self, services):
        services.users.create("clerk", "secret")

        assert services.users.login("clerk", "secret").username == "clerk"
        assert services.users.login("clerk", "wrong") is None
        with pytest.raises(ValidationFailed):
            services.users.create("clerk", "again")
