"""
Daily CSV export of approved invoices
"""
import pytest

from conftest import invoice_payload
from invoice_tracker.config import Settings
from invoice_tracker.exceptions import InvoiceTrackerError, NothingToExport, ValidationFailed
from invoice_tracker.models.state import InvoiceStatus
from invoice_tracker.services import build_services
from invoice_tracker.storage import MemoryStorage
from invoice_tracker.services.export_builder import (
    CSV_HEADER, QUOTING_RFC4180, format_row, render_csv
)


def approve(services, **overrides):
    invoice = services.invoices.create(invoice_payload(**overrides))
    return services.invoices.update_status(invoice.id, "approved", 2)


def test_nothing_to_export(services):
    services.invoices.create(invoice_payload())

    with pytest.raises(NothingToExport):
        services.exports.export_approved(1)
    assert services.exports.history() == []


def test_export_writes_one_row_per_approved_invoice(services):
    ids = [approve(services, invoiceNumber=f"INV-{n}").id for n in range(3)]
    pending = services.invoices.create(invoice_payload(invoiceNumber="INV-LATER"))

    result = services.exports.export_approved(7)

    lines = result.content.decode("utf-8").split("\n")
    assert len(lines) == 4
    assert lines[0] == CSV_HEADER
    assert result.filename == "daily_upload_2024-03-15.csv"
    assert sorted(result.invoice_ids) == sorted(ids)
    assert result.failed == {}

    for invoice_id in ids:
        invoice = services.invoices.get(invoice_id)
        assert invoice.status == InvoiceStatus.FINALIZED
        assert invoice.finalized_by == 7
    assert services.invoices.get(pending.id).status == InvoiceStatus.PENDING_REVIEW

    history = services.exports.history()
    assert len(history) == 1
    assert history[0].id == result.batch.id
    assert sorted(history[0].invoice_ids) == sorted(ids)
    assert history[0].exported_by == 7
    print("✅ Daily export: PASSED")


def test_second_export_has_nothing_left(services):
    approve(services)
    services.exports.export_approved(1)

    with pytest.raises(NothingToExport):
        services.exports.export_approved(1)
    assert len(services.exports.history()) == 1


def test_row_layout_and_empty_optionals(services):
    approve(services, glCode=None, description=None)

    content = services.exports.export_approved(1).content.decode("utf-8")

    assert content.split("\n")[1] == (
        '"ABC Corp","V100","INV-1001","2024-03-01","1500.00","2024-03-31","","Charge",""'
    )
    assert not content.endswith("\n")


def test_preview_has_no_side_effects(services):
    invoice = approve(services, invoiceType="Credit Memo", glCode="1400")

    preview = services.exports.preview()

    assert '"Credit Memo",' in preview
    assert ',"1400",' in preview
    assert services.invoices.get(invoice.id).status == InvoiceStatus.APPROVED
    assert services.exports.history() == []


def test_preview_with_nothing_approved(services):
    assert services.exports.preview() is None


def test_rfc4180_quoting_escapes_embedded_quotes(storage):
    services = build_services(storage, Settings(storage_backend="memory", csv_quoting=QUOTING_RFC4180))
    approve(services, description='Replace "front" bumper, paint')

    row = services.exports.export_approved(1).content.decode("utf-8").split("\n")[1]
    assert row.endswith('"Charge","Replace ""front"" bumper, paint"')


def test_legacy_quoting_leaves_embedded_quotes():
    row = format_row(["Say \"hi\"", "x"])
    assert row == '"Say "hi"","x"'


def test_unknown_quoting_mode():
    with pytest.raises(ValidationFailed):
        format_row(["a"], "excel")


def test_render_csv_header_only_for_empty_list():
    assert render_csv([]) == CSV_HEADER


class FinalizeFailsStorage(MemoryStorage):
    """Memory backend that refuses to finalize one chosen invoice"""

    def __init__(self, clock, broken_id):
        super().__init__(clock)
        self.broken_id = broken_id

    def update_invoice(self, invoice_id, updates, audit=None):
        if invoice_id == self.broken_id and updates.get("status") == InvoiceStatus.FINALIZED:
            raise InvoiceTrackerError(f"Invoice {invoice_id} could not be written")
        return super().update_invoice(invoice_id, updates, audit=audit)


def test_export_keeps_partial_finalization(clock):
    storage = FinalizeFailsStorage(clock, broken_id=2)
    services = build_services(storage, Settings(storage_backend="memory"))
    ids = [approve(services, invoiceNumber=f"INV-{n}").id for n in range(3)]

    result = services.exports.export_approved(7)

    assert sorted(result.invoice_ids) == ids
    assert list(result.failed) == [2]
    assert "could not be written" in result.failed[2]
    assert len(result.content.decode("utf-8").split("\n")) == 4

    history = services.exports.history()
    assert len(history) == 1
    assert sorted(history[0].invoice_ids) == ids

    assert services.invoices.get(1).status == InvoiceStatus.FINALIZED
    assert services.invoices.get(3).status == InvoiceStatus.FINALIZED
    assert services.invoices.get(3).finalized_by == 7
    assert services.invoices.get(2).status == InvoiceStatus.APPROVED

    # The stuck invoice goes out again with the next export
    storage.broken_id = None
    retry = services.exports.export_approved(7)
    assert retry.invoice_ids == [2]
    assert len(services.exports.history()) == 2
