"""
Typed failures raised by the storage layer and the services
"""


class InvoiceTrackerError(Exception):
    """Base class for all invoice tracker failures"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(InvoiceTrackerError):
    """Invoice, billing line, file or user does not exist"""

    status_code = 404


class ValidationFailed(InvoiceTrackerError):
    """Malformed create/update payload"""

    status_code = 400


class IllegalTransition(InvoiceTrackerError):
    """Status change outside the allowed-transition table (strict mode only)"""

    status_code = 409

    def __init__(self, invoice_id: int, old_status: str, new_status: str):
        super().__init__(
            f"Invoice {invoice_id} cannot move from {old_status} to {new_status}"
        )
        self.invoice_id = invoice_id
        self.old_status = old_status
        self.new_status = new_status


class NothingToExport(InvoiceTrackerError):
    """Export attempted with zero approved invoices"""

    status_code = 400


class LookupUnavailable(InvoiceTrackerError):
    """A VIN reference source could not be queried"""

    status_code = 503
