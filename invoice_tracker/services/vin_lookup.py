"""
VIN Lookup Resolver - find which reference table knows a vehicle
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from invoice_tracker.exceptions import LookupUnavailable, ValidationFailed
from invoice_tracker.models.schemas import VinLookupResult, VinLookupReport, SourceOutcome
from invoice_tracker.models.state import VIN_SOURCE_PRIORITY
from invoice_tracker.storage import Storage, Clock

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole days elapsed, floored"""
    return (later - earlier) // ONE_DAY


class VinLookupResolver:
    """
    Queries the four VIN reference sources in priority order:

    1. wholesale_inventory
    2. retail_inventory
    3. sold (age measured from the sale date)
    4. current_account

    The first match wins; nothing is aggregated across sources. The
    resolver is a pure read and knows nothing about GL codes.
    """

    def __init__(self, storage: Storage, clock: Optional[Clock] = None):
        self.storage = storage
        self.clock = clock or storage.clock

    def report(self, vin: str) -> VinLookupReport:
        """
        Consult each source independently and record whether it answered.

        Stops at the first match, so lower-priority sources are absent
        from `sources` when a higher one matched.
        """
        vin = (vin or "").strip()
        if not vin:
            raise ValidationFailed("VIN must not be empty")

        now = self.clock()
        outcomes: List[SourceOutcome] = []
        result = VinLookupResult(found=False)

        for source in VIN_SOURCE_PRIORITY:
            try:
                reference_date = self.storage.find_vin_reference(source, vin)
            except LookupUnavailable as e:
                logger.warning(f"VIN {vin}: source {source.value} unavailable ({e.message})")
                outcomes.append(SourceOutcome(source=source, available=False, error=e.message))
                continue

            if reference_date is None:
                outcomes.append(SourceOutcome(source=source, available=True))
                continue

            outcomes.append(SourceOutcome(
                source=source,
                available=True,
                matched=True,
                reference_date=reference_date
            ))
            result = VinLookupResult(
                found=True,
                database=source,
                days_since_update=days_between(reference_date, now)
            )
            break

        return VinLookupReport(vin=vin, result=result, sources=outcomes)

    def lookup(self, vin: str) -> VinLookupResult:
        """
        First-match result for `vin`.

        Raises LookupUnavailable when any source consulted before the
        decision failed, since a lower-priority hit or a miss could then
        be wrong.
        """
        report = self.report(vin)
        if not report.conclusive:
            failed = ", ".join(s.value for s in report.failed_sources)
            raise LookupUnavailable(f"VIN lookup failed: source(s) unavailable: {failed}")

        if report.result.found:
            logger.info(
                f"VIN {report.vin} found in {report.result.database.value} "
                f"({report.result.days_since_update} days)"
            )
        else:
            logger.info(f"VIN {report.vin} not found in any reference source")
        return report.result
