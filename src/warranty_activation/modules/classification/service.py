from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from warranty_activation.modules.warranties.models import WarrantyStatus


@dataclass(frozen=True)
class ClassificationResult:
    invoice_date: date | None
    status: WarrantyStatus


def to_calendar_date(value: date | datetime | str) -> date:
    """Truncate a date, timestamp or ISO string to its calendar date.

    Timestamps carrying an offset are read as the UTC day, so
    ``2025-04-28T23:30:00-05:00`` is 2025-04-29. Naive timestamps keep the
    day they were written with. Raises ValueError for anything that is not a
    well-formed date.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None and value.utcoffset() is not None:
            try:
                value = value.astimezone(timezone.utc)
            except OverflowError as e:
                raise ValueError(f"Timestamp out of range in UTC: {value!r}") from e
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Unsupported date value: {value!r}")

    raw = value.strip()
    if not raw:
        raise ValueError("Empty date string")
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    try:
        return date.fromisoformat(raw)
    except ValueError:
        pass
    # Raises ValueError on its own for malformed timestamps.
    return to_calendar_date(datetime.fromisoformat(raw))


def window_bounds(installation_date: date, window_days: int) -> tuple[date, date]:
    """Inclusive window around installation, clamped to the representable range."""
    delta = timedelta(days=window_days)
    try:
        start = installation_date - delta
    except OverflowError:
        start = date.min
    try:
        end = installation_date + delta
    except OverflowError:
        end = date.max
    return start, end


def classify_warranty(
    installation_date: date | datetime,
    invoice_date: date | datetime | None,
    window_days: int,
) -> WarrantyStatus:
    """Decide a warranty status from the installation and invoice dates.

    No invoice date means nothing to compare against, so the claim goes to a
    human. Otherwise the invoice must fall inside the inclusive window of
    ``window_days`` either side of installation.
    """
    if invoice_date is None:
        return WarrantyStatus.MANUAL_REVIEW

    installed = to_calendar_date(installation_date)
    invoiced = to_calendar_date(invoice_date)
    start, end = window_bounds(installed, window_days)
    if start <= invoiced <= end:
        return WarrantyStatus.APPROVED
    return WarrantyStatus.REJECTED


def classify_invoice(
    installation_date: date | datetime | str,
    invoice_date: date | datetime | str | None,
    window_days: int,
) -> ClassificationResult:
    """Normalize both inputs and classify.

    A malformed installation or invoice date is treated like a missing
    invoice date: the claim lands in manual review.
    """
    try:
        installed = to_calendar_date(installation_date)
        invoiced = to_calendar_date(invoice_date) if invoice_date is not None else None
    except ValueError:
        return ClassificationResult(invoice_date=None, status=WarrantyStatus.MANUAL_REVIEW)
    return ClassificationResult(
        invoice_date=invoiced,
        status=classify_warranty(installed, invoiced, window_days),
    )
