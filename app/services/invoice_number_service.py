"""
Invoice Number Generation

FORMAT:
    {PREFIX}-{SEQUENCE}, e.g. INV-202406-0001

- The prefix comes from the `invoice_number_format` setting. The token YYYYMM
  is replaced with the year and month of the invoice date (not today), so a
  back-dated invoice joins its own month's series.
- A template without the token is used as a literal prefix.
- The sequence is the highest existing number in the series plus one,
  zero-padded to 4 digits.

Numbers are not reserved. Uniqueness is guaranteed by the unique constraint on
invoices.invoice_number; InvoiceService retries allocation when a concurrent
writer takes the same number first.

USAGE:
    service = InvoiceNumberService(db)
    number = await service.next_number(date(2024, 6, 15), "INV-YYYYMM")
    # Returns: INV-202406-0001
"""
from datetime import date
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.invoice import Invoice


logger = logging.getLogger(__name__)

DATE_TOKEN = "YYYYMM"
SEQUENCE_PADDING = 4


def format_prefix(template: str, invoice_date: date) -> str:
    """Resolve the YYYYMM token in a numbering template."""
    template = (template or "").strip()
    return template.replace(DATE_TOKEN, f"{invoice_date.year}{invoice_date.month:02d}")


def format_number(prefix: str, sequence: int, padding: int = SEQUENCE_PADDING) -> str:
    return f"{prefix}-{str(sequence).zfill(padding)}"


def parse_sequence(number: str, prefix: str) -> int:
    """Sequence part of `number` in the given series, 0 if it is not one of ours."""
    head = f"{prefix}-"
    if not number.startswith(head):
        return 0
    tail = number[len(head):]
    return int(tail) if tail.isdigit() else 0


async def highest_sequence(db: AsyncSession, column, prefix: str) -> int:
    """
    Highest sequence already used in a `{prefix}-NNNN` series of `column`.

    Shared by invoice numbers and inward lot numbers.
    """
    result = await db.execute(
        select(column).where(column.startswith(f"{prefix}-", autoescape=True))
    )
    return max((parse_sequence(value, prefix) for value in result.scalars()), default=0)


class InvoiceNumberService:
    """Allocates the next number in an invoice series."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def next_number(self, invoice_date: date, template: str) -> str:
        """
        Next number in the series for `invoice_date`.

        Args:
            invoice_date: decides which month's series is used
            template: numbering format, e.g. INV-YYYYMM

        Returns:
            Formatted invoice number
        """
        prefix = format_prefix(template, invoice_date)
        last = await highest_sequence(self.db, Invoice.invoice_number, prefix)
        number = format_number(prefix, last + 1)
        logger.debug("Allocated invoice number %s", number)
        return number

    async def preview_next_number(self, invoice_date: date, template: str) -> str:
        """What next_number would return now. Nothing is reserved."""
        prefix = format_prefix(template, invoice_date)
        last = await highest_sequence(self.db, Invoice.invoice_number, prefix)
        return format_number(prefix, last + 1)

    async def exists(self, invoice_number: str) -> bool:
        result = await self.db.execute(
            select(Invoice.id).where(Invoice.invoice_number == invoice_number)
        )
        return result.scalar_one_or_none() is not None
