import datetime

from django.db import transaction
from django.db.models import F

from ..models import Counter

TRANSACTION_PREFIX = "TRX"
INVOICE_PREFIXES = {"sales": "SI", "purchase": "PI"}
PAYMENT_PREFIXES = {"received": "PR", "made": "PM"}


def next_sequence(name: str, year: int) -> int:
    """
    Atomically bump and return the counter for (name, year).
    The row is created on first use in a year.
    """
    with transaction.atomic():
        Counter.objects.get_or_create(name=name, year=year)
        # Increment in the database, never read-modify-write
        Counter.objects.filter(name=name, year=year).update(seq=F("seq") + 1)
        return Counter.objects.select_for_update().get(name=name, year=year).seq


def document_code(prefix: str, year: int, seq: int) -> str:
    """<PREFIX>-<YEAR>-<seq4>, e.g. TRX-2025-0001"""
    return f"{prefix}-{year}-{seq:04d}"


def monthly_code(prefix: str, year: int, month: int, seq: int) -> str:
    """<PREFIX><YEAR><MONTH><seq4>, e.g. PR2025090001"""
    return f"{prefix}{year}{month:02d}{seq:04d}"


def next_transaction_code(on_date: datetime.date) -> str:
    seq = next_sequence("transaction", on_date.year)
    return document_code(TRANSACTION_PREFIX, on_date.year, seq)


def next_invoice_number(invoice_type: str, on_date: datetime.date) -> str:
    seq = next_sequence(f"invoice_{invoice_type}", on_date.year)
    return document_code(INVOICE_PREFIXES[invoice_type], on_date.year, seq)


def next_payment_number(direction: str, on_date: datetime.date) -> str:
    # Payment numbers restart every month, so the month is part of the sequence name
    seq = next_sequence(f"payment_{direction}_{on_date.month:02d}", on_date.year)
    return monthly_code(PAYMENT_PREFIXES[direction], on_date.year, on_date.month, seq)
