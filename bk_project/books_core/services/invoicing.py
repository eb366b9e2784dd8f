import datetime
import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from ..exceptions import BalanceError, StateError
from ..models import Customer, Invoice, InvoiceLine, Vendor
from ..models.invoice import AGING_BUCKETS, INVOICE_TYPES
from . import outstanding
from .audit_helper import audit_after_commit, snapshot
from .counter import next_invoice_number
from .validation import get_for_entity, money, positive_amount, reject_fields, resolve_entity, to_date, to_decimal

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

LINE_FIELDS = ("description", "quantity", "unit", "rate", "tax_rate")
HEADER_DECIMALS = ("cgst", "sgst", "igst", "tds_amount", "round_off")
EDITABLE_FIELDS = (
    "invoice_date", "due_date", *HEADER_DECIMALS, "notes", "terms",
    "party", "line_items",
)
DERIVED_FIELDS = (
    "entity", "invoice_number", "invoice_type", "subtotal", "total_tax",
    "total_amount", "amount_paid", "amount_due", "status", "payment_status",
    "days_overdue", "aging_bucket", "created_by", "updated_by",
)
PARTY_MODEL = {"sales": Customer, "purchase": Vendor}


# ----------------------------
# Pure computations
# ----------------------------
def aging_bucket(days_overdue: int) -> str:
    if days_overdue <= 0:
        return "current"
    if days_overdue <= 30:
        return "1-30"
    if days_overdue <= 60:
        return "31-60"
    if days_overdue <= 90:
        return "61-90"
    return "90+"


def compute_line(line: InvoiceLine) -> InvoiceLine:
    line.amount = money(line.quantity * line.rate)
    line.tax_amount = money(line.amount * line.tax_rate / 100)
    line.line_total = line.amount + line.tax_amount
    return line


def recompute_invoice_totals(
    invoice: Invoice, lines: Iterable[InvoiceLine], today: Optional[datetime.date] = None
) -> Invoice:
    """
    Derive every computed field of the invoice from its lines, header taxes
    and amount_paid. Works on the instance only, nothing is saved.
    """
    today = today or timezone.localdate()
    lines = [compute_line(line) for line in lines]

    invoice.subtotal = sum((line.amount for line in lines), ZERO)
    invoice.total_tax = invoice.cgst + invoice.sgst + invoice.igst
    invoice.total_amount = money(
        invoice.subtotal + invoice.total_tax - invoice.tds_amount + invoice.round_off)
    invoice.amount_due = invoice.total_amount - invoice.amount_paid

    cancelled = invoice.status == "cancelled"
    if invoice.amount_paid == 0:
        invoice.payment_status = "unpaid"
        if invoice.status in ("partially_paid", "paid"):
            invoice.status = "pending"
    elif invoice.amount_paid >= invoice.total_amount:
        invoice.payment_status = "paid"
        if not cancelled:
            invoice.status = "paid"
    else:
        invoice.payment_status = "partially_paid"
        if not cancelled:
            invoice.status = "partially_paid"

    past_due = invoice.due_date < today and invoice.status not in ("paid", "cancelled")
    if past_due:
        invoice.days_overdue = (today - invoice.due_date).days
        invoice.aging_bucket = aging_bucket(invoice.days_overdue)
        invoice.status = "overdue"
    else:
        invoice.days_overdue = 0
        invoice.aging_bucket = "current"
        if invoice.status == "overdue":
            invoice.status = "partially_paid" if invoice.amount_paid > 0 else "pending"
    return invoice


# ----------------------------
# Input helpers
# ----------------------------
def _build_lines(line_items) -> List[InvoiceLine]:
    if not line_items:
        raise ValidationError({"line_items": "At least one line item is required"})
    lines = []
    for position, item in enumerate(line_items):
        reject_fields(item, (), LINE_FIELDS)
        line = InvoiceLine(
            position=position,
            description=item.get("description", ""),
            quantity=to_decimal(item.get("quantity", 1), "quantity"),
            unit=item.get("unit") or "nos",
            rate=to_decimal(item.get("rate"), "rate"),
            tax_rate=to_decimal(item.get("tax_rate", 0), "tax_rate"),
        )
        compute_line(line)
        line.full_clean(exclude=["invoice"])
        lines.append(line)
    return lines


def _set_party(invoice: Invoice, party):
    model = PARTY_MODEL[invoice.invoice_type]
    if isinstance(party, (Customer, Vendor)) and not isinstance(party, model):
        raise ValidationError(
            f"A {invoice.invoice_type} invoice needs a {model._meta.verbose_name}")
    if not isinstance(party, model):
        party = get_for_entity(model, party, invoice.entity)
    if not party.is_active:
        raise ValidationError(f"{party.name} is inactive")
    invoice.customer = party if invoice.invoice_type == "sales" else None
    invoice.vendor = party if invoice.invoice_type == "purchase" else None


def _save_lines(invoice: Invoice, lines: List[InvoiceLine]):
    for line in lines:
        line.invoice = invoice
    InvoiceLine.objects.bulk_create(lines)


# ----------------------------
# Invoice lifecycle
# ----------------------------
def create_invoice(
    entity,
    invoice_type: str,
    party,
    line_items,
    due_date=None,
    *,
    invoice_date=None,
    status: str = "pending",
    notes: str = "",
    terms: str = "",
    user=None,
    today=None,
    **taxes,
) -> Invoice:
    """
    Raise a sales (customer) or purchase (vendor) invoice.
    due_date defaults to invoice_date plus the party's credit days.
    """
    entity = resolve_entity(entity)
    if invoice_type not in dict(INVOICE_TYPES):
        raise ValidationError({"invoice_type": "Invoice type must be sales or purchase"})
    if status not in ("draft", "pending"):
        raise ValidationError({"status": "A new invoice is either draft or pending"})
    reject_fields(taxes, (), HEADER_DECIMALS)
    if party is None:
        field = "customer" if invoice_type == "sales" else "vendor"
        raise ValidationError({field: f"{field.capitalize()} is required"})

    invoice = Invoice(
        entity=entity,
        invoice_type=invoice_type,
        invoice_date=to_date(invoice_date, "invoice_date") or timezone.localdate(),
        status=status,
        notes=notes,
        terms=terms,
        created_by=user if getattr(user, "pk", None) else None,
    )
    for name, value in taxes.items():
        setattr(invoice, name, to_decimal(value, name))
    _set_party(invoice, party)
    invoice.due_date = to_date(due_date, "due_date") or (
        invoice.invoice_date + datetime.timedelta(days=invoice.party.credit_days))
    lines = _build_lines(line_items)
    recompute_invoice_totals(invoice, lines, today)

    with transaction.atomic():
        invoice.invoice_number = next_invoice_number(invoice_type, invoice.invoice_date)
        invoice.save()
        _save_lines(invoice, lines)
        outstanding.on_invoice_created(invoice)
        audit_after_commit(
            action="create", instance=invoice, user=user, after=snapshot(invoice))

    logger.info("Created invoice %s for %s (%s)",
                invoice.invoice_number, invoice.party, invoice.total_amount)
    return invoice


def update_invoice(invoice_id, patch: dict, user=None, entity=None, today=None) -> Invoice:
    """Edit header, party or lines of an open invoice; totals are recomputed."""
    reject_fields(patch, DERIVED_FIELDS, EDITABLE_FIELDS)

    with transaction.atomic():
        invoice = get_for_entity(Invoice, invoice_id, entity, lock=True)
        if invoice.is_locked:
            raise StateError(f"Cannot edit a {invoice.status} invoice")
        before = snapshot(invoice)
        old_party, old_due = invoice.party, invoice.amount_due

        for name, value in patch.items():
            if name in HEADER_DECIMALS:
                setattr(invoice, name, to_decimal(value, name))
            elif name in ("invoice_date", "due_date"):
                if value is None:
                    raise ValidationError({name: f"{name} is required"})
                setattr(invoice, name, to_date(value, name))
            elif name == "party":
                _set_party(invoice, value)
            elif name != "line_items":
                setattr(invoice, name, value)

        if "line_items" in patch:
            lines = _build_lines(patch["line_items"])
        else:
            lines = list(invoice.lines.all())
        recompute_invoice_totals(invoice, lines, today)
        if invoice.amount_due < 0:
            raise BalanceError(
                "Invoice total cannot be reduced below the amount already paid",
                amount_paid=str(invoice.amount_paid),
                total_amount=str(invoice.total_amount),
            )

        if getattr(user, "pk", None):
            invoice.updated_by = user
        invoice.save()
        if "line_items" in patch:
            invoice.lines.all().delete()
            _save_lines(invoice, lines)
        outstanding.on_invoice_changed(invoice, old_party, old_due)
        audit_after_commit(
            action="update", instance=invoice, user=user,
            before=before, after=snapshot(invoice))

    return invoice


def issue_invoice(invoice_id, user=None, entity=None, today=None) -> Invoice:
    """Move a draft invoice to pending."""
    with transaction.atomic():
        invoice = get_for_entity(Invoice, invoice_id, entity, lock=True)
        if invoice.status != "draft":
            raise StateError(f"Only draft invoices can be issued, this one is {invoice.status}")
        before = snapshot(invoice)
        invoice.status = "pending"
        recompute_invoice_totals(invoice, invoice.lines.all(), today)
        invoice.save()
        audit_after_commit(
            action="issue", instance=invoice, user=user,
            before=before, after=snapshot(invoice))
    return invoice


def cancel_invoice(invoice_id, user=None, entity=None) -> Invoice:
    """Cancel an unpaid invoice; its amount due leaves the party's outstanding."""
    with transaction.atomic():
        invoice = get_for_entity(Invoice, invoice_id, entity, lock=True)
        if invoice.status == "cancelled":
            raise StateError("Invoice is already cancelled")
        if invoice.amount_paid > 0:
            raise StateError(
                "Cannot cancel an invoice with payments, reverse payments first",
                amount_paid=str(invoice.amount_paid),
            )
        before = snapshot(invoice)
        invoice.status = "cancelled"
        invoice.days_overdue = 0
        invoice.aging_bucket = "current"
        if getattr(user, "pk", None):
            invoice.updated_by = user
        invoice.save()
        outstanding.on_invoice_cancelled(invoice, invoice.amount_due)
        audit_after_commit(
            action="cancel", instance=invoice, user=user,
            before=before, after=snapshot(invoice))

    logger.info("Cancelled invoice %s", invoice.invoice_number)
    return invoice


def record_payment(invoice_id, amount, user=None, entity=None, today=None) -> Invoice:
    """
    Add amount to amount_paid and recompute. The amount-due delta goes to
    the party's outstanding balance.
    """
    amount = positive_amount(amount)
    with transaction.atomic():
        invoice = get_for_entity(Invoice, invoice_id, entity, lock=True)
        if invoice.status == "cancelled":
            raise StateError("Cannot record a payment on a cancelled invoice")
        if invoice.amount_paid + amount > invoice.total_amount:
            raise BalanceError(
                "Payment exceeds invoice amount due",
                amount=str(amount),
                amount_due=str(invoice.amount_due),
            )
        old_party, old_due = invoice.party, invoice.amount_due
        invoice.amount_paid += amount
        recompute_invoice_totals(invoice, invoice.lines.all(), today)
        invoice.save()
        outstanding.on_invoice_changed(invoice, old_party, old_due)

    logger.debug("Invoice %s paid %s, due %s",
                 invoice.invoice_number, amount, invoice.amount_due)
    return invoice


# ----------------------------
# Reports and housekeeping
# ----------------------------
def aging_report(entity, invoice_type: str = "sales") -> Dict[str, dict]:
    """Open invoices grouped by aging bucket: {bucket: {count, amount_due}}."""
    rows = (
        Invoice.objects.for_entity(entity)
        .open()
        .filter(invoice_type=invoice_type)
        .values("aging_bucket")
        .annotate(count=Count("id"), total_due=Coalesce(Sum("amount_due"), ZERO))
    )
    report = {key: {"count": 0, "amount_due": ZERO} for key, _ in AGING_BUCKETS}
    for row in rows:
        report[row["aging_bucket"]] = {
            "count": row["count"], "amount_due": row["total_due"]}
    return report


def refresh_invoice_aging(today=None) -> int:
    """
    Re-run the recompute for every open invoice so status, days overdue and
    aging bucket follow the calendar. Returns how many invoices changed.
    """
    today = today or timezone.localdate()
    tracked = ("status", "days_overdue", "aging_bucket")
    changed = 0
    for invoice_id in Invoice.objects.open().values_list("pk", flat=True).iterator():
        with transaction.atomic():
            invoice = Invoice.objects.select_for_update().get(pk=invoice_id)
            before = [getattr(invoice, name) for name in tracked]
            recompute_invoice_totals(invoice, invoice.lines.all(), today)
            if [getattr(invoice, name) for name in tracked] != before:
                invoice.save(update_fields=[*tracked, "updated_at"])
                changed += 1
    logger.info("Refreshed aging of %d invoices", changed)
    return changed
