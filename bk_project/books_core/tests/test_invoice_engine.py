import datetime
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from django.test import TestCase
from django.utils import timezone

from ..exceptions import BalanceError, StateError
from ..models import Invoice, InvoiceLine
from ..services import (aging_report, cancel_invoice, create_invoice,
                        issue_invoice, record_payment, refresh_invoice_aging,
                        update_invoice)
from ..services.invoicing import aging_bucket, recompute_invoice_totals
from .helpers import make_customer, make_entity, make_vendor, one_line


@pytest.mark.parametrize(
    "days, bucket",
    [
        (0, "current"),
        (1, "1-30"),
        (30, "1-30"),
        (31, "31-60"),
        (60, "31-60"),
        (61, "61-90"),
        (90, "61-90"),
        (91, "90+"),
        (400, "90+"),
    ],
)
def test_aging_bucket_boundaries(days, bucket):
    assert aging_bucket(days) == bucket


class RecomputeTests(TestCase):
    """recompute_invoice_totals works on unsaved instances."""

    def setUp(self):
        self.due = datetime.date(2025, 6, 30)
        self.invoice = Invoice(
            invoice_type="sales", status="pending",
            invoice_date=datetime.date(2025, 6, 1), due_date=self.due,
            cgst=Decimal("90.00"), sgst=Decimal("90.00"))
        self.lines = [
            InvoiceLine(description="A", quantity=Decimal("2"), rate=Decimal("250.00"),
                        tax_rate=Decimal("18")),
            InvoiceLine(description="B", quantity=Decimal("1"), rate=Decimal("500.00")),
        ]

    def test_totals(self):
        recompute_invoice_totals(self.invoice, self.lines, today=self.due)

        self.assertEqual(self.lines[0].amount, Decimal("500.00"))
        self.assertEqual(self.lines[0].tax_amount, Decimal("90.00"))
        self.assertEqual(self.lines[0].line_total, Decimal("590.00"))
        self.assertEqual(self.invoice.subtotal, Decimal("1000.00"))
        self.assertEqual(self.invoice.total_tax, Decimal("180.00"))
        self.assertEqual(self.invoice.total_amount, Decimal("1180.00"))
        self.assertEqual(self.invoice.amount_due, Decimal("1180.00"))
        self.assertEqual(self.invoice.payment_status, "unpaid")
        self.assertEqual(self.invoice.status, "pending")
        self.assertEqual(self.invoice.aging_bucket, "current")

    def test_tds_and_round_off(self):
        self.invoice.tds_amount = Decimal("100.00")
        self.invoice.round_off = Decimal("-0.40")
        recompute_invoice_totals(self.invoice, self.lines, today=self.due)
        self.assertEqual(self.invoice.total_amount, Decimal("1079.60"))

    def test_partial_payment(self):
        self.invoice.amount_paid = Decimal("180.00")
        recompute_invoice_totals(self.invoice, self.lines, today=self.due)
        self.assertEqual(self.invoice.amount_due, Decimal("1000.00"))
        self.assertEqual(self.invoice.payment_status, "partially_paid")
        self.assertEqual(self.invoice.status, "partially_paid")

    def test_full_payment_forces_paid_even_when_past_due(self):
        self.invoice.amount_paid = Decimal("1180.00")
        recompute_invoice_totals(
            self.invoice, self.lines, today=self.due + datetime.timedelta(days=10))
        self.assertEqual(self.invoice.status, "paid")
        self.assertEqual(self.invoice.payment_status, "paid")
        self.assertEqual(self.invoice.days_overdue, 0)

    def test_overdue_and_back(self):
        recompute_invoice_totals(
            self.invoice, self.lines, today=self.due + datetime.timedelta(days=45))
        self.assertEqual(self.invoice.status, "overdue")
        self.assertEqual(self.invoice.days_overdue, 45)
        self.assertEqual(self.invoice.aging_bucket, "31-60")

        # due date pushed out: no longer past due
        self.invoice.due_date = self.due + datetime.timedelta(days=60)
        recompute_invoice_totals(
            self.invoice, self.lines, today=self.due + datetime.timedelta(days=45))
        self.assertEqual(self.invoice.status, "pending")
        self.assertEqual(self.invoice.days_overdue, 0)
        self.assertEqual(self.invoice.aging_bucket, "current")

    def test_overdue_partially_paid_returns_to_partially_paid(self):
        self.invoice.amount_paid = Decimal("100.00")
        late = self.due + datetime.timedelta(days=5)
        recompute_invoice_totals(self.invoice, self.lines, today=late)
        self.assertEqual(self.invoice.status, "overdue")
        self.assertEqual(self.invoice.payment_status, "partially_paid")

        recompute_invoice_totals(self.invoice, self.lines, today=self.due)
        self.assertEqual(self.invoice.status, "partially_paid")

    def test_past_due_draft_is_overdue(self):
        self.invoice.status = "draft"
        recompute_invoice_totals(
            self.invoice, self.lines, today=self.due + datetime.timedelta(days=3))
        self.assertEqual(self.invoice.status, "overdue")
        self.assertEqual(self.invoice.days_overdue, 3)
        self.assertEqual(self.invoice.aging_bucket, "1-30")


class InvoiceLifecycleTests(TestCase):
    def setUp(self):
        self.entity = make_entity()
        self.customer = make_customer(self.entity)
        self.today = timezone.localdate()
        self.due = self.today + datetime.timedelta(days=30)

    def make_invoice(self, rate="1000.00", **kwargs):
        kwargs.setdefault("cgst", "90.00")
        kwargs.setdefault("sgst", "90.00")
        return create_invoice(
            self.entity, "sales", self.customer, one_line(rate), self.due, **kwargs)

    def test_create_computes_totals_and_number(self):
        invoice = self.make_invoice(invoice_date=datetime.date(2025, 9, 1))

        self.assertEqual(invoice.invoice_number, "SI-2025-0001")
        self.assertEqual(invoice.subtotal, Decimal("1000.00"))
        self.assertEqual(invoice.total_amount, Decimal("1180.00"))
        self.assertEqual(invoice.amount_due, Decimal("1180.00"))
        self.assertEqual(invoice.status, "pending")
        self.assertEqual(invoice.lines.count(), 1)
        self.assertEqual(invoice.lines.get().line_total, Decimal("1000.00"))

    def test_purchase_invoice_numbering(self):
        vendor = make_vendor(self.entity)
        invoice = create_invoice(
            self.entity, "purchase", vendor, one_line(), self.due,
            invoice_date=datetime.date(2025, 9, 1))
        self.assertEqual(invoice.invoice_number, "PI-2025-0001")
        self.assertEqual(invoice.vendor, vendor)

    def test_due_date_defaults_to_credit_terms(self):
        customer = make_customer(self.entity, "Net 15 Ltd", credit_terms="net_15")
        invoice = create_invoice(
            self.entity, "sales", customer, one_line(),
            invoice_date=datetime.date(2025, 9, 1))
        self.assertEqual(invoice.due_date, datetime.date(2025, 9, 16))

    def test_party_must_match_type(self):
        vendor = make_vendor(self.entity)
        with self.assertRaises(ValidationError):
            create_invoice(self.entity, "sales", vendor, one_line(), self.due)
        with self.assertRaises(ValidationError):
            create_invoice(self.entity, "sales", None, one_line(), self.due)
        self.assertEqual(Invoice.objects.count(), 0)

    def test_line_items_are_required(self):
        with self.assertRaises(ValidationError):
            create_invoice(self.entity, "sales", self.customer, [], self.due)

    def test_negative_line_rate_is_rejected(self):
        with self.assertRaises(ValidationError):
            create_invoice(self.entity, "sales", self.customer, one_line("-5.00"), self.due)

    def test_record_payment_partial_then_full(self):
        invoice = self.make_invoice()

        invoice = record_payment(invoice.pk, "180.00")
        self.assertEqual(invoice.amount_paid, Decimal("180.00"))
        self.assertEqual(invoice.amount_due, Decimal("1000.00"))
        self.assertEqual(invoice.status, "partially_paid")

        invoice = record_payment(invoice.pk, "1000.00")
        self.assertEqual(invoice.amount_due, Decimal("0.00"))
        self.assertEqual(invoice.status, "paid")
        self.assertEqual(invoice.payment_status, "paid")

    def test_record_payment_guards_against_overpaying(self):
        invoice = self.make_invoice()
        with self.assertRaises(BalanceError):
            record_payment(invoice.pk, "1180.01")
        with self.assertRaises(ValidationError):
            record_payment(invoice.pk, "0")
        invoice.refresh_from_db()
        self.assertEqual(invoice.amount_paid, Decimal("0.00"))

    def test_update_recomputes(self):
        invoice = self.make_invoice()
        invoice = update_invoice(invoice.pk, {
            "line_items": one_line("2000.00", quantity=2),
            "cgst": "0", "sgst": "0", "igst": "720.00",
        })
        self.assertEqual(invoice.subtotal, Decimal("4000.00"))
        self.assertEqual(invoice.total_amount, Decimal("4720.00"))
        self.assertEqual(invoice.lines.count(), 1)

    def test_update_cannot_reduce_below_paid(self):
        invoice = self.make_invoice()
        record_payment(invoice.pk, "1000.00")

        with self.assertRaises(BalanceError):
            update_invoice(invoice.pk, {"line_items": one_line("100.00")})

        invoice.refresh_from_db()
        self.assertEqual(invoice.total_amount, Decimal("1180.00"))
        self.assertEqual(invoice.lines.get().rate, Decimal("1000.00"))

    def test_paid_and_cancelled_invoices_are_locked(self):
        paid = self.make_invoice()
        record_payment(paid.pk, "1180.00")
        with self.assertRaises(StateError):
            update_invoice(paid.pk, {"notes": "late edit"})

        cancelled = self.make_invoice()
        cancel_invoice(cancelled.pk)
        with self.assertRaises(StateError):
            update_invoice(cancelled.pk, {"notes": "late edit"})

    def test_derived_fields_cannot_be_patched(self):
        invoice = self.make_invoice()
        with self.assertRaises(ValidationError):
            update_invoice(invoice.pk, {"amount_paid": "10.00"})
        with self.assertRaises(ValidationError):
            update_invoice(invoice.pk, {"status": "paid"})

    def test_cancel_refused_while_paid_amount_exists(self):
        invoice = self.make_invoice()
        record_payment(invoice.pk, "100.00")
        with self.assertRaises(StateError):
            cancel_invoice(invoice.pk)

    def test_issue_moves_draft_to_pending(self):
        invoice = self.make_invoice(status="draft")
        self.assertEqual(invoice.status, "draft")

        invoice = issue_invoice(invoice.pk)
        self.assertEqual(invoice.status, "pending")

        with self.assertRaises(StateError):
            issue_invoice(invoice.pk)

    def test_draft_created_past_due_is_overdue(self):
        invoice = create_invoice(
            self.entity, "sales", self.customer, one_line("1000.00"),
            datetime.date(2025, 5, 1), invoice_date=datetime.date(2025, 4, 1),
            status="draft", today=datetime.date(2025, 6, 1))

        self.assertEqual(invoice.status, "overdue")
        self.assertEqual(invoice.days_overdue, 31)
        self.assertEqual(invoice.aging_bucket, "31-60")

    def test_required_dates_cannot_be_cleared(self):
        invoice = self.make_invoice()
        for name in ("due_date", "invoice_date"):
            with self.assertRaises(ValidationError):
                update_invoice(invoice.pk, {name: None})

        stored = Invoice.objects.get(pk=invoice.pk)
        self.assertEqual(stored.due_date, self.due)
        self.assertEqual(stored.invoice_date, invoice.invoice_date)

    def test_refresh_aging_and_report(self):
        first = self.make_invoice()
        self.make_invoice(rate="500.00")
        paid = self.make_invoice()
        record_payment(paid.pk, "1180.00")

        changed = refresh_invoice_aging(today=self.due + datetime.timedelta(days=10))
        self.assertEqual(changed, 2)

        first.refresh_from_db()
        self.assertEqual(first.status, "overdue")
        self.assertEqual(first.days_overdue, 10)
        self.assertEqual(first.aging_bucket, "1-30")

        report = aging_report(self.entity, "sales")
        self.assertEqual(report["1-30"]["count"], 2)
        self.assertEqual(report["1-30"]["amount_due"], Decimal("1860.00"))
        self.assertEqual(report["current"]["count"], 0)
        self.assertEqual(list(report), ["current", "1-30", "31-60", "61-90", "90+"])
