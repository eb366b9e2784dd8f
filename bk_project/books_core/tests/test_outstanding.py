import datetime
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase
from django.utils import timezone

from ..exceptions import NotFoundError, StateError
from ..models import Customer, Vendor
from ..services import (allocate_payment, cancel_invoice, create_invoice,
                        create_payment, delete_party, update_invoice,
                        update_party)
from ..services.outstanding import adjust_outstanding, outstanding_from_invoices
from .helpers import make_customer, make_entity, make_vendor, one_line


class OutstandingTests(TestCase):
    def setUp(self):
        self.entity = make_entity()
        self.customer = make_customer(self.entity)
        self.due = timezone.localdate() + datetime.timedelta(days=30)

    def invoice(self, rate="1000.00", party=None):
        return create_invoice(
            self.entity, "sales", party or self.customer, one_line(rate), self.due)

    def outstanding(self, party=None):
        party = party or self.customer
        party.refresh_from_db()
        return party.current_outstanding

    def test_invoices_and_payments_move_outstanding(self):
        first = self.invoice("1000.00")
        self.invoice("500.00")
        self.assertEqual(self.outstanding(), Decimal("1500.00"))

        payment = create_payment(self.entity, "received", self.customer, "1200.00", "cash")
        allocate_payment(payment.pk, first.pk, "1000.00")
        self.assertEqual(self.outstanding(), Decimal("500.00"))
        self.assertEqual(self.outstanding(), outstanding_from_invoices(self.customer))

    def test_edit_routes_only_the_delta(self):
        invoice = self.invoice("1000.00")
        update_invoice(invoice.pk, {"line_items": one_line("1250.00")})
        self.assertEqual(self.outstanding(), Decimal("1250.00"))

        update_invoice(invoice.pk, {"line_items": one_line("400.00")})
        self.assertEqual(self.outstanding(), Decimal("400.00"))

    def test_party_change_moves_the_whole_amount(self):
        other = make_customer(self.entity, "Second Buyer")
        invoice = self.invoice("800.00")

        update_invoice(invoice.pk, {"party": other.pk})

        self.assertEqual(self.outstanding(), Decimal("0.00"))
        self.assertEqual(self.outstanding(other), Decimal("800.00"))

    def test_cancel_removes_amount_due(self):
        invoice = self.invoice("600.00")
        self.invoice("100.00")
        cancel_invoice(invoice.pk)
        self.assertEqual(self.outstanding(), Decimal("100.00"))
        self.assertEqual(outstanding_from_invoices(self.customer), Decimal("100.00"))

    def test_vendor_side_mirrors_customer_side(self):
        vendor = make_vendor(self.entity)
        invoice = create_invoice(self.entity, "purchase", vendor, one_line("300.00"), self.due)
        payment = create_payment(self.entity, "made", vendor, "300.00", "cash")
        self.assertEqual(self.outstanding(vendor), Decimal("300.00"))

        allocate_payment(payment.pk, invoice.pk, "300.00")
        self.assertEqual(self.outstanding(vendor), Decimal("0.00"))

    def test_adjust_unknown_party(self):
        ghost = Customer(pk=987654, entity=self.entity, name="Ghost")
        with self.assertRaises(NotFoundError):
            adjust_outstanding(ghost, Decimal("1.00"))

    def test_update_party_cannot_touch_outstanding(self):
        self.invoice("250.00")
        with self.assertRaises(ValidationError):
            update_party(self.customer, {"current_outstanding": "0"})

        # a stale instance must not overwrite the stored balance
        stale = Customer.objects.get(pk=self.customer.pk)
        stale.current_outstanding = Decimal("0.00")
        party = update_party(stale, {"credit_limit": Decimal("5000.00")})

        self.assertEqual(party.credit_limit, Decimal("5000.00"))
        self.assertEqual(self.outstanding(), Decimal("250.00"))
        self.assertEqual(party.available_credit, Decimal("4750.00"))

    def test_delete_party_refused_while_outstanding(self):
        self.invoice("250.00")
        with self.assertRaises(StateError):
            delete_party(self.customer)
        self.assertTrue(Customer.objects.get(pk=self.customer.pk).is_active)

    def test_deactivate_refused_while_outstanding(self):
        self.invoice("1000.00")
        with self.assertRaises(StateError):
            update_party(self.customer, {"is_active": False})

        self.assertTrue(Customer.objects.get(pk=self.customer.pk).is_active)
        self.assertEqual(self.outstanding(), Decimal("1000.00"))

        # a settled party can be switched off
        vendor = update_party(make_vendor(self.entity), {"is_active": False})
        self.assertFalse(vendor.is_active)

    def test_hard_delete_blocked_by_signal(self):
        vendor = make_vendor(self.entity)
        Vendor.objects.filter(pk=vendor.pk).update(current_outstanding=Decimal("10.00"))
        vendor.refresh_from_db()
        with self.assertRaises(StateError):
            vendor.delete()

    def test_delete_party_soft_disables(self):
        party = delete_party(self.customer)
        self.assertFalse(party.is_active)
        self.assertTrue(Customer.objects.filter(pk=self.customer.pk).exists())

        # already disabled: nothing more to do
        self.assertFalse(delete_party(self.customer).is_active)

    def test_inactive_party_cannot_be_invoiced(self):
        delete_party(self.customer)
        with self.assertRaises(ValidationError):
            self.invoice()
