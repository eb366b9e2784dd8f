import datetime
import json
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone

from ..models import BankAccount, EntityMembership, Invoice
from ..services import create_invoice, create_payment
from .helpers import make_bank, make_customer, make_entity, one_line


class ApiTests(TestCase):
    def setUp(self):
        self.entity = make_entity()
        self.user = get_user_model().objects.create_user(username="asha", password="pw")
        self.membership = EntityMembership.objects.create(
            user=self.user, entity=self.entity, role="accountant", is_default=True)
        self.client.force_login(self.user)
        self.bank = make_bank(self.entity)
        self.customer = make_customer(self.entity)
        self.due = (timezone.localdate() + datetime.timedelta(days=30)).isoformat()

    def send(self, method, name, data=None, **kwargs):
        return getattr(self.client, method)(
            reverse(name, kwargs=kwargs),
            data=json.dumps(data or {}),
            content_type="application/json",
        )

    def set_role(self, role):
        EntityMembership.objects.filter(pk=self.membership.pk).update(role=role)

    def test_requires_an_entity(self):
        self.client.logout()
        response = self.client.get(reverse("bank-account-list"))
        self.assertEqual(response.status_code, 403)
        self.assertFalse(response.json()["success"])

    def test_list_is_scoped_to_the_entity(self):
        make_bank(make_entity("Other Co"), "Foreign", "999999999999")
        response = self.client.get(reverse("bank-account-list"))

        self.assertEqual(response.status_code, 200)
        names = [row["account_name"] for row in response.json()["data"]]
        self.assertEqual(names, ["Main account"])

    def test_foreign_account_is_not_found(self):
        foreign = make_bank(make_entity("Other Co"), "Foreign", "999999999999")
        response = self.client.get(
            reverse("bank-account-detail", kwargs={"account_id": foreign.pk}))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["message"], "Bank account not found")

    def test_create_transaction_moves_balance(self):
        response = self.send("post", "transaction-list", {
            "bank_account": self.bank.pk, "type": "expense",
            "amount": "250.00", "status": "paid",
            "transaction_date": "2025-09-18",
        })

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["data"]["transaction_code"], "TRX-2025-0001")
        self.bank.refresh_from_db()
        self.assertEqual(self.bank.current_balance, Decimal("9750.00"))

    def test_validation_error_is_400(self):
        response = self.send("post", "transaction-list", {
            "bank_account": self.bank.pk, "type": "expense", "amount": "-1"})
        self.assertEqual(response.status_code, 400)
        self.assertIn("amount", response.json()["message"])

    def test_malformed_json_is_400(self):
        response = self.client.post(
            reverse("transaction-list"), data="{not json", content_type="application/json")
        self.assertEqual(response.status_code, 400)

    def test_method_not_allowed(self):
        response = self.client.put(reverse("invoice-aging"))
        self.assertEqual(response.status_code, 405)

    def test_read_only_roles_cannot_write(self):
        self.set_role("observer")
        response = self.send("post", "bank-account-list", {
            "account_name": "Till", "account_type": "cash"})
        self.assertEqual(response.status_code, 403)
        self.assertFalse(BankAccount.objects.filter(account_name="Till").exists())

        # reads still work
        self.assertEqual(self.client.get(reverse("bank-account-list")).status_code, 200)

    def test_only_admin_cancels(self):
        invoice = create_invoice(self.entity, "sales", self.customer, one_line(), self.due)
        response = self.send("post", "invoice-cancel", invoice_id=invoice.pk)
        self.assertEqual(response.status_code, 403)

        self.set_role("admin")
        response = self.send("post", "invoice-cancel", invoice_id=invoice.pk)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["status"], "cancelled")

    def test_invoice_and_allocation_flow(self):
        response = self.send("post", "invoice-list", {
            "invoice_type": "sales", "customer": self.customer.pk,
            "line_items": one_line("1000.00"), "due_date": self.due,
            "cgst": "90.00", "sgst": "90.00",
        })
        self.assertEqual(response.status_code, 201)
        invoice_id = response.json()["data"]["id"]
        self.assertEqual(len(response.json()["data"]["lines"]), 1)

        response = self.send("post", "payment-list", {
            "direction": "received", "customer": self.customer.pk,
            "amount": "1000.00", "payment_mode": "neft",
            "bank_account": self.bank.pk,
        })
        self.assertEqual(response.status_code, 201)
        payment_id = response.json()["data"]["id"]

        response = self.send(
            "post", "payment-allocate",
            {"invoice": invoice_id, "amount": "1000.00"}, payment_id=payment_id)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()["data"]["allocations"]), 1)

        invoice = Invoice.objects.get(pk=invoice_id)
        self.assertEqual(invoice.amount_due, Decimal("180.00"))

        response = self.client.get(
            reverse("customer-detail", kwargs={"party_id": self.customer.pk}))
        self.assertEqual(Decimal(response.json()["data"]["current_outstanding"]),
                         Decimal("180.00"))

    def test_domain_errors_carry_their_status_and_details(self):
        invoice = create_invoice(self.entity, "sales", self.customer, one_line("100.00"), self.due)
        payment = create_payment(self.entity, "received", self.customer, "500.00", "cash")

        response = self.send(
            "post", "payment-allocate",
            {"invoice": invoice.pk, "amount": "500.00"}, payment_id=payment.pk)

        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["message"], "Allocation exceeds invoice amount due")
        self.assertEqual(body["amount_due"], "100.00")

    def test_state_error_is_409(self):
        self.set_role("admin")
        invoice = create_invoice(self.entity, "sales", self.customer, one_line(), self.due)
        self.send("post", "invoice-cancel", invoice_id=invoice.pk)
        response = self.send("post", "invoice-cancel", invoice_id=invoice.pk)
        self.assertEqual(response.status_code, 409)

    def test_aging_report(self):
        create_invoice(self.entity, "sales", self.customer, one_line("300.00"), self.due)
        response = self.client.get(reverse("invoice-aging"), {"invoice_type": "sales"})
        data = response.json()["data"]
        self.assertEqual(data["current"]["count"], 1)
        self.assertEqual(Decimal(data["current"]["amount_due"]), Decimal("300.00"))

    def test_delete_used_bank_account_disables_it(self):
        self.set_role("admin")
        self.send("post", "transaction-list", {
            "bank_account": self.bank.pk, "type": "income", "amount": "5.00"})
        response = self.send("delete", "bank-account-detail", account_id=self.bank.pk)
        self.assertEqual(response.json()["data"], {"deleted": False, "disabled": True})


class CurrentEntityMiddlewareTests(TestCase):
    def setUp(self):
        self.user = get_user_model().objects.create_user(username="ravi", password="pw")
        self.first = make_entity("First Co")
        self.second = make_entity("Second Co")
        EntityMembership.objects.create(
            user=self.user, entity=self.first, role="observer")
        EntityMembership.objects.create(
            user=self.user, entity=self.second, role="admin", is_default=True)
        make_bank(self.first, "First bank", "111111111111")
        make_bank(self.second, "Second bank", "222222222222")
        self.client.force_login(self.user)

    def account_names(self):
        response = self.client.get(reverse("bank-account-list"))
        return [row["account_name"] for row in response.json()["data"]]

    def test_default_membership_is_used(self):
        self.assertEqual(self.account_names(), ["Second bank"])

    def test_session_selects_entity(self):
        session = self.client.session
        session["active_entity_id"] = self.first.pk
        session.save()
        self.assertEqual(self.account_names(), ["First bank"])

    def test_entity_without_membership_gets_nothing(self):
        stranger = make_entity("Stranger Co")
        session = self.client.session
        session["active_entity_id"] = stranger.pk
        session.save()
        response = self.client.get(reverse("bank-account-list"))
        self.assertEqual(response.status_code, 403)

    def test_inactive_entity_is_skipped(self):
        self.second.is_active = False
        self.second.save()
        self.assertEqual(self.account_names(), ["First bank"])
