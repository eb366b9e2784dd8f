from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from ..exceptions import ConflictError, NotFoundError
from ..models import BankAccount
from ..services import (create_bank_account, create_transaction,
                        delete_bank_account, update_bank_account)
from .helpers import make_entity


class BankAccountTests(TestCase):
    def setUp(self):
        self.entity = make_entity()

    def create(self, name="Current account", number="123456789012", **fields):
        fields.setdefault("routing_code", "hdfc0000123")
        fields.setdefault("bank_name", "HDFC Bank")
        fields.setdefault("opening_balance", "5000.00")
        return create_bank_account(
            self.entity, name, "current", account_number=number, **fields)

    def test_create_starts_at_opening_balance(self):
        account = self.create()
        self.assertEqual(account.current_balance, Decimal("5000.00"))
        self.assertEqual(account.routing_code, "HDFC0000123")

    def test_duplicate_number_and_ifsc_conflicts(self):
        self.create()
        other = make_entity("Another Co")
        with self.assertRaises(ConflictError):
            create_bank_account(
                other, "Same account", "savings", account_number="123456789012",
                routing_code="HDFC0000123", bank_name="HDFC Bank")

    def test_bank_details_are_validated(self):
        with self.assertRaises(ValidationError):
            self.create(number="12345")
        with self.assertRaises(ValidationError):
            self.create(routing_code="NOTANIFSC")
        with self.assertRaises(ValidationError):
            self.create(current_balance="1.00")

    def test_cash_accounts_need_no_bank_details(self):
        first = create_bank_account(self.entity, "Till", "cash")
        second = create_bank_account(self.entity, "Petty cash", "cash")
        self.assertNotEqual(first.pk, second.pk)

    def test_opening_balance_change_shifts_current_balance(self):
        account = self.create()
        create_transaction(self.entity, account, "expense", Decimal("1200.00"), "paid")

        account = update_bank_account(account.pk, {"opening_balance": "6000.00"})

        self.assertEqual(account.opening_balance, Decimal("6000.00"))
        self.assertEqual(account.current_balance, Decimal("4800.00"))

    def test_current_balance_is_not_editable(self):
        account = self.create()
        with self.assertRaises(ValidationError):
            update_bank_account(account.pk, {"current_balance": "1.00"})

    def test_update_from_other_entity_is_not_found(self):
        account = self.create()
        with self.assertRaises(NotFoundError):
            update_bank_account(account.pk, {"notes": "x"}, entity=make_entity("Intruder"))

    def test_unused_account_is_deleted(self):
        account = self.create()
        self.assertTrue(delete_bank_account(account.pk))
        self.assertFalse(BankAccount.objects.filter(pk=account.pk).exists())

    def test_used_account_is_disabled(self):
        account = self.create()
        create_transaction(self.entity, account, "income", Decimal("10.00"))

        self.assertFalse(delete_bank_account(account.pk))
        account.refresh_from_db()
        self.assertFalse(account.is_active)

    def test_transfer_target_is_disabled_too(self):
        source = self.create()
        target = self.create("Savings", "210987654321")
        create_transaction(
            self.entity, source, "transfer", Decimal("10.00"), transfer_to_account=target)

        self.assertFalse(delete_bank_account(target.pk))

    def test_disabled_account_takes_no_new_transactions(self):
        account = self.create()
        update_bank_account(account.pk, {"is_active": False})
        with self.assertRaises(ValidationError):
            create_transaction(self.entity, account, "income", Decimal("10.00"))
