import datetime
from decimal import Decimal
from unittest import mock

from django.test import TestCase
from django.utils import timezone

from .. import tasks
from ..exceptions import BalanceError
from ..models import AuditLog, BankAccount, Customer
from ..services import create_invoice, create_transaction, delete_transaction
from .helpers import make_bank, make_customer, make_entity, one_line


class LedgerConsistencyTests(TestCase):
    def setUp(self):
        self.entity = make_entity()
        self.bank = make_bank(self.entity)
        self.customer = make_customer(self.entity)
        create_transaction(self.entity, self.bank, "income", Decimal("100.00"), "paid")
        create_invoice(
            self.entity, "sales", self.customer, one_line("400.00"),
            timezone.localdate() + datetime.timedelta(days=30))

    def test_consistent_books_have_no_drift(self):
        self.assertEqual(tasks.verify_ledger_consistency(self.entity.pk), 0)

    def test_drift_is_logged_not_corrected(self):
        BankAccount.objects.filter(pk=self.bank.pk).update(current_balance=Decimal("1.00"))
        Customer.objects.filter(pk=self.customer.pk).update(current_outstanding=Decimal("0.00"))

        with self.assertLogs("books_core.tasks", level="ERROR") as logs:
            drifts = tasks.verify_ledger_consistency(self.entity.pk)

        self.assertEqual(drifts, 2)
        self.assertIn("Balance drift on bank account", logs.output[0])
        self.bank.refresh_from_db()
        self.assertEqual(self.bank.current_balance, Decimal("1.00"))

    def test_fan_out_per_active_entity(self):
        dormant = make_entity("Dormant Co")
        dormant.is_active = False
        dormant.save()

        with mock.patch.object(tasks.verify_ledger_consistency, "delay") as delay:
            self.assertEqual(tasks.verify_all_entities(), 1)
        delay.assert_called_once_with(self.entity.pk)

    def test_refresh_invoice_aging_task(self):
        self.assertEqual(tasks.refresh_invoice_aging(), 0)


class AuditTrailTests(TestCase):
    def setUp(self):
        self.entity = make_entity()
        self.bank = make_bank(self.entity)

    def test_written_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            tx = create_transaction(self.entity, self.bank, "expense", Decimal("10.00"))
            self.assertFalse(AuditLog.objects.exists())

        self.assertEqual(len(callbacks), 1)
        entry = AuditLog.objects.get()
        self.assertEqual(entry.action, "create")
        self.assertEqual(entry.object_type, "Transaction")
        self.assertEqual(entry.object_id, str(tx.pk))
        self.assertEqual(entry.entity, self.entity)
        self.assertIsNone(entry.changes["before"])
        self.assertEqual(entry.changes["after"]["amount"], "10.00")

    def test_delete_keeps_the_object_id(self):
        tx = create_transaction(self.entity, self.bank, "expense", Decimal("10.00"))
        tx_id = tx.pk
        with self.captureOnCommitCallbacks(execute=True):
            delete_transaction(tx_id)

        entry = AuditLog.objects.get(action="delete")
        self.assertEqual(entry.object_id, str(tx_id))
        self.assertIsNone(entry.changes["after"])

    def test_rolled_back_work_leaves_no_audit(self):
        cash = BankAccount.objects.create(
            entity=self.entity, account_name="Till", account_type="cash")
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            with self.assertRaises(BalanceError):
                create_transaction(self.entity, cash, "expense", Decimal("10.00"), "paid")
        self.assertEqual(callbacks, [])
        self.assertFalse(AuditLog.objects.exists())

    def test_audit_failure_does_not_undo_the_mutation(self):
        with mock.patch(
            "books_core.services.audit_helper.log_action", side_effect=RuntimeError("db gone")
        ):
            with self.assertLogs("books_core.services.audit_helper", level="WARNING"):
                with self.captureOnCommitCallbacks(execute=True):
                    create_transaction(
                        self.entity, self.bank, "income", Decimal("10.00"), "paid")

        self.bank.refresh_from_db()
        self.assertEqual(self.bank.current_balance, Decimal("10010.00"))
        self.assertFalse(AuditLog.objects.exists())
