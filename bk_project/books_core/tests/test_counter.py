import datetime

from django.test import TestCase

from ..models import Counter
from ..services.counter import (document_code, monthly_code, next_invoice_number,
                                next_payment_number, next_sequence,
                                next_transaction_code)


class CounterTests(TestCase):
    def test_sequence_is_created_lazily_and_increments(self):
        self.assertFalse(Counter.objects.filter(name="transaction", year=2025).exists())
        self.assertEqual(next_sequence("transaction", 2025), 1)
        self.assertEqual(next_sequence("transaction", 2025), 2)
        self.assertEqual(Counter.objects.get(name="transaction", year=2025).seq, 2)

    def test_each_year_and_name_has_its_own_sequence(self):
        next_sequence("transaction", 2025)
        next_sequence("transaction", 2025)
        self.assertEqual(next_sequence("transaction", 2026), 1)
        self.assertEqual(next_sequence("invoice_sales", 2025), 1)

    def test_code_formats(self):
        self.assertEqual(document_code("TRX", 2025, 1), "TRX-2025-0001")
        self.assertEqual(document_code("SI", 2025, 12345), "SI-2025-12345")
        self.assertEqual(monthly_code("PR", 2025, 9, 7), "PR2025090007")

    def test_document_numbers(self):
        day = datetime.date(2025, 9, 18)
        self.assertEqual(next_transaction_code(day), "TRX-2025-0001")
        self.assertEqual(next_invoice_number("sales", day), "SI-2025-0001")
        self.assertEqual(next_invoice_number("purchase", day), "PI-2025-0001")
        self.assertEqual(next_invoice_number("sales", day), "SI-2025-0002")
        self.assertEqual(next_payment_number("received", day), "PR2025090001")
        self.assertEqual(next_payment_number("made", day), "PM2025090001")

    def test_payment_numbers_restart_each_month(self):
        self.assertEqual(
            next_payment_number("received", datetime.date(2025, 9, 30)), "PR2025090001")
        self.assertEqual(
            next_payment_number("received", datetime.date(2025, 10, 1)), "PR2025100001")
        self.assertEqual(
            next_payment_number("received", datetime.date(2025, 9, 30)), "PR2025090002")
