from .balance import apply_effect, expected_balance, reverse_effect, transaction_effects
from .bank_accounts import create_bank_account, delete_bank_account, update_bank_account
from .invoicing import (aging_report, cancel_invoice, create_invoice,
                        issue_invoice, recompute_invoice_totals, record_payment,
                        refresh_invoice_aging, update_invoice)
from .outstanding import delete_party, outstanding_from_invoices, update_party
from .payment import (allocate_payment, cancel_payment, create_payment,
                      unallocated_payments, update_payment)
from .transactions import (bulk_update_status, create_transaction,
                           delete_transaction, update_transaction)

__all__ = [
    "aging_report",
    "allocate_payment",
    "apply_effect",
    "bulk_update_status",
    "cancel_invoice",
    "cancel_payment",
    "create_bank_account",
    "create_invoice",
    "create_payment",
    "create_transaction",
    "delete_bank_account",
    "delete_party",
    "delete_transaction",
    "expected_balance",
    "issue_invoice",
    "outstanding_from_invoices",
    "recompute_invoice_totals",
    "record_payment",
    "refresh_invoice_aging",
    "reverse_effect",
    "transaction_effects",
    "unallocated_payments",
    "update_bank_account",
    "update_invoice",
    "update_party",
    "update_payment",
    "update_transaction",
]
