from .actions import (issue_invoices, mark_transactions_cancelled,
                      mark_transactions_paid)
from .auditlog import AuditLogAdmin
from .banking import BankAccountAdmin, TransactionAdmin
from .inlines import InvoiceLineInline, PaymentAllocationInline
from .invoice import InvoiceAdmin
from .membership import EntityAdmin, EntityMembershipAdmin
from .mixins import EntityAdminMixin
from .party import CustomerAdmin, VendorAdmin
from .payment import PaymentAdmin
