from .auditlog import AuditLog
from .banking import BankAccount, Transaction
from .counter import Counter
from .customer import Customer
from .entitymembership import Entity, EntityMembership
from .invoice import Invoice, InvoiceLine
from .party import TradingParty
from .payment import Payment, PaymentAllocation
from .vendor import Vendor
