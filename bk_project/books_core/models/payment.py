from decimal import Decimal
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone
from ..managers import PaymentManager
from .banking import PAYMENT_METHODS, BankAccount
from .customer import Customer
from .entitymembership import Entity
from .invoice import Invoice
from .vendor import Vendor

DIRECTION_CHOICES = [
    ("received", "Received"),  # from a customer, settles sales invoices
    ("made", "Made"),  # to a vendor, settles purchase invoices
]

# Which invoice type a payment direction may settle
DIRECTION_INVOICE_TYPE = {
    "received": "sales",
    "made": "purchase",
}

PAYMENT_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("cleared", "Cleared"),
    ("bounced", "Bounced"),
    ("cancelled", "Cancelled"),
]

ZERO = Decimal("0.00")


class Payment(models.Model):  # Money received from a customer or paid to a vendor
    entity = models.ForeignKey(Entity, on_delete=models.CASCADE)
    # human-readable (e.g. "PR2025090001"), minted by Counter
    payment_number = models.CharField(max_length=32, unique=True)
    direction = models.CharField(max_length=10, choices=DIRECTION_CHOICES)

    customer = models.ForeignKey(
        Customer, null=True, blank=True,
        on_delete=models.PROTECT, related_name="payments")
    vendor = models.ForeignKey(
        Vendor, null=True, blank=True,
        on_delete=models.PROTECT, related_name="payments")
    # Required unless the payment is in cash
    bank_account = models.ForeignKey(
        BankAccount, null=True, blank=True,
        on_delete=models.PROTECT, related_name="payments")

    payment_date = models.DateField()
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    payment_mode = models.CharField(max_length=10, choices=PAYMENT_METHODS)
    reference_number = models.CharField(max_length=100, blank=True)
    cheque_number = models.CharField(max_length=20, blank=True)
    cheque_date = models.DateField(null=True, blank=True)
    tds_deducted = models.DecimalField(
        max_digits=18, decimal_places=2, default=ZERO)

    # Derived from allocations by services.payment.refresh_payment_totals
    allocated_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=ZERO)
    unallocated_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=ZERO)

    status = models.CharField(
        max_length=10, choices=PAYMENT_STATUS_CHOICES, default="pending")
    # Set once fully allocated and cleared
    is_reconciled = models.BooleanField(default=False)
    reconciled_date = models.DateTimeField(null=True, blank=True)

    notes = models.TextField(max_length=1000, blank=True)
    # Supplied by callers so a replayed create returns the first payment
    idempotency_key = models.CharField(max_length=64, null=True, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+")
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Enforce entity scoping
    objects = PaymentManager()

    class Meta:
        indexes = [
            models.Index(fields=["entity", "direction", "status"]),
            models.Index(fields=["entity", "customer"]),
            models.Index(fields=["entity", "vendor"]),
            models.Index(fields=["entity", "is_reconciled"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["entity", "idempotency_key"],
                name="uq_payment_idempotency_key",
            ),
            models.CheckConstraint(
                condition=models.Q(unallocated_amount__gte=0),
                name="pay_non_negative_unallocated",
            ),
        ]

    def __str__(self):
        return f"{self.payment_number} {self.direction} {self.amount} ({self.status})"

    @property
    def party(self):
        return self.customer if self.direction == "received" else self.vendor

    @property
    def invoice_type(self):
        return DIRECTION_INVOICE_TYPE[self.direction]

    @property
    def is_fully_allocated(self):
        tolerance = getattr(settings, "BOOKS_RECONCILE_TOLERANCE", Decimal("0.01"))
        return abs(self.unallocated_amount) <= tolerance

    def clean(self):
        if self.amount is not None and self.amount <= 0:
            raise ValidationError({"amount": "Amount must be greater than 0"})
        if self.tds_deducted < 0:
            raise ValidationError({"tds_deducted": "TDS cannot be negative"})

        # The direction decides which party is set
        if self.direction == "received":
            if not self.customer_id:
                raise ValidationError(
                    {"customer": "Customer is required for received payment"})
            if self.vendor_id:
                raise ValidationError(
                    {"vendor": "Vendor should not be provided for received payment"})
        elif self.direction == "made":
            if not self.vendor_id:
                raise ValidationError(
                    {"vendor": "Vendor is required for made payment"})
            if self.customer_id:
                raise ValidationError(
                    {"customer": "Customer should not be provided for made payment"})

        if self.payment_mode != "cash" and not self.bank_account_id:
            raise ValidationError(
                {"bank_account": "Bank account is required for non-cash payments"})

        # Tenancy checks
        party = self.party
        if party is not None and party.entity_id != self.entity_id:
            raise ValidationError("Party must belong to the same entity.")
        if self.bank_account_id and self.bank_account.entity_id != self.entity_id:
            raise ValidationError(
                "Bank account must belong to the same entity.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)


class PaymentAllocation(
    models.Model
):  # Part (or all) of a payment applied to one invoice
    payment = models.ForeignKey(
        Payment, on_delete=models.CASCADE, related_name="allocations")
    # Reference only: an allocation never owns the invoice
    invoice = models.ForeignKey(
        Invoice, on_delete=models.PROTECT, related_name="allocations")
    invoice_number = models.CharField(max_length=32)  # snapshot at allocation time
    allocated_amount = models.DecimalField(max_digits=18, decimal_places=2)
    allocation_date = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["allocation_date", "id"]
        indexes = [
            models.Index(fields=["invoice"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(allocated_amount__gt=0),
                name="alloc_positive_amount",
            ),
        ]

    def __str__(self):
        return f"{self.payment.payment_number} -> {self.invoice_number}: {self.allocated_amount}"
