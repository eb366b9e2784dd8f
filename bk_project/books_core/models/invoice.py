from decimal import Decimal
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from ..managers import InvoiceManager
from .customer import Customer
from .entitymembership import Entity
from .vendor import Vendor

INVOICE_TYPES = [
    ("sales", "Sales"),  # raised on a customer
    ("purchase", "Purchase"),  # received from a vendor
]

INV_STATUS_CHOICES = [
    ("draft", "Draft"),
    ("pending", "Pending"),
    ("partially_paid", "Partially paid"),
    ("paid", "Paid"),
    ("overdue", "Overdue"),
    ("cancelled", "Cancelled"),
]
""" Workflow:
    draft -> pending -> partially_paid -> paid
    overdue = past due_date while not paid/cancelled
    cancelled = terminal, reachable from any non-paid state """

PAYMENT_STATUS_CHOICES = [
    ("unpaid", "Unpaid"),
    ("partially_paid", "Partially paid"),
    ("paid", "Paid"),
]

AGING_BUCKETS = [
    ("current", "Current"),
    ("1-30", "1-30 days"),
    ("31-60", "31-60 days"),
    ("61-90", "61-90 days"),
    ("90+", "90+ days"),
]

# Invoices in these states can no longer be edited
LOCKED_STATUSES = ("paid", "cancelled")

ZERO = Decimal("0.00")


def _money(**kwargs):
    return models.DecimalField(max_digits=18, decimal_places=2, default=ZERO, **kwargs)


class Invoice(models.Model):  # Sales or purchase invoice of an entity

    entity = models.ForeignKey(Entity, on_delete=models.CASCADE)
    # human-readable (e.g. "SI-2025-0001"), minted by Counter
    invoice_number = models.CharField(max_length=32, unique=True)
    invoice_type = models.CharField(max_length=10, choices=INVOICE_TYPES)

    # Exactly one party, matching invoice_type
    # prevent deleting a party who has invoices
    customer = models.ForeignKey(
        Customer, null=True, blank=True,
        on_delete=models.PROTECT, related_name="invoices")
    vendor = models.ForeignKey(
        Vendor, null=True, blank=True,
        on_delete=models.PROTECT, related_name="invoices")

    invoice_date = models.DateField()
    due_date = models.DateField()

    # Invoice level tax and adjustments, supplied by the caller
    cgst = _money()
    sgst = _money()
    igst = _money()
    tds_amount = _money()
    round_off = _money()

    # Derived by services.invoicing.recompute_invoice_totals, never set directly
    subtotal = _money()
    total_tax = _money()
    total_amount = _money()
    amount_paid = _money()
    amount_due = _money()
    status = models.CharField(
        max_length=16, choices=INV_STATUS_CHOICES, default="draft")
    payment_status = models.CharField(
        max_length=16, choices=PAYMENT_STATUS_CHOICES, default="unpaid")
    days_overdue = models.PositiveIntegerField(default=0)
    aging_bucket = models.CharField(
        max_length=8, choices=AGING_BUCKETS, default="current")

    notes = models.TextField(max_length=1000, blank=True)
    terms = models.TextField(max_length=2000, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+")
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Enforce entity scoping
    objects = InvoiceManager()

    class Meta:
        indexes = [
            models.Index(fields=["entity", "invoice_type", "status"]),
            models.Index(fields=["entity", "customer"]),
            models.Index(fields=["entity", "vendor"]),
            models.Index(fields=["due_date", "status"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount_paid__gte=0),
                name="inv_non_negative_paid",
            ),
        ]

    def __str__(self):
        return f"Inv {self.invoice_number or self.pk}"

    @property
    def party(self):
        return self.customer if self.invoice_type == "sales" else self.vendor

    @property
    def is_locked(self):
        return self.status in LOCKED_STATUSES

    def clean(self):
        # Party must match the invoice type
        if self.invoice_type == "sales":
            if not self.customer_id:
                raise ValidationError(
                    {"customer": "Customer is required for sales invoice"})
            if self.vendor_id:
                raise ValidationError(
                    {"vendor": "Sales invoice cannot have a vendor"})
        elif self.invoice_type == "purchase":
            if not self.vendor_id:
                raise ValidationError(
                    {"vendor": "Vendor is required for purchase invoice"})
            if self.customer_id:
                raise ValidationError(
                    {"customer": "Purchase invoice cannot have a customer"})

        # Prevent cross-entity contamination
        party = self.party
        if party is not None and party.entity_id != self.entity_id:
            raise ValidationError("Party must belong to the same entity.")

        for name in ("cgst", "sgst", "igst", "tds_amount"):
            if getattr(self, name) < 0:
                raise ValidationError({name: f"{name} cannot be negative"})

        if self.amount_due < 0:
            # an invoice can never be paid beyond its total
            raise ValidationError("Amount due cannot be negative")

    def save(self, *args, **kwargs):
        self.full_clean()  # will trigger clean()
        return super().save(*args, **kwargs)


class InvoiceLine(
    models.Model
):  # Each line describes a product/service on the invoice

    invoice = models.ForeignKey(
        Invoice, on_delete=models.CASCADE, related_name="lines")
    position = models.PositiveIntegerField(default=0)  # keeps caller order

    description = models.CharField(max_length=500)
    quantity = models.DecimalField(
        max_digits=14, decimal_places=4, default=Decimal("1"))
    unit = models.CharField(max_length=20, default="nos")
    rate = models.DecimalField(max_digits=18, decimal_places=4, default=ZERO)
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=ZERO)

    # Derived: quantity * rate, its tax, and their sum
    amount = _money()
    tax_amount = _money()
    line_total = _money()

    class Meta:
        ordering = ["position", "id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0) & models.Q(rate__gte=0),
                name="invl_positive_quantity_rate",
            ),
        ]

    def __str__(self):
        return f"{self.description} x {self.quantity} = {self.line_total}"

    def clean(self):
        if self.quantity is not None and self.quantity <= 0:
            raise ValidationError({"quantity": "Quantity must be greater than 0"})
        if self.rate is not None and self.rate < 0:
            raise ValidationError({"rate": "Rate cannot be negative"})
        if self.tax_rate is not None and not 0 <= self.tax_rate <= 100:
            raise ValidationError({"tax_rate": "Tax rate must be between 0 and 100"})
