import re
from decimal import Decimal
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from ..managers import EntityManager
from .entitymembership import Entity

ROUTING_CODE_RE = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")

ACCOUNT_TYPES = [
    ("savings", "Savings"),
    ("current", "Current"),
    ("overdraft", "Overdraft"),
    ("credit_line", "Credit line"),
    ("cash", "Cash"),
]

PAYMENT_METHODS = [
    # Used in Transaction and Payment records
    # Keeps payment method standardized across records
    ("cash", "Cash"),
    ("cheque", "Cheque"),
    ("neft", "NEFT"),
    ("rtgs", "RTGS"),
    ("imps", "IMPS"),
    ("upi", "UPI"),
    ("card", "Card"),
    ("other", "Other"),
]

TX_TYPE_CHOICES = [
    ("income", "Income"),
    ("expense", "Expense"),
    ("transfer", "Transfer"),
    ("loan", "Loan"),
    ("refund", "Refund"),
]

TX_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("paid", "Paid"),
    ("cancelled", "Cancelled"),
    ("reconciled", "Reconciled"),
]

# Only these statuses move money on the bank account
POSTED_STATUSES = ("paid", "reconciled")

TDS_SECTIONS = [
    ("", "None"),
    ("194A", "194A"),
    ("194C", "194C"),
    ("194H", "194H"),
    ("194I", "194I"),
    ("194J", "194J"),
    ("194Q", "194Q"),
    ("Other", "Other"),
]

ZERO = Decimal("0.00")


# ---------- Banking ----------


class BankAccount(models.Model):  # Bank or cash account an entity maintains
    entity = models.ForeignKey(Entity, on_delete=models.CASCADE)
    account_name = models.CharField(max_length=100)
    account_type = models.CharField(max_length=20, choices=ACCOUNT_TYPES)

    # Not required for cash accounts
    account_number = models.CharField(max_length=18, blank=True)
    routing_code = models.CharField(max_length=11, blank=True)  # IFSC
    bank_name = models.CharField(max_length=100, blank=True)
    branch_name = models.CharField(max_length=100, blank=True)
    currency = models.CharField(max_length=3, default="INR")

    opening_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=ZERO)
    opening_balance_date = models.DateField(null=True, blank=True)
    # Moved only by services.balance.adjust_balance
    current_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=ZERO)

    # Accounts referenced by transactions are disabled, never deleted
    is_active = models.BooleanField(default=True)
    notes = models.CharField(max_length=500, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Enforce entity scoping
    objects = EntityManager()

    class Meta:
        constraints = [
            # The same bank account cannot be registered twice
            models.UniqueConstraint(
                fields=["account_number", "routing_code"],
                condition=~models.Q(account_type="cash"),
                name="uq_bankaccount_number_routing",
            ),
        ]
        indexes = [
            models.Index(fields=["entity", "is_active"]),
            models.Index(fields=["entity", "account_type"]),
        ]

    def __str__(self):
        if self.account_number:
            return f"{self.account_name} (...{self.account_number[-4:]})"
        return self.account_name

    @property
    def is_cash_account(self):
        return self.account_type == "cash"

    @property
    def allows_negative_balance(self):
        allowed = getattr(
            settings, "BOOKS_NEGATIVE_BALANCE_ACCOUNT_TYPES", ["overdraft", "credit_line"])
        return self.account_type in allowed

    @property
    def balance_status(self):
        if self.account_type in ("overdraft", "credit_line"):
            return "overdrawn" if self.current_balance < 0 else "available"
        return "positive" if self.current_balance >= 0 else "negative"

    def clean(self):
        self.routing_code = (self.routing_code or "").strip().upper()
        self.account_number = (self.account_number or "").strip()
        if self.is_cash_account:
            return
        errors = {}
        if not 9 <= len(self.account_number) <= 18:
            errors["account_number"] = (
                "Account number must be between 9 and 18 characters")
        if not self.bank_name:
            errors["bank_name"] = "Bank name is required"
        if not ROUTING_CODE_RE.match(self.routing_code):
            errors["routing_code"] = "Invalid IFSC code format"
        if errors:
            raise ValidationError(errors)

    def save(self, *args, **kwargs):
        if self._state.adding:
            # A new account starts at its opening balance
            self.current_balance = self.opening_balance
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)


class Transaction(models.Model):  # Single cash movement on a bank account
    entity = models.ForeignKey(Entity, on_delete=models.CASCADE)
    # human-readable (e.g. "TRX-2025-0001"), minted by Counter
    transaction_code = models.CharField(max_length=32, unique=True)

    # prevent BankAccount deletion if transactions exist
    bank_account = models.ForeignKey(
        BankAccount, on_delete=models.PROTECT, related_name="transactions")
    transaction_date = models.DateField()
    type = models.CharField(max_length=10, choices=TX_TYPE_CHOICES)
    status = models.CharField(
        max_length=12, choices=TX_STATUS_CHOICES, default="pending")

    party_name = models.CharField(max_length=200, blank=True)
    amount = models.DecimalField(max_digits=18, decimal_places=2)

    # GST components, summed into total_gst
    cgst = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    sgst = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    igst = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    total_gst = models.DecimalField(
        max_digits=18, decimal_places=2, default=ZERO)

    # TDS withheld on income
    tds_section = models.CharField(
        max_length=8, choices=TDS_SECTIONS, default="", blank=True)
    tds_rate = models.DecimalField(
        max_digits=5, decimal_places=2, default=ZERO)
    tds_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=ZERO)

    # amount adjusted by GST/TDS, this is what hits the bank account
    total_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=ZERO)

    payment_method = models.CharField(
        max_length=10, choices=PAYMENT_METHODS, default="neft")
    reference_number = models.CharField(max_length=100, blank=True)
    invoice_number = models.CharField(max_length=50, blank=True)
    notes = models.TextField(max_length=1000, blank=True)

    # For transfers: the counter-account receiving +total_amount
    transfer_to_account = models.ForeignKey(
        BankAccount, null=True, blank=True,
        on_delete=models.PROTECT, related_name="incoming_transfers")

    is_reconciled = models.BooleanField(default=False)
    reconciled_date = models.DateField(null=True, blank=True)
    reconciled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+")

    # Supplied by callers so a replayed create does not post twice
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
    objects = EntityManager()

    class Meta:
        indexes = [
            models.Index(fields=["entity", "transaction_date"]),
            models.Index(fields=["entity", "status"]),
            models.Index(fields=["bank_account", "transaction_date"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["entity", "idempotency_key"],
                name="uq_transaction_idempotency_key",
            ),
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="tx_positive_amount",
            ),
        ]

    def __str__(self):
        return f"{self.transaction_code} {self.type} {self.total_amount} ({self.status})"

    @property
    def is_posted(self):
        return self.status in POSTED_STATUSES

    @property
    def is_transfer(self):
        return self.type == "transfer"

    def recalc_totals(self):
        """Derive total_gst and total_amount from amount, GST and TDS."""
        self.total_gst = (self.cgst or ZERO) + (self.sgst or ZERO) + (self.igst or ZERO)
        if self.type == "income":
            self.total_amount = self.amount + self.total_gst - (self.tds_amount or ZERO)
        elif self.type == "expense":
            self.total_amount = self.amount + self.total_gst
        else:
            # loan, refund and transfer move the bare amount
            self.total_amount = self.amount
        return self.total_amount

    def clean(self):
        if self.amount is not None and self.amount <= 0:
            raise ValidationError({"amount": "Amount must be greater than 0"})

        for name in ("cgst", "sgst", "igst", "tds_amount", "tds_rate"):
            if getattr(self, name) < 0:
                raise ValidationError({name: f"{name} cannot be negative"})
        if self.tds_rate > 30:
            raise ValidationError({"tds_rate": "TDS rate cannot exceed 30%"})

        if self.total_amount <= 0:
            raise ValidationError(
                {"total_amount": "Total amount must be greater than 0"})

        # Tenancy check
        if self.bank_account_id and self.bank_account.entity_id != self.entity_id:
            raise ValidationError(
                "Bank account does not belong to this entity")

        if self.is_transfer:
            if not self.transfer_to_account_id:
                raise ValidationError(
                    {"transfer_to_account": "Transfer account is required"})
            if self.transfer_to_account_id == self.bank_account_id:
                raise ValidationError(
                    {"transfer_to_account": "Cannot transfer to the same account"})
        elif self.transfer_to_account_id:
            raise ValidationError(
                {"transfer_to_account": "Only transfers have a transfer account"})

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
