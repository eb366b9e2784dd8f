from decimal import Decimal
from django.conf import settings
from django.db import models
from ..managers import EntityManager
from .entitymembership import Entity

CREDIT_TERMS = [
    ("immediate", "Immediate"),
    ("net_7", "Net 7"),
    ("net_15", "Net 15"),
    ("net_30", "Net 30"),
    ("net_45", "Net 45"),
    ("net_60", "Net 60"),
    ("net_90", "Net 90"),
    ("custom", "Custom"),
]

TERM_DAYS = {
    "immediate": 0,
    "net_7": 7,
    "net_15": 15,
    "net_30": 30,
    "net_45": 45,
    "net_60": 60,
    "net_90": 90,
}


# ---------- Trading party ----------
# Shared columns of Customer (AR side) and Vendor (AP side)
class TradingParty(models.Model):
    entity = models.ForeignKey(Entity, on_delete=models.CASCADE)
    name = models.CharField(max_length=200)
    contact_email = models.EmailField(blank=True)
    phone = models.CharField(max_length=32, blank=True)
    pan = models.CharField(max_length=10, blank=True)
    gstin = models.CharField(max_length=15, blank=True)

    credit_terms = models.CharField(
        max_length=10, choices=CREDIT_TERMS, default="net_30")
    custom_credit_days = models.PositiveIntegerField(null=True, blank=True)
    credit_limit = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))

    # Sum of amount_due over the party's non-cancelled invoices.
    # Moved only by services.outstanding, by delta.
    current_outstanding = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))

    is_active = models.BooleanField(default=True)
    notes = models.TextField(max_length=1000, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Enforce entity scoping
    objects = EntityManager()

    class Meta:
        abstract = True

    def __str__(self):
        return self.name

    @property
    def credit_days(self):
        if self.credit_terms == "custom":
            return self.custom_credit_days or 0
        return TERM_DAYS.get(self.credit_terms, 0)

    @property
    def available_credit(self):
        return max(Decimal("0.00"), self.credit_limit - self.current_outstanding)

    @property
    def credit_utilization(self):
        # percent of the credit limit in use, 0 when no limit is set
        if not self.credit_limit:
            return Decimal("0")
        return (self.current_outstanding / self.credit_limit * 100).quantize(Decimal("0.01"))

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
