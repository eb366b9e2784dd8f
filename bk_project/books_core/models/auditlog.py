from django.conf import settings  # To access global project settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from ..managers import EntityManager
from .entitymembership import Entity


# ---------- Audit / Event log ----------
class AuditLog(
    models.Model
):  # Gives accountability and traceability across whole system
    # Nullable because some actions do not belong to a specific entity
    entity = models.ForeignKey(
        Entity,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
    )
    # Nullable for automated actions (celery jobs, scripts)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL
    )
    # Type of event being logged
    action = models.CharField(
        max_length=50
    )  # Common choices: create, update, delete, cancel, allocate
    # What kind of object was affected
    object_type = models.CharField(
        max_length=100
    )  # (e.g., "Invoice", "Transaction", "Payment")
    object_id = models.CharField(max_length=100)
    # {"before": {...}, "after": {...}}; Decimals and dates serialised as strings
    changes = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce entity scoping
    objects = EntityManager()

    class Meta:
        indexes = [
            models.Index(fields=["entity", "user"]),
            models.Index(fields=["entity", "created_at"]),
            models.Index(fields=["object_type", "object_id"]),
        ]

    def __str__(self):
        time = self.created_at
        usr = self.user
        return f"[{time:%Y-%m-%d %H:%M}] {usr} {self.action} {self.object_type}({self.object_id})"
