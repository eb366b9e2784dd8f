from django.db import models

from .party import TradingParty


# ---------- Customer ----------
# Represents client who receives sales invoices (AR side)
class Customer(TradingParty):

    class Meta:
        indexes = [
            models.Index(fields=["entity", "is_active"]),
            models.Index(fields=["entity", "name"]),
        ]
        # Enforce uniqueness per entity
        constraints = [
            models.UniqueConstraint(
                fields=["entity", "name"], name="uq_entity_customer_name"
            ),
        ]
