from django.db import models

from .party import TradingParty


class Vendor(TradingParty):  # Mirrors Customer but for purchase invoices (AP)

    class Meta:
        indexes = [
            models.Index(fields=["entity", "is_active"]),
            models.Index(fields=["entity", "name"]),
        ]
        # Vendor names must be unique per entity
        constraints = [
            models.UniqueConstraint(
                fields=["entity", "name"], name="uq_entity_vendor_name"
            ),
        ]
