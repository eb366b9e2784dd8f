import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import F, Sum
from django.db.models.functions import Coalesce

from ..exceptions import NotFoundError, StateError
from ..models import Invoice
from .audit_helper import audit_after_commit, snapshot
from .validation import reject_fields

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

PARTY_EDITABLE_FIELDS = (
    "name", "contact_email", "phone", "pan", "gstin", "credit_terms",
    "custom_credit_days", "credit_limit", "notes", "is_active",
)
PARTY_PROTECTED_FIELDS = ("entity", "current_outstanding", "created_by")


# ----------------------------------------
# Party outstanding balance maintenance
# ----------------------------------------
def adjust_outstanding(party, delta: Decimal):
    """Atomic increment of party.current_outstanding by delta."""
    if party is None or not delta:
        return
    model = type(party)
    with transaction.atomic():
        if not model.objects.select_for_update().filter(pk=party.pk).exists():
            raise NotFoundError(f"{model._meta.verbose_name.capitalize()} not found", id=party.pk)
        model.objects.filter(pk=party.pk).update(
            current_outstanding=F("current_outstanding") + delta)
    logger.debug("Outstanding of %s %s moved by %s", model.__name__, party.pk, delta)


def on_invoice_created(invoice: Invoice):
    adjust_outstanding(invoice.party, invoice.amount_due)


def on_invoice_changed(invoice: Invoice, old_party, old_amount_due: Decimal):
    """
    Route the amount-due delta of an edit (or a payment) to the party.
    Moving the invoice to another party shifts the whole amount across.
    """
    party = invoice.party
    if old_party is not None and party is not None and old_party.pk != party.pk:
        with transaction.atomic():
            adjust_outstanding(old_party, -old_amount_due)
            adjust_outstanding(party, invoice.amount_due)
        return
    adjust_outstanding(party, invoice.amount_due - old_amount_due)


def on_invoice_cancelled(invoice: Invoice, amount_due: Decimal):
    # only the still outstanding portion was ever counted
    adjust_outstanding(invoice.party, -amount_due)


def outstanding_from_invoices(party) -> Decimal:
    """Full-scan verifier: amount due over the party's non-cancelled invoices."""
    return (
        Invoice.objects.all().for_party(party)
        .exclude(status="cancelled")
        .aggregate(total=Coalesce(Sum("amount_due"), ZERO))["total"]
    )


def update_party(party, patch: dict, user=None):
    """Edit a customer or vendor. The outstanding balance is not editable."""
    reject_fields(patch, PARTY_PROTECTED_FIELDS, PARTY_EDITABLE_FIELDS)
    with transaction.atomic():
        party = type(party).objects.select_for_update().get(pk=party.pk)
        if patch.get("is_active") is False and party.current_outstanding != 0:
            raise StateError(
                f"Cannot deactivate {party.name} with outstanding balance",
                outstanding=str(party.current_outstanding),
            )
        before = snapshot(party)
        for name, value in patch.items():
            setattr(party, name, value)
        # never write current_outstanding from a stale instance
        party.save(update_fields=[*patch, "updated_at"])
        audit_after_commit(
            action="update", instance=party, user=user, before=before, after=snapshot(party))
    return party


def delete_party(party, user=None):
    """
    Soft-disable a customer or vendor. Refused while anything is outstanding.
    """
    model = type(party)
    with transaction.atomic():
        party = model.objects.select_for_update().filter(pk=party.pk).first()
        if party is None:
            raise NotFoundError(f"{model._meta.verbose_name.capitalize()} not found")
        if party.current_outstanding != 0:
            raise StateError(
                f"Cannot delete {party.name} with outstanding balance",
                outstanding=str(party.current_outstanding),
            )
        if not party.is_active:
            return party
        before = snapshot(party)
        party.is_active = False
        party.save(update_fields=["is_active", "updated_at"])
        audit_after_commit(
            action="delete", instance=party, user=user, before=before, after=snapshot(party))

    logger.info("Disabled %s %s", model.__name__, party.pk)
    return party
