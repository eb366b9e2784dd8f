from django.contrib import admin, messages
from django.core.exceptions import ValidationError
from django.utils.translation import gettext_lazy as _

from ..exceptions import BookkeepingError
from ..services import bulk_update_status, issue_invoice

# ---------- Admin actions ----------


def _report(modeladmin, request, verb, success, total, failures):
    modeladmin.message_user(
        request,
        _("%(verb)s %(success)d of %(total)d. %(failures)d failed.") % {
            "verb": verb, "success": success, "total": total, "failures": failures},
        level=messages.SUCCESS if not failures else messages.WARNING,
    )


def _set_transaction_status(modeladmin, request, queryset, status):
    # one unit of work: every selected transaction moves, or none
    ids = list(queryset.values_list("pk", flat=True))
    try:
        count = bulk_update_status(ids, status, user=request.user)
    except (ValidationError, BookkeepingError) as exc:
        modeladmin.message_user(
            request, _("Status change failed: %(err)s") % {"err": exc},
            level=messages.ERROR)
        return
    _report(modeladmin, request, _("Updated"), count, len(ids), 0)


@admin.action(description="Mark selected transactions as Paid")
def mark_transactions_paid(modeladmin, request, queryset):
    _set_transaction_status(modeladmin, request, queryset, "paid")


@admin.action(description="Mark selected transactions as Cancelled")
def mark_transactions_cancelled(modeladmin, request, queryset):
    _set_transaction_status(modeladmin, request, queryset, "cancelled")


@admin.action(description="Issue selected draft invoices")
def issue_invoices(modeladmin, request, queryset):
    """Issue each draft on its own; one failure doesn't stop the batch."""
    candidates = queryset.filter(status="draft")
    total = candidates.count()
    success = failures = 0
    for invoice in candidates:
        try:
            issue_invoice(invoice.pk, user=request.user)
            success += 1
        except (ValidationError, BookkeepingError) as exc:
            failures += 1
            modeladmin.message_user(
                request,
                _("Could not issue invoice %(num)s: %(err)s") % {
                    "num": invoice.invoice_number, "err": exc},
                level=messages.ERROR,
            )
    _report(modeladmin, request, _("Issued"), success, total, failures)
