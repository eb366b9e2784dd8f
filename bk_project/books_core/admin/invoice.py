from django.contrib import admin

from books_core.models import Invoice

from .actions import issue_invoices
from .inlines import InvoiceLineInline
from .mixins import EntityAdminMixin
from .ReadOnly import ReadOnlyAdmin


# Register `Invoice` model
@admin.register(Invoice)
class InvoiceAdmin(EntityAdminMixin, ReadOnlyAdmin):
    list_display = (
        "invoice_number",
        "entity",
        "invoice_type",
        "party",
        "invoice_date",
        "due_date",
        "status",
        "total_amount",
        "amount_due",
        "aging_bucket",
    )
    list_filter = ("entity", "invoice_type", "status", "aging_bucket")
    search_fields = ("invoice_number", "customer__name", "vendor__name")
    actions = [issue_invoices]
    inlines = [InvoiceLineInline]

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("entity", "customer", "vendor")
