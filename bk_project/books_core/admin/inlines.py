from django.contrib import admin

from books_core.models import InvoiceLine, PaymentAllocation

# ---------- Read-only inline admin classes ----------


class InvoiceLineInline(admin.TabularInline):
    """Shows invoice lines under an Invoice page"""

    model = InvoiceLine
    extra = 0
    fields = (
        "position", "description", "quantity", "unit", "rate",
        "tax_rate", "amount", "tax_amount", "line_total")
    readonly_fields = fields  # lines change only through update_invoice
    ordering = ("position", "id")  # lines appear in caller order

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class PaymentAllocationInline(admin.TabularInline):
    """Each row says: "this much of the payment settles that invoice"."""

    model = PaymentAllocation
    extra = 0
    fields = ("invoice", "invoice_number", "allocated_amount", "allocation_date")
    readonly_fields = fields

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("invoice")

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
