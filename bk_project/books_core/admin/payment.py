from django.contrib import admin

from books_core.models import Payment

from .inlines import PaymentAllocationInline
from .mixins import EntityAdminMixin
from .ReadOnly import ReadOnlyAdmin


# Register `Payment` model
@admin.register(Payment)
class PaymentAdmin(EntityAdminMixin, ReadOnlyAdmin):
    list_display = (
        "payment_number", "entity", "direction", "party", "payment_date",
        "amount", "unallocated_amount", "status", "is_reconciled")
    list_filter = ("entity", "direction", "status", "is_reconciled")
    search_fields = ("payment_number", "reference_number", "customer__name", "vendor__name")
    inlines = [PaymentAllocationInline]

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("entity", "customer", "vendor", "bank_account")
