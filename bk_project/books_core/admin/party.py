from django.contrib import admin

from books_core.models import Customer, Vendor
from books_core.services import update_party
from books_core.services.outstanding import PARTY_EDITABLE_FIELDS

from .mixins import EntityAdminMixin


class PartyAdmin(EntityAdminMixin, admin.ModelAdmin):
    list_display = (
        "name", "entity", "credit_terms", "credit_limit",
        "current_outstanding", "is_active")
    list_filter = ("entity", "is_active", "credit_terms")
    search_fields = ("name", "contact_email", "gstin")
    # kept in step with invoices, never typed in
    readonly_fields = ("current_outstanding", "created_by", "created_at", "updated_at")

    def has_delete_permission(self, request, obj=None):
        # deactivate instead; parties are soft-deleted through the API
        return False

    def save_model(self, request, obj, form, change):
        if not change:
            obj.created_by = request.user
            return super().save_model(request, obj, form, change)
        # only the edited columns are written, the outstanding stays untouched
        patch = {
            name: form.cleaned_data[name]
            for name in form.changed_data
            if name in PARTY_EDITABLE_FIELDS
        }
        if patch:
            update_party(obj, patch, user=request.user)


@admin.register(Customer)
class CustomerAdmin(PartyAdmin):
    pass


@admin.register(Vendor)
class VendorAdmin(PartyAdmin):
    pass
