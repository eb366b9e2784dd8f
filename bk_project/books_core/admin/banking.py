from django.contrib import admin

from books_core.models import BankAccount, Transaction
from books_core.services import update_bank_account
from books_core.services.bank_accounts import EDITABLE_FIELDS as BANK_EDITABLE_FIELDS

from .actions import mark_transactions_cancelled, mark_transactions_paid
from .mixins import EntityAdminMixin
from .ReadOnly import ReadOnlyAdmin


# Register `BankAccount` model
@admin.register(BankAccount)
class BankAccountAdmin(EntityAdminMixin, admin.ModelAdmin):
    list_display = (
        "id", "entity", "account_name", "account_type", "bank_name",
        "current_balance", "balance_status", "is_active")
    list_filter = ("entity", "account_type", "is_active")
    search_fields = ("account_name", "account_number", "bank_name")
    # the balance moves only with posted transactions
    readonly_fields = ("current_balance", "created_by", "created_at", "updated_at")

    def get_readonly_fields(self, request, obj=None):
        # opening balance is fixed once the account exists
        if obj is not None:
            return self.readonly_fields + ("opening_balance",)
        return self.readonly_fields

    def has_delete_permission(self, request, obj=None):
        # accounts are soft-disabled through the API
        return False

    def save_model(self, request, obj, form, change):
        if not change:
            obj.created_by = request.user
            return super().save_model(request, obj, form, change)
        patch = {
            name: form.cleaned_data[name]
            for name in form.changed_data
            if name in BANK_EDITABLE_FIELDS
        }
        if patch:
            update_bank_account(obj.pk, patch, user=request.user)


# Register `Transaction` model
@admin.register(Transaction)
class TransactionAdmin(EntityAdminMixin, ReadOnlyAdmin):
    list_display = (
        "transaction_code", "entity", "bank_account", "transaction_date",
        "type", "total_amount", "status", "is_reconciled")
    list_filter = ("entity", "type", "status", "transaction_date")
    search_fields = ("transaction_code", "party_name", "reference_number")
    actions = [mark_transactions_paid, mark_transactions_cancelled]

    # Fetch everything in one SQL join
    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("entity", "bank_account", "transfer_to_account")
