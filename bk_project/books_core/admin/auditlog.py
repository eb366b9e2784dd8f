from django.contrib import admin

from books_core.models import AuditLog

from .mixins import EntityAdminMixin
from .ReadOnly import ReadOnlyAdmin


# Register `AuditLog` model
@admin.register(AuditLog)
class AuditLogAdmin(EntityAdminMixin, ReadOnlyAdmin):
    list_display = (
        "id",
        "entity",
        "user",
        "action",
        "object_type",
        "object_id",
        "created_at",
    )
    search_fields = ("object_type", "object_id", "user__username")
    list_filter = ("entity", "action", "created_at")

    # Fetch everything in one SQL join
    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("entity", "user")
