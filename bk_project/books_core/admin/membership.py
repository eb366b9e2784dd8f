from django.contrib import admin

from books_core.models import Entity, EntityMembership

from .mixins import EntityAdminMixin


# Register `Entity` model
@admin.register(Entity)
class EntityAdmin(admin.ModelAdmin):
    """a clean admin table for browsing entities"""

    list_display = ("id", "name", "entity_type", "gstin", "is_active", "created_at")
    list_filter = ("entity_type", "is_active")
    search_fields = ("name", "pan", "gstin")
    ordering = ("name",)

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        if request.user.is_superuser:
            return qs
        # Non-superusers only see entities they belong to
        return qs.filter(memberships__user=request.user).distinct()


# Register EntityMembership model
@admin.register(EntityMembership)
class EntityMembershipAdmin(EntityAdminMixin, admin.ModelAdmin):
    list_display = ("user", "entity", "role", "is_default", "is_active", "created_at")
    list_filter = ("role", "is_active", "entity")
    search_fields = ("user__username", "user__email", "entity__name")
    readonly_fields = ("created_at",)  # prevent tampering with creation date
    ordering = ("entity__name", "user__username")

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("entity", "user")

    def _is_entity_admin(self, request, obj=None):
        if request.user.is_superuser:
            return True
        admin_entity_ids = set(
            request.user.memberships.filter(role="admin", is_active=True)
            .values_list("entity_id", flat=True)
        )
        if obj is None:
            return bool(admin_entity_ids)
        # You can only edit memberships of an entity where you are admin
        return obj.entity_id in admin_entity_ids

    def has_change_permission(self, request, obj=None):
        return self._is_entity_admin(request, obj)

    def has_delete_permission(self, request, obj=None):
        return self._is_entity_admin(request, obj)

    def has_add_permission(self, request):
        return self._is_entity_admin(request)
