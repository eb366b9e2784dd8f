class EntityAdminMixin:
    """
    Enforce entity isolation in Django admin.
    Uses request.entity (set by CurrentEntityMiddleware).
    """

    # lookup from this model to its entity, e.g. "invoice__entity" on lines
    entity_lookup = "entity"

    def _get_request_entity(self, request):
        return getattr(request, "entity", None)

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        # If superuser, show everything;
        # otherwise restrict to the entity if available
        if request.user.is_superuser:
            return qs
        entity = self._get_request_entity(request)
        if entity is None:
            return qs.none()
        return qs.filter(**{self.entity_lookup: entity})

    def formfield_for_foreignkey(self, db_field, request, **kwargs):
        """
        Restrict foreignkey dropdowns (bank account, customer, vendor...)
        to the current entity.
        """
        entity = self._get_request_entity(request)
        rel_model = getattr(db_field, "related_model", None)
        if rel_model is not None and not request.user.is_superuser:
            if db_field.name == "entity":
                kwargs["queryset"] = rel_model.objects.filter(
                    pk=getattr(entity, "pk", None))
            elif any(f.name == "entity" for f in rel_model._meta.fields):
                kwargs["queryset"] = rel_model.objects.filter(entity=entity)
        return super().formfield_for_foreignkey(db_field, request, **kwargs)

    def save_model(self, request, obj, form, change):
        # Ensure object is always owned by the entity on save (unless superuser)
        if not request.user.is_superuser and hasattr(obj, "entity_id"):
            entity = self._get_request_entity(request)
            if entity is not None:
                obj.entity = entity
        super().save_model(request, obj, form, change)
