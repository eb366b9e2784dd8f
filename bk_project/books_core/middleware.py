from django.utils.deprecation import MiddlewareMixin
from .models import EntityMembership


class CurrentEntityMiddleware(MiddlewareMixin):
    # Run on every request and
    # attach .entity, .membership and .role, based on the logged-in user
    def process_request(self, request):
        request.entity = None
        request.membership = None
        request.role = None

        user = getattr(request, "user", None)
        if user is None or not user.is_authenticated:
            return  # Unauthenticated users

        memberships = EntityMembership.objects.select_related("entity").filter(
            user=user, is_active=True, entity__is_active=True)

        # If user switched entities,
        # choice is stored in the session as "active_entity_id"
        entity_id = request.session.get("active_entity_id") if hasattr(request, "session") else None
        if entity_id:
            # user must be a member of that entity, a tampered session gets nothing
            membership = memberships.filter(entity_id=entity_id).first()
        else:
            # Default entity fallback: If user didn't choose one
            membership = memberships.order_by("-is_default", "pk").first()

        if membership is not None:
            request.membership = membership
            request.entity = membership.entity
            request.role = membership.role
