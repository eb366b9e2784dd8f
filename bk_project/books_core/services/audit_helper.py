import logging
from typing import Optional

from django.db import transaction
from django.forms.models import model_to_dict

from ..models import AuditLog, Entity

logger = logging.getLogger(__name__)


def snapshot(instance) -> Optional[dict]:
    """Plain dict of the instance's concrete fields, for before/after logging."""
    if instance is None:
        return None
    return model_to_dict(instance)


def log_action(
    *,
    action: str,
    instance,
    user=None,
    entity: Optional[Entity] = None,
    changes: dict | None = None,
    object_id=None,
):
    """
    Central audit logger.
    Safe to call multiple times (caller ensures idempotency).
    """

    if not entity:
        entity = getattr(instance, "entity", None)

    AuditLog.objects.create(
        entity=entity,
        user=user if getattr(user, "pk", None) else None,
        action=action,
        object_type=instance.__class__.__name__,
        object_id=str(object_id if object_id is not None else instance.pk),
        changes=changes,
    )


def audit_after_commit(*, action: str, instance, user=None, before=None, after=None):
    """
    Record "record written: before/after" once the surrounding transaction
    commits. Never raises: a failing audit write is logged and dropped, the
    primary mutation has already been committed.
    """
    changes = {"before": before, "after": after}
    object_id = instance.pk
    entity = getattr(instance, "entity", None)

    def _write():
        try:
            log_action(
                action=action,
                instance=instance,
                user=user,
                entity=entity,
                changes=changes,
                object_id=object_id,
            )
        except Exception:
            logger.warning(
                "Audit write failed for %s %s(%s)",
                action, instance.__class__.__name__, object_id, exc_info=True,
            )

    transaction.on_commit(_write)
