import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.core.exceptions import ValidationError
from django.utils.dateparse import parse_date

from ..exceptions import NotFoundError
from ..models import Entity

CENT = Decimal("0.01")


# ------------------------------------
# Input helpers shared by the services
# ------------------------------------
def money(value) -> Decimal:
    """Round to paise, half up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value, field: str) -> Decimal:
    if value is None or value == "":
        raise ValidationError({field: f"{field} is required"})
    try:
        # str() so floats coming from JSON keep their printed value
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError({field: f"{field} must be a number"})


def positive_amount(value, field: str = "amount") -> Decimal:
    amount = to_decimal(value, field)
    if amount <= 0:
        raise ValidationError({field: f"{field} must be greater than 0"})
    return amount


def resolve_entity(entity) -> Entity:
    """
    Entity registry check: the entity must exist and be active before
    anything references it. Accepts an Entity or its primary key.
    """
    pk = entity.pk if isinstance(entity, Entity) else entity
    found = Entity.objects.filter(pk=pk, is_active=True).first()
    if found is None:
        raise NotFoundError("Entity not found or inactive", entity_id=pk)
    return found


def get_for_entity(model, pk, entity=None, *, lock=False, label=None):
    """
    Fetch one row by primary key, scoped to the entity when one is given.
    lock=True must be called inside transaction.atomic().
    """
    if isinstance(pk, model):
        pk = pk.pk
    qs = model.objects.all()
    if lock:
        qs = qs.select_for_update()
    if entity is not None:
        qs = qs.filter(entity=entity)
    obj = qs.filter(pk=pk).first()
    if obj is None:
        name = label or model._meta.verbose_name
        raise NotFoundError(f"{name.capitalize()} not found", id=pk)
    return obj


def reject_fields(patch: dict, protected, allowed=None):
    """Refuse protected keys, and unknown keys when an allow-list is given."""
    blocked = sorted(set(patch) & set(protected))
    if blocked:
        raise ValidationError(
            {name: f"{name} cannot be changed directly" for name in blocked})
    if allowed is not None:
        unknown = sorted(set(patch) - set(allowed))
        if unknown:
            raise ValidationError(
                {name: f"Unknown field {name}" for name in unknown})


def to_date(value, field: str):
    """Accept a date or an ISO 'YYYY-MM-DD' string; None passes through."""
    if value is None or isinstance(value, datetime.date):
        return value
    try:
        parsed = parse_date(str(value))
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError({field: f"{field} must be a date (YYYY-MM-DD)"})
    return parsed
