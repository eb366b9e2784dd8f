import logging
from decimal import Decimal
from typing import Dict, List, Optional

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from ..exceptions import BalanceError, ConflictError, DirectionMismatchError, StateError
from ..models import BankAccount, Customer, Invoice, Payment, PaymentAllocation, Vendor
from ..models.payment import DIRECTION_CHOICES
from .audit_helper import audit_after_commit, snapshot
from .counter import next_payment_number
from .invoicing import record_payment
from .validation import get_for_entity, positive_amount, reject_fields, resolve_entity, to_date, to_decimal

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

EDITABLE_FIELDS = (
    "payment_date", "amount", "payment_mode", "bank_account",
    "reference_number", "cheque_number", "cheque_date", "tds_deducted",
    "status", "notes",
)
PROTECTED_FIELDS = (
    "entity", "payment_number", "direction", "customer", "vendor",
    "allocated_amount", "unallocated_amount", "is_reconciled",
    "reconciled_date", "idempotency_key", "created_by", "updated_by",
)
PARTY_MODEL = {"received": Customer, "made": Vendor}


# ----------------------------
# Derived totals
# ----------------------------
def refresh_payment_totals(payment: Payment) -> Payment:
    """
    allocated = sum of allocations, unallocated = amount - allocated.
    A cleared, fully allocated payment is reconciled. Nothing is saved.
    """
    payment.allocated_amount = PaymentAllocation.objects.filter(
        payment_id=payment.pk
    ).aggregate(total=Coalesce(Sum("allocated_amount"), ZERO))["total"]
    payment.unallocated_amount = payment.amount - payment.allocated_amount

    if payment.status == "cleared" and payment.is_fully_allocated:
        if not payment.is_reconciled:
            payment.is_reconciled = True
            payment.reconciled_date = timezone.now()
    elif payment.is_reconciled:
        payment.is_reconciled = False
        payment.reconciled_date = None
    return payment


# ----------------------------
# Allocation
# ----------------------------
def _allocate(payment: Payment, invoice: Invoice, amount: Decimal, user=None) -> PaymentAllocation:
    """Caller holds row locks on both and runs inside transaction.atomic()."""
    if payment.status == "cancelled":
        raise StateError("Cannot allocate a cancelled payment")
    if invoice.invoice_type != payment.invoice_type:
        raise DirectionMismatchError(
            f"A {payment.direction} payment can only settle {payment.invoice_type} invoices",
            direction=payment.direction,
            invoice_type=invoice.invoice_type,
        )
    if invoice.status == "cancelled":
        raise StateError("Cannot allocate to a cancelled invoice")
    if invoice.party.pk != payment.party.pk:
        raise ValidationError("Invoice belongs to a different party than the payment")
    if amount > payment.unallocated_amount:
        raise BalanceError(
            "Allocation exceeds unallocated amount",
            amount=str(amount),
            unallocated_amount=str(payment.unallocated_amount),
        )
    if amount > invoice.amount_due:
        raise BalanceError(
            "Allocation exceeds invoice amount due",
            amount=str(amount),
            amount_due=str(invoice.amount_due),
        )

    allocation = PaymentAllocation.objects.create(
        payment=payment,
        invoice=invoice,
        invoice_number=invoice.invoice_number,
        allocated_amount=amount,
    )
    # invoice totals and the party's outstanding move together
    record_payment(invoice.pk, amount, user=user)
    refresh_payment_totals(payment)

    logger.info("Allocated %s of %s to %s",
                amount, payment.payment_number, invoice.invoice_number)
    return allocation


def allocate_payment(payment_id, invoice_id, amount, user=None, entity=None) -> Payment:
    """
    Apply part (or all) of a payment to an invoice.
    Locks both rows during the operation.
    """
    amount = positive_amount(amount)
    with transaction.atomic():
        payment = get_for_entity(Payment, payment_id, entity, lock=True)
        invoice = get_for_entity(Invoice, invoice_id, payment.entity, lock=True)
        before = snapshot(payment)

        _allocate(payment, invoice, amount, user=user)
        payment.save()
        audit_after_commit(
            action="allocate", instance=payment, user=user,
            before=before, after=snapshot(payment))
    return payment


# ----------------------------
# Payment lifecycle
# ----------------------------
def _set_bank_account(payment: Payment, value):
    if value is None:
        payment.bank_account = None
        return
    account = get_for_entity(BankAccount, value, payment.entity, label="bank account")
    if not account.is_active:
        raise ValidationError({"bank_account": f"{account.account_name} is inactive"})
    payment.bank_account = account


def create_payment(
    entity,
    direction: str,
    party,
    amount,
    mode: str,
    *,
    bank_account=None,
    payment_date=None,
    status: str = "pending",
    allocations: Optional[List[Dict]] = None,
    idempotency_key=None,
    user=None,
    **fields,
) -> Payment:
    """
    Record money received from a customer or paid to a vendor.
    allocations is an optional list of {"invoice": id, "amount": x}
    applied in the same unit of work.
    """
    entity = resolve_entity(entity)
    if direction not in dict(DIRECTION_CHOICES):
        raise ValidationError({"direction": "Direction must be received or made"})
    if status == "cancelled":
        raise ValidationError({"status": "A new payment cannot be cancelled"})
    reject_fields(fields, PROTECTED_FIELDS, EDITABLE_FIELDS)
    amount = positive_amount(amount)

    if idempotency_key:
        existing = Payment.objects.for_entity(entity).filter(
            idempotency_key=idempotency_key).first()
        if existing is not None:
            logger.info("Replayed payment create %s", idempotency_key)
            return existing

    model = PARTY_MODEL[direction]
    if party is None:
        field = model._meta.model_name
        raise ValidationError({field: f"{field.capitalize()} is required"})
    if isinstance(party, (Customer, Vendor)) and not isinstance(party, model):
        raise ValidationError(
            f"A {direction} payment needs a {model._meta.verbose_name}")
    if not isinstance(party, model):
        party = get_for_entity(model, party, entity)

    payment = Payment(
        entity=entity,
        direction=direction,
        customer=party if direction == "received" else None,
        vendor=party if direction == "made" else None,
        amount=amount,
        payment_mode=mode,
        payment_date=to_date(payment_date, "payment_date") or timezone.localdate(),
        status=status,
        unallocated_amount=amount,
        idempotency_key=idempotency_key or None,
        created_by=user if getattr(user, "pk", None) else None,
    )
    _set_bank_account(payment, bank_account)
    for name, value in fields.items():
        if name == "tds_deducted":
            value = to_decimal(value, name)
        elif name == "cheque_date":
            value = to_date(value, name)
        setattr(payment, name, value)

    try:
        with transaction.atomic():
            payment.payment_number = next_payment_number(direction, payment.payment_date)
            payment.save()
            for item in allocations or []:
                invoice = get_for_entity(Invoice, item.get("invoice"), entity, lock=True)
                _allocate(payment, invoice, positive_amount(item.get("amount")), user=user)
            refresh_payment_totals(payment)
            payment.save()
            audit_after_commit(
                action="create", instance=payment, user=user, after=snapshot(payment))
    except IntegrityError:
        if idempotency_key:
            existing = Payment.objects.for_entity(entity).filter(
                idempotency_key=idempotency_key).first()
            if existing is not None:
                return existing
        raise ConflictError("Duplicate payment", idempotency_key=idempotency_key)

    logger.info("Created payment %s (%s %s)",
                payment.payment_number, payment.direction, payment.amount)
    return payment


def update_payment(payment_id, patch: dict, user=None, entity=None) -> Payment:
    reject_fields(patch, PROTECTED_FIELDS, EDITABLE_FIELDS)

    with transaction.atomic():
        payment = get_for_entity(Payment, payment_id, entity, lock=True)
        if payment.status == "cancelled":
            raise StateError("Cannot edit a cancelled payment")
        before = snapshot(payment)
        has_allocations = payment.allocations.exists()

        if "amount" in patch:
            amount = positive_amount(patch["amount"])
            if amount != payment.amount and has_allocations:
                raise StateError("Cannot change the amount of a payment with allocations")
            payment.amount = amount
        if patch.get("status") == "cancelled" and has_allocations:
            raise StateError("Cannot cancel a payment with allocations")

        for name, value in patch.items():
            if name == "amount":
                continue
            if name == "bank_account":
                _set_bank_account(payment, value)
            elif name == "tds_deducted":
                payment.tds_deducted = to_decimal(value, name)
            elif name in ("payment_date", "cheque_date"):
                setattr(payment, name, to_date(value, name))
            else:
                setattr(payment, name, value)

        refresh_payment_totals(payment)
        if getattr(user, "pk", None):
            payment.updated_by = user
        payment.save()
        audit_after_commit(
            action="update", instance=payment, user=user,
            before=before, after=snapshot(payment))
    return payment


def cancel_payment(payment_id, user=None, entity=None) -> Payment:
    with transaction.atomic():
        payment = get_for_entity(Payment, payment_id, entity, lock=True)
        if payment.status == "cancelled":
            raise StateError("Payment is already cancelled")
        if payment.allocations.exists():
            raise StateError("Cannot cancel a payment with allocations")
        before = snapshot(payment)
        payment.status = "cancelled"
        refresh_payment_totals(payment)
        if getattr(user, "pk", None):
            payment.updated_by = user
        payment.save()
        audit_after_commit(
            action="cancel", instance=payment, user=user,
            before=before, after=snapshot(payment))

    logger.info("Cancelled payment %s", payment.payment_number)
    return payment


def unallocated_payments(entity, direction: Optional[str] = None):
    """Non-cancelled payments that still have money to allocate."""
    qs = Payment.objects.for_entity(entity).unallocated()
    if direction:
        qs = qs.filter(direction=direction)
    return qs.order_by("payment_date", "id")
