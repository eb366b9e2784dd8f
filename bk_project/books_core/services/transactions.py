import logging
from typing import Iterable

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from ..exceptions import ConflictError
from ..models import BankAccount, Transaction
from .audit_helper import audit_after_commit, snapshot
from .balance import replace_effect, transaction_effects
from .counter import next_transaction_code
from .validation import get_for_entity, positive_amount, reject_fields, resolve_entity, to_date, to_decimal

logger = logging.getLogger(__name__)

# Fields a caller may set besides the ones named in the signatures
EDITABLE_FIELDS = (
    "transaction_date", "type", "status", "party_name", "amount",
    "cgst", "sgst", "igst", "tds_section", "tds_rate", "tds_amount",
    "payment_method", "reference_number", "invoice_number", "notes",
    "bank_account", "transfer_to_account",
)
PROTECTED_FIELDS = (
    "entity", "transaction_code", "total_gst", "total_amount",
    "is_reconciled", "reconciled_date", "reconciled_by", "idempotency_key",
    "created_by", "updated_by",
)
DECIMAL_FIELDS = ("cgst", "sgst", "igst", "tds_rate", "tds_amount")
BULK_STATUSES = ("pending", "paid", "cancelled")


def _account(value, entity, label):
    if value is None:
        return None
    account = get_for_entity(BankAccount, value, entity, label=label)
    if not account.is_active:
        raise ValidationError({"bank_account": f"{account.account_name} is inactive"})
    return account


def _assign(tx: Transaction, fields: dict):
    for name, value in fields.items():
        if name == "amount":
            value = positive_amount(value)
        elif name == "transaction_date":
            value = to_date(value, name)
        elif name in DECIMAL_FIELDS:
            value = to_decimal(value, name)
        elif name == "bank_account":
            value = _account(value, tx.entity, "bank account")
        elif name == "transfer_to_account":
            value = _account(value, tx.entity, "transfer account")
        setattr(tx, name, value)


def _stamp_reconciliation(tx: Transaction, user=None):
    """Entering 'reconciled' stamps the reconciliation, leaving it clears it."""
    if tx.status == "reconciled":
        if not tx.is_reconciled:
            tx.is_reconciled = True
            tx.reconciled_date = timezone.localdate()
            tx.reconciled_by = user if getattr(user, "pk", None) else None
    elif tx.is_reconciled:
        tx.is_reconciled = False
        tx.reconciled_date = None
        tx.reconciled_by = None


def create_transaction(
    entity,
    bank_account,
    type: str,
    amount,
    status: str = "pending",
    transfer_to_account=None,
    *,
    transaction_date=None,
    idempotency_key=None,
    user=None,
    **fields,
) -> Transaction:
    """
    Record a cash movement and, when it is posted (paid/reconciled),
    move the balance of its account(s).
    Replaying with the same idempotency_key returns the first transaction.
    """
    entity = resolve_entity(entity)
    reject_fields(fields, PROTECTED_FIELDS, EDITABLE_FIELDS)

    if idempotency_key:
        existing = Transaction.objects.for_entity(entity).filter(
            idempotency_key=idempotency_key).first()
        if existing is not None:
            logger.info("Replayed transaction create %s", idempotency_key)
            return existing

    tx = Transaction(
        entity=entity,
        type=type,
        status=status,
        transaction_date=to_date(transaction_date, "transaction_date") or timezone.localdate(),
        idempotency_key=idempotency_key or None,
        created_by=user if getattr(user, "pk", None) else None,
    )
    _assign(tx, {
        "amount": amount,
        "bank_account": bank_account,
        "transfer_to_account": transfer_to_account,
        **fields,
    })
    tx.recalc_totals()
    _stamp_reconciliation(tx, user)

    try:
        with transaction.atomic():
            tx.transaction_code = next_transaction_code(tx.transaction_date)
            tx.save()
            replace_effect([], transaction_effects(tx))
            audit_after_commit(
                action="create", instance=tx, user=user, after=snapshot(tx))
    except IntegrityError:
        # A concurrent create won the race for this idempotency key
        if idempotency_key:
            existing = Transaction.objects.for_entity(entity).filter(
                idempotency_key=idempotency_key).first()
            if existing is not None:
                return existing
        raise ConflictError("Duplicate transaction", idempotency_key=idempotency_key)

    logger.info("Created transaction %s (%s %s, %s)",
                tx.transaction_code, tx.type, tx.total_amount, tx.status)
    return tx


def update_transaction(tx_id, patch: dict, user=None, entity=None) -> Transaction:
    """
    Edit a transaction. The old effect is reversed and the new one applied
    in the same database transaction.
    """
    reject_fields(patch, PROTECTED_FIELDS, EDITABLE_FIELDS)

    with transaction.atomic():
        tx = get_for_entity(Transaction, tx_id, entity, lock=True)
        before = snapshot(tx)
        old_effects = transaction_effects(tx)

        _assign(tx, patch)
        if tx.type != "transfer" and "transfer_to_account" not in patch:
            # switching away from a transfer drops the counter-account
            tx.transfer_to_account = None
        tx.recalc_totals()
        _stamp_reconciliation(tx, user)
        if getattr(user, "pk", None):
            tx.updated_by = user
        tx.save()

        replace_effect(old_effects, transaction_effects(tx))
        audit_after_commit(
            action="update", instance=tx, user=user, before=before, after=snapshot(tx))

    logger.info("Updated transaction %s (%s)", tx.transaction_code, tx.status)
    return tx


def delete_transaction(tx_id, user=None, entity=None):
    """Reverse the effect, then remove the record."""
    with transaction.atomic():
        tx = get_for_entity(Transaction, tx_id, entity, lock=True)
        before = snapshot(tx)
        replace_effect(transaction_effects(tx), [])
        code = tx.transaction_code
        audit_after_commit(action="delete", instance=tx, user=user, before=before)
        tx.delete()

    logger.info("Deleted transaction %s", code)


def bulk_update_status(ids: Iterable, status: str, user=None, entity=None) -> int:
    """Move many transactions to one status; all of them change or none."""
    if status not in BULK_STATUSES:
        raise ValidationError({"status": f"Status must be one of {', '.join(BULK_STATUSES)}"})
    ids = list(ids)
    if not ids:
        raise ValidationError({"ids": "No transactions selected"})

    with transaction.atomic():
        for tx_id in ids:
            update_transaction(tx_id, {"status": status}, user=user, entity=entity)

    logger.info("Bulk status update of %d transactions to %s", len(ids), status)
    return len(ids)
