import logging

from django.db import IntegrityError, transaction

from ..exceptions import ConflictError
from ..models import BankAccount
from .audit_helper import audit_after_commit, snapshot
from .balance import adjust_balance
from .validation import get_for_entity, reject_fields, resolve_entity, to_date, to_decimal

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "account_name", "account_type", "account_number", "routing_code",
    "bank_name", "branch_name", "currency", "opening_balance",
    "opening_balance_date", "is_active", "notes",
)
PROTECTED_FIELDS = ("entity", "current_balance", "created_by")


def _check_duplicate(account: BankAccount):
    """The same account number at the same branch (IFSC) is registered once."""
    if account.is_cash_account or not account.account_number:
        return
    duplicate = (
        BankAccount.objects.exclude(account_type="cash")
        .filter(
            account_number=account.account_number.strip(),
            routing_code=(account.routing_code or "").strip().upper(),
        )
        .exclude(pk=account.pk)
        .exists()
    )
    if duplicate:
        raise ConflictError(
            "Bank account with this account number and IFSC already exists",
            account_number=account.account_number,
        )


def _assign(account: BankAccount, fields: dict):
    for name, value in fields.items():
        if name == "opening_balance":
            value = to_decimal(value, name)
        elif name == "opening_balance_date":
            value = to_date(value, name)
        setattr(account, name, value)


def create_bank_account(entity, account_name: str, account_type: str, user=None, **fields) -> BankAccount:
    entity = resolve_entity(entity)
    reject_fields(fields, PROTECTED_FIELDS, EDITABLE_FIELDS)
    account = BankAccount(
        entity=entity,
        account_name=account_name,
        account_type=account_type,
        created_by=user if getattr(user, "pk", None) else None,
    )
    _assign(account, fields)
    _check_duplicate(account)
    try:
        with transaction.atomic():
            account.save()  # current_balance starts at opening_balance
            audit_after_commit(
                action="create", instance=account, user=user, after=snapshot(account))
    except IntegrityError:
        raise ConflictError("Bank account with this account number and IFSC already exists")

    logger.info("Created bank account %s for %s", account.pk, entity)
    return account


def update_bank_account(account_id, patch: dict, user=None, entity=None) -> BankAccount:
    """
    Edit account details. Changing the opening balance shifts the current
    balance by the same amount.
    """
    reject_fields(patch, PROTECTED_FIELDS, EDITABLE_FIELDS)
    with transaction.atomic():
        account = get_for_entity(BankAccount, account_id, entity, lock=True)
        before = snapshot(account)
        old_opening = account.opening_balance

        _assign(account, patch)
        _check_duplicate(account)
        # current_balance is written only through adjust_balance
        account.save(update_fields=[*patch, "updated_at"])

        shift = account.opening_balance - old_opening
        if shift:
            adjust_balance(account.pk, shift, enforce_floor=False)
        account.refresh_from_db()
        audit_after_commit(
            action="update", instance=account, user=user,
            before=before, after=snapshot(account))
    return account


def delete_bank_account(account_id, user=None, entity=None) -> bool:
    """
    Delete an unused account. One referenced by transactions or payments is
    soft-disabled instead. Returns True when the row was removed.
    """
    with transaction.atomic():
        account = get_for_entity(BankAccount, account_id, entity, lock=True)
        before = snapshot(account)
        in_use = (
            account.transactions.exists()
            or account.incoming_transfers.exists()
            or account.payments.exists()
        )
        if in_use:
            account.is_active = False
            account.save(update_fields=["is_active", "updated_at"])
            audit_after_commit(
                action="disable", instance=account, user=user,
                before=before, after=snapshot(account))
            logger.info("Disabled bank account %s, it has transactions", account.pk)
            return False

        audit_after_commit(action="delete", instance=account, user=user, before=before)
        account.delete()

    logger.info("Deleted bank account %s", account_id)
    return True
