import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List

from django.db import transaction
from django.db.models import F, Q, Sum
from django.db.models.functions import Coalesce

from ..exceptions import BalanceError, NotFoundError
from ..models import BankAccount, Transaction
from ..models.banking import POSTED_STATUSES

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


# ----------------------------------------
# Transaction balance propagation
# ----------------------------------------
@dataclass(frozen=True)
class Effect:
    """Signed change a posted transaction makes to one bank account."""

    account_id: int
    delta: Decimal


def transaction_effects(tx: Transaction) -> List[Effect]:
    """
    Snapshot the effect of tx as it stands right now.
    Take it before mutating a transaction, the reversal needs the old values.
    """
    if tx.status not in POSTED_STATUSES:
        return []
    amount = tx.total_amount
    if tx.type == "income":
        return [Effect(tx.bank_account_id, amount)]
    if tx.type == "transfer":
        # both legs or neither
        return [
            Effect(tx.bank_account_id, -amount),
            Effect(tx.transfer_to_account_id, amount),
        ]
    # expense, loan, refund
    return [Effect(tx.bank_account_id, -amount)]


def adjust_balance(account_id, delta: Decimal, *, enforce_floor: bool = True) -> Decimal:
    """
    Atomic increment of BankAccount.current_balance.
    Cash accounts may not go below zero unless enforce_floor is False
    (reversals are never blocked). Returns the new balance.
    """
    with transaction.atomic():
        account = (
            BankAccount.objects.select_for_update()
            .filter(pk=account_id)
            .first()
        )
        if account is None:
            raise NotFoundError("Bank account not found", id=account_id)

        new_balance = account.current_balance + delta
        if enforce_floor and delta < 0 and new_balance < 0 and not account.allows_negative_balance:
            raise BalanceError(
                f"Insufficient balance in {account.account_name}",
                account_id=account_id,
                balance=str(account.current_balance),
                delta=str(delta),
            )

        BankAccount.objects.filter(pk=account_id).update(
            current_balance=F("current_balance") + delta)
        logger.debug(
            "Balance of account %s moved by %s to %s", account_id, delta, new_balance)
        return new_balance


def _lock_order(effects: List[Effect]) -> List[Effect]:
    # rows are always locked in ascending id order
    return sorted(effects, key=lambda e: e.account_id)


def apply_effect(effects: List[Effect]):
    with transaction.atomic():
        for effect in _lock_order(effects):
            adjust_balance(effect.account_id, effect.delta)


def reverse_effect(effects: List[Effect]):
    with transaction.atomic():
        for effect in _lock_order(effects):
            adjust_balance(effect.account_id, -effect.delta, enforce_floor=False)


def replace_effect(old: List[Effect], new: List[Effect]):
    """Reverse the old effect and apply the new one as one unit."""
    if old == new:
        return
    account_ids = {e.account_id for e in old + new}
    with transaction.atomic():
        # take every row up front so the reverse and apply legs never interleave locks
        list(BankAccount.objects.select_for_update()
             .filter(pk__in=account_ids).order_by("pk"))
        reverse_effect(old)
        apply_effect(new)


def expected_balance(account: BankAccount) -> Decimal:
    """
    Full-scan verifier: opening balance plus every posted effect on the account.
    Compare against current_balance to detect drift.
    """
    posted = Transaction.objects.filter(status__in=POSTED_STATUSES)

    def _total(qs):
        return qs.aggregate(total=Coalesce(Sum("total_amount"), ZERO))["total"]

    incoming = _total(posted.filter(bank_account=account, type="income"))
    outgoing = _total(posted.filter(bank_account=account).filter(~Q(type="income")))
    transfers_in = _total(posted.filter(transfer_to_account=account, type="transfer"))
    return account.opening_balance + incoming - outgoing + transfers_in
