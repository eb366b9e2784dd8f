import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task  # register this function as a Celery task
def refresh_invoice_aging():
    """Daily: move status, days overdue and aging bucket with the calendar."""
    # import lazily to avoid circular imports at module import time
    from .services.invoicing import refresh_invoice_aging as refresh

    return refresh()


@shared_task
def verify_ledger_consistency(entity_id):
    """
    Compare the stored balances of one entity against a full scan.
    Drift is logged, never corrected here. Returns the number of drifts.
    """
    from .models import BankAccount, Customer, Vendor
    from .services.balance import expected_balance
    from .services.outstanding import outstanding_from_invoices

    drifts = 0
    for account in BankAccount.objects.for_entity(entity_id):
        expected = expected_balance(account)
        if account.current_balance != expected:
            drifts += 1
            logger.error(
                "Balance drift on bank account %s: stored %s, expected %s",
                account.pk, account.current_balance, expected,
            )

    for model in (Customer, Vendor):
        for party in model.objects.for_entity(entity_id):
            expected = outstanding_from_invoices(party)
            if party.current_outstanding != expected:
                drifts += 1
                logger.error(
                    "Outstanding drift on %s %s: stored %s, expected %s",
                    model.__name__, party.pk, party.current_outstanding, expected,
                )

    logger.info("Ledger check of entity %s found %d drift(s)", entity_id, drifts)
    return drifts


@shared_task
def verify_all_entities():
    """Nightly: fan out one consistency check per active entity."""
    from .models import Entity

    entity_ids = list(Entity.objects.filter(is_active=True).values_list("pk", flat=True))
    for entity_id in entity_ids:
        verify_ledger_consistency.delay(entity_id)
    return len(entity_ids)
