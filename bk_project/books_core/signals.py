from django.db.models.signals import pre_delete
from django.dispatch import receiver

from .exceptions import StateError
from .models import Customer, Invoice, PaymentAllocation, Vendor

""" Block invoice deletion if any payments are allocated to it."""


# pre_delete signal auto-fires just before Django deletes a model instance
@receiver(pre_delete, sender=Invoice)
def prevent_delete_invoice_with_allocations(sender, instance, **kwargs):
    if PaymentAllocation.objects.filter(invoice=instance).exists():
        raise StateError("Cannot delete invoice with allocated payments.")


"""Block hard deletion of a party that still owes or is owed money."""


@receiver(pre_delete, sender=Customer)
@receiver(pre_delete, sender=Vendor)
def prevent_delete_party_with_outstanding(sender, instance, **kwargs):
    if instance.current_outstanding != 0:
        raise StateError(
            f"Cannot delete {instance.name} with outstanding balance.")
