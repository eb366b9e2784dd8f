from django.db import models

# -----------------------------------------
# Enforce entity scoping across all models
# that belong to an Entity
# -----------------------------------------
class EntityQuerySet(models.QuerySet):
    def for_entity(self, entity):  # Add queryset helper
        return self.filter(entity=entity)  # Apply filter

    def active(self, entity):
        return self.filter(
            entity=entity,  # enforce entity scoping
            is_active=True,  # only fetch active records
        )
    # Enables query:
    # BankAccount.objects.active(request.entity)


# Attach EntityQuerySet to .objects
class EntityManager(models.Manager):

    def get_queryset(self):  # every model gets EntityQuerySet
        return EntityQuerySet(self.model, using=self._db)

    def for_entity(self, entity):  # can call for_entity() directly on objects
        return self.get_queryset().for_entity(entity)

    def active(self, entity):
        return self.get_queryset().active(entity)


class InvoiceQuerySet(EntityQuerySet):
    def open(self):
        # Everything still carrying an amount due
        return self.exclude(status__in=["paid", "cancelled"])

    def for_party(self, party):
        # Customer -> sales invoices, Vendor -> purchase invoices
        if party._meta.model_name == "customer":
            return self.filter(customer=party)
        return self.filter(vendor=party)


class InvoiceManager(EntityManager):
    def get_queryset(self):
        return InvoiceQuerySet(self.model, using=self._db)

    def open(self):
        return self.get_queryset().open()


class PaymentQuerySet(EntityQuerySet):
    def unallocated(self):
        # Non-cancelled payments that still have money to allocate
        return self.exclude(status="cancelled").filter(unallocated_amount__gt=0)


class PaymentManager(EntityManager):
    def get_queryset(self):
        return PaymentQuerySet(self.model, using=self._db)

    def unallocated(self):
        return self.get_queryset().unallocated()
