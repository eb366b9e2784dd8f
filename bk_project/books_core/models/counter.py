from django.db import models


class Counter(models.Model):
    """Per (sequence name, year) counter used to mint document codes.

    Rows are created lazily the first time a sequence is used in a year and
    only ever incremented through ``services.counter.next_sequence``.
    """

    name = models.CharField(max_length=64)  # e.g. "transaction", "invoice_sales"
    year = models.PositiveIntegerField()
    seq = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        # One counter per sequence per year
        constraints = [
            models.UniqueConstraint(
                fields=["name", "year"], name="uq_counter_name_year"),
        ]

    def __str__(self):
        return f"{self.name}/{self.year}: {self.seq}"
