import decimal

import django.core.serializers.json
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

ZERO = decimal.Decimal("0.00")

PAYMENT_METHODS = [
    ("cash", "Cash"),
    ("cheque", "Cheque"),
    ("neft", "NEFT"),
    ("rtgs", "RTGS"),
    ("imps", "IMPS"),
    ("upi", "UPI"),
    ("card", "Card"),
    ("other", "Other"),
]

CREDIT_TERMS = [
    ("immediate", "Immediate"),
    ("net_7", "Net 7"),
    ("net_15", "Net 15"),
    ("net_30", "Net 30"),
    ("net_45", "Net 45"),
    ("net_60", "Net 60"),
    ("net_90", "Net 90"),
    ("custom", "Custom"),
]


def money(**kwargs):
    return models.DecimalField(decimal_places=2, default=ZERO, max_digits=18, **kwargs)


def party_fields():
    return [
        ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
        ("name", models.CharField(max_length=200)),
        ("contact_email", models.EmailField(blank=True, max_length=254)),
        ("phone", models.CharField(blank=True, max_length=32)),
        ("pan", models.CharField(blank=True, max_length=10)),
        ("gstin", models.CharField(blank=True, max_length=15)),
        ("credit_terms", models.CharField(choices=CREDIT_TERMS, default="net_30", max_length=10)),
        ("custom_credit_days", models.PositiveIntegerField(blank=True, null=True)),
        ("credit_limit", money()),
        ("current_outstanding", money()),
        ("is_active", models.BooleanField(default=True)),
        ("notes", models.TextField(blank=True, max_length=1000)),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        ("updated_at", models.DateTimeField(auto_now=True)),
        ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
        ("entity", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="books_core.entity")),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Entity",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("entity_type", models.CharField(choices=[("individual", "Individual"), ("proprietorship", "Proprietorship"), ("partnership", "Partnership"), ("company", "Company"), ("trust", "Trust"), ("other", "Other")], default="company", max_length=20)),
                ("pan", models.CharField(blank=True, max_length=10)),
                ("gstin", models.CharField(blank=True, max_length=15)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "verbose_name_plural": "entities",
                "constraints": [models.UniqueConstraint(fields=("name",), name="uq_entity_name")],
            },
        ),
        migrations.CreateModel(
            name="Counter",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=64)),
                ("year", models.PositiveIntegerField()),
                ("seq", models.PositiveIntegerField(default=0)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "constraints": [models.UniqueConstraint(fields=("name", "year"), name="uq_counter_name_year")],
            },
        ),
        migrations.CreateModel(
            name="EntityMembership",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("role", models.CharField(choices=[("admin", "Admin"), ("accountant", "Accountant"), ("employee", "Employee"), ("observer", "Observer")], default="observer", max_length=20)),
                ("is_default", models.BooleanField(default=False)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("entity", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="memberships", to="books_core.entity")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="memberships", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "indexes": [models.Index(fields=["entity", "user"], name="books_core__entity__4b1f0e_idx")],
                "constraints": [models.UniqueConstraint(fields=("user", "entity"), name="uq_user_entity_membership")],
            },
        ),
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(max_length=50)),
                ("object_type", models.CharField(max_length=100)),
                ("object_id", models.CharField(max_length=100)),
                ("changes", models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("entity", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to="books_core.entity")),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "indexes": [
                    models.Index(fields=["entity", "user"], name="books_core__entity__9c2d11_idx"),
                    models.Index(fields=["entity", "created_at"], name="books_core__entity__a7e3b2_idx"),
                    models.Index(fields=["object_type", "object_id"], name="books_core__object__5d8c40_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="BankAccount",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("account_name", models.CharField(max_length=100)),
                ("account_type", models.CharField(choices=[("savings", "Savings"), ("current", "Current"), ("overdraft", "Overdraft"), ("credit_line", "Credit line"), ("cash", "Cash")], max_length=20)),
                ("account_number", models.CharField(blank=True, max_length=18)),
                ("routing_code", models.CharField(blank=True, max_length=11)),
                ("bank_name", models.CharField(blank=True, max_length=100)),
                ("branch_name", models.CharField(blank=True, max_length=100)),
                ("currency", models.CharField(default="INR", max_length=3)),
                ("opening_balance", money()),
                ("opening_balance_date", models.DateField(blank=True, null=True)),
                ("current_balance", money()),
                ("is_active", models.BooleanField(default=True)),
                ("notes", models.CharField(blank=True, max_length=500)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("entity", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="books_core.entity")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["entity", "is_active"], name="books_core__entity__1e6a73_idx"),
                    models.Index(fields=["entity", "account_type"], name="books_core__entity__f04c2e_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(condition=models.Q(("account_type", "cash"), _negated=True), fields=("account_number", "routing_code"), name="uq_bankaccount_number_routing"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Transaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("transaction_code", models.CharField(max_length=32, unique=True)),
                ("transaction_date", models.DateField()),
                ("type", models.CharField(choices=[("income", "Income"), ("expense", "Expense"), ("transfer", "Transfer"), ("loan", "Loan"), ("refund", "Refund")], max_length=10)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("paid", "Paid"), ("cancelled", "Cancelled"), ("reconciled", "Reconciled")], default="pending", max_length=12)),
                ("party_name", models.CharField(blank=True, max_length=200)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("cgst", money()),
                ("sgst", money()),
                ("igst", money()),
                ("total_gst", money()),
                ("tds_section", models.CharField(blank=True, choices=[("", "None"), ("194A", "194A"), ("194C", "194C"), ("194H", "194H"), ("194I", "194I"), ("194J", "194J"), ("194Q", "194Q"), ("Other", "Other")], default="", max_length=8)),
                ("tds_rate", models.DecimalField(decimal_places=2, default=ZERO, max_digits=5)),
                ("tds_amount", money()),
                ("total_amount", money()),
                ("payment_method", models.CharField(choices=PAYMENT_METHODS, default="neft", max_length=10)),
                ("reference_number", models.CharField(blank=True, max_length=100)),
                ("invoice_number", models.CharField(blank=True, max_length=50)),
                ("notes", models.TextField(blank=True, max_length=1000)),
                ("is_reconciled", models.BooleanField(default=False)),
                ("reconciled_date", models.DateField(blank=True, null=True)),
                ("idempotency_key", models.CharField(blank=True, max_length=64, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("bank_account", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="transactions", to="books_core.bankaccount")),
                ("transfer_to_account", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="incoming_transfers", to="books_core.bankaccount")),
                ("reconciled_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("updated_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("entity", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="books_core.entity")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["entity", "transaction_date"], name="books_core__entity__3b9e55_idx"),
                    models.Index(fields=["entity", "status"], name="books_core__entity__77d1c8_idx"),
                    models.Index(fields=["bank_account", "transaction_date"], name="books_core__bank_ac_2f6a90_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("entity", "idempotency_key"), name="uq_transaction_idempotency_key"),
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="tx_positive_amount"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Customer",
            fields=party_fields(),
            options={
                "indexes": [
                    models.Index(fields=["entity", "is_active"], name="books_core__entity__c81a02_idx"),
                    models.Index(fields=["entity", "name"], name="books_core__entity__0d4e7b_idx"),
                ],
                "constraints": [models.UniqueConstraint(fields=("entity", "name"), name="uq_entity_customer_name")],
            },
        ),
        migrations.CreateModel(
            name="Vendor",
            fields=party_fields(),
            options={
                "indexes": [
                    models.Index(fields=["entity", "is_active"], name="books_core__entity__6f2b19_idx"),
                    models.Index(fields=["entity", "name"], name="books_core__entity__e5c370_idx"),
                ],
                "constraints": [models.UniqueConstraint(fields=("entity", "name"), name="uq_entity_vendor_name")],
            },
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("invoice_number", models.CharField(max_length=32, unique=True)),
                ("invoice_type", models.CharField(choices=[("sales", "Sales"), ("purchase", "Purchase")], max_length=10)),
                ("invoice_date", models.DateField()),
                ("due_date", models.DateField()),
                ("cgst", money()),
                ("sgst", money()),
                ("igst", money()),
                ("tds_amount", money()),
                ("round_off", money()),
                ("subtotal", money()),
                ("total_tax", money()),
                ("total_amount", money()),
                ("amount_paid", money()),
                ("amount_due", money()),
                ("status", models.CharField(choices=[("draft", "Draft"), ("pending", "Pending"), ("partially_paid", "Partially paid"), ("paid", "Paid"), ("overdue", "Overdue"), ("cancelled", "Cancelled")], default="draft", max_length=16)),
                ("payment_status", models.CharField(choices=[("unpaid", "Unpaid"), ("partially_paid", "Partially paid"), ("paid", "Paid")], default="unpaid", max_length=16)),
                ("days_overdue", models.PositiveIntegerField(default=0)),
                ("aging_bucket", models.CharField(choices=[("current", "Current"), ("1-30", "1-30 days"), ("31-60", "31-60 days"), ("61-90", "61-90 days"), ("90+", "90+ days")], default="current", max_length=8)),
                ("notes", models.TextField(blank=True, max_length=1000)),
                ("terms", models.TextField(blank=True, max_length=2000)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("customer", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="invoices", to="books_core.customer")),
                ("vendor", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="invoices", to="books_core.vendor")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("updated_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("entity", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="books_core.entity")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["entity", "invoice_type", "status"], name="books_core__entity__8a5f31_idx"),
                    models.Index(fields=["entity", "customer"], name="books_core__entity__29b7d4_idx"),
                    models.Index(fields=["entity", "vendor"], name="books_core__entity__d3e806_idx"),
                    models.Index(fields=["due_date", "status"], name="books_core__due_dat_71c9ae_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount_paid__gte", 0)), name="inv_non_negative_paid"),
                ],
            },
        ),
        migrations.CreateModel(
            name="InvoiceLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("position", models.PositiveIntegerField(default=0)),
                ("description", models.CharField(max_length=500)),
                ("quantity", models.DecimalField(decimal_places=4, default=decimal.Decimal("1"), max_digits=14)),
                ("unit", models.CharField(default="nos", max_length=20)),
                ("rate", models.DecimalField(decimal_places=4, default=ZERO, max_digits=18)),
                ("tax_rate", models.DecimalField(decimal_places=2, default=ZERO, max_digits=5)),
                ("amount", money()),
                ("tax_amount", money()),
                ("line_total", money()),
                ("invoice", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="books_core.invoice")),
            ],
            options={
                "ordering": ["position", "id"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("quantity__gt", 0), ("rate__gte", 0)), name="invl_positive_quantity_rate"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("payment_number", models.CharField(max_length=32, unique=True)),
                ("direction", models.CharField(choices=[("received", "Received"), ("made", "Made")], max_length=10)),
                ("payment_date", models.DateField()),
                ("amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("payment_mode", models.CharField(choices=PAYMENT_METHODS, max_length=10)),
                ("reference_number", models.CharField(blank=True, max_length=100)),
                ("cheque_number", models.CharField(blank=True, max_length=20)),
                ("cheque_date", models.DateField(blank=True, null=True)),
                ("tds_deducted", money()),
                ("allocated_amount", money()),
                ("unallocated_amount", money()),
                ("status", models.CharField(choices=[("pending", "Pending"), ("cleared", "Cleared"), ("bounced", "Bounced"), ("cancelled", "Cancelled")], default="pending", max_length=10)),
                ("is_reconciled", models.BooleanField(default=False)),
                ("reconciled_date", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, max_length=1000)),
                ("idempotency_key", models.CharField(blank=True, max_length=64, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("customer", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="books_core.customer")),
                ("vendor", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="books_core.vendor")),
                ("bank_account", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="books_core.bankaccount")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("updated_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("entity", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="books_core.entity")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["entity", "direction", "status"], name="books_core__entity__b6d2f8_idx"),
                    models.Index(fields=["entity", "customer"], name="books_core__entity__4c0a9e_idx"),
                    models.Index(fields=["entity", "vendor"], name="books_core__entity__95e1b7_idx"),
                    models.Index(fields=["entity", "is_reconciled"], name="books_core__entity__e0f4a6_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("entity", "idempotency_key"), name="uq_payment_idempotency_key"),
                    models.CheckConstraint(condition=models.Q(("unallocated_amount__gte", 0)), name="pay_non_negative_unallocated"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentAllocation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("invoice_number", models.CharField(max_length=32)),
                ("allocated_amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("allocation_date", models.DateTimeField(default=django.utils.timezone.now)),
                ("invoice", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="allocations", to="books_core.invoice")),
                ("payment", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="allocations", to="books_core.payment")),
            ],
            options={
                "ordering": ["allocation_date", "id"],
                "indexes": [models.Index(fields=["invoice"], name="books_core__invoice_3a7c58_idx")],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("allocated_amount__gt", 0)), name="alloc_positive_amount"),
                ],
            },
        ),
    ]
