import datetime
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from books_core import services
from books_core.models import BankAccount, Customer, Entity, EntityMembership, Vendor

User = get_user_model()


class Command(BaseCommand):
    help = (
        "Create a demo entity, an admin user, and sample books "
        "(accounts, transactions, an invoice and its payment) for testing."
    )

    # Define command-line arguments
    def add_arguments(self, parser):
        parser.add_argument(
            "--entity-name",  # Define flag
            default="Demo Traders",
            help="Name of the demo entity to create.",
        )
        parser.add_argument(
            "--username", default="demo", help="Username for the demo user."
        )
        parser.add_argument(
            "--password", default="demo123", help="Password for the demo user."
        )

    @transaction.atomic
    def handle(self, *args, **options):
        # Read arguments from add_arguments()
        entity_name = options["entity_name"]
        username = options["username"]
        password = options["password"]
        today = datetime.date.today()

        # 1. Create entity
        entity, created = Entity.objects.get_or_create(
            name=entity_name, defaults={"entity_type": "proprietorship"})
        if not created:
            self.stdout.write(self.style.WARNING(
                f"Entity {entity} already exists, nothing seeded"))
            return
        self.stdout.write(self.style.SUCCESS(f"Created entity: {entity}"))

        # 2. Create user with an admin membership
        user, created = User.objects.get_or_create(
            username=username,
            defaults={"email": f"{username}@example.com"},
        )
        if created:  # if user newly created
            user.set_password(password)
            user.save()
        EntityMembership.objects.get_or_create(
            user=user, entity=entity,
            defaults={"role": "admin", "is_default": True})
        self.stdout.write(
            self.style.SUCCESS(f"Created user: {user.username} (pw={password})")
        )

        # 3. Accounts: a bank account and petty cash
        bank = services.create_bank_account(
            entity, "Current account", "current",
            account_number="000123456789", routing_code="HDFC0000123",
            bank_name="HDFC Bank", opening_balance=Decimal("50000.00"),
            opening_balance_date=today, user=user,
        )
        cash = services.create_bank_account(
            entity, "Petty cash", "cash",
            opening_balance=Decimal("5000.00"), user=user)
        self.stdout.write(self.style.SUCCESS("Created accounts: bank, petty cash"))

        # 4. Parties
        customer = Customer.objects.create(
            entity=entity, name="Acme Retail", credit_terms="net_30",
            credit_limit=Decimal("100000.00"), created_by=user)
        vendor = Vendor.objects.create(
            entity=entity, name="Paper Supplies Co", credit_terms="net_15",
            created_by=user)

        # 5. Cash movements, one of them a transfer
        services.create_transaction(
            entity, bank, "expense", Decimal("1200.00"), "paid",
            party_name="Office rent", payment_method="neft", user=user)
        services.create_transaction(
            entity, bank, "transfer", Decimal("2000.00"), "paid",
            transfer_to_account=cash, notes="Cash top-up", user=user)

        # 6. A sales invoice, part paid
        invoice = services.create_invoice(
            entity, "sales", customer,
            [{"description": "Consulting", "quantity": 10, "rate": "100.00"}],
            cgst=Decimal("90.00"), sgst=Decimal("90.00"), user=user)
        services.create_payment(
            entity, "received", customer, Decimal("500.00"), "upi",
            bank_account=bank, status="cleared",
            allocations=[{"invoice": invoice.pk, "amount": "500.00"}], user=user)

        # 7. A purchase invoice, unpaid
        services.create_invoice(
            entity, "purchase", vendor,
            [{"description": "A4 paper", "quantity": 20, "rate": "250.00", "tax_rate": "12"}],
            user=user)

        for account in BankAccount.objects.for_entity(entity):
            account.refresh_from_db()
            self.stdout.write(f"  {account}: {account.current_balance}")
        self.stdout.write(self.style.SUCCESS("Demo books created"))
