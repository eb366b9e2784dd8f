from decimal import Decimal

from ..models import BankAccount, Customer, Entity, Vendor


def make_entity(name="Test Traders"):
    return Entity.objects.create(name=name, entity_type="proprietorship")


def make_bank(entity, name="Main account", number="123456789012",
              opening="10000.00", account_type="current"):
    return BankAccount.objects.create(
        entity=entity,
        account_name=name,
        account_type=account_type,
        account_number=number,
        routing_code="HDFC0000123",
        bank_name="HDFC Bank",
        opening_balance=Decimal(opening),
    )


def make_cash(entity, name="Petty cash", opening="100.00"):
    return BankAccount.objects.create(
        entity=entity, account_name=name, account_type="cash",
        opening_balance=Decimal(opening))


def make_customer(entity, name="Acme Retail", **kwargs):
    return Customer.objects.create(entity=entity, name=name, **kwargs)


def make_vendor(entity, name="Paper Supplies", **kwargs):
    return Vendor.objects.create(entity=entity, name=name, **kwargs)


def one_line(rate="1000.00", quantity=1, tax_rate=0):
    return [{"description": "Consulting", "quantity": quantity,
             "rate": rate, "tax_rate": tax_rate}]
