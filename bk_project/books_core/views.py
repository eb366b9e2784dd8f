import functools
import json
import logging

from django.core.exceptions import PermissionDenied, ValidationError
from django.forms.models import model_to_dict
from django.http import JsonResponse

from . import services
from .exceptions import BookkeepingError
from .models import BankAccount, Customer, Invoice, Payment, Transaction, Vendor
from .services.validation import get_for_entity

logger = logging.getLogger(__name__)


# ----------------------------
# Plumbing
# ----------------------------
def _flatten(error: ValidationError) -> str:
    if hasattr(error, "message_dict"):
        return "; ".join(
            f"{field}: {' '.join(messages)}" if field != "__all__" else " ".join(messages)
            for field, messages in error.message_dict.items()
        )
    return " ".join(error.messages)


def json_endpoint(*methods):
    """
    Wrap a view: restrict HTTP methods, require an entity on the request
    (set by CurrentEntityMiddleware), parse a JSON body into request.data
    and translate service errors to {"success": false, "message": ...}.
    """

    def decorator(view):
        @functools.wraps(view)
        def wrapper(request, *args, **kwargs):
            if request.method not in methods:
                return JsonResponse(
                    {"success": False, "message": "Method not allowed"}, status=405)
            if getattr(request, "entity", None) is None:
                return JsonResponse(
                    {"success": False, "message": "No active entity"}, status=403)
            try:
                request.data = json.loads(request.body) if request.body else {}
            except ValueError:
                return JsonResponse(
                    {"success": False, "message": "Malformed JSON body"}, status=400)
            try:
                return view(request, *args, **kwargs)
            except ValidationError as e:
                return JsonResponse({"success": False, "message": _flatten(e)}, status=400)
            except BookkeepingError as e:
                logger.info("%s %s refused: %s", request.method, request.path, e.message)
                return JsonResponse(
                    {"success": False, "message": e.message, **e.details},
                    status=e.status_code)
            except PermissionDenied as e:
                return JsonResponse(
                    {"success": False, "message": str(e) or "Permission denied"}, status=403)

        return wrapper

    return decorator


def require_write(request):
    # employee and observer are read-only
    if request.role not in ("admin", "accountant"):
        raise PermissionDenied("Your role cannot change the books")


def require_admin(request):
    if request.role != "admin":
        raise PermissionDenied("Only admins can delete or cancel")


def ok(data, status=200):
    return JsonResponse({"success": True, "data": data}, status=status)


def serialize(obj, **extra):
    data = model_to_dict(obj)
    data["id"] = obj.pk
    data.update(extra)
    return data


def serialize_invoice(invoice):
    return serialize(invoice, lines=[serialize(line) for line in invoice.lines.all()])


def serialize_payment(payment):
    return serialize(
        payment,
        allocations=[serialize(a) for a in payment.allocations.all()],
    )


def serialize_account(account):
    return serialize(
        account, current_balance=account.current_balance,
        balance_status=account.balance_status)


def serialize_party(party):
    return serialize(
        party, current_outstanding=party.current_outstanding,
        available_credit=party.available_credit)


# ----------------------------
# Bank accounts
# ----------------------------
@json_endpoint("GET", "POST")
def bank_account_list(request):
    if request.method == "GET":
        accounts = BankAccount.objects.active(request.entity).order_by("account_name")
        return ok([serialize_account(a) for a in accounts])

    require_write(request)
    data = dict(request.data)
    account = services.create_bank_account(
        request.entity,
        data.pop("account_name", ""),
        data.pop("account_type", ""),
        user=request.user,
        **data,
    )
    return ok(serialize_account(account), status=201)


@json_endpoint("GET", "PATCH", "DELETE")
def bank_account_detail(request, account_id):
    if request.method == "GET":
        account = get_for_entity(BankAccount, account_id, request.entity)
        return ok(serialize_account(account))

    if request.method == "PATCH":
        require_write(request)
        account = services.update_bank_account(
            account_id, request.data, user=request.user, entity=request.entity)
        return ok(serialize_account(account))

    require_admin(request)
    deleted = services.delete_bank_account(
        account_id, user=request.user, entity=request.entity)
    return ok({"deleted": deleted, "disabled": not deleted})


# ----------------------------
# Transactions
# ----------------------------
@json_endpoint("GET", "POST")
def transaction_list(request):
    if request.method == "GET":
        qs = Transaction.objects.for_entity(request.entity).order_by("-transaction_date", "-id")
        for name in ("status", "type", "bank_account"):
            if request.GET.get(name):
                qs = qs.filter(**{name: request.GET[name]})
        return ok([serialize(tx) for tx in qs])

    require_write(request)
    data = dict(request.data)
    tx = services.create_transaction(
        request.entity,
        data.pop("bank_account", None),
        data.pop("type", None),
        data.pop("amount", None),
        data.pop("status", "pending"),
        data.pop("transfer_to_account", None),
        transaction_date=data.pop("transaction_date", None),
        idempotency_key=data.pop("idempotency_key", None),
        user=request.user,
        **data,
    )
    return ok(serialize(tx), status=201)


@json_endpoint("GET", "PATCH", "DELETE")
def transaction_detail(request, tx_id):
    if request.method == "GET":
        return ok(serialize(get_for_entity(Transaction, tx_id, request.entity)))

    if request.method == "PATCH":
        require_write(request)
        tx = services.update_transaction(
            tx_id, request.data, user=request.user, entity=request.entity)
        return ok(serialize(tx))

    require_admin(request)
    services.delete_transaction(tx_id, user=request.user, entity=request.entity)
    return ok({"deleted": True})


@json_endpoint("POST")
def transaction_bulk_status(request):
    require_write(request)
    count = services.bulk_update_status(
        request.data.get("ids") or [],
        request.data.get("status"),
        user=request.user,
        entity=request.entity,
    )
    return ok({"updated": count})


# ----------------------------
# Invoices
# ----------------------------
@json_endpoint("GET", "POST")
def invoice_list(request):
    if request.method == "GET":
        qs = Invoice.objects.for_entity(request.entity).order_by("-invoice_date", "-id")
        for name in ("invoice_type", "status"):
            if request.GET.get(name):
                qs = qs.filter(**{name: request.GET[name]})
        return ok([serialize(inv) for inv in qs])

    require_write(request)
    data = dict(request.data)
    invoice_type = data.pop("invoice_type", None)
    party = data.pop("customer", None) if invoice_type == "sales" else data.pop("vendor", None)
    invoice = services.create_invoice(
        request.entity,
        invoice_type,
        party,
        data.pop("line_items", None),
        data.pop("due_date", None),
        user=request.user,
        **data,
    )
    return ok(serialize_invoice(invoice), status=201)


@json_endpoint("GET", "PATCH")
def invoice_detail(request, invoice_id):
    if request.method == "GET":
        return ok(serialize_invoice(get_for_entity(Invoice, invoice_id, request.entity)))

    require_write(request)
    invoice = services.update_invoice(
        invoice_id, request.data, user=request.user, entity=request.entity)
    return ok(serialize_invoice(invoice))


@json_endpoint("POST")
def invoice_issue(request, invoice_id):
    require_write(request)
    invoice = services.issue_invoice(invoice_id, user=request.user, entity=request.entity)
    return ok({"status": invoice.status})


@json_endpoint("POST")
def invoice_cancel(request, invoice_id):
    require_admin(request)
    invoice = services.cancel_invoice(invoice_id, user=request.user, entity=request.entity)
    return ok({"status": invoice.status})


@json_endpoint("GET")
def invoice_aging(request):
    report = services.aging_report(
        request.entity, request.GET.get("invoice_type", "sales"))
    return ok(report)


# ----------------------------
# Payments
# ----------------------------
@json_endpoint("GET", "POST")
def payment_list(request):
    if request.method == "GET":
        qs = Payment.objects.for_entity(request.entity).order_by("-payment_date", "-id")
        if request.GET.get("direction"):
            qs = qs.filter(direction=request.GET["direction"])
        return ok([serialize(p) for p in qs])

    require_write(request)
    data = dict(request.data)
    direction = data.pop("direction", None)
    party = data.pop("customer", None) if direction == "received" else data.pop("vendor", None)
    payment = services.create_payment(
        request.entity,
        direction,
        party,
        data.pop("amount", None),
        data.pop("payment_mode", None),
        user=request.user,
        **data,
    )
    return ok(serialize_payment(payment), status=201)


@json_endpoint("GET", "PATCH")
def payment_detail(request, payment_id):
    if request.method == "GET":
        return ok(serialize_payment(get_for_entity(Payment, payment_id, request.entity)))

    require_write(request)
    payment = services.update_payment(
        payment_id, request.data, user=request.user, entity=request.entity)
    return ok(serialize_payment(payment))


@json_endpoint("POST")
def payment_cancel(request, payment_id):
    require_admin(request)
    payment = services.cancel_payment(payment_id, user=request.user, entity=request.entity)
    return ok({"status": payment.status})


@json_endpoint("POST")
def payment_allocate(request, payment_id):
    require_write(request)
    payment = services.allocate_payment(
        payment_id,
        request.data.get("invoice"),
        request.data.get("amount"),
        user=request.user,
        entity=request.entity,
    )
    return ok(serialize_payment(payment))


@json_endpoint("GET")
def payment_unallocated(request):
    payments = services.unallocated_payments(request.entity, request.GET.get("direction"))
    return ok([serialize(p) for p in payments])


# ----------------------------
# Customers / vendors
# ----------------------------
def _party_detail(model):
    @json_endpoint("GET", "PATCH", "DELETE")
    def view(request, party_id):
        party = get_for_entity(model, party_id, request.entity)
        if request.method == "GET":
            return ok(serialize_party(party))
        if request.method == "PATCH":
            require_write(request)
            party = services.update_party(party, request.data, user=request.user)
            return ok(serialize_party(party))
        require_admin(request)
        services.delete_party(party, user=request.user)
        return ok({"deleted": True})

    view.__name__ = f"{model._meta.model_name}_detail"
    return view


customer_detail = _party_detail(Customer)
vendor_detail = _party_detail(Vendor)
